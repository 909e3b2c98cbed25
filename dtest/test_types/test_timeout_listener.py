# Copyright 2024, The Android Open Source Project
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Listener that calls back when a single test runs for too long."""

import threading
from typing import Callable, Optional

from dtest.result import listeners
from dtest.result.test_identifier import TestIdentifier


class TestTimeoutListener(listeners.TestRunListener):
  """Arms a deadline at each test_started and fires callback on expiry.

  The callback only signals the harness; stopping the device side work is up
  to the callback.
  """

  def __init__(
      self,
      timeout_ms: int,
      callback: Callable[[TestIdentifier], None],
      timer_factory=threading.Timer,
  ):
    self._timeout_s = timeout_ms / 1000
    self._callback = callback
    self._timer_factory = timer_factory
    self._timer: Optional[threading.Timer] = None
    self._lock = threading.Lock()

  def test_started(self, test):
    with self._lock:
      self._cancel_timer()
      self._timer = self._timer_factory(
          self._timeout_s, self._callback, args=(test,)
      )
      self._timer.daemon = True
      self._timer.start()

  def test_ended(self, test, test_metrics=None):
    with self._lock:
      self._cancel_timer()

  def test_run_failed(self, error_message):
    self.cancel()

  def test_run_stopped(self, elapsed_ms):
    self.cancel()

  def test_run_ended(self, elapsed_ms, run_metrics=None):
    self.cancel()

  def cancel(self):
    with self._lock:
      self._cancel_timer()

  def _cancel_timer(self):
    if self._timer is not None:
      self._timer.cancel()
      self._timer = None
