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

"""Runs a list of instrumentation tests one at a time."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

from dtest import constants
from dtest.dtest_enum import TestFailure
from dtest.result import result_forwarder
from dtest.result.test_identifier import TestIdentifier
from dtest.test_types import remote_test

RUN_FAILED_MSG = 'Test run failed: %s'
NOT_EXECUTED_MSG = 'Test was not executed by its run'


class InstrumentationListTest(remote_test.DeviceTest):
  """Runs each given test as its own instrumentation run.

  A test that never reaches test_ended in its dedicated run is reported as
  an error, so no test of the list goes unreported.
  """

  def __init__(
      self,
      package_name: str,
      runner_name: Optional[str],
      tests: Iterable[TestIdentifier],
      test_factory: Callable[[], remote_test.DeviceTest],
      test_timeout_ms: int = constants.DEFAULT_TEST_TIMEOUT_MS,
  ):
    super().__init__()
    self._package_name = package_name
    self._runner_name = runner_name
    self._tests = list(tests)
    self._test_factory = test_factory
    self._test_timeout_ms = test_timeout_ms

  @property
  def tests(self):
    return list(self._tests)

  def run(self, listener):
    self._check_device()
    for test in self._tests:
      runner = self._test_factory()
      runner.set_device(self.device)
      runner.package_name = self._package_name
      runner.runner_name = self._runner_name
      runner.class_name = test.class_name
      runner.method_name = test.test_name
      runner.test_timeout_ms = self._test_timeout_ms
      # Reruns of a single test never rerun again.
      runner.rerun_mode = False
      tracker = TestTrackingForwarder(listener, test, self._package_name)
      runner.run(tracker)
      tracker.finish()


class TestTrackingForwarder(result_forwarder.ResultForwarder):
  """Forwards one single-test run and reports the test if it never ended.

  The missing test is reported (test_started, test_failed, test_ended) before
  the run level test_run_failed or test_run_ended is forwarded.
  """

  def __init__(self, listener, expected_test: TestIdentifier, run_name: str):
    super().__init__([listener])
    self._expected_test = expected_test
    self._run_name = run_name
    self._run_started = False
    self._run_ended = False
    self._test_started = False
    self._test_failed = False
    self._did_test_run = False
    self._run_error_msg = None

  def test_run_started(self, run_name, test_count):
    self._run_started = True
    super().test_run_started(run_name, test_count)

  def test_started(self, test):
    if test == self._expected_test:
      self._test_started = True
    super().test_started(test)

  def test_failed(self, status, test, trace):
    if test == self._expected_test:
      self._test_failed = True
    super().test_failed(status, test, trace)

  def test_ended(self, test, test_metrics=None):
    super().test_ended(test, test_metrics)
    if test == self._expected_test:
      self._did_test_run = True
    else:
      logging.warning('Expected test %s, but got test %s',
                      self._expected_test, test)

  def test_run_failed(self, error_message):
    self._run_error_msg = error_message
    self._report_missing_test()
    super().test_run_failed(error_message)

  def test_run_ended(self, elapsed_ms, run_metrics=None):
    self._report_missing_test()
    self._run_ended = True
    super().test_run_ended(elapsed_ms, run_metrics)

  def finish(self):
    """Closes out a run that produced no run level events at all."""
    if self._did_test_run and self._run_ended:
      return
    if not self._run_started:
      super().test_run_started(self._run_name, 1)
      self._run_started = True
    if not self._run_ended:
      self.test_run_ended(0)

  def _report_missing_test(self):
    if self._did_test_run:
      return
    if self._run_error_msg is not None:
      trace = RUN_FAILED_MSG % self._run_error_msg
    else:
      trace = NOT_EXECUTED_MSG
    logging.debug('Test %s was not executed, reporting it as failed: %s',
                  self._expected_test, trace)
    # A test that timed out was already started and failed.
    if not self._test_started:
      self.test_started(self._expected_test)
    if not self._test_failed:
      self.test_failed(TestFailure.ERROR, self._expected_test, trace)
    self.test_ended(self._expected_test, {})
