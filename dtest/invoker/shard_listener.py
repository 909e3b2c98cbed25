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

"""Listeners joining the results of a sharded invocation.

Each shard runs as its own invocation, usually on its own device. The
ShardListener of a shard keeps the shard's results and hands them to the
shared ShardMainResultForwarder in one batch when the shard ends, so runs of
different shards never interleave on the configured listeners.
"""

import logging
import threading

from dtest.dtest_enum import ForwardingPolicy
from dtest.dtest_enum import TestFailure
from dtest.dtest_enum import TestStatus
from dtest.result import collecting_listener
from dtest.result import result_forwarder


class ShardMainResultForwarder(result_forwarder.ResultForwarder):
  """Reports every shard of an invocation as one invocation.

  invocation_started is forwarded once. invocation_ended is forwarded once
  the last shard has ended, with the elapsed time of the longest shard.
  Callers hold lock while forwarding a batch of results.
  """

  def __init__(self, listeners, num_shards,
               policy=ForwardingPolicy.BEST_EFFORT):
    super().__init__(listeners, policy)
    self.lock = threading.RLock()
    self._shards_remaining = num_shards
    self._started = False
    self._elapsed_ms = 0

  @property
  def shards_remaining(self):
    with self.lock:
      return self._shards_remaining

  def invocation_started(self, build_info):
    with self.lock:
      if self._started:
        return
      self._started = True
      super().invocation_started(build_info)

  def invocation_ended(self, elapsed_ms):
    with self.lock:
      self._shards_remaining -= 1
      self._elapsed_ms = max(self._elapsed_ms, elapsed_ms)
      if self._shards_remaining > 0:
        logging.debug('Shard ended, %d still running', self._shards_remaining)
        return
      super().invocation_ended(self._elapsed_ms)


class ShardListener(collecting_listener.CollectingTestListener):
  """Collects the results of one shard and forwards them when it ends.

  Logs and invocation failures are forwarded right away.
  """

  def __init__(self, main: ShardMainResultForwarder):
    super().__init__()
    self._main = main

  def invocation_started(self, build_info):
    super().invocation_started(build_info)
    self._main.invocation_started(build_info)

  def invocation_failed(self, cause):
    with self._main.lock:
      self._main.invocation_failed(cause)

  def test_log(self, data_name, data_type, data_stream):
    with self._main.lock:
      self._main.test_log(data_name, data_type, data_stream)

  def invocation_ended(self, elapsed_ms):
    with self._main.lock:
      for run in self.run_results:
        self._main.test_run_started(run.name, run.expected_test_count)
        self._forward_test_results(run.test_results)
        if run.is_run_failure:
          self._main.test_run_failed(run.failure_message)
        self._main.test_run_ended(run.elapsed_ms, run.run_metrics)
      self._main.invocation_ended(elapsed_ms)

  def _forward_test_results(self, test_results):
    for test, result in test_results.items():
      self._main.test_started(test)
      if result.status is TestStatus.ERROR:
        self._main.test_failed(TestFailure.ERROR, test, result.stack_trace)
      elif result.status is TestStatus.FAILURE:
        self._main.test_failed(TestFailure.FAILURE, test, result.stack_trace)
      if result.status is not TestStatus.INCOMPLETE:
        self._main.test_ended(test, result.metrics)
