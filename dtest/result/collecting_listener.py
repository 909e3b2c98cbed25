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

"""A listener that keeps the results of the test runs it sees."""

from __future__ import annotations

import dataclasses
from typing import Dict, List, Optional

from dtest import dtest_utils
from dtest.dtest_enum import TestFailure
from dtest.dtest_enum import TestStatus
from dtest.result import listeners
from dtest.result.test_identifier import TestIdentifier


@dataclasses.dataclass
class TestResult:
  """Outcome of a single test method."""

  status: TestStatus = TestStatus.INCOMPLETE
  stack_trace: Optional[str] = None
  metrics: Dict[str, str] = dataclasses.field(default_factory=dict)
  start_time_ms: int = dataclasses.field(
      default_factory=dtest_utils.current_time_ms
  )
  end_time_ms: Optional[int] = None


class TestRunResult:
  """Results of one test run, built incrementally from listener events.

  complete is only set by test_run_ended; failure is only set by
  test_run_failed. A run that never saw test_run_ended is treated as a
  communication failure by the callers.
  """

  def __init__(self, name: Optional[str] = None):
    self.name = name
    self.expected_test_count = 0
    self.test_results: Dict[TestIdentifier, TestResult] = {}
    self.run_metrics: Dict[str, str] = {}
    self.elapsed_ms = 0
    self.complete = False
    self.failure_message: Optional[str] = None

  @property
  def is_run_failure(self) -> bool:
    return self.failure_message is not None

  @property
  def tests(self) -> List[TestIdentifier]:
    return list(self.test_results)

  def num_tests(self, status: Optional[TestStatus] = None) -> int:
    if status is None:
      return len(self.test_results)
    return sum(1 for r in self.test_results.values() if r.status == status)

  @property
  def has_failed_tests(self) -> bool:
    return any(
        r.status in (TestStatus.FAILURE, TestStatus.ERROR)
        for r in self.test_results.values()
    )

  def test_started(self, test: TestIdentifier):
    self.test_results[test] = TestResult()

  def test_failed(self, status: TestFailure, test: TestIdentifier, trace: str):
    result = self.test_results.setdefault(test, TestResult())
    result.status = (
        TestStatus.ERROR if status == TestFailure.ERROR else TestStatus.FAILURE
    )
    result.stack_trace = trace

  def test_ended(self, test: TestIdentifier, test_metrics=None):
    result = self.test_results.setdefault(test, TestResult())
    if result.status == TestStatus.INCOMPLETE:
      result.status = TestStatus.PASSED
    result.metrics = dict(test_metrics or {})
    result.end_time_ms = dtest_utils.current_time_ms()

  def run_failed(self, error_message: str):
    self.failure_message = error_message

  def run_ended(self, elapsed_ms: int, run_metrics=None):
    self.elapsed_ms += elapsed_ms
    self.run_metrics.update(run_metrics or {})
    self.complete = True


class CollectingTestListener(listeners.TestInvocationListener):
  """Collects the results of every test run it is given.

  Runs with the same name are merged so a rerun of a few tests updates the
  results of the original run.
  """

  def __init__(self):
    self.build_info = None
    self._run_results: Dict[str, TestRunResult] = {}
    self._current: Optional[TestRunResult] = None

  @property
  def current_run_results(self) -> TestRunResult:
    if self._current is None:
      # Events outside a run still need somewhere to land.
      self._current = TestRunResult()
    return self._current

  @property
  def run_results(self) -> List[TestRunResult]:
    return list(self._run_results.values())

  def invocation_started(self, build_info):
    self.build_info = build_info

  def test_run_started(self, run_name, test_count):
    run = self._run_results.get(run_name)
    if run is None:
      run = TestRunResult(run_name)
      self._run_results[run_name] = run
    else:
      # A rerun reopens the run.
      run.complete = False
      run.failure_message = None
    run.expected_test_count += test_count
    self._current = run

  def test_started(self, test):
    self.current_run_results.test_started(test)

  def test_failed(self, status, test, trace):
    self.current_run_results.test_failed(status, test, trace)

  def test_ended(self, test, test_metrics=None):
    self.current_run_results.test_ended(test, test_metrics)

  def test_run_failed(self, error_message):
    self.current_run_results.run_failed(error_message)

  def test_run_ended(self, elapsed_ms, run_metrics=None):
    self.current_run_results.run_ended(elapsed_ms, run_metrics)

  def num_tests(self, status: Optional[TestStatus] = None) -> int:
    return sum(run.num_tests(status) for run in self._run_results.values())

  def has_failed_tests(self) -> bool:
    return any(run.has_failed_tests for run in self._run_results.values())
