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

"""Listener base classes for test run and invocation events.

Callbacks for one test run arrive strictly ordered:
test_run_started -> [test_started -> test_failed? -> test_ended]* ->
test_run_failed? -> test_run_ended.

Every callback is a no-op by default so listeners only override what they
care about.
"""

from __future__ import annotations

import dataclasses
from typing import Dict, List, Optional

from dtest.dtest_enum import TestFailure
from dtest.result.log_data import InputStreamSource
from dtest.result.log_data import LogDataType
from dtest.result.test_identifier import TestIdentifier


@dataclasses.dataclass
class TestSummary:
  """Summary of an invocation, as produced by a reporting listener."""

  summary: str
  kv_entries: Dict[str, str] = dataclasses.field(default_factory=dict)


class TestRunListener:
  """Receives events for the test runs of one device interaction."""

  def test_run_started(self, run_name: str, test_count: int):
    pass

  def test_started(self, test: TestIdentifier):
    pass

  def test_failed(self, status: TestFailure, test: TestIdentifier, trace: str):
    pass

  def test_ended(
      self, test: TestIdentifier, test_metrics: Optional[Dict[str, str]] = None
  ):
    pass

  def test_run_failed(self, error_message: str):
    pass

  def test_run_stopped(self, elapsed_ms: int):
    pass

  def test_run_ended(
      self, elapsed_ms: int, run_metrics: Optional[Dict[str, str]] = None
  ):
    pass


class TestInvocationListener(TestRunListener):
  """Receives events for a whole invocation, test runs included."""

  def invocation_started(self, build_info):
    pass

  def invocation_failed(self, cause: BaseException):
    pass

  def invocation_ended(self, elapsed_ms: int):
    pass

  def test_log(
      self,
      data_name: str,
      data_type: LogDataType,
      data_stream: InputStreamSource,
  ):
    pass

  def get_summary(self) -> Optional[TestSummary]:
    """Returns a summary of the invocation, or None."""
    return None


class TestSummaryListener(TestInvocationListener):
  """An invocation listener that also consumes the other listeners' summaries."""

  def put_summary(self, summaries: List[TestSummary]):
    pass
