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

"""Parser for the console output of a GTest binary.

Example output:

  [==========] Running 2 tests from 1 test case.
  [----------] 2 tests from FooTest
  [ RUN      ] FooTest.Bar
  [       OK ] FooTest.Bar (1 ms)
  [ RUN      ] FooTest.Baz
  foo_test.cpp:12: Failure
  Value of: x
  [  FAILED  ] FooTest.Baz (0 ms)
  [----------] 2 tests from FooTest (1 ms total)
  [==========] 2 tests from 1 test case ran. (1 ms total)
  [  PASSED  ] 1 test.
  [  FAILED  ] 1 test, listed below:
  [  FAILED  ] FooTest.Baz
"""

import re

from dtest import dtest_utils
from dtest.device import test_device
from dtest.dtest_enum import TestFailure
from dtest.result.test_identifier import TestIdentifier

_RUN_START_RE = re.compile(r'^\[==========\] Running (\d+) tests?')
_RUN_END_RE = re.compile(r'^\[==========\] .* ran\. \((\d+) ms total\)')
_TEST_START_RE = re.compile(r'^\[ RUN      \] (\S+)')
_TEST_OK_RE = re.compile(r'^\[       OK \] (\S+)')
_TEST_FAILED_RE = re.compile(r'^\[  FAILED  \] (\S+?)(?:,|\s|$)')
_TEST_SKIPPED_RE = re.compile(r'^\[  SKIPPED \] (\S+)')

INCOMPLETE_TEST_ERR_MSG = 'Test failed to complete: %s'
RUN_INCOMPLETE_MSG = 'Test run incomplete. Expected %d tests, received %d'
NO_TEST_RESULTS_MSG = 'No test results'


def _to_identifier(name):
  class_name, _, test_name = name.rpartition('.')
  return TestIdentifier(class_name, test_name)


class GTestResultParser(test_device.MultiLineReceiver):
  """Turns the output of one GTest binary into listener events."""

  def __init__(self, run_name, listener):
    super().__init__()
    self._run_name = run_name
    self._listener = listener
    self._start_ms = dtest_utils.current_time_ms()
    self._run_started = False
    self._num_tests = None
    self._num_reported = 0
    self._test_in_progress = None
    self._test_output = []
    self._elapsed_ms = None

  def process_new_lines(self, lines):
    for line in lines:
      self._parse(line)

  def _parse(self, line):
    match = _RUN_START_RE.match(line)
    if match:
      self._num_tests = int(match.group(1))
      self._ensure_run_started()
      return
    match = _RUN_END_RE.match(line)
    if match:
      self._elapsed_ms = int(match.group(1))
      return
    match = _TEST_START_RE.match(line)
    if match:
      self._ensure_run_started()
      self._test_in_progress = _to_identifier(match.group(1))
      self._test_output = []
      self._listener.test_started(self._test_in_progress)
      return
    if self._test_in_progress is None:
      return
    match = _TEST_OK_RE.match(line) or _TEST_SKIPPED_RE.match(line)
    if match:
      self._end_test()
      return
    match = _TEST_FAILED_RE.match(line)
    if match:
      self._listener.test_failed(TestFailure.FAILURE, self._test_in_progress,
                                 '\n'.join(self._test_output))
      self._end_test()
      return
    self._test_output.append(line)

  def _ensure_run_started(self):
    if self._run_started:
      return
    self._run_started = True
    self._listener.test_run_started(self._run_name, self._num_tests or 0)

  def _end_test(self):
    self._listener.test_ended(self._test_in_progress, {})
    self._test_in_progress = None
    self._test_output = []
    self._num_reported += 1

  def done(self):
    message = None
    if not self._run_started:
      message = NO_TEST_RESULTS_MSG
    elif self._test_in_progress is not None:
      # The binary stopped in the middle of a test, e.g. it crashed.
      message = INCOMPLETE_TEST_ERR_MSG % (self._test_in_progress,)
      self._listener.test_failed(TestFailure.ERROR, self._test_in_progress,
                                 '\n'.join(self._test_output) or message)
      self._listener.test_ended(self._test_in_progress, {})
      self._test_in_progress = None
    elif self._num_tests is not None and self._num_reported < self._num_tests:
      message = RUN_INCOMPLETE_MSG % (self._num_tests, self._num_reported)
    self._ensure_run_started()
    if message is not None:
      self._listener.test_run_failed(message)
    elapsed = self._elapsed_ms
    if elapsed is None:
      elapsed = dtest_utils.elapsed_ms(self._start_ms)
    self._listener.test_run_ended(elapsed, {})
