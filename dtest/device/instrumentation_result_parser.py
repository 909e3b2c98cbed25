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

"""Parser for the raw output of 'am instrument -r'.

Example output of a run with one passing test:

  INSTRUMENTATION_STATUS: class=com.foo.FooTest
  INSTRUMENTATION_STATUS: current=1
  INSTRUMENTATION_STATUS: numtests=1
  INSTRUMENTATION_STATUS: test=testFoo
  INSTRUMENTATION_STATUS_CODE: 1
  INSTRUMENTATION_STATUS: class=com.foo.FooTest
  ...
  INSTRUMENTATION_STATUS_CODE: 0
  INSTRUMENTATION_RESULT: stream=
  Time: 0.012
  OK (1 test)
  INSTRUMENTATION_CODE: -1
"""

import logging
import re

from dtest import dtest_utils
from dtest.device import test_device
from dtest.dtest_enum import TestFailure
from dtest.result.test_identifier import TestIdentifier

_STATUS_PREFIX = 'INSTRUMENTATION_STATUS: '
_STATUS_CODE_PREFIX = 'INSTRUMENTATION_STATUS_CODE: '
_RESULT_PREFIX = 'INSTRUMENTATION_RESULT: '
_CODE_PREFIX = 'INSTRUMENTATION_CODE: '
_FAILED_PREFIX = 'INSTRUMENTATION_FAILED: '
_TIME_REPORT = re.compile(r'^Time: ([\d,.]+)')

STATUS_START = 1
STATUS_OK = 0
STATUS_ERROR = -1
STATUS_FAILURE = -2
STATUS_IGNORED = -3
STATUS_ASSUMPTION_FAILURE = -4

INCOMPLETE_TEST_ERR_MSG = (
    'Test failed to run to completion. Reason: \'%s\'. '
    'Check device logcat for details'
)
INCOMPLETE_RUN_ERR_MSG = 'Test run failed to complete. Expected %d tests, received %d'
NO_TEST_RESULTS_MSG = 'No test results'
RUN_FAILED_MSG = 'Instrumentation run failed due to \'%s\''


class InstrumentationResultParser(test_device.MultiLineReceiver):
  """Turns 'am instrument -r' output into listener events for one run."""

  def __init__(self, run_name, listener):
    super().__init__()
    self._run_name = run_name
    self._listener = listener
    self._cancelled = False
    self._start_ms = dtest_utils.current_time_ms()
    self._bundle = {}
    self._current_key = None
    self._in_result = False
    self._result_bundle = {}
    self._num_tests = None
    self._num_reported = 0
    self._run_started = False
    self._test_in_progress = None
    self._run_failure = None
    self._run_complete = False
    self._elapsed_ms = None

  def cancel(self):
    self._cancelled = True

  def is_cancelled(self):
    return self._cancelled

  def is_incomplete(self):
    """Whether the output stopped before the runner reported how the run went.

    A run the runner itself failed, e.g. with INSTRUMENTATION_FAILED, is
    not incomplete.
    """
    return self._run_failure is None and not self._run_complete

  def process_new_lines(self, lines):
    if self._cancelled:
      return
    for line in lines:
      self._parse(line)

  def _parse(self, line):
    if line.startswith(_STATUS_CODE_PREFIX):
      self._current_key = None
      self._handle_status_code(line[len(_STATUS_CODE_PREFIX):].strip())
    elif line.startswith(_STATUS_PREFIX):
      self._in_result = False
      self._store_value(self._bundle, line[len(_STATUS_PREFIX):])
    elif line.startswith(_RESULT_PREFIX):
      self._in_result = True
      self._store_value(self._result_bundle, line[len(_RESULT_PREFIX):])
    elif line.startswith(_CODE_PREFIX):
      self._current_key = None
      self._handle_run_code()
    elif line.startswith(_FAILED_PREFIX):
      self._current_key = None
      self._run_failure = line[len(_FAILED_PREFIX):].strip()
    elif _TIME_REPORT.match(line):
      self._current_key = None
      seconds = _TIME_REPORT.match(line).group(1).replace(',', '')
      try:
        self._elapsed_ms = int(float(seconds) * 1000)
      except ValueError:
        logging.debug('Unexpected time report: %s', line)
    elif self._current_key is not None:
      # Continuation of a multi line value, typically a stack trace.
      bundle = self._result_bundle if self._in_result else self._bundle
      bundle[self._current_key] += '\n' + line

  def _store_value(self, bundle, key_value):
    key, sep, value = key_value.partition('=')
    if not sep:
      return
    self._current_key = key
    bundle[key] = value

  def _test_from_bundle(self):
    return TestIdentifier(
        self._bundle.get('class', ''), self._bundle.get('test', '')
    )

  def _ensure_run_started(self):
    if self._run_started:
      return
    self._run_started = True
    self._listener.test_run_started(self._run_name, self._num_tests or 0)

  def _handle_status_code(self, code_str):
    try:
      code = int(code_str)
    except ValueError:
      logging.debug('Unexpected status code %s', code_str)
      self._bundle = {}
      return
    if 'numtests' in self._bundle and self._num_tests is None:
      self._num_tests = int(self._bundle['numtests'])
    if 'class' not in self._bundle or 'test' not in self._bundle:
      # Status updates without a test, e.g. from the runner itself.
      if 'Error' in self._bundle:
        self._run_failure = self._bundle['Error']
      self._bundle = {}
      return
    self._ensure_run_started()
    test = self._test_from_bundle()
    stack = self._bundle.get('stack', '')
    if code == STATUS_START:
      self._test_in_progress = test
      self._listener.test_started(test)
    else:
      if code == STATUS_FAILURE:
        self._listener.test_failed(TestFailure.FAILURE, test, stack)
      elif code == STATUS_ERROR:
        self._listener.test_failed(TestFailure.ERROR, test, stack)
      elif code not in (STATUS_OK, STATUS_IGNORED, STATUS_ASSUMPTION_FAILURE):
        logging.debug('Unknown status code %d for %s', code, test)
      self._listener.test_ended(test, {})
      self._test_in_progress = None
      self._num_reported += 1
    self._bundle = {}

  def _handle_run_code(self):
    if 'shortMsg' in self._result_bundle:
      self._run_failure = self._result_bundle['shortMsg']
    self._run_complete = True

  def done(self):
    if self._cancelled:
      # Whoever cancelled the run has already reported its failure.
      if self._run_started:
        self._listener.test_run_ended(self._elapsed())
      return
    message = self._failure_message()
    self._ensure_run_started()
    if message is not None:
      if self._test_in_progress is not None:
        self._listener.test_failed(
            TestFailure.ERROR,
            self._test_in_progress,
            INCOMPLETE_TEST_ERR_MSG % message,
        )
        self._listener.test_ended(self._test_in_progress, {})
        self._test_in_progress = None
      self._listener.test_run_failed(message)
    self._listener.test_run_ended(self._elapsed(), self._run_metrics())

  def _failure_message(self):
    if self._run_failure is not None:
      return RUN_FAILED_MSG % self._run_failure
    if not self._run_complete:
      if self._num_tests is not None:
        return INCOMPLETE_RUN_ERR_MSG % (self._num_tests, self._num_reported)
      return NO_TEST_RESULTS_MSG
    if self._num_tests is not None and self._num_reported < self._num_tests:
      return INCOMPLETE_RUN_ERR_MSG % (self._num_tests, self._num_reported)
    return None

  def _elapsed(self):
    if self._elapsed_ms is not None:
      return self._elapsed_ms
    return dtest_utils.elapsed_ms(self._start_ms)

  def _run_metrics(self):
    return {
        k: v.strip()
        for k, v in self._result_bundle.items()
        if k not in ('stream', 'shortMsg', 'longMsg')
    }
