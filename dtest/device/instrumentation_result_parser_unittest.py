#!/usr/bin/env python3
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

"""Unittests for instrumentation_result_parser."""

import unittest
from unittest import mock

from dtest.device import instrumentation_result_parser as parser_lib
from dtest.dtest_enum import TestFailure
from dtest.result.test_identifier import TestIdentifier

TEST = TestIdentifier('com.foo.FooTest', 'testFoo')

_START = """INSTRUMENTATION_STATUS: class=com.foo.FooTest
INSTRUMENTATION_STATUS: current=1
INSTRUMENTATION_STATUS: id=AndroidJUnitRunner
INSTRUMENTATION_STATUS: numtests=1
INSTRUMENTATION_STATUS: stream=
com.foo.FooTest:
INSTRUMENTATION_STATUS: test=testFoo
INSTRUMENTATION_STATUS_CODE: 1
"""

_PASS = """INSTRUMENTATION_STATUS: class=com.foo.FooTest
INSTRUMENTATION_STATUS: current=1
INSTRUMENTATION_STATUS: numtests=1
INSTRUMENTATION_STATUS: stream=.
INSTRUMENTATION_STATUS: test=testFoo
INSTRUMENTATION_STATUS_CODE: 0
"""

_FAIL = """INSTRUMENTATION_STATUS: class=com.foo.FooTest
INSTRUMENTATION_STATUS: current=1
INSTRUMENTATION_STATUS: numtests=1
INSTRUMENTATION_STATUS: stack=junit.framework.AssertionFailedError
\tat com.foo.FooTest.testFoo(FooTest.java:10)
INSTRUMENTATION_STATUS: test=testFoo
INSTRUMENTATION_STATUS_CODE: -2
"""

_RUN_OK = """INSTRUMENTATION_RESULT: stream=

Time: 0.012

OK (1 test)


INSTRUMENTATION_CODE: -1
"""

_RUN_CRASH = """INSTRUMENTATION_RESULT: shortMsg=Process crashed.
INSTRUMENTATION_CODE: 0
"""


class InstrumentationResultParserUnittests(unittest.TestCase):

  def setUp(self):
    self.listener = mock.Mock()
    self.parser = parser_lib.InstrumentationResultParser('run', self.listener)

  def _parse(self, output):
    self.parser.add_output(output)
    self.parser.flush()

  def test_passing_test(self):
    self._parse(_START + _PASS + _RUN_OK)

    self.assertEqual(
        self.listener.mock_calls,
        [
            mock.call.test_run_started('run', 1),
            mock.call.test_started(TEST),
            mock.call.test_ended(TEST, {}),
            mock.call.test_run_ended(12, {}),
        ],
    )

  def test_output_split_across_chunks(self):
    output = _START + _PASS + _RUN_OK
    for i in range(0, len(output), 7):
      self.parser.add_output(output[i:i + 7])
    self.parser.flush()

    self.listener.test_ended.assert_called_once_with(TEST, {})
    self.listener.test_run_ended.assert_called_once_with(12, {})

  def test_failed_test_keeps_multi_line_stack(self):
    self._parse(_START + _FAIL + _RUN_OK)

    self.listener.test_failed.assert_called_once_with(
        TestFailure.FAILURE,
        TEST,
        'junit.framework.AssertionFailedError\n'
        '\tat com.foo.FooTest.testFoo(FooTest.java:10)',
    )
    self.listener.test_run_failed.assert_not_called()

  def test_crash_fails_the_test_in_progress_and_the_run(self):
    self._parse(_START + _RUN_CRASH)

    run_msg = parser_lib.RUN_FAILED_MSG % 'Process crashed.'
    self.assertEqual(
        self.listener.mock_calls,
        [
            mock.call.test_run_started('run', 1),
            mock.call.test_started(TEST),
            mock.call.test_failed(
                TestFailure.ERROR,
                TEST,
                parser_lib.INCOMPLETE_TEST_ERR_MSG % run_msg,
            ),
            mock.call.test_ended(TEST, {}),
            mock.call.test_run_failed(run_msg),
            mock.call.test_run_ended(mock.ANY, {}),
        ],
    )

  def test_truncated_output_reports_incomplete_run(self):
    self._parse(_START)

    self.listener.test_run_failed.assert_called_once_with(
        parser_lib.INCOMPLETE_RUN_ERR_MSG % (1, 0)
    )

  def test_no_output_reports_empty_failed_run(self):
    self._parse('')

    self.assertEqual(
        self.listener.mock_calls,
        [
            mock.call.test_run_started('run', 0),
            mock.call.test_run_failed(parser_lib.NO_TEST_RESULTS_MSG),
            mock.call.test_run_ended(mock.ANY, {}),
        ],
    )

  def test_runner_error_fails_the_run(self):
    self._parse(
        'INSTRUMENTATION_STATUS: id=ActivityManagerService\n'
        'INSTRUMENTATION_STATUS: Error=Unable to find instrumentation info\n'
        'INSTRUMENTATION_STATUS_CODE: -1\n'
    )

    self.listener.test_run_failed.assert_called_once_with(
        parser_lib.RUN_FAILED_MSG % 'Unable to find instrumentation info'
    )

  def test_empty_run_is_a_complete_run(self):
    self._parse('INSTRUMENTATION_RESULT: stream=\n\nTime: 0\n\nOK (0 tests)\n'
                '\nINSTRUMENTATION_CODE: -1\n')

    self.assertEqual(
        self.listener.mock_calls,
        [
            mock.call.test_run_started('run', 0),
            mock.call.test_run_ended(0, {}),
        ],
    )

  def test_cancelled_run_only_ends_the_run(self):
    self.parser.add_output(_START)
    self.parser.cancel()
    self.parser.flush()

    self.assertTrue(self.parser.is_cancelled())
    self.assertEqual(
        self.listener.mock_calls,
        [
            mock.call.test_run_started('run', 1),
            mock.call.test_started(TEST),
            mock.call.test_run_ended(mock.ANY),
        ],
    )

  def test_output_after_cancel_is_ignored(self):
    self.parser.add_output(_START)
    self.parser.cancel()
    self.parser.add_output(_PASS + _RUN_OK)
    self.parser.flush()

    self.listener.test_ended.assert_not_called()

  def test_is_incomplete_when_output_stops_early(self):
    self._parse(_START)

    self.assertTrue(self.parser.is_incomplete())

  def test_is_incomplete_without_any_output(self):
    self._parse('')

    self.assertTrue(self.parser.is_incomplete())

  def test_is_not_incomplete_after_the_run_code(self):
    self._parse(_START + _PASS + _RUN_OK)

    self.assertFalse(self.parser.is_incomplete())

  def test_is_not_incomplete_when_the_runner_failed(self):
    self._parse('INSTRUMENTATION_FAILED: com.foo/.FooRunner\n')

    self.assertFalse(self.parser.is_incomplete())
    self.listener.test_run_failed.assert_called_once_with(
        parser_lib.RUN_FAILED_MSG % 'com.foo/.FooRunner'
    )


if __name__ == '__main__':
  unittest.main()
