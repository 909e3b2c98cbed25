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

"""Unittests for collecting_listener and text_result_reporter."""

import io
import unittest
from unittest import mock

from dtest.dtest_enum import TestFailure
from dtest.dtest_enum import TestStatus
from dtest.result import collecting_listener
from dtest.result import text_result_reporter
from dtest.result.test_identifier import TestIdentifier

TEST = TestIdentifier('FooTest', 'testFoo')
OTHER_TEST = TestIdentifier('FooTest', 'testBar')


class CollectingTestListenerUnittests(unittest.TestCase):

  def setUp(self):
    self.listener = collecting_listener.CollectingTestListener()

  def test_normal_run_is_complete_and_passed(self):
    self.listener.test_run_started('run', 1)
    self.listener.test_started(TEST)
    self.listener.test_ended(TEST)
    self.listener.test_run_ended(0)

    run = self.listener.current_run_results
    self.assertTrue(run.complete)
    self.assertFalse(run.is_run_failure)
    self.assertEqual(run.tests, [TEST])
    self.assertEqual(run.test_results[TEST].status, TestStatus.PASSED)

  def test_run_failed_without_run_ended_is_not_complete(self):
    self.listener.test_run_started('run', 1)
    self.listener.test_run_failed('lost')

    run = self.listener.current_run_results
    self.assertFalse(run.complete)
    self.assertTrue(run.is_run_failure)
    self.assertEqual(run.failure_message, 'lost')

  def test_failed_test_keeps_status_after_ended(self):
    self.listener.test_run_started('run', 2)
    self.listener.test_started(TEST)
    self.listener.test_failed(TestFailure.ERROR, TEST, 'trace')
    self.listener.test_ended(TEST)
    self.listener.test_started(OTHER_TEST)
    self.listener.test_failed(TestFailure.FAILURE, OTHER_TEST, 'trace')
    self.listener.test_ended(OTHER_TEST)
    self.listener.test_run_ended(1)

    self.assertEqual(self.listener.num_tests(TestStatus.ERROR), 1)
    self.assertEqual(self.listener.num_tests(TestStatus.FAILURE), 1)
    self.assertEqual(self.listener.num_tests(TestStatus.PASSED), 0)
    self.assertTrue(self.listener.has_failed_tests())

  def test_runs_with_same_name_are_merged(self):
    self.listener.test_run_started('run', 2)
    self.listener.test_started(TEST)
    self.listener.test_ended(TEST)
    self.listener.test_run_failed('crash')
    self.listener.test_run_ended(1)
    self.listener.test_run_started('run', 1)
    self.listener.test_started(OTHER_TEST)
    self.listener.test_ended(OTHER_TEST)
    self.listener.test_run_ended(1)

    self.assertEqual(len(self.listener.run_results), 1)
    run = self.listener.run_results[0]
    self.assertEqual(run.num_tests(TestStatus.PASSED), 2)
    self.assertFalse(run.is_run_failure)
    self.assertEqual(run.elapsed_ms, 2)


class TextResultReporterUnittests(unittest.TestCase):

  @mock.patch('sys.stdout', new_callable=io.StringIO)
  def test_summary_counts_passed_and_failed(self, _):
    reporter = text_result_reporter.TextResultReporter()
    reporter.test_run_started('run', 2)
    reporter.test_started(TEST)
    reporter.test_ended(TEST)
    reporter.test_started(OTHER_TEST)
    reporter.test_failed(TestFailure.FAILURE, OTHER_TEST, 'trace')
    reporter.test_ended(OTHER_TEST)
    reporter.test_run_ended(3)
    reporter.invocation_ended(4)

    summary = reporter.get_summary()

    self.assertEqual(summary.summary, '1 passed, 1 failed')
    self.assertEqual(summary.kv_entries, {'passed': '1', 'failed': '1'})

  @mock.patch('sys.stdout', new_callable=io.StringIO)
  def test_invocation_ended_prints_run_line(self, mock_stdout):
    reporter = text_result_reporter.TextResultReporter()
    reporter.test_run_started('run', 1)
    reporter.test_started(TEST)
    reporter.test_ended(TEST)
    reporter.test_run_ended(3)

    reporter.invocation_ended(4)

    self.assertIn('run: 1 passed, 0 failed', mock_stdout.getvalue())


if __name__ == '__main__':
  unittest.main()
