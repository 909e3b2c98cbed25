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

"""Unittests for instrumentation_list_test."""

import unittest
from unittest import mock

from dtest.dtest_enum import TestFailure
from dtest.result.test_identifier import TestIdentifier
from dtest.test_types import instrumentation_list_test

PACKAGE = 'com.foo'
TEST = TestIdentifier('FooTest', 'testFoo')
OTHER_TEST = TestIdentifier('FooTest', 'testBar')


class InstrumentationListTestUnittests(unittest.TestCase):

  def test_run_no_device_raises_value_error(self):
    sut = instrumentation_list_test.InstrumentationListTest(
        PACKAGE, None, [TEST], test_factory=mock.Mock()
    )

    with self.assertRaises(ValueError):
      sut.run(mock.Mock())

  def test_run_creates_one_test_without_rerun_per_identifier(self):
    created = []

    def factory():
      test = mock.Mock()
      created.append(test)
      return test

    device = mock.Mock()
    sut = instrumentation_list_test.InstrumentationListTest(
        PACKAGE, '.Runner', [TEST, OTHER_TEST], test_factory=factory,
        test_timeout_ms=500,
    )
    sut.set_device(device)

    sut.run(mock.Mock())

    self.assertEqual(len(created), 2)
    self.assertEqual(
        [(t.class_name, t.method_name) for t in created],
        [('FooTest', 'testFoo'), ('FooTest', 'testBar')],
    )
    for test in created:
      test.set_device.assert_called_once_with(device)
      self.assertEqual(test.package_name, PACKAGE)
      self.assertEqual(test.runner_name, '.Runner')
      self.assertFalse(test.rerun_mode)
      self.assertEqual(test.test_timeout_ms, 500)
      test.run.assert_called_once()


class TestTrackingForwarderUnittests(unittest.TestCase):

  def setUp(self):
    self.listener = mock.Mock()
    self.sut = instrumentation_list_test.TestTrackingForwarder(
        self.listener, TEST, PACKAGE
    )

  def test_executed_test_is_forwarded_unchanged(self):
    self.sut.test_run_started(PACKAGE, 1)
    self.sut.test_started(TEST)
    self.sut.test_ended(TEST, {})
    self.sut.test_run_ended(5, {})
    self.sut.finish()

    self.assertEqual(
        self.listener.mock_calls,
        [
            mock.call.test_run_started(PACKAGE, 1),
            mock.call.test_started(TEST),
            mock.call.test_ended(TEST, {}),
            mock.call.test_run_ended(5, {}),
        ],
    )

  def test_run_failure_reports_the_missing_test_first(self):
    self.sut.test_run_started(PACKAGE, 0)
    self.sut.test_run_failed('crash')
    self.sut.test_run_ended(5, {})
    self.sut.finish()

    self.assertEqual(
        self.listener.mock_calls,
        [
            mock.call.test_run_started(PACKAGE, 0),
            mock.call.test_started(TEST),
            mock.call.test_failed(
                TestFailure.ERROR, TEST, 'Test run failed: crash'
            ),
            mock.call.test_ended(TEST, {}),
            mock.call.test_run_failed('crash'),
            mock.call.test_run_ended(5, {}),
        ],
    )

  def test_run_ended_without_the_test_reports_it_not_executed(self):
    self.sut.test_run_started(PACKAGE, 0)
    self.sut.test_run_ended(5, {})

    self.listener.test_failed.assert_called_once_with(
        TestFailure.ERROR, TEST, instrumentation_list_test.NOT_EXECUTED_MSG
    )

  def test_finish_without_any_event_reports_a_run(self):
    self.sut.finish()

    self.assertEqual(
        self.listener.mock_calls,
        [
            mock.call.test_run_started(PACKAGE, 1),
            mock.call.test_started(TEST),
            mock.call.test_failed(
                TestFailure.ERROR, TEST,
                instrumentation_list_test.NOT_EXECUTED_MSG,
            ),
            mock.call.test_ended(TEST, {}),
            mock.call.test_run_ended(0, {}),
        ],
    )

  def test_timed_out_test_is_only_ended(self):
    self.sut.test_run_started(PACKAGE, 1)
    self.sut.test_started(TEST)
    self.sut.test_failed(TestFailure.ERROR, TEST, 'timed out')
    self.sut.test_run_failed('timed out')

    self.assertEqual(
        self.listener.mock_calls,
        [
            mock.call.test_run_started(PACKAGE, 1),
            mock.call.test_started(TEST),
            mock.call.test_failed(TestFailure.ERROR, TEST, 'timed out'),
            mock.call.test_ended(TEST, {}),
            mock.call.test_run_failed('timed out'),
        ],
    )


if __name__ == '__main__':
  unittest.main()
