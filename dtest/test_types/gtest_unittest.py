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

"""Unittests for gtest and gtest_result_parser."""

import unittest
from unittest import mock

from dtest.device import test_device
from dtest.dtest_enum import TestFailure
from dtest.result import listeners
from dtest.result.test_identifier import TestIdentifier
from dtest.test_types import gtest
from dtest.test_types import gtest_result_parser

PASS_OUTPUT = """\
[==========] Running 2 tests from 1 test case.
[----------] Global test environment set-up.
[----------] 2 tests from FooTest
[ RUN      ] FooTest.Bar
[       OK ] FooTest.Bar (1 ms)
[ RUN      ] FooTest.Baz
foo_test.cpp:12: Failure
Value of: x
  Actual: false
[  FAILED  ] FooTest.Baz (0 ms)
[----------] 2 tests from FooTest (1 ms total)

[==========] 2 tests from 1 test case ran. (7 ms total)
[  PASSED  ] 1 test.
[  FAILED  ] 1 test, listed below:
[  FAILED  ] FooTest.Baz
"""

CRASH_OUTPUT = """\
[==========] Running 2 tests from 1 test case.
[ RUN      ] FooTest.Bar
Segmentation fault
"""

BAR = TestIdentifier('FooTest', 'Bar')
BAZ = TestIdentifier('FooTest', 'Baz')


class GTestResultParserUnittests(unittest.TestCase):

  def setUp(self):
    self.listener = mock.create_autospec(
        listeners.TestRunListener, instance=True)
    self.parser = gtest_result_parser.GTestResultParser('foo_test',
                                                        self.listener)

  def _feed(self, output):
    self.parser.add_output(output)
    self.parser.flush()

  def test_parse_pass_and_failure(self):
    self._feed(PASS_OUTPUT)

    self.assertEqual(
        self.listener.method_calls,
        [
            mock.call.test_run_started('foo_test', 2),
            mock.call.test_started(BAR),
            mock.call.test_ended(BAR, {}),
            mock.call.test_started(BAZ),
            mock.call.test_failed(
                TestFailure.FAILURE, BAZ,
                'foo_test.cpp:12: Failure\nValue of: x\n  Actual: false'),
            mock.call.test_ended(BAZ, {}),
            mock.call.test_run_ended(7, {}),
        ])

  def test_parse_output_split_across_chunks(self):
    self.parser.add_output(PASS_OUTPUT[:50])
    self.parser.add_output(PASS_OUTPUT[50:])
    self.parser.flush()

    self.listener.test_run_failed.assert_not_called()
    self.assertEqual(self.listener.test_ended.call_count, 2)

  def test_parse_crash_fails_test_and_run(self):
    self._feed(CRASH_OUTPUT)

    self.listener.test_failed.assert_called_once_with(
        TestFailure.ERROR, BAR, 'Segmentation fault')
    self.listener.test_ended.assert_called_once_with(BAR, {})
    self.listener.test_run_failed.assert_called_once_with(
        gtest_result_parser.INCOMPLETE_TEST_ERR_MSG % (BAR,))
    self.listener.test_run_ended.assert_called_once()

  def test_parse_missing_tests_fails_run(self):
    self._feed('[==========] Running 3 tests from 1 test case.\n'
               '[ RUN      ] FooTest.Bar\n'
               '[       OK ] FooTest.Bar (1 ms)\n')

    self.listener.test_run_failed.assert_called_once_with(
        gtest_result_parser.RUN_INCOMPLETE_MSG % (3, 1))

  def test_parse_no_output(self):
    self._feed('')

    self.listener.test_run_started.assert_called_once_with('foo_test', 0)
    self.listener.test_run_failed.assert_called_once_with(
        gtest_result_parser.NO_TEST_RESULTS_MSG)
    self.listener.test_run_ended.assert_called_once()


class GTestUnittests(unittest.TestCase):

  def setUp(self):
    self.device = mock.create_autospec(test_device.TestDevice, instance=True)
    self.device.serial_number = 'SERIAL'
    self.tree = {
        '/data/nativetest': ['foo_test', 'sub'],
        '/data/nativetest/sub': ['bar_test'],
    }
    self.device.is_directory.side_effect = lambda p: p in self.tree
    self.device.list_directory.side_effect = lambda p: self.tree[p]
    self.listener = mock.create_autospec(
        listeners.TestInvocationListener, instance=True)
    self.sut = gtest.GTest()
    self.sut.set_device(self.device)

  def _commands(self):
    return [c[0][0] for c in self.device.execute_shell_command.call_args_list]

  def test_run_all_binaries_recursively(self):
    self.sut.run(self.listener)

    self.assertEqual(
        self._commands(),
        [
            'chmod 755 /data/nativetest/foo_test',
            '/data/nativetest/foo_test --gtest_print_time',
            'chmod 755 /data/nativetest/sub/bar_test',
            '/data/nativetest/sub/bar_test --gtest_print_time',
        ])
    parser = self.device.execute_shell_command.call_args_list[1][0][1]
    self.assertIsInstance(parser, gtest_result_parser.GTestResultParser)

  def test_run_without_subdirectories(self):
    self.sut.run_all_subdirectories = False

    self.sut.run(self.listener)

    self.assertEqual(len(self._commands()), 2)

  def test_run_module_with_filters(self):
    self.tree = {'/data/nativetest/sub': ['bar_test']}
    self.sut.module_name = 'sub'
    self.sut.positive_filter = 'Bar*'
    self.sut.negative_filter = 'Baz'
    self.sut.run_disabled_tests = True

    self.sut.run(self.listener)

    self.assertEqual(
        self._commands()[1],
        "/data/nativetest/sub/bar_test --gtest_print_time "
        "'--gtest_filter=*.Bar*-*.Baz' --gtest_also_run_disabled_tests")

  def test_run_missing_directory_runs_nothing(self):
    self.tree = {}

    self.sut.run(self.listener)

    self.device.execute_shell_command.assert_not_called()

  def test_split_without_shards_returns_none(self):
    self.assertIsNone(self.sut.split())

  def test_split_creates_one_test_per_shard(self):
    self.sut.shards = 3
    self.sut.module_name = 'sub'
    self.sut.positive_filter = 'Bar*'

    shards = self.sut.split()

    self.assertEqual([s.shard_index for s in shards], [0, 1, 2])
    for shard in shards:
      self.assertEqual(shard.shards, 3)
      self.assertEqual(shard.module_name, 'sub')
      self.assertEqual(shard.positive_filter, 'Bar*')
      self.assertIsNone(shard.device)
      self.assertIsNone(shard.split())

  def test_run_shard_selects_its_tests_through_env(self):
    self.tree = {'/data/nativetest': ['foo_test']}
    shard = gtest.GTest(shards=2, shard_index=1)
    shard.set_device(self.device)

    shard.run(self.listener)

    self.assertEqual(
        self._commands()[1],
        'GTEST_TOTAL_SHARDS=2 GTEST_SHARD_INDEX=1 '
        '/data/nativetest/foo_test --gtest_print_time')

  def test_run_no_device_raises(self):
    self.sut.set_device(None)

    with self.assertRaises(ValueError):
      self.sut.run(self.listener)


if __name__ == '__main__':
  unittest.main()
