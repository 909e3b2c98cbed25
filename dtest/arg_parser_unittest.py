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

"""Unittests for arg_parser."""

import io
import unittest
from unittest import mock

from dtest import arg_parser
from dtest import constants


class ArgParserUnittests(unittest.TestCase):

  def setUp(self):
    self.parser = arg_parser.create_dtest_arg_parser()

  def _parse_error(self, argv):
    with mock.patch('sys.stderr', new_callable=io.StringIO):
      with self.assertRaises(SystemExit):
        self.parser.parse_args(argv)

  def test_instrumentation_args(self):
    args = self.parser.parse_args([
        '-s', 'A', '--serial', 'B', '--loop', 'instrumentation',
        'com.foo.tests', '--class', 'com.foo.BarTest', '--method', 'testBaz',
        '--no-rerun', '--resume', '--test-timeout', '0'])

    self.assertEqual(args.serials, ['A', 'B'])
    self.assertTrue(args.loop)
    self.assertEqual(args.test_type, arg_parser.INSTRUMENTATION)
    self.assertEqual(args.package, 'com.foo.tests')
    self.assertEqual(args.class_name, 'com.foo.BarTest')
    self.assertEqual(args.method, 'testBaz')
    self.assertFalse(args.rerun)
    self.assertTrue(args.resume)
    self.assertEqual(args.test_timeout, 0)

  def test_defaults(self):
    args = self.parser.parse_args(['installed'])

    self.assertIsNone(args.serials)
    self.assertTrue(args.rerun)
    self.assertFalse(args.resume)
    self.assertFalse(args.send_coverage)
    self.assertIsNone(args.test_timeout)
    self.assertTrue(args.prepare)
    self.assertTrue(args.teardown)
    self.assertEqual(args.setup_command, [])

  def test_gtest_args(self):
    args = self.parser.parse_args([
        'gtest', '--module-name', 'libfoo_test', '--filter', 'Foo.*',
        '--exclude-filter', 'Foo.Slow', '--run-disabled', '--no-recurse'])

    self.assertEqual(args.native_test_path, constants.DEFAULT_NATIVETEST_PATH)
    self.assertEqual(args.module_name, 'libfoo_test')
    self.assertEqual(args.positive_filter, 'Foo.*')
    self.assertEqual(args.negative_filter, 'Foo.Slow')
    self.assertTrue(args.run_disabled)
    self.assertFalse(args.recurse)
    self.assertEqual(args.shards, 1)

  def test_gtest_shards(self):
    args = self.parser.parse_args(['gtest', '--shards', '4'])

    self.assertEqual(args.shards, 4)

  def test_instrumentation_retry(self):
    args = self.parser.parse_args(['instrumentation', 'com.foo'])
    self.assertEqual(args.max_retries, 0)

    args = self.parser.parse_args(
        ['instrumentation', 'com.foo', '--retry', '2'])

    self.assertEqual(args.max_retries, 2)

  def test_host_args(self):
    args = self.parser.parse_args(['host', 'pkg.mod.FooTest', '--method',
                                   'test_bar'])

    self.assertEqual(args.class_name, 'pkg.mod.FooTest')
    self.assertEqual(args.method, 'test_bar')

  def test_test_type_is_required(self):
    self._parse_error(['--verbose'])

  def test_unknown_test_type_is_rejected(self):
    self._parse_error(['robolectric'])

  def test_negative_timeout_is_rejected(self):
    self._parse_error(['installed', '--test-timeout', '-5'])
    self._parse_error(['installed', '--test-timeout', 'soon'])
    self._parse_error(['gtest', '--shards', '-1'])
    self._parse_error(['instrumentation', 'com.foo', '--retry', '-1'])


if __name__ == '__main__':
  unittest.main()
