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

"""Unittests for harness_config."""

import logging
import os
import unittest
from unittest import mock

from pyfakefs import fake_filesystem_unittest

from dtest import constants
from dtest import dtest_error
from dtest import harness_config
from dtest.dtest_enum import ForwardingPolicy

CONFIG_PATH = '/etc/dtest/config.yaml'


class LoadHarnessConfigUnittests(fake_filesystem_unittest.TestCase):

  def setUp(self):
    self.setUpPyfakefs()

  def test_missing_file_gives_defaults(self):
    config = harness_config.load_harness_config('/no/such/file.yaml')

    self.assertEqual(config, harness_config.HarnessConfig())

  @mock.patch.dict(os.environ, {}, clear=True)
  def test_no_path_gives_defaults(self):
    self.assertEqual(harness_config.load_harness_config(),
                     harness_config.HarnessConfig())

  def test_load_every_key(self):
    self.fs.create_file(CONFIG_PATH, contents='\n'.join([
        'log_level: info',
        'results_dir: /tmp/results',
        'listener_policy: FAIL_FAST',
        'collect_tests_attempts: 5',
        'collect_tests_timeout_ms: 1000',
        'test_collection_delay_ms: 0',
        'test_timeout_ms: 2000',
        'shell_timeout_ms: 3000',
        'adb_path: /opt/adb',
    ]))

    config = harness_config.load_harness_config(CONFIG_PATH)

    self.assertEqual(config.log_level, 'INFO')
    self.assertEqual(config.logging_level, logging.INFO)
    self.assertEqual(config.results_dir, '/tmp/results')
    self.assertEqual(config.listener_policy, ForwardingPolicy.FAIL_FAST)
    self.assertEqual(config.collect_tests_attempts, 5)
    self.assertEqual(config.collect_tests_timeout_ms, 1000)
    self.assertEqual(config.test_collection_delay_ms, 0)
    self.assertEqual(config.test_timeout_ms, 2000)
    self.assertEqual(config.shell_timeout_ms, 3000)
    self.assertEqual(config.adb_path, '/opt/adb')

  def test_path_from_environment(self):
    self.fs.create_file(CONFIG_PATH, contents='test_timeout_ms: 42\n')

    with mock.patch.dict(os.environ,
                         {constants.DTEST_CONFIG_PATH_ENV: CONFIG_PATH}):
      config = harness_config.load_harness_config()

    self.assertEqual(config.test_timeout_ms, 42)
    self.assertEqual(config.adb_path, constants.ADB)

  def test_empty_file_gives_defaults(self):
    self.fs.create_file(CONFIG_PATH, contents='')

    self.assertEqual(harness_config.load_harness_config(CONFIG_PATH),
                     harness_config.HarnessConfig())

  def test_unknown_key_raises(self):
    self.fs.create_file(CONFIG_PATH, contents='retry_forever: true\n')

    with self.assertRaisesRegex(dtest_error.ConfigurationError,
                                'retry_forever'):
      harness_config.load_harness_config(CONFIG_PATH)

  def test_invalid_yaml_raises(self):
    self.fs.create_file(CONFIG_PATH, contents='log_level: [INFO\n')

    with self.assertRaises(dtest_error.ConfigurationError):
      harness_config.load_harness_config(CONFIG_PATH)

  def test_non_mapping_raises(self):
    self.fs.create_file(CONFIG_PATH, contents='- a\n- b\n')

    with self.assertRaises(dtest_error.ConfigurationError):
      harness_config.load_harness_config(CONFIG_PATH)


class ParseHarnessConfigUnittests(unittest.TestCase):

  def test_invalid_values_raise(self):
    for data in ({'test_timeout_ms': 'soon'},
                 {'test_timeout_ms': True},
                 {'shell_timeout_ms': -1},
                 {'listener_policy': 'sometimes'},
                 {'log_level': 'LOUD'},
                 {'adb_path': 12}):
      with self.subTest(data=data):
        with self.assertRaises(dtest_error.ConfigurationError):
          harness_config.parse_harness_config(data)


if __name__ == '__main__':
  unittest.main()
