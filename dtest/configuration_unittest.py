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

"""Unittests for configuration."""

import unittest
from unittest import mock

from dtest import build_info
from dtest import configuration
from dtest.dtest_enum import ForwardingPolicy
from dtest.result import text_result_reporter
from dtest.test_types import remote_test


class ConfigurationUnittests(unittest.TestCase):

  def test_defaults(self):
    config = configuration.Configuration()

    self.assertIsInstance(config.build_provider,
                          build_info.StubBuildProvider)
    self.assertEqual(len(config.listeners), 1)
    self.assertIsInstance(config.listeners[0],
                          text_result_reporter.TextResultReporter)
    self.assertFalse(config.command_options.loop_mode)
    self.assertEqual(config.command_options.forwarding_policy,
                     ForwardingPolicy.BEST_EFFORT)

  def test_defaults_are_not_shared(self):
    first = configuration.Configuration()
    second = configuration.Configuration()

    self.assertIsNot(first.listeners, second.listeners)
    self.assertIsNot(first.command_options, second.command_options)
    self.assertIsNot(first.log_output, second.log_output)

  def test_clone_owns_its_lists(self):
    test = mock.create_autospec(remote_test.RemoteTest, instance=True)
    config = configuration.Configuration(name='parent', tests=[test])

    clone = config.clone()
    clone.tests.append(mock.Mock())
    clone.listeners = []
    clone.build_provider = mock.Mock()

    self.assertEqual(clone.name, 'parent')
    self.assertIs(clone.tests[0], test)
    self.assertEqual(config.tests, [test])
    self.assertEqual(len(config.listeners), 1)
    self.assertIsInstance(config.build_provider,
                          build_info.StubBuildProvider)
    self.assertIs(clone.command_options, config.command_options)


if __name__ == '__main__':
  unittest.main()
