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

"""Unittests for installed_instrumentations_test."""

import unittest
from unittest import mock

from dtest import constants
from dtest import dtest_error
from dtest.device import test_device
from dtest.result import listeners
from dtest.test_types import installed_instrumentations_test
from dtest.test_types import instrumentation_test

PM_OUTPUT = (
    'instrumentation:com.foo.tests/android.test.InstrumentationTestRunner '
    '(target=com.foo)\n'
    'instrumentation:com.bar.tests/.BarRunner (target=com.bar)\n'
    'some unrelated line\n'
)


def _shell(command, receiver=None, **kwargs):
  del command, kwargs
  receiver.add_output(PM_OUTPUT)
  receiver.flush()
  return PM_OUTPUT


class InstalledInstrumentationsTestUnittests(unittest.TestCase):

  def setUp(self):
    self.device = mock.create_autospec(test_device.TestDevice, instance=True)
    self.device.serial_number = 'SERIAL'
    self.device.execute_shell_command.side_effect = _shell
    self.listener = mock.create_autospec(
        listeners.TestInvocationListener, instance=True)
    self.sut = installed_instrumentations_test.InstalledInstrumentationsTest()
    self.sut.set_device(self.device)

  @mock.patch.object(instrumentation_test.InstrumentationTest, 'run',
                     autospec=True)
  def test_run_runs_every_instrumentation(self, mock_run):
    self.sut.class_name = 'FooTest'

    self.sut.run(self.listener)

    self.device.execute_shell_command.assert_called_once_with(
        installed_instrumentations_test.LIST_INSTRUMENTATION_CMD, mock.ANY)
    ran = [(c[0][0].package_name, c[0][0].runner_name)
           for c in mock_run.call_args_list]
    self.assertEqual(
        ran,
        [('com.foo.tests', 'android.test.InstrumentationTestRunner'),
         ('com.bar.tests', '.BarRunner')])
    for call in mock_run.call_args_list:
      self.assertIs(call[0][0].device, self.device)
      self.assertEqual(call[0][0].class_name, 'FooTest')
    self.assertEqual(self.sut.tests, [])

  @mock.patch.object(instrumentation_test.InstrumentationTest, 'run',
                     autospec=True)
  def test_run_filters_on_runner(self, mock_run):
    self.sut.runner = '.BarRunner'

    self.sut.run(self.listener)

    mock_run.assert_called_once()
    self.assertEqual(mock_run.call_args[0][0].package_name, 'com.bar.tests')

  @mock.patch.object(instrumentation_test.InstrumentationTest, 'run',
                     autospec=True)
  def test_run_sends_coverage_target(self, mock_run):
    self.sut.send_coverage = True

    self.sut.run(self.listener)

    self.listener.test_run_started.assert_has_calls(
        [mock.call('com.foo.tests', 0), mock.call('com.bar.tests', 0)])
    self.listener.test_run_ended.assert_has_calls(
        [mock.call(0, {constants.COVERAGE_TARGET_KEY: 'com.foo'}),
         mock.call(0, {constants.COVERAGE_TARGET_KEY: 'com.bar'})])
    self.assertEqual(mock_run.call_count, 2)

  def test_run_no_instrumentations_raises(self):
    self.device.execute_shell_command.side_effect = None

    with self.assertRaises(ValueError):
      self.sut.run(self.listener)

  def test_run_no_device_raises(self):
    self.sut.set_device(None)

    with self.assertRaises(ValueError):
      self.sut.run(self.listener)

  def test_is_resumable_only_after_listing(self):
    self.sut.resume_mode = True
    self.assertFalse(self.sut.is_resumable())

    with mock.patch.object(instrumentation_test.InstrumentationTest, 'run',
                           autospec=True):
      self.sut.run(self.listener)

    self.assertTrue(self.sut.is_resumable())

  @mock.patch.object(instrumentation_test.InstrumentationTest, 'run',
                     autospec=True)
  def test_resume_continues_with_interrupted_package(self, mock_run):
    self.sut.resume_mode = True
    mock_run.side_effect = [None, dtest_error.DeviceNotAvailableError('gone')]

    with self.assertRaises(dtest_error.DeviceNotAvailableError):
      self.sut.run(self.listener)

    self.assertEqual([t.package_name for t in self.sut.tests],
                     ['com.bar.tests'])
    mock_run.side_effect = None
    self.sut.resume(self.listener)

    self.device.execute_shell_command.assert_called_once()
    self.assertEqual(mock_run.call_args[0][0].package_name, 'com.bar.tests')
    self.assertEqual(self.sut.tests, [])


if __name__ == '__main__':
  unittest.main()
