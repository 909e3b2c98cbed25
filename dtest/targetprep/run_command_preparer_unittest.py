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

"""Unittests for run_command_preparer."""

import unittest
from unittest import mock

from dtest import build_info
from dtest import dtest_error
from dtest.device import test_device
from dtest.targetprep import run_command_preparer


class RunCommandTargetPreparerUnittests(unittest.TestCase):

  def setUp(self):
    self.device = mock.create_autospec(test_device.TestDevice, instance=True)
    self.device.serial_number = 'SERIAL'
    self.build = build_info.BuildInfo()
    self.preparer = run_command_preparer.RunCommandTargetPreparer(
        ['setprop a 1', 'stop'], ['start'])

  def test_set_up_runs_commands_in_order(self):
    self.preparer.set_up(self.device, self.build)

    self.assertEqual(self.device.execute_shell_command.call_args_list,
                     [mock.call('setprop a 1'), mock.call('stop')])

  def test_tear_down_runs_teardown_commands(self):
    self.preparer.tear_down(self.device, self.build, RuntimeError('failed'))

    self.device.execute_shell_command.assert_called_once_with('start')

  def test_device_loss_propagates(self):
    self.device.execute_shell_command.side_effect = (
        dtest_error.DeviceNotAvailableError('gone', 'SERIAL'))

    with self.assertRaises(dtest_error.DeviceNotAvailableError):
      self.preparer.set_up(self.device, self.build)


if __name__ == '__main__':
  unittest.main()
