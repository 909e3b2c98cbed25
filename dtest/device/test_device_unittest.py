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

"""Unittests for test_device."""

import unittest
from unittest import mock

from dtest import dtest_error
from dtest.device import test_device


class _LineRecorder(test_device.MultiLineReceiver):

  def __init__(self):
    super().__init__()
    self.batches = []
    self.done_called = False

  def process_new_lines(self, lines):
    self.batches.append(lines)

  def done(self):
    self.done_called = True


class MultiLineReceiverUnittests(unittest.TestCase):

  def test_joins_partial_lines(self):
    receiver = _LineRecorder()

    receiver.add_output('INSTRUMENTATION_STATUS: cla')
    receiver.add_output('ss=Foo\r\nINSTRUMENTATION_STATUS: test=bar\n')

    self.assertEqual(receiver.batches, [[
        'INSTRUMENTATION_STATUS: class=Foo',
        'INSTRUMENTATION_STATUS: test=bar',
    ]])

  def test_flush_processes_trailing_text(self):
    receiver = _LineRecorder()

    receiver.add_output('a\nno newline')
    receiver.flush()

    self.assertEqual(receiver.batches, [['a'], ['no newline']])
    self.assertTrue(receiver.done_called)


class CollectingOutputReceiverUnittests(unittest.TestCase):

  def test_output(self):
    receiver = test_device.CollectingOutputReceiver()

    receiver.add_output('foo')
    receiver.add_output('bar\n')

    self.assertEqual(receiver.output, 'foobar\n')
    self.assertFalse(receiver.is_cancelled())


class WaitDeviceRecoveryUnittests(unittest.TestCase):

  def setUp(self):
    self.sleep = mock.Mock()
    self.recovery = test_device.WaitDeviceRecovery(1000, sleep=self.sleep)
    self.device = mock.create_autospec(test_device.TestDevice, instance=True)
    self.device.serial_number = 'SERIAL'

  def test_recovered(self):
    self.device.wait_for_device_online.return_value = True
    self.device.wait_for_device_available.return_value = True

    self.recovery.recover_device(self.device)

    self.sleep.assert_called_once_with(
        test_device.WaitDeviceRecovery.INITIAL_PAUSE_TIME_S)
    self.device.wait_for_device_online.assert_called_once_with(1000)

  def test_offline_device_is_not_available(self):
    self.device.wait_for_device_online.return_value = False

    with self.assertRaises(dtest_error.DeviceNotAvailableError) as cm:
      self.recovery.recover_device(self.device)

    self.assertNotIsInstance(cm.exception, dtest_error.DeviceUnresponsiveError)
    self.assertEqual(cm.exception.serial, 'SERIAL')
    self.device.wait_for_device_available.assert_not_called()

  def test_online_device_that_never_boots_is_unresponsive(self):
    self.device.wait_for_device_online.return_value = True
    self.device.wait_for_device_available.return_value = False

    with self.assertRaises(dtest_error.DeviceUnresponsiveError):
      self.recovery.recover_device(self.device)


if __name__ == '__main__':
  unittest.main()
