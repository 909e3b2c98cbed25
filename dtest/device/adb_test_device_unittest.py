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

"""Unittests for adb_test_device."""

import io
import unittest
from unittest import mock

from dtest import dtest_error
from dtest.device import adb_test_device
from dtest.device import test_device
from dtest.result import listeners

SERIAL = 'SERIAL'
OFFLINE = (b'error: device offline\n', 1)


def _procs(outputs):
  """Returns fake Popen objects producing the given (output, exit code)."""
  procs = []
  for data, returncode in outputs:
    proc = mock.MagicMock()
    proc.stdout = io.BytesIO(data)
    proc.returncode = returncode
    proc.__enter__.return_value = proc
    procs.append(proc)
  return procs


def _read(source):
  with source.create_input_stream() as stream:
    return stream.read().decode('utf-8')


class AdbTestDeviceUnittests(unittest.TestCase):

  def setUp(self):
    self.recovery = mock.create_autospec(
        test_device.DeviceRecovery, instance=True)
    self.sleep = mock.Mock()
    self.device = adb_test_device.AdbTestDevice(
        SERIAL,
        options=test_device.DeviceOptions(disable_keyguard=False),
        recovery=self.recovery,
        sleep=self.sleep,
    )
    patcher = mock.patch('subprocess.Popen')
    self.popen = patcher.start()
    self.addCleanup(patcher.stop)

  def _set_outputs(self, *outputs):
    self.popen.side_effect = _procs(outputs)

  def _commands(self):
    return [c[0][0] for c in self.popen.call_args_list]

  def test_execute_shell_command_returns_output(self):
    self._set_outputs((b'hello\n', 0))

    output = self.device.execute_shell_command('echo hello')

    self.assertEqual(output, 'hello\n')
    self.assertEqual(self._commands(),
                     [['adb', '-s', SERIAL, 'shell', 'echo hello']])
    self.recovery.recover_device.assert_not_called()

  def test_execute_shell_command_feeds_and_flushes_receiver(self):
    self._set_outputs((b'line1\nline2\n', 0))
    receiver = mock.create_autospec(
        test_device.ShellOutputReceiver, instance=True)
    receiver.is_cancelled.return_value = False

    output = self.device.execute_shell_command('ls', receiver)

    self.assertEqual(output, '')
    self.assertEqual(receiver.add_output.call_args_list,
                     [mock.call('line1\n'), mock.call('line2\n')])
    receiver.flush.assert_called_once()

  def test_execute_shell_command_non_zero_exit_is_not_a_device_error(self):
    self._set_outputs((b'ls: /foo: No such file or directory\n', 1))

    output = self.device.execute_shell_command('ls /foo')

    self.assertIn('No such file', output)
    self.recovery.recover_device.assert_not_called()

  def test_execute_shell_command_retries_after_recovery(self):
    self._set_outputs(OFFLINE, (b'ok\n', 0))

    output = self.device.execute_shell_command('echo ok')

    self.assertEqual(output, 'ok\n')
    self.recovery.recover_device.assert_called_once_with(self.device)

  def test_execute_shell_command_gives_up_after_max_attempts(self):
    self._set_outputs(*[OFFLINE] * (test_device.MAX_RETRY_ATTEMPTS + 1))

    with self.assertRaises(dtest_error.DeviceUnresponsiveError):
      self.device.execute_shell_command('echo ok')

    self.assertEqual(self.recovery.recover_device.call_count,
                     test_device.MAX_RETRY_ATTEMPTS + 1)

  def test_execute_shell_command_recovery_failure_propagates(self):
    self._set_outputs(OFFLINE)
    self.recovery.recover_device.side_effect = (
        dtest_error.DeviceNotAvailableError('gone', SERIAL))

    with self.assertRaises(dtest_error.DeviceNotAvailableError):
      self.device.execute_shell_command('echo ok')

  def test_execute_shell_command_no_retry_flushes_after_recovery(self):
    self._set_outputs(OFFLINE)
    receiver = mock.create_autospec(
        test_device.ShellOutputReceiver, instance=True)
    receiver.is_cancelled.return_value = False

    self.device.execute_shell_command('am instrument', receiver,
                                      retry_attempts=0)

    self.recovery.recover_device.assert_called_once()
    receiver.flush.assert_called_once()
    self.assertEqual(self.popen.call_count, 1)

  def test_missing_adb_is_a_fatal_host_error(self):
    self.popen.side_effect = FileNotFoundError('adb')

    with self.assertRaises(dtest_error.FatalHostError):
      self.device.execute_shell_command('echo ok')

  def test_set_options_disables_keyguard(self):
    self._set_outputs((b'', 0))

    self.device.set_options(test_device.DeviceOptions(disable_keyguard=True))

    self.assertEqual(self._commands(),
                     [['adb', '-s', SERIAL, 'shell', 'input keyevent 82']])

  def test_install_package(self):
    self._set_outputs((b'Performing Streamed Install\nSuccess\n', 0))

    self.assertIsNone(self.device.install_package('/tmp/foo.apk'))
    self.assertEqual(self._commands(),
                     [['adb', '-s', SERIAL, 'install', '-r', '/tmp/foo.apk']])

  def test_install_package_failure_returns_reason(self):
    self._set_outputs((b'Failure [INSTALL_FAILED_OLDER_SDK]\n', 1))

    result = self.device.install_package('/tmp/foo.apk', reinstall=False)

    self.assertEqual(result, 'INSTALL_FAILED_OLDER_SDK')
    self.assertNotIn('-r', self._commands()[0])
    self.recovery.recover_device.assert_not_called()

  def test_uninstall_package(self):
    self._set_outputs((b'Success\n', 0))

    self.assertIsNone(self.device.uninstall_package('com.foo'))
    self.assertEqual(self._commands(),
                     [['adb', '-s', SERIAL, 'uninstall', 'com.foo']])

  def test_is_directory_and_list_directory(self):
    self._set_outputs((b'1\n', 0), (b'foo_test\nbar dir\n\n', 0))

    self.assertTrue(self.device.is_directory('/data/nativetest'))
    self.assertEqual(self.device.list_directory('/data/nativetest'),
                     ['foo_test', 'bar dir'])

  def test_get_logcat(self):
    self._set_outputs((b'I/foo: bar\n', 0))

    self.assertEqual(_read(self.device.get_logcat()), 'I/foo: bar\n')
    self.assertEqual(self._commands(),
                     [['adb', '-s', SERIAL, 'logcat', '-d']])

  def test_get_logcat_on_lost_device_is_empty(self):
    self._set_outputs(OFFLINE)

    self.assertEqual(self.device.get_logcat().size(), 0)
    self.recovery.recover_device.assert_not_called()

  def test_get_bugreport_keeps_partial_output_of_lost_device(self):
    self._set_outputs((b'partial\nerror: closed\n', 1))
    self.recovery.recover_device.side_effect = (
        dtest_error.DeviceNotAvailableError('gone', SERIAL))

    self.assertEqual(_read(self.device.get_bugreport()),
                     'partial\nerror: closed\n')

  def test_wait_for_device_online(self):
    self._set_outputs((b'', 0))

    self.assertTrue(self.device.wait_for_device_online(1000))
    self.assertEqual(self._commands(),
                     [['adb', '-s', SERIAL, 'wait-for-device']])

  def test_wait_for_device_available_polls_until_booted(self):
    self._set_outputs((b'0\n', 0), (b'1\n', 0),
                      (b'package:/system/framework/framework-res.apk\n', 0))

    self.assertTrue(self.device.wait_for_device_available(60 * 1000))
    self.sleep.assert_called_once()

  def test_wait_for_device_available_times_out(self):
    with mock.patch.object(adb_test_device.AdbTestDevice, '_is_available',
                           return_value=False):
      self.assertFalse(self.device.wait_for_device_available(1))

  def test_run_instrumentation_tests_recovers_after_run_failure(self):
    runner = mock.Mock()
    runner.run.side_effect = lambda l: l.test_run_failed('crashed')
    listener = mock.create_autospec(listeners.TestRunListener, instance=True)

    with mock.patch.object(adb_test_device.AdbTestDevice,
                           'wait_for_device_available', return_value=False):
      self.assertTrue(self.device.run_instrumentation_tests(runner, listener))

    listener.test_run_failed.assert_called_once_with('crashed')
    self.recovery.recover_device.assert_called_once_with(self.device)


class ProcessWatchdogUnittests(unittest.TestCase):

  def test_kills_process_of_cancelled_receiver(self):
    proc = mock.Mock()
    receiver = mock.create_autospec(
        test_device.ShellOutputReceiver, instance=True)
    receiver.is_cancelled.return_value = True
    watchdog = adb_test_device._ProcessWatchdog(proc, receiver, None)

    watchdog.start()
    watchdog.join(5)

    proc.kill.assert_called_once()
    self.assertFalse(watchdog.timed_out)

  def test_kills_quiet_process(self):
    proc = mock.Mock()
    receiver = mock.create_autospec(
        test_device.ShellOutputReceiver, instance=True)
    receiver.is_cancelled.return_value = False
    watchdog = adb_test_device._ProcessWatchdog(proc, receiver, 1)

    watchdog.start()
    watchdog.join(5)

    proc.kill.assert_called_once()
    self.assertTrue(watchdog.timed_out)


if __name__ == '__main__':
  unittest.main()
