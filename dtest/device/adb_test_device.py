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

"""TestDevice implementation driving a device through the adb binary.

Every device action that fails to communicate with the device triggers the
device recovery and is retried a bounded number of times. Once recovery
fails the action raises DeviceNotAvailableError.
"""

from __future__ import annotations

import logging
import re
import subprocess
import threading
import time

from dtest import constants
from dtest import dtest_error
from dtest import dtest_utils
from dtest.device import test_device
from dtest.result import listeners
from dtest.result import log_data
from dtest.result import result_forwarder

INSTALL_TIMEOUT_MS = 5 * 60 * 1000
BUGREPORT_TIMEOUT_MS = 5 * 60 * 1000
# Time given to a device to come back after an instrumentation run failure.
POST_RUN_FAILURE_WAIT_MS = 5 * 1000

_POLL_INTERVAL_S = 0.1
_AVAILABLE_POLL_INTERVAL_S = 2
_DEVICE_ERROR_RE = re.compile(
    r"error: (device( '.*')? not found|device offline|closed|"
    r"no devices/emulators found|device unauthorized)")
_INSTALL_FAILURE_RE = re.compile(r'Failure \[(.*)\]')


class _CommunicationError(Exception):
  """adb could not talk to the device, or the device stopped answering."""


class _ProcessWatchdog(threading.Thread):
  """Kills a process that went quiet for too long or whose receiver cancelled.

  The timeout is the maximum time allowed between two chunks of output, not
  the total run time of the process.
  """

  def __init__(self, proc, receiver, timeout_ms):
    super().__init__(daemon=True)
    self._proc = proc
    self._receiver = receiver
    self._timeout_s = timeout_ms / 1000 if timeout_ms else None
    self._last_output = time.monotonic()
    self._stopped = threading.Event()
    self.timed_out = False

  def touch(self):
    self._last_output = time.monotonic()

  def stop(self):
    self._stopped.set()
    self.join()

  def run(self):
    while not self._stopped.wait(_POLL_INTERVAL_S):
      if self._receiver.is_cancelled():
        logging.debug('Receiver cancelled, killing %s', self._proc.args)
        self._proc.kill()
        return
      idle_s = time.monotonic() - self._last_output
      if self._timeout_s is not None and idle_s > self._timeout_s:
        self.timed_out = True
        self._proc.kill()
        return


class _RunFailureListener(listeners.TestRunListener):

  def __init__(self):
    self.is_run_failure = False

  def test_run_failed(self, error_message):
    self.is_run_failure = True


def _install_result(output):
  """Returns None if output reports a successful install, else the reason."""
  if 'Success' in output:
    return None
  match = _INSTALL_FAILURE_RE.search(output)
  if match:
    return match.group(1)
  return output.strip() or 'Unknown failure'


class AdbTestDevice(test_device.TestDevice):
  """A device reached with `adb -s <serial>`."""

  def __init__(self, serial, adb_path=constants.ADB, options=None,
               recovery=None, sleep=time.sleep):
    self._serial = serial
    self._adb_path = adb_path
    self._options = options or test_device.DeviceOptions()
    self._recovery = recovery or test_device.WaitDeviceRecovery(
        self._options.device_wait_time_ms)
    self._sleep = sleep

  @property
  def serial_number(self):
    return self._serial

  def __repr__(self):
    return 'AdbTestDevice(%s)' % self._serial

  def set_options(self, options):
    self._options = options
    if options.disable_keyguard:
      logging.debug('Attempting to disable keyguard on %s', self._serial)
      self.execute_shell_command('input keyevent 82')

  def set_recovery(self, recovery):
    self._recovery = recovery

  def _adb_cmd(self, args):
    return [self._adb_path, '-s', self._serial] + list(args)

  def _stream(self, args, receiver, timeout_ms):
    """Runs adb with args, feeding its output to receiver.

    The receiver is not flushed.

    Raises:
        _CommunicationError: if the command timed out or adb lost the device.
        FatalHostError: if adb cannot be executed.
    """
    cmd = self._adb_cmd(args)
    logging.debug('Running command: %s', cmd)
    try:
      proc = subprocess.Popen(cmd, stdout=subprocess.PIPE,
                              stderr=subprocess.STDOUT)
    except OSError as e:
      raise dtest_error.FatalHostError(
          'Could not run %s: %s' % (self._adb_path, e)) from e
    with proc:
      watchdog = _ProcessWatchdog(proc, receiver, timeout_ms)
      watchdog.start()
      last_line = ''
      try:
        for raw in iter(proc.stdout.readline, b''):
          watchdog.touch()
          line = raw.decode('utf-8', errors='replace')
          if line.strip():
            last_line = line
          receiver.add_output(line)
        proc.wait()
      finally:
        watchdog.stop()
    if watchdog.timed_out:
      raise _CommunicationError(
          '%s timed out after %d ms without output' % (cmd, timeout_ms))
    if proc.returncode != 0 and _DEVICE_ERROR_RE.search(last_line):
      raise _CommunicationError(last_line.strip())

  def _run_adb(self, args, timeout_ms=None):
    receiver = test_device.CollectingOutputReceiver()
    self._stream(args, receiver, timeout_ms or self._options.shell_timeout_ms)
    return receiver.output

  def recover_device(self):
    """Raises DeviceNotAvailableError if the device cannot be recovered."""
    logging.info('Attempting recovery on %s', self._serial)
    self._recovery.recover_device(self)
    logging.info('Recovery successful for %s', self._serial)

  def _perform_device_action(self, description, action, retry_attempts):
    """Runs action, recovering the device after each communication failure.

    Args:
        description: What the action does, for logging.
        action: A callable doing the work.
        retry_attempts: Retries made when the action fails but recovery
          succeeds.

    Returns:
        The result of action, or None if the only attempt failed and the
        device recovered.

    Raises:
        DeviceNotAvailableError: if recovery failed.
        DeviceUnresponsiveError: if every retry failed.
    """
    for _ in range(retry_attempts + 1):
      try:
        return action()
      except _CommunicationError as e:
        logging.warning('%s on device %s failed: %s', description,
                        self._serial, e)
      self.recover_device()
    if retry_attempts > 0:
      raise dtest_error.DeviceUnresponsiveError(
          'Attempted %s multiple times on device %s without communication '
          'success. Aborting.' % (description, self._serial), self._serial)
    return None

  def execute_shell_command(self, command, receiver=None, timeout_ms=None,
                            retry_attempts=test_device.MAX_RETRY_ATTEMPTS):
    collector = None
    if receiver is None:
      receiver = collector = test_device.CollectingOutputReceiver()
    timeout_ms = timeout_ms or self._options.shell_timeout_ms

    def _shell():
      self._stream(['shell', command], receiver, timeout_ms)
      return True

    completed = self._perform_device_action(
        'shell %s' % command, _shell, retry_attempts)
    receiver.flush()
    if not completed:
      logging.warning('shell %s did not complete on %s', command,
                      self._serial)
    if collector is None:
      return ''
    logging.debug('%s on %s returned %s', command, self._serial,
                  collector.output)
    return collector.output

  def run_instrumentation_tests(self, runner, listener):
    failure_listener = _RunFailureListener()
    runner.run(result_forwarder.ResultForwarder([listener, failure_listener]))
    if failure_listener.is_run_failure:
      # The run may have failed because the device crashed.
      if not self.wait_for_device_available(POST_RUN_FAILURE_WAIT_MS):
        self.recover_device()
    return True

  def install_package(self, package_path, reinstall=True):
    args = ['install']
    if reinstall:
      args.append('-r')
    args.append(package_path)
    return self._perform_device_action(
        'install %s' % package_path,
        lambda: _install_result(self._run_adb(args, INSTALL_TIMEOUT_MS)),
        test_device.MAX_RETRY_ATTEMPTS)

  def uninstall_package(self, package_name):
    return self._perform_device_action(
        'uninstall %s' % package_name,
        lambda: _install_result(self._run_adb(['uninstall', package_name])),
        test_device.MAX_RETRY_ATTEMPTS)

  def is_directory(self, path):
    output = self.execute_shell_command(
        '[ -d %s ] && echo 1' % dtest_utils.quote(path))
    return output.strip() == '1'

  def list_directory(self, path):
    output = self.execute_shell_command('ls -1 %s' % dtest_utils.quote(path))
    return [line.strip() for line in output.splitlines() if line.strip()]

  def get_logcat(self):
    try:
      output = self._run_adb(['logcat', '-d'])
    except _CommunicationError as e:
      logging.warning('Failed to get logcat dump from %s: %s', self._serial, e)
      return log_data.ByteArrayInputStreamSource(b'')
    return log_data.ByteArrayInputStreamSource(output.encode('utf-8'))

  def get_bugreport(self):
    receiver = test_device.CollectingOutputReceiver()
    try:
      self.execute_shell_command('bugreport', receiver, BUGREPORT_TIMEOUT_MS,
                                 retry_attempts=0)
    except dtest_error.DeviceNotAvailableError:
      # Whatever was captured before the device went away is still useful.
      logging.error('Device %s became unresponsive while retrieving bugreport',
                    self._serial)
    return log_data.ByteArrayInputStreamSource(receiver.output.encode('utf-8'))

  def wait_for_device_online(self, timeout_ms=None):
    timeout_ms = timeout_ms or self._options.device_wait_time_ms
    logging.debug('Waiting up to %d ms for %s to be online', timeout_ms,
                  self._serial)
    try:
      self._run_adb(['wait-for-device'], timeout_ms)
    except _CommunicationError as e:
      logging.debug('%s did not come online: %s', self._serial, e)
      return False
    return True

  def _is_available(self):
    try:
      boot = self._run_adb(['shell', 'getprop', 'sys.boot_completed'])
      if boot.strip() != '1':
        return False
      return 'package:' in self._run_adb(['shell', 'pm', 'path', 'android'])
    except _CommunicationError as e:
      logging.debug('%s is not available yet: %s', self._serial, e)
      return False

  def wait_for_device_available(self, timeout_ms=None):
    timeout_ms = timeout_ms or self._options.device_wait_time_ms
    deadline = time.monotonic() + timeout_ms / 1000
    while True:
      if self._is_available():
        return True
      if time.monotonic() >= deadline:
        logging.warning('Device %s not available after %d ms', self._serial,
                        timeout_ms)
        return False
      self._sleep(_AVAILABLE_POLL_INTERVAL_S)
