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

"""Device contracts used by tests, preparers and the invocation.

Every device operation may raise dtest_error.DeviceNotAvailableError when the
device stops responding and recovery fails.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import dataclasses
import logging
import time
from typing import List, Optional

from dtest import constants
from dtest import dtest_error
from dtest.result import listeners
from dtest.result.log_data import InputStreamSource

# Attempts made for a device action when recovery succeeds in between.
MAX_RETRY_ATTEMPTS = 2


class ShellOutputReceiver(ABC):
  """Receives the output of a device shell command as it is produced."""

  @abstractmethod
  def add_output(self, data: str):
    """Called with each chunk of output."""

  def flush(self):
    """Called once the command has finished."""

  def is_cancelled(self) -> bool:
    return False


class CollectingOutputReceiver(ShellOutputReceiver):
  """Keeps the whole output of a command."""

  def __init__(self):
    self._chunks = []

  def add_output(self, data):
    self._chunks.append(data)

  @property
  def output(self) -> str:
    return ''.join(self._chunks)


class MultiLineReceiver(ShellOutputReceiver):
  """Splits the output into complete lines for process_new_lines."""

  def __init__(self):
    self._partial = ''

  def add_output(self, data):
    text = self._partial + data
    lines = text.split('\n')
    self._partial = lines.pop()
    if lines:
      self.process_new_lines([line.rstrip('\r') for line in lines])

  def flush(self):
    if self._partial:
      self.process_new_lines([self._partial.rstrip('\r')])
      self._partial = ''
    self.done()

  @abstractmethod
  def process_new_lines(self, lines: List[str]):
    """Handles complete lines of output."""

  def done(self):
    """Called after the last lines have been processed."""


@dataclasses.dataclass
class DeviceOptions:
  """Options applied to a device at the start of an invocation."""

  shell_timeout_ms: int = constants.DEFAULT_SHELL_TIMEOUT_MS
  device_wait_time_ms: int = 4 * 60 * 1000
  disable_keyguard: bool = True


class TestDevice(ABC):
  """A device tests can be run against."""

  @property
  @abstractmethod
  def serial_number(self) -> str:
    """The device serial."""

  def set_options(self, options: DeviceOptions):
    pass

  def set_recovery(self, recovery: 'DeviceRecovery'):
    pass

  @abstractmethod
  def execute_shell_command(
      self,
      command: str,
      receiver: Optional[ShellOutputReceiver] = None,
      timeout_ms: Optional[int] = None,
      retry_attempts: int = MAX_RETRY_ATTEMPTS,
  ) -> str:
    """Runs a shell command on the device.

    Args:
        command: The shell command line.
        receiver: Optional receiver for the output as it is produced.
        timeout_ms: Maximum time to wait for the command, None for the device
          default.
        retry_attempts: Retries made when the command fails but recovery
          succeeds.

    Returns:
        The collected output when no receiver is given, otherwise ''.
    """

  @abstractmethod
  def run_instrumentation_tests(
      self, runner, listener: listeners.TestRunListener
  ) -> bool:
    """Runs the instrumentation described by runner, reporting to listener.

    Returns:
        True if the run command was delivered to the device.
    """

  @abstractmethod
  def install_package(self, package_path: str, reinstall: bool = True):
    """Installs an APK. Returns None on success or the failure message."""

  @abstractmethod
  def uninstall_package(self, package_name: str):
    """Uninstalls a package. Returns None on success or the failure message."""

  @abstractmethod
  def is_directory(self, path: str) -> bool:
    """Whether path is a directory on the device."""

  @abstractmethod
  def list_directory(self, path: str) -> List[str]:
    """Names of the entries in a device directory."""

  @abstractmethod
  def get_logcat(self) -> InputStreamSource:
    """A snapshot of the device log."""

  @abstractmethod
  def get_bugreport(self) -> InputStreamSource:
    """A bugreport of the device."""

  @abstractmethod
  def wait_for_device_online(self, timeout_ms: Optional[int] = None) -> bool:
    """Blocks until adb sees the device, False on timeout."""

  @abstractmethod
  def wait_for_device_available(self, timeout_ms: Optional[int] = None) -> bool:
    """Blocks until the device responds to commands, False on timeout."""


class DeviceRecovery(ABC):
  """Recovers communication with a device that stopped responding."""

  @abstractmethod
  def recover_device(self, device: TestDevice):
    """Raises DeviceNotAvailableError if the device cannot be recovered."""


class WaitDeviceRecovery(DeviceRecovery):
  """Recovery that waits for the device to come back by itself."""

  # Pause before the first check so a device that just dropped can settle.
  INITIAL_PAUSE_TIME_S = 5

  def __init__(self, wait_time_ms: int = 4 * 60 * 1000, sleep=time.sleep):
    self._wait_time_ms = wait_time_ms
    self._sleep = sleep

  def recover_device(self, device):
    serial = device.serial_number
    logging.info(
        'Pausing for %ds for %s to recover', self.INITIAL_PAUSE_TIME_S, serial
    )
    self._sleep(self.INITIAL_PAUSE_TIME_S)
    if not device.wait_for_device_online(self._wait_time_ms):
      raise dtest_error.DeviceNotAvailableError(
          'Could not find device %s' % serial, serial
      )
    if not device.wait_for_device_available(self._wait_time_ms):
      raise dtest_error.DeviceUnresponsiveError(
          'Device %s is online but unresponsive' % serial, serial
      )
