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

"""Preparer that runs shell commands on the device."""

import logging
from typing import Iterable

from dtest.targetprep import target_preparer


class RunCommandTargetPreparer(target_preparer.TargetCleaner):
  """Runs shell commands at set up and teardown commands at tear down."""

  def __init__(
      self,
      commands: Iterable[str] = (),
      teardown_commands: Iterable[str] = (),
  ):
    self._commands = list(commands)
    self._teardown_commands = list(teardown_commands)

  def set_up(self, device, build_info):
    for command in self._commands:
      logging.debug('About to run command on device %s: %s',
                    device.serial_number, command)
      device.execute_shell_command(command)

  def tear_down(self, device, build_info, cause):
    for command in self._teardown_commands:
      logging.debug('About to run teardown command on device %s: %s',
                    device.serial_number, command)
      device.execute_shell_command(command)
