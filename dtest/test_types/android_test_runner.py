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

"""Builds and runs 'am instrument' commands on a device."""

import enum
import logging
from typing import Dict, Optional

from dtest import constants
from dtest import dtest_utils
from dtest.device import instrumentation_result_parser


@enum.unique
class TestSize(enum.Enum):
  SMALL = 'small'
  MEDIUM = 'medium'
  LARGE = 'large'

  @classmethod
  def from_string(cls, value: str) -> 'TestSize':
    """Returns the TestSize for value, raising ValueError if unknown."""
    try:
      return cls(value.lower())
    except ValueError as e:
      raise ValueError(
          'Unknown test size %r, expected one of %s'
          % (value, ', '.join(s.value for s in cls))
      ) from e


class RemoteAndroidTestRunner:
  """Runs an instrumentation test package on a device.

  The command is of the form:
    am instrument -w -r [-e <key> <value>]* <package>/<runner>
  """

  def __init__(
      self,
      package_name: str,
      runner_name: Optional[str],
      device,
  ):
    self.package_name = package_name
    self.runner_name = runner_name or constants.DEFAULT_INSTRUMENTATION_RUNNER
    self._device = device
    self._args: Dict[str, str] = {}
    self._log_only = False
    self._max_time_to_output_ms = 0
    self._parser = None

  def add_instrumentation_arg(self, name: str, value: str):
    self._args[name] = value

  def set_class_name(self, class_name: str):
    self.add_instrumentation_arg('class', class_name)

  def set_method_name(self, class_name: str, method_name: str):
    self.add_instrumentation_arg('class', f'{class_name}#{method_name}')

  def set_test_package_name(self, package_name: str):
    self.add_instrumentation_arg('package', package_name)

  def set_test_size(self, size: TestSize):
    self.add_instrumentation_arg('size', size.value)

  def set_log_only(self, log_only: bool):
    self._log_only = log_only

  def set_test_collection_delay(self, delay_ms: int):
    self.add_instrumentation_arg('delay_msec', str(delay_ms))

  def set_coverage(self, coverage: bool):
    self.add_instrumentation_arg('coverage', str(coverage).lower())

  def set_max_time_to_output_response(self, timeout_ms: int):
    self._max_time_to_output_ms = timeout_ms

  @property
  def run_name(self) -> str:
    return self.package_name

  def build_command(self) -> str:
    parts = ['am', 'instrument', '-w', '-r']
    if self._log_only:
      parts.extend(['-e', 'log', 'true'])
    for name, value in self._args.items():
      parts.extend(['-e', name, dtest_utils.quote(value)])
    parts.append(f'{self.package_name}/{self.runner_name}')
    return ' '.join(parts)

  def run(self, listener):
    """Runs the instrumentation, streaming results to listener.

    Device errors propagate to the caller.
    """
    command = self.build_command()
    logging.info(
        'Running %s on %s', command, getattr(self._device, 'serial_number', '')
    )
    self._parser = instrumentation_result_parser.InstrumentationResultParser(
        self.run_name, listener
    )
    self._device.execute_shell_command(
        command,
        self._parser,
        timeout_ms=self._max_time_to_output_ms or None,
        retry_attempts=0,
    )

  def cancel(self):
    """Stops parsing output of the current run, if any."""
    if self._parser is not None:
      self._parser.cancel()

  def is_output_incomplete(self) -> bool:
    """Whether the last run's output was cut off, e.g. by a lost connection."""
    return self._parser is not None and self._parser.is_incomplete()
