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

"""Runs every instrumentation installed on the device."""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from dtest import constants
from dtest.device import test_device
from dtest.test_types import instrumentation_test
from dtest.test_types import remote_test

LIST_INSTRUMENTATION_CMD = 'pm list instrumentation'
_LIST_INSTR_RE = re.compile(
    r'instrumentation:(?P<package>.+)/(?P<runner>.+) \(target=(?P<target>.+)\)')


class _ListInstrumentationParser(test_device.MultiLineReceiver):
  """Turns each line of `pm list instrumentation` into an InstrumentationTest."""

  def __init__(self, runner_filter, test_factory):
    super().__init__()
    self._runner_filter = runner_filter
    self._test_factory = test_factory
    self.tests = []

  def process_new_lines(self, lines):
    for line in lines:
      match = _LIST_INSTR_RE.search(line)
      if not match:
        continue
      runner = match.group('runner')
      if self._runner_filter is not None and self._runner_filter != runner:
        continue
      test = self._test_factory()
      test.package_name = match.group('package')
      test.runner_name = runner
      test.coverage_target = match.group('target')
      self.tests.append(test)


class InstalledInstrumentationsTest(remote_test.DeviceTest):
  """Runs the instrumentation packages found on the device one by one.

  A package is removed from the work list only once it has run to the end,
  so a resumed instance continues with the package that was interrupted.
  """

  def __init__(
      self,
      runner: Optional[str] = None,
      test_size: Optional[str] = None,
      class_name: Optional[str] = None,
      rerun_mode: bool = True,
      resume_mode: bool = False,
      send_coverage: bool = False,
      test_timeout_ms: int = constants.DEFAULT_TEST_TIMEOUT_MS,
  ):
    super().__init__()
    self.runner = runner
    self.test_size = test_size
    self.class_name = class_name
    self.rerun_mode = rerun_mode
    self.resume_mode = resume_mode
    self.send_coverage = send_coverage
    self.test_timeout_ms = test_timeout_ms
    self._tests: Optional[List[instrumentation_test.InstrumentationTest]] = None

  @property
  def tests(self):
    return self._tests

  def create_instrumentation_test(self):
    return instrumentation_test.InstrumentationTest(
        test_size=self.test_size,
        rerun_mode=self.rerun_mode,
        resume_mode=self.resume_mode,
        test_timeout_ms=self.test_timeout_ms,
    )

  def is_resumable(self):
    # Nothing to resume until the instrumentations have been listed.
    if self._tests is None:
      return False
    return self.resume_mode

  def run(self, listener):
    self._check_device()
    self._build_tests()
    self._do_run(listener)

  def _build_tests(self):
    if self._tests is not None:
      return
    parser = _ListInstrumentationParser(
        self.runner, self.create_instrumentation_test)
    self.device.execute_shell_command(LIST_INSTRUMENTATION_CMD, parser)
    if not parser.tests:
      raise ValueError('No instrumentations were found on device %s'
                       % self.device.serial_number)
    self._tests = parser.tests

  def _do_run(self, listener):
    while self._tests:
      test = self._tests[0]
      logging.debug('Running test %s on %s', test.package_name,
                    self.device.serial_number)
      if self.send_coverage and test.coverage_target is not None:
        _send_coverage(test.package_name, test.coverage_target, listener)
      test.set_device(self.device)
      test.class_name = self.class_name
      if test.is_resumable():
        test.resume(listener)
      else:
        test.run(listener)
      self._tests.pop(0)


def _send_coverage(package_name, coverage_target, listener):
  listener.test_run_started(package_name, 0)
  listener.test_run_ended(0, {constants.COVERAGE_TARGET_KEY: coverage_target})
