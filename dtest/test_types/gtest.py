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

"""Runs native GTest binaries found on the device."""

import logging
import posixpath
from typing import Optional

from dtest import constants
from dtest import dtest_utils
from dtest.test_types import gtest_result_parser
from dtest.test_types import remote_test

GTEST_FLAG_PRINT_TIME = '--gtest_print_time'
GTEST_FLAG_FILTER = '--gtest_filter'
GTEST_FLAG_RUN_DISABLED_TESTS = '--gtest_also_run_disabled_tests'
GTEST_ENV_TOTAL_SHARDS = 'GTEST_TOTAL_SHARDS'
GTEST_ENV_SHARD_INDEX = 'GTEST_SHARD_INDEX'


class GTest(remote_test.DeviceTest):
  """Runs every binary under the native test directory as a GTest binary."""

  def __init__(
      self,
      native_test_device_path: str = constants.DEFAULT_NATIVETEST_PATH,
      module_name: Optional[str] = None,
      positive_filter: Optional[str] = None,
      negative_filter: Optional[str] = None,
      run_disabled_tests: bool = False,
      run_all_subdirectories: bool = True,
      shards: int = 1,
      shard_index: Optional[int] = None,
  ):
    super().__init__()
    self.native_test_device_path = native_test_device_path
    self.module_name = module_name
    self.positive_filter = positive_filter
    self.negative_filter = negative_filter
    self.run_disabled_tests = run_disabled_tests
    self.run_all_subdirectories = run_all_subdirectories
    self.shards = shards
    self.shard_index = shard_index

  def get_test_path(self):
    if self.module_name is None:
      return self.native_test_device_path
    return posixpath.join(self.native_test_device_path, self.module_name)

  def get_gtest_filter(self):
    """Returns the --gtest_filter flag, or '' when there is no filter."""
    if self.positive_filter is None and self.negative_filter is None:
      return ''
    gtest_filter = GTEST_FLAG_FILTER + '='
    if self.positive_filter is not None:
      gtest_filter += '*.%s' % self.positive_filter
    if self.negative_filter is not None:
      gtest_filter += '-*.%s' % self.negative_filter
    return gtest_filter

  def get_gtest_flags(self):
    flags = [GTEST_FLAG_PRINT_TIME]
    gtest_filter = self.get_gtest_filter()
    if gtest_filter:
      flags.append(dtest_utils.quote(gtest_filter))
    if self.run_disabled_tests:
      flags.append(GTEST_FLAG_RUN_DISABLED_TESTS)
    return ' '.join(flags)

  def get_shard_env(self):
    """Returns the env assignments selecting this shard, or ''."""
    if self.shard_index is None:
      return ''
    return '%s=%d %s=%d ' % (GTEST_ENV_TOTAL_SHARDS, self.shards,
                             GTEST_ENV_SHARD_INDEX, self.shard_index)

  def split(self):
    """Splits the tests of every binary into self.shards GTest shards.

    The binaries pick their part of the tests themselves from the GTest
    sharding env variables.
    """
    if self.shards <= 1 or self.shard_index is not None:
      return None
    return [
        GTest(
            native_test_device_path=self.native_test_device_path,
            module_name=self.module_name,
            positive_filter=self.positive_filter,
            negative_filter=self.negative_filter,
            run_disabled_tests=self.run_disabled_tests,
            run_all_subdirectories=self.run_all_subdirectories,
            shards=self.shards,
            shard_index=index,
        )
        for index in range(self.shards)
    ]

  def create_result_parser(self, run_name, listener):
    return gtest_result_parser.GTestResultParser(run_name, listener)

  def run(self, listener):
    self._check_device()
    test_path = self.get_test_path()
    if not self.device.is_directory(test_path):
      logging.warning('Could not find native test directory %s in %s!',
                      test_path, self.device.serial_number)
      return
    self._run_directory(test_path, listener)

  def _run_directory(self, path, listener):
    for name in sorted(self.device.list_directory(path)):
      child = posixpath.join(path, name)
      if self.device.is_directory(child):
        if self.run_all_subdirectories:
          self._run_directory(child, listener)
      else:
        self._run_binary(child, listener)

  def _run_binary(self, path, listener):
    quoted = dtest_utils.quote(path)
    flags = self.get_gtest_flags()
    logging.info('Running gtest %s %s on %s', path, flags,
                 self.device.serial_number)
    self.device.execute_shell_command('chmod 755 %s' % quoted)
    parser = self.create_result_parser(posixpath.basename(path), listener)
    self.device.execute_shell_command(
        '%s%s %s' % (self.get_shard_env(), quoted, flags), parser)
