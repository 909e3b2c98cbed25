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

"""Unittests for install_apk_setup."""

import unittest
from unittest import mock

from pyfakefs import fake_filesystem_unittest

from dtest import build_info
from dtest import dtest_error
from dtest.device import test_device
from dtest.targetprep import install_apk_setup

HOST_APK = '/out/app/Foo.apk'
BUILD_APK = '/out/build/FooTests.apk'


class InstallApkSetupUnittests(fake_filesystem_unittest.TestCase):

  def setUp(self):
    self.setUpPyfakefs()
    self.fs.create_file(HOST_APK)
    self.fs.create_file(BUILD_APK)
    self.device = mock.create_autospec(test_device.TestDevice, instance=True)
    self.device.serial_number = 'SERIAL'
    self.device.install_package.return_value = None
    self.build = build_info.BuildInfo('1234')
    self.build.set_file('FooTests.apk', BUILD_APK)

  def test_installs_host_paths_then_build_files(self):
    preparer = install_apk_setup.InstallApkSetup([HOST_APK],
                                                 ['FooTests.apk'])

    preparer.set_up(self.device, self.build)

    self.assertEqual(self.device.install_package.call_args_list,
                     [mock.call(HOST_APK, True), mock.call(BUILD_APK, True)])

  def test_missing_build_file_raises(self):
    preparer = install_apk_setup.InstallApkSetup(
        build_file_names=['Missing.apk'])

    with self.assertRaisesRegex(dtest_error.TargetSetupError, 'Missing.apk'):
      preparer.set_up(self.device, self.build)

  def test_missing_host_file_raises(self):
    preparer = install_apk_setup.InstallApkSetup(['/out/app/Gone.apk'])

    with self.assertRaises(dtest_error.TargetSetupError):
      preparer.set_up(self.device, self.build)
    self.device.install_package.assert_not_called()

  def test_install_failure_raises(self):
    self.device.install_package.return_value = 'INSTALL_FAILED_OLDER_SDK'
    preparer = install_apk_setup.InstallApkSetup([HOST_APK])

    with self.assertRaisesRegex(dtest_error.TargetSetupError,
                                'INSTALL_FAILED_OLDER_SDK'):
      preparer.set_up(self.device, self.build)


if __name__ == '__main__':
  unittest.main()
