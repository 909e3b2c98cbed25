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

"""Preparer that installs APKs on the device."""

import logging
import os
from typing import Iterable

from dtest import dtest_error
from dtest.targetprep import target_preparer


class InstallApkSetup(target_preparer.TargetPreparer):
  """Installs APKs given by host path or by build file name.

  Build file names are looked up in the build under test; anything else is
  taken as a host path.
  """

  def __init__(self, apk_paths: Iterable[str] = (),
               build_file_names: Iterable[str] = ()):
    self._apk_paths = list(apk_paths)
    self._build_file_names = list(build_file_names)

  def _resolve(self, build_info):
    paths = list(self._apk_paths)
    for name in self._build_file_names:
      path = build_info.get_file(name)
      if path is None:
        raise dtest_error.TargetSetupError(
            'Build %s has no file named %s' % (build_info.build_id, name))
      paths.append(path)
    return paths

  def set_up(self, device, build_info):
    for apk in self._resolve(build_info):
      if not os.path.exists(apk):
        raise dtest_error.TargetSetupError('%s does not exist' % apk)
      logging.info('Installing %s on %s', os.path.basename(apk),
                   device.serial_number)
      result = device.install_package(apk, True)
      if result is not None:
        raise dtest_error.TargetSetupError(
            'Failed to install %s on device %s. Reason: %s'
            % (apk, device.serial_number, result))
