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

"""Contracts for preparing a device before tests and cleaning it after."""

from abc import ABC, abstractmethod


class TargetPreparer(ABC):
  """Prepares the device and build before the tests run."""

  @abstractmethod
  def set_up(self, device, build_info):
    """Prepares the device.

    Raises:
        TargetSetupError: if the device could not be prepared.
        BuildError: if the build under test is bad.
        DeviceNotAvailableError: if the device became unavailable.
    """


class TargetCleaner(TargetPreparer):
  """A TargetPreparer that also undoes its work once the tests are done."""

  @abstractmethod
  def tear_down(self, device, build_info, cause):
    """Cleans up the device.

    Args:
        device: The device under test.
        build_info: The build under test.
        cause: The exception that ended the invocation, or None.
    """
