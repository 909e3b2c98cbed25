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

"""Base class for every test unit an invocation can run.

A test unit is one class with optional capability hooks instead of a set of
independent interfaces. The invocation calls every hook; the defaults do
nothing, so a unit only overrides the capabilities it has:

  set_device(device)      the unit needs the device under test.
  set_build(build_info)   the unit needs the build under test.
  set_configuration(cfg)  the unit needs the whole configuration.
  is_resumable()          unfinished work can continue on another device.
  resume(listener)        continue that work; defaults to run().
  is_retriable()          a failed run is worth a fresh reschedule.
  split()                 the tests can be divided into shards run on several
                          devices at once.
"""

from abc import ABC, abstractmethod
from typing import List, Optional


class RemoteTest(ABC):
  """A unit of tests run against a device and reported to a listener."""

  @abstractmethod
  def run(self, listener):
    """Runs the tests, reporting results to listener.

    Raises:
        DeviceNotAvailableError: if the device became unavailable.
    """

  def resume(self, listener):
    self.run(listener)

  def set_device(self, device):
    pass

  def set_build(self, build_info):
    pass

  def set_configuration(self, configuration):
    pass

  def is_resumable(self) -> bool:
    return False

  def is_retriable(self) -> bool:
    return False

  def split(self) -> Optional[List['RemoteTest']]:
    """Returns the shards to run instead of this test, or None."""
    return None


class DeviceTest(RemoteTest):
  """A RemoteTest that keeps a reference to the device it runs on."""

  def __init__(self):
    self._device = None

  @property
  def device(self):
    return self._device

  def set_device(self, device):
    self._device = device

  def _check_device(self):
    if self._device is None:
      raise ValueError('Device has not been set')
