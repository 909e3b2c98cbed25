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

"""Lets an invocation hand work back to the scheduler."""

from abc import ABC, abstractmethod


class Rescheduler(ABC):
  """Schedules more work on behalf of a running invocation.

  Resuming and rescheduling are different requests. schedule_config() runs
  a given configuration, e.g. one that continues a half finished test unit on
  another device. reschedule_command() runs the original command again from
  scratch.
  """

  @abstractmethod
  def schedule_config(self, config) -> bool:
    """Schedules config to run on the next free device.

    Returns:
        True if the configuration was scheduled.
    """

  @abstractmethod
  def reschedule_command(self) -> bool:
    """Schedules a fresh run of the command this invocation belongs to.

    Returns:
        True if the command was rescheduled.
    """
