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

"""The objects that make up one invocation."""

from __future__ import annotations

import dataclasses
from typing import List

from dtest import build_info
from dtest.device import test_device
from dtest.dtest_enum import ForwardingPolicy
from dtest.log import invocation_logger
from dtest.result import listeners as listeners_lib
from dtest.result import text_result_reporter
from dtest.targetprep import target_preparer
from dtest.test_types import remote_test


@dataclasses.dataclass
class CommandOptions:
  """Options controlling how a command is scheduled and run."""

  loop_mode: bool = False
  min_loop_time_ms: int = 10 * 60 * 1000
  dry_run: bool = False
  need_prepare: bool = True
  need_tear_down: bool = True
  forwarding_policy: ForwardingPolicy = ForwardingPolicy.BEST_EFFORT
  # Times the command was rescheduled after a failed invocation.
  retry_count: int = 0


def _default_listeners():
  return [text_result_reporter.TextResultReporter()]


@dataclasses.dataclass
class Configuration:
  """Aggregate of the objects used by one invocation.

  Lists keep the order they are configured in: preparers run, tests run and
  listeners are notified in that order.
  """

  name: str = 'dtest'
  build_provider: build_info.BuildProvider = dataclasses.field(
      default_factory=build_info.StubBuildProvider)
  device_recovery: test_device.DeviceRecovery = dataclasses.field(
      default_factory=test_device.WaitDeviceRecovery)
  device_options: test_device.DeviceOptions = dataclasses.field(
      default_factory=test_device.DeviceOptions)
  target_preparers: List[target_preparer.TargetPreparer] = dataclasses.field(
      default_factory=list)
  tests: List[remote_test.RemoteTest] = dataclasses.field(default_factory=list)
  listeners: List[listeners_lib.TestInvocationListener] = dataclasses.field(
      default_factory=_default_listeners)
  command_options: CommandOptions = dataclasses.field(
      default_factory=CommandOptions)
  log_output: invocation_logger.InvocationLogger = dataclasses.field(
      default_factory=invocation_logger.InvocationLogger)

  def clone(self) -> 'Configuration':
    """Returns a shallow copy that owns its lists.

    The copy references the same objects, so replacing e.g. its build
    provider or listeners leaves this configuration untouched.
    """
    return dataclasses.replace(
        self,
        target_preparers=list(self.target_preparers),
        tests=list(self.tests),
        listeners=list(self.listeners),
    )
