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

"""Unittests for command_scheduler."""

import threading
import unittest
from unittest import mock

from dtest import configuration
from dtest import dtest_error
from dtest.command import command_scheduler
from dtest.device import test_device
from dtest.dtest_enum import FreeDeviceState
from dtest.invoker import test_invocation

JOIN_TIMEOUT_S = 10


def _device(serial):
  device = mock.create_autospec(test_device.TestDevice, instance=True)
  device.serial_number = serial
  return device


class _ConfigFactory:
  """Builds a new Configuration per call and remembers them."""

  def __init__(self, loop_mode=False, dry_run=False):
    self.configs = []
    self._loop_mode = loop_mode
    self._dry_run = dry_run

  def __call__(self):
    config = configuration.Configuration(name='cmd%d' % len(self.configs))
    config.command_options.loop_mode = self._loop_mode
    config.command_options.min_loop_time_ms = 0
    config.command_options.dry_run = self._dry_run
    self.configs.append(config)
    return config


class CommandSchedulerUnittests(unittest.TestCase):

  def setUp(self):
    self.device = _device('SERIAL1')
    self.pool = command_scheduler.DevicePool([self.device])
    self.invocation = mock.create_autospec(
        test_invocation.TestInvocation, instance=True)
    patcher = mock.patch.object(
        command_scheduler.CommandScheduler, 'create_run_instance',
        return_value=self.invocation)
    patcher.start()
    self.addCleanup(patcher.stop)
    self.scheduler = command_scheduler.CommandScheduler(self.pool)

  def _run_until_empty(self):
    self.scheduler.shutdown_on_empty()
    self.scheduler.start()
    self.scheduler.join(JOIN_TIMEOUT_S)
    self.assertFalse(self.scheduler.is_alive())

  def test_run_command_on_device(self):
    factory = _ConfigFactory()

    self.assertTrue(self.scheduler.add_command(factory))
    self._run_until_empty()

    self.invocation.invoke.assert_called_once_with(
        self.device, factory.configs[0], mock.ANY)
    self.assertEqual(self.pool.available_devices, [self.device])
    self.assertEqual(self.scheduler.commands, [])

  def test_dry_run_command_is_not_added(self):
    self.assertFalse(self.scheduler.add_command(_ConfigFactory(dry_run=True)))

    self._run_until_empty()

    self.invocation.invoke.assert_not_called()

  def test_unavailable_device_leaves_the_pool(self):
    self.invocation.invoke.side_effect = dtest_error.DeviceNotAvailableError(
        'gone')

    self.scheduler.add_command(_ConfigFactory())
    self._run_until_empty()

    self.assertEqual(self.pool.available_devices, [])
    self.assertFalse(self.pool.has_devices())

  def test_unresponsive_device_leaves_the_pool(self):
    free_device = mock.Mock(wraps=self.pool.free_device)
    self.pool.free_device = free_device
    self.invocation.invoke.side_effect = dtest_error.DeviceUnresponsiveError(
        'stuck')

    self.scheduler.add_command(_ConfigFactory())
    self._run_until_empty()

    free_device.assert_called_once_with(self.device,
                                        FreeDeviceState.UNRESPONSIVE)

  def test_generic_error_keeps_the_device(self):
    self.invocation.invoke.side_effect = RuntimeError('boom')

    self.scheduler.add_command(_ConfigFactory())
    self._run_until_empty()

    self.assertEqual(self.pool.available_devices, [self.device])

  def test_fatal_host_error_shuts_down(self):
    self.invocation.invoke.side_effect = dtest_error.FatalHostError('disk')

    self.scheduler.add_command(_ConfigFactory())
    self.scheduler.start()
    self.scheduler.join(JOIN_TIMEOUT_S)

    self.assertTrue(self.scheduler.is_shutdown())
    self.assertFalse(self.scheduler.add_command(_ConfigFactory()))

  def test_schedule_config_runs_child_on_another_device(self):
    other = _device('SERIAL2')
    self.pool = command_scheduler.DevicePool([self.device, other])
    self.scheduler = command_scheduler.CommandScheduler(self.pool)
    child = configuration.Configuration(name='child')

    def _invoke(device, config, rescheduler):
      if config is not child:
        self.assertTrue(rescheduler.schedule_config(child))
        raise dtest_error.DeviceNotAvailableError('gone')

    self.invocation.invoke.side_effect = _invoke

    self.scheduler.add_command(_ConfigFactory())
    self._run_until_empty()

    self.assertEqual(self.invocation.invoke.call_count, 2)
    self.invocation.invoke.assert_called_with(other, child, mock.ANY)
    self.assertEqual(self.pool.available_devices, [other])

  def test_reschedule_command_runs_a_fresh_config(self):
    factory = _ConfigFactory()
    calls = []

    def _invoke(device, config, rescheduler):
      calls.append(config)
      if len(calls) == 1:
        rescheduler.reschedule_command()

    self.invocation.invoke.side_effect = _invoke

    self.scheduler.add_command(factory)
    self._run_until_empty()

    self.assertEqual(len(factory.configs), 2)
    self.assertEqual(calls, factory.configs)
    self.assertEqual(
        [c.command_options.retry_count for c in factory.configs], [0, 1])

  def test_resume_is_dropped_once_no_device_is_left(self):
    child = configuration.Configuration(name='child')

    def _invoke(device, config, rescheduler):
      rescheduler.schedule_config(child)
      raise dtest_error.DeviceNotAvailableError('gone')

    self.invocation.invoke.side_effect = _invoke

    self.scheduler.add_command(_ConfigFactory())
    self._run_until_empty()

    self.invocation.invoke.assert_called_once()

  def test_loop_mode_requeues_command(self):
    factory = _ConfigFactory(loop_mode=True)
    looped = threading.Event()

    def _invoke(device, config, rescheduler):
      if len(factory.configs) >= 3:
        looped.set()

    self.invocation.invoke.side_effect = _invoke

    self.scheduler.add_command(factory)
    self.scheduler.start()
    self.assertTrue(looped.wait(JOIN_TIMEOUT_S))
    self.scheduler.shutdown()
    self.scheduler.join(JOIN_TIMEOUT_S)

    self.assertGreaterEqual(self.invocation.invoke.call_count, 2)
    self.assertFalse(self.scheduler.is_alive())

  def test_rescheduled_work_does_not_loop(self):
    factory = _ConfigFactory(loop_mode=True)
    self.scheduler.add_command(factory)
    first = self.scheduler._dequeue()
    rescheduler = command_scheduler._Rescheduler(self.scheduler, first)

    rescheduler.schedule_config(factory())
    resumed = self.scheduler._dequeue()

    self.assertFalse(first.rescheduled)
    self.assertTrue(resumed.rescheduled)
    self.assertIs(resumed.tracker, first.tracker)

  def test_least_used_command_runs_first(self):
    busy = _ConfigFactory()
    idle = _ConfigFactory()

    self.scheduler.add_command(busy, total_exec_time_ms=100)
    self.scheduler.add_command(idle)

    self.assertIs(self.scheduler._dequeue().config, idle.configs[0])
    self.assertIs(self.scheduler._dequeue().config, busy.configs[0])


class DevicePoolUnittests(unittest.TestCase):

  def test_allocate_and_free(self):
    device = _device('SERIAL1')
    pool = command_scheduler.DevicePool([device])

    self.assertIs(pool.allocate_device(), device)
    self.assertIsNone(pool.allocate_device())
    self.assertTrue(pool.has_devices())

    pool.free_device(device, FreeDeviceState.AVAILABLE)

    self.assertEqual(pool.available_devices, [device])


if __name__ == '__main__':
  unittest.main()
