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

"""Unittests for test_invocation."""

import functools
import unittest
from unittest import mock

from dtest import build_info
from dtest import configuration
from dtest import constants
from dtest import dtest_error
from dtest.device import test_device
from dtest.dtest_enum import InvocationStatus
from dtest.invoker import rescheduler
from dtest.invoker import shard_listener
from dtest.invoker import test_invocation
from dtest.log import invocation_logger
from dtest.result import listeners
from dtest.result.test_identifier import TestIdentifier
from dtest.targetprep import target_preparer
from dtest.test_types import remote_test


def _method_names(m):
  return [c[0] for c in m.method_calls]


def _report_passing_run(run_name, listener):
  test = TestIdentifier('FooTest', 'testFoo')
  listener.test_run_started(run_name, 1)
  listener.test_started(test)
  listener.test_ended(test, {})
  listener.test_run_ended(10, {})


class TestInvocationUnittests(unittest.TestCase):

  def setUp(self):
    self.device = mock.create_autospec(test_device.TestDevice, instance=True)
    self.device.serial_number = 'SERIAL'
    self.build = build_info.BuildInfo('123', 'foo_tag', 'foo_target')
    self.build_provider = mock.create_autospec(
        build_info.BuildProvider, instance=True)
    self.build_provider.get_build.return_value = self.build
    self.test = mock.create_autospec(remote_test.RemoteTest, instance=True)
    self.test.is_resumable.return_value = False
    self.test.is_retriable.return_value = False
    self.test.split.return_value = None
    self.preparer = mock.create_autospec(
        target_preparer.TargetCleaner, instance=True)
    self.listener = mock.create_autospec(
        listeners.TestInvocationListener, instance=True)
    self.listener.get_summary.return_value = None
    self.logger = mock.create_autospec(
        invocation_logger.InvocationLogger, instance=True)
    self.rescheduler = mock.create_autospec(
        rescheduler.Rescheduler, instance=True)
    self.config = configuration.Configuration(
        build_provider=self.build_provider,
        device_recovery=mock.create_autospec(
            test_device.DeviceRecovery, instance=True),
        target_preparers=[self.preparer],
        tests=[self.test],
        listeners=[self.listener],
        log_output=self.logger,
    )
    self.sut = test_invocation.TestInvocation()

  def _logged_names(self):
    return [c[0][0] for c in self.listener.test_log.call_args_list]

  def test_invoke_success(self):
    self.sut.invoke(self.device, self.config, self.rescheduler)

    self.assertEqual(
        _method_names(self.listener),
        ['invocation_started', 'test_log', 'test_log', 'invocation_ended',
         'get_summary'])
    self.listener.invocation_started.assert_called_once_with(self.build)
    self.assertEqual(
        self._logged_names(),
        [constants.DEVICE_LOG_NAME, constants.TRADEFED_LOG_NAME])
    self.test.set_build.assert_called_once_with(self.build)
    self.test.set_configuration.assert_called_once_with(self.config)
    self.test.set_device.assert_called_once_with(self.device)
    self.test.run.assert_called_once()
    self.preparer.set_up.assert_called_once_with(self.device, self.build)
    self.preparer.tear_down.assert_called_once_with(
        self.device, self.build, None)
    self.device.set_recovery.assert_called_once_with(
        self.config.device_recovery)
    self.assertEqual(
        self.build.build_attributes[constants.BUILD_ATTR_DEVICE_SERIAL],
        'SERIAL')
    self.build_provider.clean_up.assert_called_once_with(self.build)
    self.build_provider.build_not_tested.assert_not_called()
    self.logger.init.assert_called_once()
    self.logger.close_log.assert_called_once()
    self.assertEqual(self.sut.invocation_status, InvocationStatus.SUCCESS)
    self.assertEqual(str(self.sut), 'Device SERIAL: done running tests')

  def test_str_before_invoke(self):
    self.assertEqual(str(self.sut), 'Device (none): (not invoked)')

  def test_invoke_build_error_takes_bugreport_and_cleans_up(self):
    self.preparer.set_up.side_effect = dtest_error.BuildError('bad boot')

    self.sut.invoke(self.device, self.config, self.rescheduler)

    self.assertEqual(self.sut.invocation_status, InvocationStatus.FAILED)
    self.assertIn(constants.BUILD_ERROR_BUGREPORT_NAME, self._logged_names())
    self.listener.invocation_failed.assert_called_once_with(
        self.preparer.set_up.side_effect)
    self.listener.invocation_ended.assert_called_once()
    self.build_provider.clean_up.assert_called_once_with(self.build)
    self.build_provider.build_not_tested.assert_not_called()
    self.test.run.assert_not_called()
    self.rescheduler.reschedule_command.assert_not_called()

  def test_invoke_setup_error_reports_build_not_tested(self):
    self.preparer.set_up.side_effect = dtest_error.TargetSetupError('no apk')

    self.sut.invoke(self.device, self.config, self.rescheduler)

    self.assertEqual(self.sut.invocation_status, InvocationStatus.FAILED)
    self.assertNotIn(constants.BUILD_ERROR_BUGREPORT_NAME,
                     self._logged_names())
    self.build_provider.build_not_tested.assert_called_once_with(self.build)
    self.build_provider.clean_up.assert_called_once_with(self.build)

  def test_invoke_no_prepare_skips_set_up(self):
    self.config.command_options.need_prepare = False

    self.sut.invoke(self.device, self.config, self.rescheduler)

    self.preparer.set_up.assert_not_called()
    self.test.run.assert_called_once()

  def test_invoke_device_lost_resumable_schedules_resume(self):
    error = dtest_error.DeviceNotAvailableError('gone', 'SERIAL')
    self.test.run.side_effect = error
    # Resumable only once the run was attempted.
    self.test.is_resumable.side_effect = [False, True]
    self.rescheduler.schedule_config.return_value = True

    with self.assertRaises(dtest_error.DeviceNotAvailableError):
      self.sut.invoke(self.device, self.config, self.rescheduler)

    self.rescheduler.schedule_config.assert_called_once()
    resume_config = self.rescheduler.schedule_config.call_args[0][0]
    self.assertIs(resume_config.tests[0], self.test)
    self.assertIs(resume_config.target_preparers[0], self.preparer)
    self.assertIsInstance(resume_config.build_provider,
                          build_info.ExistingBuildProvider)
    resumed_build = resume_config.build_provider.get_build()
    self.assertIsNot(resumed_build, self.build)
    self.assertEqual(resumed_build.build_id, '123')
    self.assertEqual(len(resume_config.listeners), 1)
    self.assertIsInstance(resume_config.listeners[0],
                          test_invocation.ResumeResultForwarder)
    self.assertIs(resume_config.log_output, self.logger.clone.return_value)
    self.assertEqual(self.config.listeners, [self.listener])
    self.listener.invocation_failed.assert_not_called()
    self.listener.invocation_ended.assert_not_called()
    self.preparer.tear_down.assert_not_called()
    self.build_provider.clean_up.assert_called_once_with(self.build)
    self.logger.close_log.assert_called_once()

  def test_invoke_device_lost_not_resumable_reports_failure(self):
    self.test.run.side_effect = dtest_error.DeviceNotAvailableError('gone')

    with self.assertRaises(dtest_error.DeviceNotAvailableError):
      self.sut.invoke(self.device, self.config, self.rescheduler)

    self.rescheduler.schedule_config.assert_not_called()
    self.listener.invocation_failed.assert_called_once()
    self.listener.invocation_ended.assert_called_once()
    self.preparer.tear_down.assert_not_called()
    self.build_provider.build_not_tested.assert_called_once_with(self.build)
    self.build_provider.clean_up.assert_called_once_with(self.build)

  def test_invoke_device_lost_still_reports_host_log(self):
    self.test.run.side_effect = dtest_error.DeviceNotAvailableError('gone')
    self.device.get_logcat.side_effect = dtest_error.DeviceNotAvailableError(
        'gone')

    with self.assertRaises(dtest_error.DeviceNotAvailableError):
      self.sut.invoke(self.device, self.config, self.rescheduler)

    self.assertEqual(
        self._logged_names(),
        [constants.DEVICE_LOG_NAME, constants.TRADEFED_LOG_NAME])

  def test_invoke_runtime_error_retriable_reschedules(self):
    error = RuntimeError('boom')
    self.test.run.side_effect = error
    self.test.is_retriable.return_value = True

    with self.assertRaises(RuntimeError):
      self.sut.invoke(self.device, self.config, self.rescheduler)

    self.rescheduler.reschedule_command.assert_called_once()
    self.rescheduler.schedule_config.assert_not_called()
    self.listener.invocation_failed.assert_called_once_with(error)
    self.preparer.tear_down.assert_called_once_with(
        self.device, self.build, error)
    self.build_provider.build_not_tested.assert_called_once_with(self.build)
    self.build_provider.clean_up.assert_called_once_with(self.build)
    self.assertEqual(self.sut.invocation_status, InvocationStatus.FAILED)

  def test_invoke_runtime_error_in_loop_mode_does_not_reschedule(self):
    self.test.run.side_effect = RuntimeError('boom')
    self.test.is_retriable.return_value = True
    self.config.command_options.loop_mode = True

    with self.assertRaises(RuntimeError):
      self.sut.invoke(self.device, self.config, self.rescheduler)

    self.rescheduler.reschedule_command.assert_not_called()

  def test_invoke_fatal_host_error_is_not_rescheduled(self):
    self.test.run.side_effect = dtest_error.FatalHostError('disk full')
    self.test.is_retriable.return_value = True

    with self.assertRaises(dtest_error.FatalHostError):
      self.sut.invoke(self.device, self.config, self.rescheduler)

    self.rescheduler.reschedule_command.assert_not_called()
    self.rescheduler.schedule_config.assert_not_called()
    self.listener.invocation_failed.assert_called_once()
    self.build_provider.clean_up.assert_called_once_with(self.build)
    self.logger.close_log.assert_called_once()

  def test_invoke_no_build_retriable_reschedules(self):
    self.build_provider.get_build.return_value = None
    self.test.is_retriable.return_value = True

    self.sut.invoke(self.device, self.config, self.rescheduler)

    self.rescheduler.reschedule_command.assert_called_once()
    self.listener.invocation_started.assert_not_called()
    self.assertEqual(str(self.sut), 'Device SERIAL: (no build to test)')

  def test_invoke_no_build_not_retriable_does_nothing(self):
    self.build_provider.get_build.return_value = None

    self.sut.invoke(self.device, self.config, self.rescheduler)

    self.rescheduler.reschedule_command.assert_not_called()
    self.test.run.assert_not_called()

  def test_invoke_build_retrieval_error_is_not_retried(self):
    self.build_provider.get_build.side_effect = (
        dtest_error.BuildRetrievalError('no such build'))
    self.test.is_retriable.return_value = True

    self.sut.invoke(self.device, self.config, self.rescheduler)

    self.listener.invocation_started.assert_not_called()
    self.rescheduler.reschedule_command.assert_not_called()
    self.build_provider.clean_up.assert_not_called()
    self.assertEqual(self.sut.invocation_status, InvocationStatus.FAILED)

  def test_invoke_resumable_test_is_resumed(self):
    self.test.is_resumable.return_value = True

    self.sut.invoke(self.device, self.config, self.rescheduler)

    self.test.resume.assert_called_once()
    self.test.run.assert_not_called()

  def test_invoke_teardown_error_still_cleans_up(self):
    self.preparer.tear_down.side_effect = RuntimeError('teardown')

    with self.assertRaises(RuntimeError):
      self.sut.invoke(self.device, self.config, self.rescheduler)

    self.listener.invocation_ended.assert_called_once()
    self.build_provider.clean_up.assert_called_once_with(self.build)
    self.logger.close_log.assert_called_once()

  def _shard_tests(self, count):
    shards = []
    for index in range(count):
      shard = mock.create_autospec(remote_test.RemoteTest, instance=True)
      shard.split.return_value = None
      shard.is_resumable.return_value = False
      shard.is_retriable.return_value = False
      shard.run.side_effect = functools.partial(
          _report_passing_run, 'run%d' % index)
      shards.append(shard)
    return shards

  def _scheduled_configs(self):
    return [c[0][0] for c in self.rescheduler.schedule_config.call_args_list]

  def test_invoke_splittable_test_schedules_one_config_per_shard(self):
    shards = self._shard_tests(2)
    self.test.split.return_value = shards
    other = mock.create_autospec(remote_test.RemoteTest, instance=True)
    other.split.return_value = None
    self.config.tests.append(other)
    self.rescheduler.schedule_config.return_value = True

    self.sut.invoke(self.device, self.config, self.rescheduler)

    self.test.run.assert_not_called()
    self.preparer.set_up.assert_not_called()
    self.listener.invocation_started.assert_called_once_with(self.build)
    self.listener.invocation_ended.assert_not_called()
    configs = self._scheduled_configs()
    self.assertEqual([c.tests for c in configs],
                     [[shards[0]], [shards[1]], [other]])
    for shard_config in configs:
      self.assertIsInstance(shard_config.build_provider,
                            build_info.ExistingBuildProvider)
      self.assertIsNot(shard_config.build_provider.get_build(), self.build)
      self.assertEqual(len(shard_config.listeners), 1)
      self.assertIsInstance(shard_config.listeners[0],
                            shard_listener.ShardListener)
    self.assertEqual(self.config.tests, [self.test, other])
    self.assertEqual(str(self.sut), 'Device SERIAL: sharding')

  def test_invoke_shards_report_as_one_invocation(self):
    self.test.split.return_value = self._shard_tests(2)
    self.rescheduler.schedule_config.return_value = True
    self.sut.invoke(self.device, self.config, self.rescheduler)

    for shard_config in self._scheduled_configs():
      test_invocation.TestInvocation().invoke(
          self.device, shard_config, self.rescheduler)

    names = _method_names(self.listener)
    self.assertEqual(names.count('invocation_started'), 1)
    self.assertEqual(names.count('invocation_ended'), 1)
    self.assertEqual(
        self.listener.test_run_started.call_args_list,
        [mock.call('run0', 1), mock.call('run1', 1)])
    self.assertGreater(names.index('invocation_ended'),
                       len(names) - 1 - names[::-1].index('test_run_ended'))

  def test_invoke_unscheduled_shards_still_end_the_invocation(self):
    self.test.split.return_value = self._shard_tests(2)
    self.rescheduler.schedule_config.return_value = False

    self.sut.invoke(self.device, self.config, self.rescheduler)

    self.listener.invocation_started.assert_called_once_with(self.build)
    self.listener.invocation_ended.assert_called_once_with(0)


class ResumeResultForwarderUnittests(unittest.TestCase):

  def setUp(self):
    self.listener = mock.create_autospec(
        listeners.TestInvocationListener, instance=True)
    self.listener.get_summary.return_value = None
    self.sut = test_invocation.ResumeResultForwarder([self.listener], 100)

  def test_invocation_started_is_not_forwarded(self):
    self.sut.invocation_started(build_info.BuildInfo())

    self.listener.invocation_started.assert_not_called()

  def test_invocation_ended_adds_parent_elapsed_time(self):
    self.sut.invocation_ended(5)

    self.listener.invocation_ended.assert_called_once_with(105)

  def test_other_calls_are_forwarded(self):
    self.sut.test_run_failed('oops')

    self.listener.test_run_failed.assert_called_once_with('oops')


if __name__ == '__main__':
  unittest.main()
