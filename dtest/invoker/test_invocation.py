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

"""Runs one configuration on one device.

An invocation goes through these steps:

  1. Fetch the build.
  2. Prepare the device with the target preparers.
  3. Run the tests.
  4. Tear down the target cleaners.
  5. Report the device and host logs, then end the invocation.
  6. Release the build.

A device lost while the tests run hands the resumable tests to the
rescheduler and re-raises; the caller decides what to do with the device.
"""

from __future__ import annotations

import logging

from dtest import build_info as build_info_lib
from dtest import constants
from dtest import dtest_error
from dtest import dtest_utils
from dtest.dtest_enum import ForwardingPolicy
from dtest.dtest_enum import InvocationStatus
from dtest.invoker import shard_listener
from dtest.result import log_data
from dtest.result import result_forwarder
from dtest.result.log_data import LogDataType
from dtest.targetprep import target_preparer


class ResumeResultForwarder(result_forwarder.ResultForwarder):
  """Forwards the results of a resumed invocation to the parent's listeners.

  The parent already reported invocation_started, and the elapsed time of the
  parent is added to the one reported at the end.
  """

  def __init__(self, listeners, current_elapsed_ms,
               policy=ForwardingPolicy.BEST_EFFORT):
    super().__init__(listeners, policy)
    self._current_elapsed_ms = current_elapsed_ms

  def invocation_started(self, build_info):
    pass

  def invocation_ended(self, elapsed_ms):
    super().invocation_ended(self._current_elapsed_ms + elapsed_ms)


class TestInvocation:
  """Runs the tests of a configuration on a device."""

  def __init__(self):
    self._device = None
    self._status = '(not invoked)'
    self._invocation_status = None

  def __str__(self):
    serial = '(none)'
    if self._device is not None:
      serial = self._device.serial_number
    return 'Device %s: %s' % (serial, self._status)

  @property
  def invocation_status(self):
    """InvocationStatus of the last invoke() call, None before it."""
    return self._invocation_status

  def invoke(self, device, config, rescheduler):
    """Runs config on device.

    Args:
        device: The TestDevice to run on.
        config: The Configuration to run.
        rescheduler: The Rescheduler to hand resumed or retried work to.

    Raises:
        DeviceNotAvailableError: if the device was lost.
        FatalHostError: if the host can no longer run tests.
    """
    self._device = device
    self._invocation_status = InvocationStatus.SUCCESS
    self._status = 'fetching build'
    try:
      info = config.build_provider.get_build()
    except dtest_error.BuildRetrievalError as e:
      logging.error('Failed to retrieve build: %s', e)
      self._invocation_status = InvocationStatus.FAILED
      self._status = '(build retrieval failed)'
      return
    if info is None:
      self._status = '(no build to test)'
      logging.info('No build to test')
      if _should_reschedule(config):
        rescheduler.reschedule_command()
      return
    for test in config.tests:
      test.set_build(info)
      test.set_configuration(config)
    if self._shard_config(config, info, rescheduler):
      logging.info('Invocation for %s has been sharded, rescheduling',
                   device.serial_number)
      return
    device.set_recovery(config.device_recovery)
    self._perform_invocation(config, device, info, rescheduler)

  def _shard_config(self, config, info, rescheduler):
    """Schedules one configuration per shard if any test can be split.

    The shards share the build of this invocation and report to the
    listeners of config as a single invocation.

    Returns:
        True if config was sharded, in which case it must not run here.
    """
    self._status = 'sharding'
    shards = []
    sharded = False
    for test in config.tests:
      test_shards = test.split()
      if test_shards is None:
        shards.append(test)
      else:
        shards.extend(test_shards)
        sharded = True
    if not sharded:
      return False
    main = shard_listener.ShardMainResultForwarder(
        config.listeners, len(shards), config.command_options.forwarding_policy)
    logging.info('Sending build %s', info)
    main.invocation_started(info)
    for shard in shards:
      shard_config = config.clone()
      shard_config.tests = [shard]
      shard_config.build_provider = build_info_lib.ExistingBuildProvider(
          info.clone(), config.build_provider)
      shard_config.listeners = [shard_listener.ShardListener(main)]
      shard_config.log_output = config.log_output.clone()
      if not rescheduler.schedule_config(shard_config):
        logging.warning('Could not schedule a shard of %s', config.name)
        # Counts the shard as ended so the invocation still ends.
        main.invocation_ended(0)
    return True

  def _log_start_invocation(self, info, device):
    msg = ['Starting invocation for target', info.test_tag, 'on build',
           str(info.build_id)]
    msg.extend(info.build_attributes.values())
    msg.extend(['on device', device.serial_number])
    logging.info(' '.join(msg))
    self._status = 'running %s on build %s' % (info.test_tag, info.build_id)

  def _perform_invocation(self, config, device, info, rescheduler):
    resumed = False
    cause = None
    start_ms = dtest_utils.current_time_ms()
    forwarder = result_forwarder.ResultForwarder(
        config.listeners, config.command_options.forwarding_policy)

    config.log_output.init()
    self._log_start_invocation(info, device)
    forwarder.invocation_started(info)
    try:
      device.set_options(config.device_options)
      info.add_build_attribute(constants.BUILD_ATTR_DEVICE_SERIAL,
                               device.serial_number)
      if config.command_options.need_prepare:
        for preparer in config.target_preparers:
          preparer.set_up(device, info)
      self._run_tests(device, config, forwarder)
    except dtest_error.BuildError as e:
      cause = e
      logging.warning('Build %s failed on device %s: %s', info.build_id,
                      device.serial_number, e)
      self._take_bugreport(device, forwarder)
      self._report_failure(e, forwarder, config.build_provider, info)
    except dtest_error.TargetSetupError as e:
      cause = e
      logging.error('Failed to set up device %s: %s', device.serial_number, e)
      self._report_failure(e, forwarder, config.build_provider, info)
    except dtest_error.DeviceNotAvailableError as e:
      cause = e
      logging.error('Device %s became unavailable: %s', device.serial_number,
                    e)
      resumed = self._resume(config, info, rescheduler,
                             dtest_utils.elapsed_ms(start_ms))
      if resumed:
        logging.info('Rescheduled failed invocation for resume')
      else:
        self._report_failure(e, forwarder, config.build_provider, info)
      raise
    except dtest_error.FatalHostError as e:
      cause = e
      logging.error('Fatal host error: %s', e)
      self._report_failure(e, forwarder, config.build_provider, info)
      raise
    except Exception as e:
      cause = e
      logging.exception('Unexpected exception while running the tests')
      self._report_failure(e, forwarder, config.build_provider, info)
      if _should_reschedule(config):
        logging.info('Rescheduling the command for a retry')
        rescheduler.reschedule_command()
      raise
    finally:
      try:
        if (config.command_options.need_tear_down and
            not isinstance(cause, dtest_error.DeviceNotAvailableError)):
          self._tear_down(config, device, info, cause)
      finally:
        self._status = 'done running tests'
        try:
          self._report_logs(device, forwarder, config.log_output)
          if not resumed:
            forwarder.invocation_ended(dtest_utils.elapsed_ms(start_ms))
        finally:
          config.build_provider.clean_up(info)

  def _run_tests(self, device, config, forwarder):
    for test in config.tests:
      test.set_device(device)
      if test.is_resumable():
        logging.info('Resuming %s', type(test).__name__)
        test.resume(forwarder)
      else:
        test.run(forwarder)

  def _tear_down(self, config, device, info, cause):
    for preparer in reversed(config.target_preparers):
      if isinstance(preparer, target_preparer.TargetCleaner):
        preparer.tear_down(device, info, cause)

  def _take_bugreport(self, device, forwarder):
    try:
      bugreport = device.get_bugreport()
    except dtest_error.DeviceNotAvailableError as e:
      logging.warning('Could not take a bugreport of %s: %s',
                      device.serial_number, e)
      return
    try:
      forwarder.test_log(constants.BUILD_ERROR_BUGREPORT_NAME,
                         LogDataType.BUGREPORT, bugreport)
    finally:
      bugreport.cancel()

  def _resume(self, config, info, rescheduler, elapsed_ms):
    """Hands config to the rescheduler if any of its tests can resume.

    Returns:
        True if a configuration was scheduled for resume.
    """
    for test in config.tests:
      if test.is_resumable():
        resume_config = config.clone()
        resume_config.build_provider = build_info_lib.ExistingBuildProvider(
            info.clone(), config.build_provider)
        # The parent already started the invocation on these listeners.
        resume_config.listeners = [ResumeResultForwarder(
            config.listeners, elapsed_ms,
            config.command_options.forwarding_policy)]
        resume_config.log_output = config.log_output.clone()
        return rescheduler.schedule_config(resume_config)
    return False

  def _report_failure(self, exception, forwarder, build_provider, info):
    self._invocation_status = InvocationStatus.FAILED
    try:
      forwarder.invocation_failed(exception)
    finally:
      if not isinstance(exception, dtest_error.BuildError):
        build_provider.build_not_tested(info)

  def _report_logs(self, device, forwarder, logger):
    try:
      try:
        logcat = device.get_logcat()
      except dtest_error.DeviceNotAvailableError as e:
        logging.warning('Could not get the logcat of %s: %s',
                        device.serial_number, e)
        logcat = log_data.EMPTY_SOURCE
      try:
        forwarder.test_log(constants.DEVICE_LOG_NAME, LogDataType.TEXT,
                           logcat)
      finally:
        logcat.cancel()
      forwarder.test_log(constants.TRADEFED_LOG_NAME, LogDataType.TEXT,
                         logger.get_log())
    finally:
      # Records logged after this point go to the main dtest log only.
      logger.close_log()


def _should_reschedule(config):
  if config.command_options.loop_mode:
    return False
  return any(test.is_retriable() for test in config.tests)
