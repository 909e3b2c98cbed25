#!/usr/bin/env python3
#
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

"""Command line entry point of dtest.

dtest builds one command out of the command line, then runs it through a
CommandScheduler on every requested device until the command, and any work
resumed or rescheduled from it, is done.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
import tempfile
import threading
import time
from typing import List, Optional

from dtest import arg_parser
from dtest import configuration
from dtest import constants
from dtest import dtest_error
from dtest import dtest_utils
from dtest import harness_config as harness_config_lib
from dtest.command import command_scheduler
from dtest.device import adb_test_device
from dtest.device import test_device
from dtest.dtest_enum import ExitCode
from dtest.dtest_enum import ForwardingPolicy
from dtest.log import invocation_logger
from dtest.result import collecting_listener
from dtest.result import text_result_reporter
from dtest.targetprep import install_apk_setup
from dtest.targetprep import run_command_preparer
from dtest.test_types import gtest
from dtest.test_types import host_test
from dtest.test_types import installed_instrumentations_test
from dtest.test_types import instrumentation_test

TEST_RUN_DIR_PREFIX = '%Y%m%d_%H%M%S'
_RESULTS_DIR_PRINT_PREFIX = 'Dtest results and logs directory: '
_JOIN_POLL_TIME_S = 1
_ADB_DEVICES_TIMEOUT_S = 30

# Most specific first.
_FAILURE_EXIT_CODES = (
    (dtest_error.FatalHostError, ExitCode.FATAL_HOST_ERROR),
    (dtest_error.DeviceUnresponsiveError, ExitCode.DEVICE_UNRESPONSIVE),
    (dtest_error.DeviceNotAvailableError, ExitCode.DEVICE_UNAVAILABLE),
    (dtest_error.BuildRetrievalError, ExitCode.NO_BUILD),
)


class ExitCodeListener(collecting_listener.CollectingTestListener):
  """Collects what the process exit code is derived from.

  One instance is shared by every configuration of the command, resumed and
  rescheduled ones included.
  """

  def __init__(self):
    super().__init__()
    self._lock = threading.Lock()
    self.failures: List[BaseException] = []

  def invocation_failed(self, cause):
    with self._lock:
      self.failures.append(cause)

  def exit_code(self) -> ExitCode:
    with self._lock:
      failures = list(self.failures)
    for failure in failures:
      for error_type, code in _FAILURE_EXIT_CODES:
        if isinstance(failure, error_type):
          return code
    if failures:
      return ExitCode.ERROR
    if self.has_failed_tests() or any(
        run.is_run_failure for run in self.run_results):
      return ExitCode.TEST_FAILURE
    return ExitCode.SUCCESS


def _configure_logging(verbose: bool, results_dir: str):
  """Configure the logger.

  Args:
      verbose: If true display DEBUG level logs on console.
      results_dir: A directory which stores the dtest execution information.
  """
  log_fmat = '%(asctime)s %(filename)s:%(lineno)s:%(levelname)s: %(message)s'
  date_fmt = '%Y-%m-%d %H:%M:%S'
  log_path = os.path.join(results_dir, constants.DTEST_LOG_NAME)

  logger = logging.getLogger('')
  # Clear the handlers to prevent logging.basicConfig from being called twice.
  logger.handlers = []

  logging.basicConfig(
      filename=log_path, level=logging.DEBUG, format=log_fmat, datefmt=date_fmt
  )
  if verbose:
    console = logging.StreamHandler()
    console.setLevel(logging.DEBUG)
    console.setFormatter(logging.Formatter(log_fmat, date_fmt))
    logger.addHandler(console)


def make_test_run_dir(result_root: str) -> str:
  """Make the test run dir in result_root.

  Returns:
      A string of the dir path.
  """
  if not os.path.exists(result_root):
    os.makedirs(result_root)
  ctime = time.strftime(TEST_RUN_DIR_PREFIX, time.localtime())
  test_result_dir = tempfile.mkdtemp(prefix='%s_' % ctime, dir=result_root)
  print(_RESULTS_DIR_PRINT_PREFIX + test_result_dir)
  return test_result_dir


def find_device_serials(adb_path: str) -> List[str]:
  """Returns the serials of the devices `adb devices` lists as online.

  Raises:
      FatalHostError: if adb cannot be run.
  """
  try:
    result = subprocess.run(
        [adb_path, 'devices'], capture_output=True, text=True, check=False,
        timeout=_ADB_DEVICES_TIMEOUT_S)
  except (OSError, subprocess.TimeoutExpired) as e:
    raise dtest_error.FatalHostError(
        'Could not list devices with %s: %s' % (adb_path, e)) from e
  serials = []
  for line in result.stdout.splitlines():
    fields = line.split()
    if len(fields) == 2 and fields[1] == 'device':
      serials.append(fields[0])
  return serials


def _get_serials(args, harness: harness_config_lib.HarnessConfig):
  if args.serials:
    return args.serials
  env_serial = os.environ.get(constants.ANDROID_SERIAL)
  if env_serial:
    return [env_serial]
  return find_device_serials(harness.adb_path)


def _check_args(args):
  """Raises ConfigurationError for option combinations that cannot run."""
  if (args.test_type == arg_parser.INSTRUMENTATION and args.method and
      not args.class_name):
    raise dtest_error.ConfigurationError('--method requires --class')
  for apk in args.apk:
    if not os.path.isfile(apk):
      raise dtest_error.ConfigurationError('No such APK: %s' % apk)


def create_test(args, harness: harness_config_lib.HarnessConfig):
  """Creates the test unit the command line asks for.

  Raises:
      UnknownTestTypeError: if the test type is unknown.
  """
  test_timeout_ms = getattr(args, 'test_timeout', None)
  if test_timeout_ms is None:
    test_timeout_ms = harness.test_timeout_ms
  if args.test_type == arg_parser.INSTRUMENTATION:
    return instrumentation_test.InstrumentationTest(
        package_name=args.package,
        runner_name=args.runner,
        class_name=args.class_name,
        method_name=args.method,
        test_size=args.size,
        rerun_mode=args.rerun,
        resume_mode=args.resume,
        test_timeout_ms=test_timeout_ms,
        collect_tests_timeout_ms=harness.collect_tests_timeout_ms,
        test_collection_delay_ms=harness.test_collection_delay_ms,
        collect_tests_attempts=harness.collect_tests_attempts,
        install_file=args.install_file,
        coverage_target=args.coverage_target,
        max_retries=args.max_retries,
    )
  if args.test_type == arg_parser.INSTALLED:
    return installed_instrumentations_test.InstalledInstrumentationsTest(
        runner=args.runner,
        test_size=args.size,
        class_name=args.class_name,
        rerun_mode=args.rerun,
        resume_mode=args.resume,
        send_coverage=args.send_coverage,
        test_timeout_ms=test_timeout_ms,
    )
  if args.test_type == arg_parser.GTEST:
    return gtest.GTest(
        native_test_device_path=args.native_test_path,
        module_name=args.module_name,
        positive_filter=args.positive_filter,
        negative_filter=args.negative_filter,
        run_disabled_tests=args.run_disabled,
        run_all_subdirectories=args.recurse,
        shards=args.shards,
    )
  if args.test_type == arg_parser.HOST:
    return host_test.HostTest(args.class_name, args.method)
  raise dtest_error.UnknownTestTypeError(
      'Unknown test type: %s' % args.test_type)


def create_config_factory(args, harness: harness_config_lib.HarnessConfig,
                          exit_listener: ExitCodeListener):
  """Returns a callable building a fresh Configuration for each run."""
  policy = (ForwardingPolicy.FAIL_FAST if args.fail_fast_listeners
            else harness.listener_policy)

  def _create_config():
    config = configuration.Configuration(name=args.test_type)
    config.tests = [create_test(args, harness)]
    if args.setup_command or args.teardown_command:
      config.target_preparers.append(
          run_command_preparer.RunCommandTargetPreparer(
              args.setup_command, args.teardown_command))
    if args.apk:
      config.target_preparers.append(
          install_apk_setup.InstallApkSetup(apk_paths=args.apk))
    config.listeners = [text_result_reporter.TextResultReporter(),
                        exit_listener]
    config.device_options = test_device.DeviceOptions(
        shell_timeout_ms=harness.shell_timeout_ms)
    config.log_output = invocation_logger.InvocationLogger(
        harness.logging_level)
    options = config.command_options
    options.loop_mode = args.loop
    if args.min_loop_time is not None:
      options.min_loop_time_ms = args.min_loop_time
    options.dry_run = args.dry_run
    options.need_prepare = args.prepare
    options.need_tear_down = args.teardown
    options.forwarding_policy = policy
    return config

  return _create_config


def _run_scheduler(scheduler: command_scheduler.CommandScheduler):
  scheduler.shutdown_on_empty()
  scheduler.start()
  try:
    while scheduler.is_alive():
      scheduler.join(_JOIN_POLL_TIME_S)
  except KeyboardInterrupt:
    dtest_utils.print_and_log_warning(
        'Interrupted, waiting for running invocations to finish')
    scheduler.shutdown()
    scheduler.join()


def main(argv: Optional[List[str]] = None) -> int:
  """Entry point of dtest.

  Args:
      argv: Command line arguments, without the program name.

  Returns:
      The process exit code.
  """
  args = arg_parser.create_dtest_arg_parser().parse_args(argv)
  try:
    harness = harness_config_lib.load_harness_config(args.config)
    _check_args(args)
  except dtest_error.ConfigurationError as e:
    dtest_utils.print_and_log_error(e)
    return ExitCode.CONFIG_INVALID

  results_dir = args.results_dir or make_test_run_dir(harness.results_dir)
  os.makedirs(results_dir, exist_ok=True)
  _configure_logging(args.verbose, results_dir)
  logging.debug('Running dtest with args: %s', args)

  exit_listener = ExitCodeListener()
  config_factory = create_config_factory(args, harness, exit_listener)
  try:
    serials = _get_serials(args, harness)
  except dtest_error.FatalHostError as e:
    dtest_utils.print_and_log_error(e)
    return ExitCode.FATAL_HOST_ERROR
  if not serials and not args.dry_run:
    dtest_utils.print_and_log_error('No device found')
    return ExitCode.DEVICE_NOT_FOUND

  devices = [
      adb_test_device.AdbTestDevice(
          serial, harness.adb_path,
          test_device.DeviceOptions(shell_timeout_ms=harness.shell_timeout_ms))
      for serial in serials
  ]
  scheduler = command_scheduler.CommandScheduler(
      command_scheduler.DevicePool(devices))
  if not scheduler.add_command(config_factory):
    dtest_utils.print_and_log_info('Dry run, nothing was run')
    return ExitCode.SUCCESS
  _run_scheduler(scheduler)
  return exit_listener.exit_code()


if __name__ == '__main__':
  sys.exit(main())
