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

"""Runs the instrumentation tests of one package on a device.

With rerun mode on, a run goes through these steps:

  1. Collect the expected tests with a log only (dry) run.
  2. Run the package for real, tracking which tests reached test_ended.
  3. Run every test that did not, one at a time.

If collection fails the package is run once without tracking. The tests left
over after a device loss are kept so the same instance can resume them on
another device.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Set

from dtest import constants
from dtest import dtest_error
from dtest.dtest_enum import TestFailure
from dtest.result import collecting_listener
from dtest.result import listeners
from dtest.result import result_forwarder
from dtest.result.test_identifier import TestIdentifier
from dtest.test_types import android_test_runner
from dtest.test_types import instrumentation_list_test
from dtest.test_types import remote_test
from dtest.test_types import test_timeout_listener

TIMED_OUT_MSG = 'test timed out after %d ms'


class InstrumentationTest(remote_test.DeviceTest):
  """A RemoteTest running an Android instrumentation package."""

  def __init__(
      self,
      package_name: Optional[str] = None,
      runner_name: Optional[str] = None,
      class_name: Optional[str] = None,
      method_name: Optional[str] = None,
      test_size: Optional[str] = None,
      rerun_mode: bool = True,
      resume_mode: bool = False,
      test_timeout_ms: int = constants.DEFAULT_TEST_TIMEOUT_MS,
      collect_tests_timeout_ms: int = constants.DEFAULT_COLLECT_TESTS_TIMEOUT_MS,
      test_collection_delay_ms: int = constants.DEFAULT_TEST_COLLECTION_DELAY_MS,
      collect_tests_attempts: int = constants.DEFAULT_COLLECT_TESTS_ATTEMPTS,
      install_file: Optional[str] = None,
      coverage_target: Optional[str] = None,
      max_retries: int = 0,
  ):
    super().__init__()
    self.package_name = package_name
    self.runner_name = runner_name
    self.class_name = class_name
    self.method_name = method_name
    self.test_size = test_size
    self.rerun_mode = rerun_mode
    self.resume_mode = resume_mode
    self.test_timeout_ms = test_timeout_ms
    self.collect_tests_timeout_ms = collect_tests_timeout_ms
    self.test_collection_delay_ms = test_collection_delay_ms
    self.collect_tests_attempts = collect_tests_attempts
    self.install_file = install_file
    self.coverage_target = coverage_target
    self.max_retries = max_retries
    self._retry_count = 0
    self._remaining_tests: Optional[Set[TestIdentifier]] = None
    self._run_attempted = False
    self._runner = None
    self._run_listener = None

  @property
  def remaining_tests(self) -> Optional[Set[TestIdentifier]]:
    return self._remaining_tests

  def is_resumable(self) -> bool:
    return self.resume_mode and self._run_attempted

  def set_configuration(self, configuration):
    self._retry_count = configuration.command_options.retry_count

  def is_retriable(self) -> bool:
    return self._retry_count < self.max_retries

  def create_remote_android_test_runner(self):
    return android_test_runner.RemoteAndroidTestRunner(
        self.package_name, self.runner_name, self.device
    )

  def _check_args(self):
    if self.package_name is None:
      raise ValueError('package name has not been set')
    self._check_device()
    if self.test_size is not None:
      android_test_runner.TestSize.from_string(self.test_size)

  def _configure_runner(self, runner):
    if self.class_name is not None and self.method_name is not None:
      runner.set_method_name(self.class_name, self.method_name)
    elif self.class_name is not None:
      runner.set_class_name(self.class_name)
    if self.test_size is not None:
      runner.set_test_size(
          android_test_runner.TestSize.from_string(self.test_size)
      )
    return runner

  def run(self, listener):
    self._check_args()
    self._run_attempted = True
    self._with_install(lambda: self._do_run(listener))

  def resume(self, listener):
    if self._remaining_tests is None:
      logging.info('Nothing was tracked for %s, running it again',
                   self.package_name)
      self.run(listener)
      return
    self._check_args()
    self._with_install(lambda: self._rerun_remaining(listener))

  def _with_install(self, action):
    if self.install_file is None:
      action()
      return
    logging.info('Installing %s on %s', self.install_file,
                 self.device.serial_number)
    error = self.device.install_package(self.install_file, True)
    if error is not None:
      raise dtest_error.InstallError(
          'Failed to install %s on %s. Reason: %s'
          % (self.install_file, self.device.serial_number, error)
      )
    try:
      action()
    finally:
      error = self.device.uninstall_package(self.package_name)
      if error is not None:
        logging.warning('Failed to uninstall %s: %s', self.package_name, error)

  def _do_run(self, listener):
    self._runner = self._configure_runner(
        self.create_remote_android_test_runner()
    )
    if not self.rerun_mode:
      self._run_tests(self._runner, listener)
      return
    expected = self._collect_tests_to_run()
    if expected is None:
      logging.warning('Could not collect the tests of %s, running them '
                      'without rerun', self.package_name)
      self._run_tests(self._runner, listener)
      return
    if not expected:
      logging.info('No tests expected for %s, skipping', self.package_name)
      return
    self._remaining_tests = set(expected)
    self._run_tests(self._runner, listener, self._remaining_tests)
    self._rerun_remaining(listener)

  def _run_tests(self, runner, listener, tracked: Optional[Set] = None):
    run_listeners = [listener]
    if tracked is not None:
      run_listeners.append(_RemainingTestsTracker(tracked))
    timeout_listener = None
    if self.test_timeout_ms > 0:
      timeout_listener = test_timeout_listener.TestTimeoutListener(
          self.test_timeout_ms, self.test_timeout
      )
      run_listeners.append(timeout_listener)
    self._run_listener = result_forwarder.ResultForwarder(run_listeners)
    try:
      self.device.run_instrumentation_tests(runner, self._run_listener)
    finally:
      if timeout_listener is not None:
        timeout_listener.cancel()

  def _rerun_remaining(self, listener):
    if not self._remaining_tests:
      return
    tests = sorted(self._remaining_tests)
    logging.info('Rerunning %d tests of %s one by one', len(tests),
                 self.package_name)
    list_test = instrumentation_list_test.InstrumentationListTest(
        self.package_name,
        self.runner_name,
        tests,
        test_factory=InstrumentationTest,
        test_timeout_ms=self.test_timeout_ms,
    )
    list_test.set_device(self.device)
    list_test.run(
        result_forwarder.ResultForwarder(
            [listener, _RemainingTestsTracker(self._remaining_tests)]
        )
    )

  def _collect_tests_to_run(self) -> Optional[List[TestIdentifier]]:
    """Runs the package in log only mode to list the expected tests.

    Returns:
        The expected tests, possibly empty, or None if they are unknown.
    """
    for attempt in range(1, self.collect_tests_attempts + 1):
      runner = self._configure_runner(self.create_remote_android_test_runner())
      runner.set_log_only(True)
      runner.set_max_time_to_output_response(self.collect_tests_timeout_ms)
      # Spacing out the calls avoids device side failures on large suites.
      runner.set_test_collection_delay(self.test_collection_delay_ms)
      collector = collecting_listener.CollectingTestListener()
      self.device.run_instrumentation_tests(runner, collector)
      run = collector.current_run_results
      if run.complete and not runner.is_output_incomplete():
        if run.is_run_failure:
          logging.warning('Collecting tests of %s failed: %s',
                          self.package_name, run.failure_message)
          return None
        return run.tests
      logging.debug('Collecting tests of %s did not complete, attempt %d/%d',
                    self.package_name, attempt, self.collect_tests_attempts)
    logging.warning('Failed to collect tests of %s after %d attempts',
                    self.package_name, self.collect_tests_attempts)
    return None

  def test_timeout(self, test: TestIdentifier):
    """Called from the watchdog thread when test ran for too long."""
    message = TIMED_OUT_MSG % self.test_timeout_ms
    logging.warning('%s on %s: %s', test, self.package_name, message)
    if self._runner is not None:
      self._runner.cancel()
    # The cancelled parser drops the rest of the output.
    self._run_listener.test_failed(TestFailure.ERROR, test, message)
    self._run_listener.test_ended(test, {})
    self._run_listener.test_run_failed(message)


class _RemainingTestsTracker(listeners.TestRunListener):
  """Removes each test that reaches test_ended from the given set."""

  def __init__(self, remaining: Set[TestIdentifier]):
    self._remaining = remaining

  def test_ended(self, test, test_metrics=None):
    self._remaining.discard(test)
