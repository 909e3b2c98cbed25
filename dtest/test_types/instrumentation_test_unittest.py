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

"""Unittests for instrumentation_test."""

import unittest
from unittest import mock

from dtest import configuration
from dtest import dtest_error
from dtest.device import test_device
from dtest.dtest_enum import TestFailure
from dtest.dtest_enum import TestStatus
from dtest.result import collecting_listener
from dtest.result import listeners
from dtest.result.test_identifier import TestIdentifier
from dtest.test_types import instrumentation_test

PACKAGE = 'com.foo'
RUNNER = '.FooRunner'
TEST_A = TestIdentifier('FooTest', 'testA')
TEST_B = TestIdentifier('FooTest', 'testB')
TEST_C = TestIdentifier('FooTest', 'testC')

_RAW_TEST_A_STARTED = (
    'INSTRUMENTATION_STATUS: class=FooTest\n'
    'INSTRUMENTATION_STATUS: current=1\n'
    'INSTRUMENTATION_STATUS: numtests=1\n'
    'INSTRUMENTATION_STATUS: test=testA\n'
    'INSTRUMENTATION_STATUS_CODE: 1\n'
)

_RAW_TEST_A_PASSED = _RAW_TEST_A_STARTED + (
    'INSTRUMENTATION_STATUS: class=FooTest\n'
    'INSTRUMENTATION_STATUS: current=1\n'
    'INSTRUMENTATION_STATUS: numtests=1\n'
    'INSTRUMENTATION_STATUS: test=testA\n'
    'INSTRUMENTATION_STATUS_CODE: 0\n'
    'INSTRUMENTATION_RESULT: stream=\n'
    'OK (1 test)\n'
    'INSTRUMENTATION_CODE: -1\n'
)


def _emit_run(listener, tests, count=None, run_failure=None):
  """Reports a run in which every test of tests passes."""
  listener.test_run_started(PACKAGE, len(tests) if count is None else count)
  for test in tests:
    listener.test_started(test)
    listener.test_ended(test, {})
  if run_failure is not None:
    listener.test_run_failed(run_failure)
  listener.test_run_ended(10, {})


class InstrumentationTestUnittests(unittest.TestCase):

  def setUp(self):
    self.device = mock.create_autospec(test_device.TestDevice, instance=True)
    self.device.serial_number = 'SERIAL'
    self.listener = mock.create_autospec(
        listeners.TestInvocationListener, instance=True
    )
    self.sut = instrumentation_test.InstrumentationTest(
        package_name=PACKAGE,
        runner_name=RUNNER,
        rerun_mode=False,
        test_timeout_ms=0,
    )
    self.sut.set_device(self.device)

  def test_run_no_package_raises_value_error(self):
    self.sut.package_name = None

    with self.assertRaises(ValueError):
      self.sut.run(self.listener)

    self.device.run_instrumentation_tests.assert_not_called()

  def test_run_no_device_raises_value_error(self):
    self.sut.set_device(None)

    with self.assertRaises(ValueError):
      self.sut.run(self.listener)

  def test_run_bad_test_size_raises_value_error(self):
    self.sut.test_size = 'foo'

    with self.assertRaises(ValueError):
      self.sut.run(self.listener)

    self.device.run_instrumentation_tests.assert_not_called()

  def test_run_without_rerun_issues_a_single_run(self):
    self.sut.run(self.listener)

    self.device.run_instrumentation_tests.assert_called_once()
    runner = self.device.run_instrumentation_tests.call_args[0][0]
    self.assertEqual(
        runner.build_command(), 'am instrument -w -r com.foo/.FooRunner'
    )

  def test_run_results_reach_the_listener(self):
    self.device.run_instrumentation_tests.side_effect = (
        lambda runner, listener: _emit_run(listener, [TEST_A])
    )

    self.sut.run(self.listener)

    self.listener.test_run_started.assert_called_once_with(PACKAGE, 1)
    self.listener.test_ended.assert_called_once_with(TEST_A, {})

  def test_run_class_method_filters_the_runner(self):
    self.sut.class_name = 'FooTest'
    self.sut.method_name = 'testFoo'

    self.sut.run(self.listener)

    runner = self.device.run_instrumentation_tests.call_args[0][0]
    self.assertIn("-e class 'FooTest#testFoo'", runner.build_command())

  def test_run_class_filters_the_runner(self):
    self.sut.class_name = 'FooTest'

    self.sut.run(self.listener)

    runner = self.device.run_instrumentation_tests.call_args[0][0]
    self.assertIn('-e class FooTest', runner.build_command())

  def test_test_timeout_cancels_runner_and_fails_the_run(self):
    mock_runner = mock.Mock()
    self.sut.test_timeout_ms = 1000
    with mock.patch.object(
        self.sut, 'create_remote_android_test_runner', return_value=mock_runner
    ):
      self.sut.run(self.listener)
    self.sut.test_timeout(TEST_A)

    mock_runner.cancel.assert_called_once()
    self.listener.test_failed.assert_called_once_with(
        TestFailure.ERROR, TEST_A, 'test timed out after 1000 ms'
    )
    self.listener.test_ended.assert_called_once_with(TEST_A, {})
    self.listener.test_run_failed.assert_called_once_with(
        instrumentation_test.TIMED_OUT_MSG % 1000
    )

  def test_is_resumable_false_until_a_run_was_attempted(self):
    self.sut.resume_mode = True

    self.assertFalse(self.sut.is_resumable())

  def test_is_resumable_true_after_a_failed_run(self):
    self.sut.resume_mode = True
    self.device.run_instrumentation_tests.side_effect = (
        dtest_error.DeviceNotAvailableError('gone')
    )

    with self.assertRaises(dtest_error.DeviceNotAvailableError):
      self.sut.run(self.listener)

    self.assertTrue(self.sut.is_resumable())

  def test_is_resumable_false_without_resume_mode(self):
    self.sut.run(self.listener)

    self.assertFalse(self.sut.is_resumable())

  def test_is_retriable_false_by_default(self):
    self.assertFalse(self.sut.is_retriable())

  def test_is_retriable_until_the_retries_are_used_up(self):
    self.sut.max_retries = 2
    config = configuration.Configuration()

    config.command_options.retry_count = 1
    self.sut.set_configuration(config)
    self.assertTrue(self.sut.is_retriable())

    config.command_options.retry_count = 2
    self.sut.set_configuration(config)
    self.assertFalse(self.sut.is_retriable())

  def test_install_file_is_installed_and_uninstalled(self):
    self.sut.install_file = '/tmp/foo.apk'
    self.device.install_package.return_value = None
    self.device.uninstall_package.return_value = None
    self.device.run_instrumentation_tests.side_effect = RuntimeError('boom')

    with self.assertRaises(RuntimeError):
      self.sut.run(self.listener)

    self.device.install_package.assert_called_once_with('/tmp/foo.apk', True)
    self.device.uninstall_package.assert_called_once_with(PACKAGE)

  def test_install_failure_raises_install_error(self):
    self.sut.install_file = '/tmp/foo.apk'
    self.device.install_package.return_value = 'INSTALL_FAILED_OLDER_SDK'

    with self.assertRaises(dtest_error.InstallError):
      self.sut.run(self.listener)

    self.device.run_instrumentation_tests.assert_not_called()
    self.device.uninstall_package.assert_not_called()


class InstrumentationTestRerunUnittests(unittest.TestCase):
  """Covers collect, run and rerun of missing tests."""

  def setUp(self):
    self.device = mock.create_autospec(test_device.TestDevice, instance=True)
    self.device.serial_number = 'SERIAL'
    self.commands = []
    self.sut = instrumentation_test.InstrumentationTest(
        package_name=PACKAGE, runner_name=RUNNER, test_timeout_ms=0
    )
    self.sut.set_device(self.device)

  def _fake_device(self, collect, full_run, single_runs=None):
    single_runs = single_runs or {}

    def run_instrumentation_tests(runner, listener):
      command = runner.build_command()
      self.commands.append(command)
      if '-e log true' in command:
        collect(listener)
      elif '#' in command:
        method = command.split('#')[1].split("'")[0]
        single_runs[method](listener)
      else:
        full_run(listener)
      return True

    self.device.run_instrumentation_tests.side_effect = run_instrumentation_tests

  def test_missing_tests_are_rerun_or_reported(self):
    def single_c(listener):
      listener.test_run_started(PACKAGE, 0)
      listener.test_run_failed('crash')
      listener.test_run_ended(0, {})

    self._fake_device(
        collect=lambda l: _emit_run(l, [TEST_A, TEST_B, TEST_C]),
        full_run=lambda l: _emit_run(l, [TEST_B], count=3),
        single_runs={
            'testA': lambda l: _emit_run(l, [TEST_A]),
            'testC': single_c,
        },
    )
    collector = collecting_listener.CollectingTestListener()

    self.sut.run(collector)

    run = collector.run_results[0]
    self.assertEqual(len(run.test_results), 3)
    self.assertEqual(run.test_results[TEST_A].status, TestStatus.PASSED)
    self.assertEqual(run.test_results[TEST_B].status, TestStatus.PASSED)
    self.assertEqual(run.test_results[TEST_C].status, TestStatus.ERROR)
    self.assertEqual(
        run.test_results[TEST_C].stack_trace, 'Test run failed: crash'
    )
    self.assertEqual(self.sut.remaining_tests, set())
    self.assertEqual(len(self.commands), 4)

  def test_complete_run_needs_no_rerun(self):
    self._fake_device(
        collect=lambda l: _emit_run(l, [TEST_A, TEST_B]),
        full_run=lambda l: _emit_run(l, [TEST_A, TEST_B]),
    )

    self.sut.run(collecting_listener.CollectingTestListener())

    self.assertEqual(len(self.commands), 2)

  def test_zero_tests_collected_skips_the_run(self):
    full_run = mock.Mock()
    self._fake_device(collect=lambda l: _emit_run(l, []), full_run=full_run)
    listener = mock.create_autospec(
        listeners.TestInvocationListener, instance=True
    )

    self.sut.run(listener)

    full_run.assert_not_called()
    self.assertEqual(len(self.commands), 1)
    listener.test_run_failed.assert_not_called()
    listener.test_run_started.assert_not_called()

  def test_collection_run_failure_falls_back_to_single_run(self):
    full_run = mock.Mock()
    self._fake_device(
        collect=lambda l: _emit_run(l, [], run_failure='no runner'),
        full_run=full_run,
    )

    self.sut.run(collecting_listener.CollectingTestListener())

    self.assertEqual(len(self.commands), 2)
    full_run.assert_called_once()
    self.assertIsNone(self.sut.remaining_tests)

  def test_collection_uses_short_timeout_and_delay(self):
    self.sut.collect_tests_timeout_ms = 500
    self.sut.test_collection_delay_ms = 20
    self._fake_device(collect=lambda l: _emit_run(l, []), full_run=mock.Mock())
    runner = mock.Mock()
    runner.build_command.return_value = 'am instrument -e log true'
    runner.is_output_incomplete.return_value = False

    with mock.patch.object(
        self.sut, 'create_remote_android_test_runner', return_value=runner
    ):
      self.sut.run(collecting_listener.CollectingTestListener())

    runner.set_log_only.assert_called_once_with(True)
    runner.set_max_time_to_output_response.assert_called_once_with(500)
    runner.set_test_collection_delay.assert_called_once_with(20)

  def test_resume_reruns_the_remaining_tests(self):
    def lost_device(listener):
      listener.test_run_started(PACKAGE, 3)
      listener.test_started(TEST_A)
      listener.test_ended(TEST_A, {})
      raise dtest_error.DeviceNotAvailableError('gone')

    self._fake_device(
        collect=lambda l: _emit_run(l, [TEST_A, TEST_B, TEST_C]),
        full_run=lost_device,
        single_runs={
            'testB': lambda l: _emit_run(l, [TEST_B]),
            'testC': lambda l: _emit_run(l, [TEST_C]),
        },
    )
    self.sut.resume_mode = True
    with self.assertRaises(dtest_error.DeviceNotAvailableError):
      self.sut.run(collecting_listener.CollectingTestListener())
    self.assertTrue(self.sut.is_resumable())
    self.assertEqual(self.sut.remaining_tests, {TEST_B, TEST_C})
    self.commands.clear()
    collector = collecting_listener.CollectingTestListener()

    self.sut.resume(collector)

    self.assertEqual(self.sut.remaining_tests, set())
    self.assertEqual(collector.num_tests(TestStatus.PASSED), 2)
    self.assertEqual(len(self.commands), 2)

class InstrumentationTestParsedOutputUnittests(unittest.TestCase):
  """Runs against raw 'am instrument -r' output through the real parser."""

  def setUp(self):
    self.device = mock.create_autospec(test_device.TestDevice, instance=True)
    self.device.serial_number = 'SERIAL'
    self.device.run_instrumentation_tests.side_effect = (
        lambda runner, listener: runner.run(listener)
    )
    self.device.execute_shell_command.side_effect = self._execute
    self.collect_outputs = []
    self.full_run = lambda receiver: receiver.add_output(_RAW_TEST_A_PASSED)
    self.commands = []
    self.sut = instrumentation_test.InstrumentationTest(
        package_name=PACKAGE, runner_name=RUNNER, test_timeout_ms=0
    )
    self.sut.set_device(self.device)

  def _execute(self, command, receiver, timeout_ms=None, retry_attempts=0):
    self.commands.append(command)
    if '-e log true' in command:
      receiver.add_output(self.collect_outputs.pop(0))
    else:
      self.full_run(receiver)
    # Like AdbTestDevice, flush even when the connection was lost.
    receiver.flush()
    return ''

  def _num_collect_commands(self):
    return sum(1 for c in self.commands if '-e log true' in c)

  def test_collection_is_retried_when_output_is_cut_off(self):
    self.collect_outputs = ['', _RAW_TEST_A_STARTED, _RAW_TEST_A_PASSED]
    collector = collecting_listener.CollectingTestListener()

    self.sut.run(collector)

    self.assertEqual(self._num_collect_commands(), 3)
    self.assertEqual(len(self.commands), 4)
    self.assertEqual(self.sut.remaining_tests, set())
    self.assertEqual(collector.num_tests(TestStatus.PASSED), 1)

  def test_collection_gives_up_after_the_last_attempt(self):
    self.collect_outputs = ['', '', '']

    self.sut.run(collecting_listener.CollectingTestListener())

    self.assertEqual(self._num_collect_commands(), 3)
    self.assertEqual(len(self.commands), 4)
    self.assertIsNone(self.sut.remaining_tests)

  def test_collection_is_not_retried_when_the_runner_fails(self):
    self.collect_outputs = ['INSTRUMENTATION_FAILED: com.foo/.FooRunner\n']

    self.sut.run(collecting_listener.CollectingTestListener())

    self.assertEqual(self._num_collect_commands(), 1)
    self.assertEqual(len(self.commands), 2)
    self.assertIsNone(self.sut.remaining_tests)

  def test_timed_out_test_ends_and_is_not_rerun(self):
    self.sut.test_timeout_ms = 60000
    self.collect_outputs = [_RAW_TEST_A_PASSED]

    def hanging_run(receiver):
      receiver.add_output(_RAW_TEST_A_STARTED)
      self.sut.test_timeout(TEST_A)

    self.full_run = hanging_run
    collector = collecting_listener.CollectingTestListener()

    self.sut.run(collector)

    self.assertEqual(len(self.commands), 2)
    self.assertEqual(self.sut.remaining_tests, set())
    run = collector.run_results[0]
    self.assertEqual(run.test_results[TEST_A].status, TestStatus.ERROR)
    self.assertEqual(run.failure_message,
                     instrumentation_test.TIMED_OUT_MSG % 60000)
    self.assertTrue(run.complete)

  def test_timed_out_test_events_keep_their_order(self):
    self.sut.rerun_mode = False
    self.sut.test_timeout_ms = 60000
    listener = mock.create_autospec(
        listeners.TestInvocationListener, instance=True
    )

    def hanging_run(receiver):
      receiver.add_output(_RAW_TEST_A_STARTED)
      self.sut.test_timeout(TEST_A)

    self.full_run = hanging_run

    self.sut.run(listener)

    self.assertEqual(
        [name for name, _, _ in listener.method_calls],
        [
            'test_run_started',
            'test_started',
            'test_failed',
            'test_ended',
            'test_run_failed',
            'test_run_ended',
        ],
    )


if __name__ == '__main__':
  unittest.main()
