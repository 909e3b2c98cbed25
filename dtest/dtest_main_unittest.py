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

"""Unittests for dtest_main."""

import io
import os
import subprocess
import unittest
from unittest import mock

from pyfakefs import fake_filesystem_unittest

from dtest import arg_parser
from dtest import constants
from dtest import dtest_error
from dtest import dtest_main
from dtest import harness_config
from dtest.command import command_scheduler
from dtest.dtest_enum import ExitCode
from dtest.dtest_enum import ForwardingPolicy
from dtest.dtest_enum import TestFailure
from dtest.result.test_identifier import TestIdentifier
from dtest.targetprep import install_apk_setup
from dtest.targetprep import run_command_preparer
from dtest.test_types import gtest
from dtest.test_types import host_test
from dtest.test_types import installed_instrumentations_test
from dtest.test_types import instrumentation_test

RESULTS_DIR = '/tmp/dtest_results'
ADB_DEVICES_OUTPUT = """List of devices attached
emulator-5554\tdevice
0123456789\toffline
HT123\tunauthorized
R58M\tdevice

"""


def _parse(argv):
  return arg_parser.create_dtest_arg_parser().parse_args(argv)


class ExitCodeListenerUnittests(unittest.TestCase):

  def setUp(self):
    self.listener = dtest_main.ExitCodeListener()

  def test_success(self):
    self.listener.test_run_started('run', 1)
    self.listener.test_started(TestIdentifier('Foo', 'bar'))
    self.listener.test_ended(TestIdentifier('Foo', 'bar'))
    self.listener.test_run_ended(10)

    self.assertEqual(self.listener.exit_code(), ExitCode.SUCCESS)

  def test_failed_test(self):
    test = TestIdentifier('Foo', 'bar')
    self.listener.test_run_started('run', 1)
    self.listener.test_started(test)
    self.listener.test_failed(TestFailure.FAILURE, test, 'trace')
    self.listener.test_ended(test)
    self.listener.test_run_ended(10)

    self.assertEqual(self.listener.exit_code(), ExitCode.TEST_FAILURE)

  def test_run_failure(self):
    self.listener.test_run_started('run', 0)
    self.listener.test_run_failed('crashed')
    self.listener.test_run_ended(10)

    self.assertEqual(self.listener.exit_code(), ExitCode.TEST_FAILURE)

  def test_invocation_failures(self):
    for error, code in (
        (dtest_error.FatalHostError('x'), ExitCode.FATAL_HOST_ERROR),
        (dtest_error.DeviceUnresponsiveError('x'),
         ExitCode.DEVICE_UNRESPONSIVE),
        (dtest_error.DeviceNotAvailableError('x'),
         ExitCode.DEVICE_UNAVAILABLE),
        (dtest_error.BuildRetrievalError('x'), ExitCode.NO_BUILD),
        (RuntimeError('x'), ExitCode.ERROR)):
      with self.subTest(error=error):
        listener = dtest_main.ExitCodeListener()
        listener.invocation_failed(error)
        self.assertEqual(listener.exit_code(), code)


class FindDeviceSerialsUnittests(unittest.TestCase):

  @mock.patch('subprocess.run')
  def test_lists_online_devices(self, mock_run):
    mock_run.return_value = subprocess.CompletedProcess(
        ['adb', 'devices'], 0, stdout=ADB_DEVICES_OUTPUT)

    self.assertEqual(dtest_main.find_device_serials('adb'),
                     ['emulator-5554', 'R58M'])

  @mock.patch('subprocess.run', side_effect=FileNotFoundError('adb'))
  def test_missing_adb_is_fatal(self, _):
    with self.assertRaises(dtest_error.FatalHostError):
      dtest_main.find_device_serials('adb')


class CreateTestUnittests(unittest.TestCase):

  def setUp(self):
    self.harness = harness_config.HarnessConfig(
        test_timeout_ms=1234, collect_tests_attempts=7)

  def test_instrumentation(self):
    test = dtest_main.create_test(
        _parse(['instrumentation', 'com.foo', '--class', 'Bar', '--resume']),
        self.harness)

    self.assertIsInstance(test, instrumentation_test.InstrumentationTest)
    self.assertEqual(test.package_name, 'com.foo')
    self.assertEqual(test.class_name, 'Bar')
    self.assertTrue(test.resume_mode)
    self.assertEqual(test.test_timeout_ms, 1234)
    self.assertEqual(test.collect_tests_attempts, 7)
    self.assertEqual(test.max_retries, 0)

  def test_instrumentation_retry(self):
    test = dtest_main.create_test(
        _parse(['instrumentation', 'com.foo', '--retry', '3']), self.harness)

    self.assertEqual(test.max_retries, 3)
    self.assertTrue(test.is_retriable())

  def test_timeout_option_overrides_harness(self):
    test = dtest_main.create_test(
        _parse(['installed', '--test-timeout', '0']), self.harness)

    self.assertIsInstance(
        test, installed_instrumentations_test.InstalledInstrumentationsTest)
    self.assertEqual(test.test_timeout_ms, 0)

  def test_gtest(self):
    test = dtest_main.create_test(
        _parse(['gtest', '--module-name', 'libfoo']), self.harness)

    self.assertIsInstance(test, gtest.GTest)
    self.assertEqual(test.module_name, 'libfoo')
    self.assertIsNone(test.split())

  def test_gtest_shards(self):
    test = dtest_main.create_test(
        _parse(['gtest', '--shards', '2']), self.harness)

    self.assertEqual([s.shard_index for s in test.split()], [0, 1])

  def test_host(self):
    test = dtest_main.create_test(_parse(['host', 'pkg.FooTest']),
                                  self.harness)

    self.assertIsInstance(test, host_test.HostTest)
    self.assertEqual(test.class_name, 'pkg.FooTest')

  def test_unknown_type_raises(self):
    args = _parse(['host', 'pkg.FooTest'])
    args.test_type = 'robolectric'

    with self.assertRaises(dtest_error.UnknownTestTypeError):
      dtest_main.create_test(args, self.harness)


class CreateConfigFactoryUnittests(unittest.TestCase):

  def test_every_call_builds_a_fresh_configuration(self):
    exit_listener = dtest_main.ExitCodeListener()
    factory = dtest_main.create_config_factory(
        _parse(['--loop', '--min-loop-time', '5', '--setup-command', 'true',
                '--apk', '/tmp/foo.apk', '--fail-fast-listeners', '--no-teardown',
                'host', 'pkg.FooTest']),
        harness_config.HarnessConfig(shell_timeout_ms=99),
        exit_listener)

    first = factory()
    second = factory()

    self.assertIsNot(first.tests[0], second.tests[0])
    self.assertIs(first.listeners[-1], exit_listener)
    self.assertIs(second.listeners[-1], exit_listener)
    self.assertEqual(
        [type(p) for p in first.target_preparers],
        [run_command_preparer.RunCommandTargetPreparer,
         install_apk_setup.InstallApkSetup])
    options = first.command_options
    self.assertTrue(options.loop_mode)
    self.assertEqual(options.min_loop_time_ms, 5)
    self.assertFalse(options.need_tear_down)
    self.assertEqual(options.forwarding_policy, ForwardingPolicy.FAIL_FAST)
    self.assertEqual(first.device_options.shell_timeout_ms, 99)

  def test_harness_policy_is_the_default(self):
    factory = dtest_main.create_config_factory(
        _parse(['host', 'pkg.FooTest']),
        harness_config.HarnessConfig(
            listener_policy=ForwardingPolicy.BEST_EFFORT),
        dtest_main.ExitCodeListener())

    config = factory()

    self.assertEqual(config.command_options.forwarding_policy,
                     ForwardingPolicy.BEST_EFFORT)
    self.assertEqual(config.target_preparers, [])


@mock.patch.dict(os.environ, {}, clear=True)
@mock.patch('sys.stdout', new_callable=io.StringIO)
@mock.patch('sys.stderr', new_callable=io.StringIO)
@mock.patch.object(dtest_main, '_configure_logging')
class MainUnittests(fake_filesystem_unittest.TestCase):

  def setUp(self):
    self.setUpPyfakefs()

  def test_dry_run_runs_nothing(self, _logging, _err, _out):
    with mock.patch.object(command_scheduler.CommandScheduler,
                           'start') as start:
      code = dtest_main.main(['--dry-run', '--serial', 'A', '--results-dir',
                              RESULTS_DIR, 'host', 'pkg.FooTest'])

    self.assertEqual(code, ExitCode.SUCCESS)
    start.assert_not_called()
    self.assertTrue(os.path.isdir(RESULTS_DIR))

  def test_invalid_config_file(self, _logging, _err, _out):
    self.fs.create_file('/etc/dtest.yaml', contents='bogus_key: 1\n')

    code = dtest_main.main(['--config', '/etc/dtest.yaml', 'host', 'a.B'])

    self.assertEqual(code, ExitCode.CONFIG_INVALID)

  def test_method_without_class(self, _logging, _err, _out):
    code = dtest_main.main(['instrumentation', 'com.foo', '--method', 'm'])

    self.assertEqual(code, ExitCode.CONFIG_INVALID)

  @mock.patch.object(dtest_main, 'find_device_serials', return_value=[])
  def test_no_device_found(self, _find, _logging, _err, _out):
    code = dtest_main.main(['--results-dir', RESULTS_DIR, 'host', 'a.B'])

    self.assertEqual(code, ExitCode.DEVICE_NOT_FOUND)

  @mock.patch.object(dtest_main, '_run_scheduler')
  def test_runs_command_on_android_serial(self, run_scheduler, _logging,
                                          _err, _out):
    os.environ[constants.ANDROID_SERIAL] = 'emulator-5554'

    code = dtest_main.main(['--results-dir', RESULTS_DIR, 'host', 'a.B'])

    self.assertEqual(code, ExitCode.SUCCESS)
    scheduler = run_scheduler.call_args[0][0]
    self.assertEqual(len(scheduler.commands), 1)
    self.assertEqual(
        [d.serial_number
         for d in scheduler._device_pool.available_devices],
        ['emulator-5554'])

  @mock.patch.object(dtest_main, 'find_device_serials', return_value=[])
  def test_results_dir_is_created_under_harness_root(self, _find, _logging,
                                                     _err, out):
    self.fs.create_file('/etc/dtest.yaml',
                        contents='results_dir: /var/dtest\n')

    dtest_main.main(['--config', '/etc/dtest.yaml', '--dry-run', 'host',
                     'a.B'])

    self.assertIn('/var/dtest/', out.getvalue())
    self.assertEqual(len(os.listdir('/var/dtest')), 1)


if __name__ == '__main__':
  unittest.main()
