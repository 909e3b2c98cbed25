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

"""Unittests for android_test_runner and test_timeout_listener."""

import threading
import unittest
from unittest import mock

from dtest import constants
from dtest.device import instrumentation_result_parser
from dtest.result.test_identifier import TestIdentifier
from dtest.test_types import android_test_runner
from dtest.test_types import test_timeout_listener

TEST = TestIdentifier('FooTest', 'testFoo')


class RemoteAndroidTestRunnerUnittests(unittest.TestCase):

  def test_build_command_defaults_to_instrumentation_runner(self):
    sut = android_test_runner.RemoteAndroidTestRunner('com.foo', None, None)

    self.assertEqual(
        sut.build_command(),
        'am instrument -w -r com.foo/%s'
        % constants.DEFAULT_INSTRUMENTATION_RUNNER,
    )

  def test_build_command_log_only_with_delay_and_size(self):
    sut = android_test_runner.RemoteAndroidTestRunner('com.foo', '.R', None)
    sut.set_log_only(True)
    sut.set_test_collection_delay(15)
    sut.set_test_size(android_test_runner.TestSize.SMALL)

    self.assertEqual(
        sut.build_command(),
        'am instrument -w -r -e log true -e delay_msec 15 -e size small '
        'com.foo/.R',
    )

  def test_build_command_escapes_method_name(self):
    sut = android_test_runner.RemoteAndroidTestRunner('com.foo', '.R', None)
    sut.set_method_name('FooTest', 'test$Foo')

    self.assertIn("-e class 'FooTest#test$Foo'", sut.build_command())

  def test_run_streams_output_to_parser(self):
    device = mock.Mock()
    device.serial_number = 'SERIAL'
    sut = android_test_runner.RemoteAndroidTestRunner('com.foo', '.R', device)
    sut.set_max_time_to_output_response(100)

    sut.run(mock.Mock())

    command, receiver = device.execute_shell_command.call_args[0]
    self.assertEqual(command, 'am instrument -w -r com.foo/.R')
    self.assertIsInstance(
        receiver, instrumentation_result_parser.InstrumentationResultParser
    )
    self.assertEqual(
        device.execute_shell_command.call_args[1],
        {'timeout_ms': 100, 'retry_attempts': 0},
    )

  def test_cancel_cancels_the_parser(self):
    device = mock.Mock()
    sut = android_test_runner.RemoteAndroidTestRunner('com.foo', '.R', device)
    sut.run(mock.Mock())

    sut.cancel()

    receiver = device.execute_shell_command.call_args[0][1]
    self.assertTrue(receiver.is_cancelled())

  def test_is_output_incomplete_follows_the_parser(self):
    device = mock.Mock()
    device.execute_shell_command.side_effect = (
        lambda command, receiver, **kwargs: receiver.flush())
    sut = android_test_runner.RemoteAndroidTestRunner('com.foo', '.R', device)
    self.assertFalse(sut.is_output_incomplete())

    sut.run(mock.Mock())

    self.assertTrue(sut.is_output_incomplete())

  def test_test_size_from_string_rejects_unknown_size(self):
    with self.assertRaises(ValueError):
      android_test_runner.TestSize.from_string('huge')

  def test_test_size_from_string_is_case_insensitive(self):
    self.assertEqual(
        android_test_runner.TestSize.from_string('Medium'),
        android_test_runner.TestSize.MEDIUM,
    )


class TestTimeoutListenerUnittests(unittest.TestCase):

  def test_test_started_arms_timer_and_test_ended_cancels_it(self):
    timer_factory = mock.Mock()
    callback = mock.Mock()
    sut = test_timeout_listener.TestTimeoutListener(
        2000, callback, timer_factory=timer_factory
    )

    sut.test_started(TEST)
    sut.test_ended(TEST)

    timer_factory.assert_called_once_with(2.0, callback, args=(TEST,))
    timer_factory.return_value.start.assert_called_once()
    timer_factory.return_value.cancel.assert_called_once()

  def test_run_ended_cancels_the_pending_timer(self):
    timer_factory = mock.Mock()
    sut = test_timeout_listener.TestTimeoutListener(
        2000, mock.Mock(), timer_factory=timer_factory
    )

    sut.test_started(TEST)
    sut.test_run_ended(10)

    timer_factory.return_value.cancel.assert_called_once()

  def test_callback_fires_when_test_runs_too_long(self):
    fired = threading.Event()
    seen = []

    def callback(test):
      seen.append(test)
      fired.set()

    sut = test_timeout_listener.TestTimeoutListener(10, callback)

    sut.test_started(TEST)

    self.assertTrue(fired.wait(5))
    self.assertEqual(seen, [TEST])


if __name__ == '__main__':
  unittest.main()
