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

"""Unittests for shard_listener."""

import unittest
from unittest import mock

from dtest import build_info
from dtest.dtest_enum import TestFailure
from dtest.invoker import shard_listener
from dtest.result import listeners
from dtest.result.log_data import LogDataType
from dtest.result.test_identifier import TestIdentifier

PASSED = TestIdentifier('FooTest', 'testPassed')
FAILED = TestIdentifier('FooTest', 'testFailed')
CRASHED = TestIdentifier('FooTest', 'testCrashed')


class ShardMainResultForwarderUnittests(unittest.TestCase):

  def setUp(self):
    self.listener = mock.create_autospec(
        listeners.TestInvocationListener, instance=True)
    self.listener.get_summary.return_value = None
    self.sut = shard_listener.ShardMainResultForwarder([self.listener], 2)

  def test_invocation_started_is_forwarded_once(self):
    build = build_info.BuildInfo()

    self.sut.invocation_started(build)
    self.sut.invocation_started(build.clone())

    self.listener.invocation_started.assert_called_once_with(build)

  def test_invocation_ends_with_the_last_shard(self):
    self.sut.invocation_ended(30)
    self.listener.invocation_ended.assert_not_called()
    self.assertEqual(self.sut.shards_remaining, 1)

    self.sut.invocation_ended(20)

    self.listener.invocation_ended.assert_called_once_with(30)
    self.assertEqual(self.sut.shards_remaining, 0)


class ShardListenerUnittests(unittest.TestCase):

  def setUp(self):
    self.listener = mock.create_autospec(
        listeners.TestInvocationListener, instance=True)
    self.listener.get_summary.return_value = None
    self.main = shard_listener.ShardMainResultForwarder([self.listener], 1)
    self.sut = shard_listener.ShardListener(self.main)

  def _report_run(self):
    self.sut.test_run_started('run', 3)
    self.sut.test_started(PASSED)
    self.sut.test_ended(PASSED, {'key': 'value'})
    self.sut.test_started(FAILED)
    self.sut.test_failed(TestFailure.FAILURE, FAILED, 'trace')
    self.sut.test_ended(FAILED, {})
    self.sut.test_started(CRASHED)
    self.sut.test_run_failed('crash')
    self.sut.test_run_ended(10, {'metric': '1'})

  def test_results_are_held_until_the_shard_ends(self):
    self._report_run()

    self.listener.test_run_started.assert_not_called()
    self.listener.test_started.assert_not_called()

  def test_results_are_replayed_in_order_when_the_shard_ends(self):
    self._report_run()

    self.sut.invocation_ended(50)

    self.assertEqual(
        self.listener.method_calls,
        [
            mock.call.test_run_started('run', 3),
            mock.call.test_started(PASSED),
            mock.call.test_ended(PASSED, {'key': 'value'}),
            mock.call.test_started(FAILED),
            mock.call.test_failed(TestFailure.FAILURE, FAILED, 'trace'),
            mock.call.test_ended(FAILED, {}),
            mock.call.test_started(CRASHED),
            mock.call.test_run_failed('crash'),
            mock.call.test_run_ended(10, {'metric': '1'}),
            mock.call.invocation_ended(50),
            mock.call.get_summary(),
        ],
    )

  def test_logs_and_failures_are_forwarded_right_away(self):
    source = mock.Mock()
    error = RuntimeError('boom')

    self.sut.test_log('logcat', LogDataType.TEXT, source)
    self.sut.invocation_failed(error)

    self.listener.test_log.assert_called_once_with(
        'logcat', LogDataType.TEXT, source)
    self.listener.invocation_failed.assert_called_once_with(error)

  def test_invocation_started_reaches_the_main_forwarder(self):
    build = build_info.BuildInfo()

    self.sut.invocation_started(build)

    self.assertIs(self.sut.build_info, build)
    self.listener.invocation_started.assert_called_once_with(build)


if __name__ == '__main__':
  unittest.main()
