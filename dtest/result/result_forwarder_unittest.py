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

"""Unittests for result_forwarder."""

import unittest
from unittest import mock

from dtest import dtest_error
from dtest.dtest_enum import ForwardingPolicy
from dtest.dtest_enum import TestFailure
from dtest.result import listeners
from dtest.result import result_forwarder
from dtest.result.test_identifier import TestIdentifier

TEST = TestIdentifier('FooTest', 'testFoo')


class RecordingListener(listeners.TestInvocationListener):
  """Appends every call it receives to a shared journal."""

  def __init__(self, name, journal, summary=None):
    self.name = name
    self.journal = journal
    self.summary = summary

  def test_run_started(self, run_name, test_count):
    self.journal.append((self.name, 'test_run_started', run_name))

  def test_started(self, test):
    self.journal.append((self.name, 'test_started', test))

  def test_ended(self, test, test_metrics=None):
    self.journal.append((self.name, 'test_ended', test))

  def test_run_ended(self, elapsed_ms, run_metrics=None):
    self.journal.append((self.name, 'test_run_ended', elapsed_ms))

  def invocation_ended(self, elapsed_ms):
    self.journal.append((self.name, 'invocation_ended', elapsed_ms))

  def get_summary(self):
    self.journal.append((self.name, 'get_summary'))
    return self.summary


class RecordingSummaryListener(
    RecordingListener, listeners.TestSummaryListener
):

  def put_summary(self, summaries):
    self.journal.append((self.name, 'put_summary', tuple(summaries)))


class ResultForwarderUnittests(unittest.TestCase):

  def test_forward_calls_reach_listeners_in_order(self):
    journal = []
    sut = result_forwarder.ResultForwarder(
        [RecordingListener('a', journal), RecordingListener('b', journal)]
    )

    sut.test_run_started('run', 1)
    sut.test_started(TEST)
    sut.test_ended(TEST)
    sut.test_run_ended(5)

    self.assertEqual(
        journal,
        [
            ('a', 'test_run_started', 'run'),
            ('b', 'test_run_started', 'run'),
            ('a', 'test_started', TEST),
            ('b', 'test_started', TEST),
            ('a', 'test_ended', TEST),
            ('b', 'test_ended', TEST),
            ('a', 'test_run_ended', 5),
            ('b', 'test_run_ended', 5),
        ],
    )

  def test_forward_passes_arguments_through(self):
    listener = mock.create_autospec(
        listeners.TestInvocationListener, instance=True
    )
    sut = result_forwarder.ResultForwarder([listener])

    sut.test_failed(TestFailure.FAILURE, TEST, 'trace')
    sut.test_run_failed('boom')
    sut.invocation_failed(ValueError('x'))

    listener.test_failed.assert_called_once_with(
        TestFailure.FAILURE, TEST, 'trace'
    )
    listener.test_run_failed.assert_called_once_with('boom')
    listener.invocation_failed.assert_called_once()

  def test_best_effort_single_failure_reaches_every_listener_and_reraises(
      self,
  ):
    first = mock.create_autospec(
        listeners.TestInvocationListener, instance=True
    )
    second = mock.create_autospec(
        listeners.TestInvocationListener, instance=True
    )
    first.test_started.side_effect = RuntimeError('first broke')
    sut = result_forwarder.ResultForwarder([first, second])

    with self.assertRaisesRegex(RuntimeError, 'first broke'):
      sut.test_started(TEST)

    second.test_started.assert_called_once_with(TEST)

  def test_best_effort_multiple_failures_raise_aggregate(self):
    first = mock.create_autospec(
        listeners.TestInvocationListener, instance=True
    )
    second = mock.create_autospec(
        listeners.TestInvocationListener, instance=True
    )
    third = mock.create_autospec(
        listeners.TestInvocationListener, instance=True
    )
    first.test_run_failed.side_effect = RuntimeError('one')
    second.test_run_failed.side_effect = ValueError('two')
    sut = result_forwarder.ResultForwarder([first, second, third])

    with self.assertRaises(dtest_error.ListenerForwardingError) as ctx:
      sut.test_run_failed('msg')

    self.assertEqual(ctx.exception.method_name, 'test_run_failed')
    self.assertEqual(len(ctx.exception.errors), 2)
    third.test_run_failed.assert_called_once_with('msg')

  def test_fail_fast_stops_at_first_failing_listener(self):
    first = mock.create_autospec(
        listeners.TestInvocationListener, instance=True
    )
    second = mock.create_autospec(
        listeners.TestInvocationListener, instance=True
    )
    third = mock.create_autospec(
        listeners.TestInvocationListener, instance=True
    )
    second.test_started.side_effect = RuntimeError('second broke')
    sut = result_forwarder.ResultForwarder(
        [first, second, third], policy=ForwardingPolicy.FAIL_FAST
    )

    with self.assertRaisesRegex(RuntimeError, 'second broke'):
      sut.test_started(TEST)

    first.test_started.assert_called_once_with(TEST)
    third.test_started.assert_not_called()

  def test_get_summary_returns_none(self):
    sut = result_forwarder.ResultForwarder([])

    self.assertIsNone(sut.get_summary())


class ReportInvocationEndedUnittests(unittest.TestCase):

  def test_summaries_are_gathered_before_any_put_summary(self):
    journal = []
    summary_a = listeners.TestSummary('a summary')
    summary_c = listeners.TestSummary('c summary')
    sut = result_forwarder.ResultForwarder([
        RecordingSummaryListener('s', journal),
        RecordingListener('a', journal, summary_a),
        RecordingListener('b', journal),
        RecordingListener('c', journal, summary_c),
    ])

    sut.invocation_ended(10)

    self.assertEqual(
        journal,
        [
            ('a', 'invocation_ended', 10),
            ('a', 'get_summary'),
            ('b', 'invocation_ended', 10),
            ('b', 'get_summary'),
            ('c', 'invocation_ended', 10),
            ('c', 'get_summary'),
            ('s', 'put_summary', (summary_a, summary_c)),
            ('s', 'invocation_ended', 10),
        ],
    )

  def test_failing_gatherer_still_lets_summary_listeners_end(self):
    journal = []
    broken = mock.create_autospec(
        listeners.TestInvocationListener, instance=True
    )
    broken.invocation_ended.side_effect = RuntimeError('broken')
    summary_listener = RecordingSummaryListener('s', journal)

    with self.assertRaisesRegex(RuntimeError, 'broken'):
      result_forwarder.report_invocation_ended(
          [broken, summary_listener], 3
      )

    self.assertEqual(
        journal, [('s', 'put_summary', ()), ('s', 'invocation_ended', 3)]
    )

  def test_fail_fast_skips_summary_phase_on_failure(self):
    journal = []
    broken = mock.create_autospec(
        listeners.TestInvocationListener, instance=True
    )
    broken.invocation_ended.side_effect = RuntimeError('broken')

    with self.assertRaises(RuntimeError):
      result_forwarder.report_invocation_ended(
          [broken, RecordingSummaryListener('s', journal)],
          3,
          ForwardingPolicy.FAIL_FAST,
      )

    self.assertEqual(journal, [])


if __name__ == '__main__':
  unittest.main()
