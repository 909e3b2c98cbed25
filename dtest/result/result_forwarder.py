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

"""A listener that forwards every callback to a list of listeners."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Sequence

from dtest import dtest_error
from dtest.dtest_enum import ForwardingPolicy
from dtest.result import listeners as listeners_lib


def _raise_collected(method_name: str, errors: List[Exception]):
  if not errors:
    return
  if len(errors) == 1:
    raise errors[0]
  raise dtest_error.ListenerForwardingError(method_name, errors) from errors[0]


def _deliver(
    policy: ForwardingPolicy,
    method_name: str,
    targets: Iterable[listeners_lib.TestRunListener],
    call: Callable[[listeners_lib.TestRunListener], None],
):
  """Invokes call on every target in order, honouring the forwarding policy.

  Args:
      policy: The ForwardingPolicy in effect.
      method_name: Name of the callback, used for logging.
      targets: The listeners to call, in order.
      call: A callable taking one listener and performing the callback.

  Raises:
      The listener's exception under FAIL_FAST. Under BEST_EFFORT, the only
      exception raised or a ListenerForwardingError once every target has been
      called.
  """
  errors = []
  for listener in targets:
    try:
      call(listener)
    except Exception as e:  # pylint: disable=broad-except
      if policy is ForwardingPolicy.FAIL_FAST:
        raise
      logging.exception(
          'Listener %s raised in %s', type(listener).__name__, method_name
      )
      errors.append(e)
  _raise_collected(method_name, errors)


def report_invocation_ended(
    listeners: Sequence[listeners_lib.TestInvocationListener],
    elapsed_ms: int,
    policy: ForwardingPolicy = ForwardingPolicy.BEST_EFFORT,
):
  """Ends the invocation on every listener and distributes the summaries.

  Two phases: every plain invocation listener receives invocation_ended and
  is asked for its summary, then every summary listener receives the gathered
  summaries followed by invocation_ended. No put_summary call happens before
  all summaries are gathered.

  Args:
      listeners: The invocation listeners, in configuration order.
      elapsed_ms: The invocation elapsed time in milliseconds.
      policy: The ForwardingPolicy in effect.
  """
  summaries = []
  gatherers = [
      l
      for l in listeners
      if not isinstance(l, listeners_lib.TestSummaryListener)
  ]
  receivers = [
      l for l in listeners if isinstance(l, listeners_lib.TestSummaryListener)
  ]

  def _end_and_gather(listener):
    listener.invocation_ended(elapsed_ms)
    summary = listener.get_summary()
    if summary is not None:
      summaries.append(summary)

  def _put_and_end(listener):
    listener.put_summary(list(summaries))
    listener.invocation_ended(elapsed_ms)

  errors = []
  for phase in (_end_and_gather, _put_and_end):
    targets = gatherers if phase is _end_and_gather else receivers
    try:
      _deliver(policy, 'invocation_ended', targets, phase)
    except dtest_error.ListenerForwardingError as e:
      errors.extend(e.errors)
    except Exception as e:  # pylint: disable=broad-except
      if policy is ForwardingPolicy.FAIL_FAST:
        raise
      errors.append(e)
  _raise_collected('invocation_ended', errors)


class ResultForwarder(listeners_lib.TestInvocationListener):
  """Forwards results to a list of listeners.

  Callbacks reach the wrapped listeners in list order and hold no result
  state. When a listener raises, the forwarding policy decides what happens:
  BEST_EFFORT (the default) still delivers the call to the remaining
  listeners and raises afterwards; FAIL_FAST propagates right away so later
  listeners miss the call.
  """

  def __init__(
      self,
      listeners: Sequence[listeners_lib.TestRunListener] = (),
      policy: ForwardingPolicy = ForwardingPolicy.BEST_EFFORT,
  ):
    self._listeners = list(listeners)
    self._policy = policy

  @property
  def listeners(self) -> List[listeners_lib.TestRunListener]:
    return list(self._listeners)

  @property
  def policy(self) -> ForwardingPolicy:
    return self._policy

  def set_listeners(self, listeners: Sequence[listeners_lib.TestRunListener]):
    self._listeners = list(listeners)

  def _forward(self, method_name, *args):
    _deliver(
        self._policy,
        method_name,
        self._listeners,
        lambda listener: getattr(listener, method_name)(*args),
    )

  def invocation_started(self, build_info):
    self._forward('invocation_started', build_info)

  def invocation_failed(self, cause):
    self._forward('invocation_failed', cause)

  def invocation_ended(self, elapsed_ms):
    report_invocation_ended(self._listeners, elapsed_ms, self._policy)

  def get_summary(self):
    # Summaries are gathered from the wrapped listeners in invocation_ended.
    return None

  def test_log(self, data_name, data_type, data_stream):
    self._forward('test_log', data_name, data_type, data_stream)

  def test_run_started(self, run_name, test_count):
    self._forward('test_run_started', run_name, test_count)

  def test_started(self, test):
    self._forward('test_started', test)

  def test_failed(self, status, test, trace):
    self._forward('test_failed', status, test, trace)

  def test_ended(self, test, test_metrics=None):
    self._forward('test_ended', test, test_metrics or {})

  def test_run_failed(self, error_message):
    self._forward('test_run_failed', error_message)

  def test_run_stopped(self, elapsed_ms):
    self._forward('test_run_stopped', elapsed_ms)

  def test_run_ended(self, elapsed_ms, run_metrics=None):
    self._forward('test_run_ended', elapsed_ms, run_metrics or {})
