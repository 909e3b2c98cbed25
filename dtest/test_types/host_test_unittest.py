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

"""Unittests for host_test."""

import sys
import types
import unittest
from unittest import mock

from dtest.device import test_device
from dtest.dtest_enum import TestFailure
from dtest.result import listeners
from dtest.result.test_identifier import TestIdentifier
from dtest.test_types import host_test

MODULE = 'fake_host_tests'
CLASS_NAME = MODULE + '.SampleTest'


def _make_module(devices_seen):
  """Builds a module holding a TestCase with passing and failing tests."""

  class SampleTest(unittest.TestCase):

    def set_device(self, device):
      devices_seen.append(device)

    def test_error(self):
      raise RuntimeError('oops')

    def test_fail(self):
      self.fail('boom')

    def test_pass(self):
      pass

  SampleTest.__module__ = MODULE
  SampleTest.__qualname__ = 'SampleTest'
  module = types.ModuleType(MODULE)
  module.SampleTest = SampleTest
  module.NOT_A_TEST = object()
  return module


class HostTestUnittests(unittest.TestCase):

  def setUp(self):
    self.devices_seen = []
    patcher = mock.patch.dict(
        sys.modules, {MODULE: _make_module(self.devices_seen)})
    patcher.start()
    self.addCleanup(patcher.stop)
    self.device = mock.create_autospec(test_device.TestDevice, instance=True)
    self.listener = mock.create_autospec(
        listeners.TestInvocationListener, instance=True)
    self.sut = host_test.HostTest(CLASS_NAME)
    self.sut.set_device(self.device)

  def test_run_reports_every_case(self):
    self.sut.run(self.listener)

    error = TestIdentifier(CLASS_NAME, 'test_error')
    fail = TestIdentifier(CLASS_NAME, 'test_fail')
    passed = TestIdentifier(CLASS_NAME, 'test_pass')
    self.listener.test_run_started.assert_called_once_with(CLASS_NAME, 3)
    self.assertEqual(
        [c[0][0] for c in self.listener.test_ended.call_args_list],
        [error, fail, passed])
    failures = {(c[0][0], c[0][1]) for c in
                self.listener.test_failed.call_args_list}
    self.assertEqual(failures, {(TestFailure.ERROR, error),
                                (TestFailure.FAILURE, fail)})
    self.listener.test_run_ended.assert_called_once()
    self.assertEqual(self.devices_seen, [self.device] * 3)

  def test_run_single_method(self):
    self.sut.method_name = 'test_pass'

    self.sut.run(self.listener)

    self.listener.test_run_started.assert_called_once_with(CLASS_NAME, 1)
    self.listener.test_ended.assert_called_once_with(
        TestIdentifier(CLASS_NAME, 'test_pass'), {})
    self.listener.test_failed.assert_not_called()

  def test_run_trace_holds_the_assertion(self):
    self.sut.method_name = 'test_fail'

    self.sut.run(self.listener)

    trace = self.listener.test_failed.call_args[0][2]
    self.assertIn('AssertionError: boom', trace)

  def test_run_missing_class_name_raises(self):
    self.sut.class_name = None

    with self.assertRaises(ValueError):
      self.sut.run(self.listener)

  def test_run_missing_device_raises(self):
    self.sut.set_device(None)

    with self.assertRaises(ValueError):
      self.sut.run(self.listener)

  def test_load_test_class_rejects_bad_names(self):
    for name in ('NoModule', MODULE + '.Missing', MODULE + '.NOT_A_TEST',
                 'no_such_module_anywhere.Foo'):
      with self.assertRaises(ValueError):
        host_test.load_test_class(name)


if __name__ == '__main__':
  unittest.main()
