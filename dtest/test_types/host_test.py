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

"""Runs Python unittest cases on the host, optionally against the device."""

import importlib
import traceback
import unittest
from typing import Optional

from dtest import dtest_utils
from dtest.dtest_enum import TestFailure
from dtest.result.test_identifier import TestIdentifier
from dtest.test_types import remote_test


def _identifier(test):
  class_name, _, method = test.id().rpartition('.')
  return TestIdentifier(class_name, method)


def _format_exc(err):
  return ''.join(traceback.format_exception(*err))


class _ListenerTestResult(unittest.TestResult):
  """A unittest result that reports each test to a dtest listener."""

  def __init__(self, listener):
    super().__init__()
    self._listener = listener

  def startTest(self, test):
    super().startTest(test)
    self._listener.test_started(_identifier(test))

  def addFailure(self, test, err):
    super().addFailure(test, err)
    self._listener.test_failed(TestFailure.FAILURE, _identifier(test),
                               _format_exc(err))

  def addError(self, test, err):
    super().addError(test, err)
    self._listener.test_failed(TestFailure.ERROR, _identifier(test),
                               _format_exc(err))

  def addSubTest(self, test, subtest, err):
    super().addSubTest(test, subtest, err)
    if err is None:
      return
    status = TestFailure.ERROR
    if issubclass(err[0], test.failureException):
      status = TestFailure.FAILURE
    self._listener.test_failed(status, _identifier(test), _format_exc(err))

  def stopTest(self, test):
    super().stopTest(test)
    self._listener.test_ended(_identifier(test), {})


def load_test_class(class_name):
  """Returns the unittest.TestCase subclass named by a dotted path.

  Raises:
      ValueError: if the class cannot be loaded or is not a TestCase.
  """
  module_name, _, attr = class_name.rpartition('.')
  if not module_name:
    raise ValueError('Could not load test class %s' % class_name)
  try:
    module = importlib.import_module(module_name)
    test_class = getattr(module, attr)
  except (ImportError, AttributeError) as e:
    raise ValueError('Could not load test class %s' % class_name) from e
  if not (isinstance(test_class, type) and
          issubclass(test_class, unittest.TestCase)):
    raise ValueError('%s is not a unittest.TestCase' % class_name)
  return test_class


class HostTest(remote_test.DeviceTest):
  """Runs the unittest cases of one class on the host.

  Cases defining set_device(device) receive the device under test before
  they run.
  """

  def __init__(self, class_name: Optional[str] = None,
               method_name: Optional[str] = None):
    super().__init__()
    self.class_name = class_name
    self.method_name = method_name

  def _load_suite(self):
    test_class = load_test_class(self.class_name)
    if self.method_name is not None:
      return unittest.TestSuite([test_class(self.method_name)])
    return unittest.defaultTestLoader.loadTestsFromTestCase(test_class)

  def run(self, listener):
    if self.class_name is None:
      raise ValueError('Missing test class name')
    self._check_device()
    suite = self._load_suite()
    for case in suite:
      if hasattr(case, 'set_device'):
        case.set_device(self.device)
    listener.test_run_started(self.class_name, suite.countTestCases())
    start_ms = dtest_utils.current_time_ms()
    suite.run(_ListenerTestResult(listener))
    listener.test_run_ended(dtest_utils.elapsed_ms(start_ms), {})
