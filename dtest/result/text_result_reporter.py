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

"""Reporter that prints test results to the console."""

from dtest import constants
from dtest import dtest_utils
from dtest.dtest_enum import TestStatus
from dtest.result import collecting_listener
from dtest.result import listeners


class TextResultReporter(collecting_listener.CollectingTestListener):
  """Prints failures as they happen and a summary when the invocation ends."""

  def test_failed(self, status, test, trace):
    super().test_failed(status, test, trace)
    dtest_utils.colorful_print(
        f'Test {status.name} {test}\n stack: {trace}', constants.RED
    )

  def test_run_failed(self, error_message):
    super().test_run_failed(error_message)
    dtest_utils.print_and_log_warning(
        'Run %s failed: %s', self.current_run_results.name, error_message
    )

  def test_run_ended(self, elapsed_ms, run_metrics=None):
    super().test_run_ended(elapsed_ms, run_metrics)
    if run_metrics:
      print(f'Metrics: {run_metrics}')

  def invocation_ended(self, elapsed_ms):
    for run in self.run_results:
      passed = run.num_tests(TestStatus.PASSED)
      failed = run.num_tests(TestStatus.FAILURE) + run.num_tests(
          TestStatus.ERROR
      )
      color = constants.RED if failed or run.is_run_failure else constants.GREEN
      dtest_utils.colorful_print(
          f'{run.name}: {passed} passed, {failed} failed', color
      )
    print(f'Invocation finished in {elapsed_ms} ms')

  def get_summary(self):
    passed = self.num_tests(TestStatus.PASSED)
    failed = self.num_tests(TestStatus.FAILURE) + self.num_tests(
        TestStatus.ERROR
    )
    return listeners.TestSummary(
        summary=f'{passed} passed, {failed} failed',
        kv_entries={'passed': str(passed), 'failed': str(failed)},
    )
