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

"""Dtest Argument Parser."""

import argparse

from dtest import constants

INSTRUMENTATION = 'instrumentation'
INSTALLED = 'installed'
GTEST = 'gtest'
HOST = 'host'
TEST_TYPES = (INSTRUMENTATION, INSTALLED, GTEST, HOST)

_HELP_DESCRIPTION = """Run tests on Android devices.

Examples:
    dtest instrumentation com.android.foo.tests --class com.android.foo.BarTest
    dtest --serial emulator-5554 installed --runner androidx.test.runner.AndroidJUnitRunner
    dtest gtest --module-name libfoo_test --filter 'FooTest.*'
    dtest host my_pkg.my_module.MyHostTest
"""


def _non_negative_int(value):
  """Verify value by whether or not a non negative integer.

  Args:
      value: A string of a command-line argument.

  Returns:
      int of value, if it is a non negative integer.
      Otherwise, raise argparse.ArgumentTypeError.
  """
  err_msg = "invalid non negative int value: '%s'" % value
  try:
    converted_value = int(value)
    if converted_value < 0:
      raise argparse.ArgumentTypeError(err_msg)
    return converted_value
  except ValueError as value_err:
    raise argparse.ArgumentTypeError(err_msg) from value_err


def _add_instrumentation_args(parser, with_package=True):
  """Arguments shared by the instrumentation based test types."""
  if with_package:
    parser.add_argument(
        'package', help='Manifest package name of the test application.')
  parser.add_argument(
      '--runner',
      help='Instrumentation runner to use, e.g. '
      'androidx.test.runner.AndroidJUnitRunner.')
  parser.add_argument('--class', dest='class_name',
                      help='Only run the tests of this class.')
  parser.add_argument('--size', choices=('small', 'medium', 'large'),
                      help='Only run tests of this size.')
  parser.add_argument(
      '--no-rerun', dest='rerun', action='store_false',
      help='Run the tests once, without collecting them first and rerunning '
      'the ones that did not run.')
  parser.add_argument(
      '--resume', action='store_true',
      help='Resume unfinished tests on another device if the device is lost.')
  parser.add_argument(
      '--test-timeout', type=_non_negative_int, metavar='MS',
      help='Fail a test that runs longer than this. 0 disables the timeout.')


def create_dtest_arg_parser():
  """Creates an instance of the default Dtest arg parser."""
  parser = argparse.ArgumentParser(
      prog='dtest',
      description=_HELP_DESCRIPTION,
      add_help=True,
      formatter_class=argparse.RawDescriptionHelpFormatter,
  )
  parser.add_argument(
      '-s', '--serial', action='append', dest='serials', metavar='SERIAL',
      help='Run on the device with this serial. Repeat to use several '
      'devices. Defaults to $%s.' % constants.ANDROID_SERIAL)
  parser.add_argument('-v', '--verbose', action='store_true',
                      help='Display DEBUG level logging.')
  parser.add_argument(
      '--loop', action='store_true',
      help='Run the command again each time it finishes, until interrupted.')
  parser.add_argument(
      '--min-loop-time', type=_non_negative_int, metavar='MS',
      help='Minimum time between two starts of a looping command.')
  parser.add_argument(
      '--dry-run', action='store_true',
      help='Build the configuration without running anything.')
  parser.add_argument('--results-dir',
                      help='Directory for dtest.log and the invocation logs.')
  parser.add_argument('--config', metavar='FILE',
                      help='Harness YAML config. Defaults to $%s.'
                      % constants.DTEST_CONFIG_PATH_ENV)
  parser.add_argument(
      '--fail-fast-listeners', action='store_true',
      help='Stop forwarding a result once one listener raises on it.')
  parser.add_argument(
      '--setup-command', action='append', default=[], metavar='CMD',
      help='Shell command run on the device before the tests.')
  parser.add_argument(
      '--teardown-command', action='append', default=[], metavar='CMD',
      help='Shell command run on the device after the tests.')
  parser.add_argument('--apk', action='append', default=[], metavar='PATH',
                      help='APK installed on the device before the tests.')
  parser.add_argument(
      '--no-prepare', dest='prepare', action='store_false',
      help='Skip the device setup commands and APK installs.')
  parser.add_argument('--no-teardown', dest='teardown', action='store_false',
                      help='Skip the device teardown commands.')

  subparsers = parser.add_subparsers(dest='test_type', metavar='TEST_TYPE',
                                     required=True)

  instrumentation = subparsers.add_parser(
      INSTRUMENTATION, help='Run the instrumentation tests of one package.')
  _add_instrumentation_args(instrumentation)
  instrumentation.add_argument(
      '--method', help='Only run this method. Requires --class.')
  instrumentation.add_argument(
      '--install-file', metavar='APK',
      help='Install this APK before the run and uninstall it afterwards.')
  instrumentation.add_argument(
      '--coverage-target',
      help='Report this coverage target as a run metric.')
  instrumentation.add_argument(
      '--retry', dest='max_retries', type=_non_negative_int, default=0,
      metavar='N',
      help='Run the command again, up to N times, when an invocation fails '
      'with an unexpected error.')

  installed = subparsers.add_parser(
      INSTALLED, help='Run every instrumentation installed on the device.')
  _add_instrumentation_args(installed, with_package=False)
  installed.add_argument(
      '--send-coverage', action='store_true',
      help='Report the coverage target of each instrumentation.')

  gtest = subparsers.add_parser(GTEST, help='Run native GTest binaries.')
  gtest.add_argument(
      '--native-test-path', default=constants.DEFAULT_NATIVETEST_PATH,
      help='Device directory holding the test binaries.')
  gtest.add_argument('--module-name',
                     help='Only run binaries under this subdirectory.')
  gtest.add_argument('--filter', dest='positive_filter',
                     help='GTest filter of the tests to run.')
  gtest.add_argument('--exclude-filter', dest='negative_filter',
                     help='GTest filter of the tests to skip.')
  gtest.add_argument('--run-disabled', action='store_true',
                     help='Also run DISABLED_ tests.')
  gtest.add_argument('--no-recurse', dest='recurse', action='store_false',
                     help='Do not descend into subdirectories.')
  gtest.add_argument(
      '--shards', type=_non_negative_int, default=1, metavar='N',
      help='Split the tests of every binary into N shards, run in parallel '
      'on the available devices.')

  host = subparsers.add_parser(HOST, help='Run a host side unittest class.')
  host.add_argument('class_name',
                    help='Dotted name of a unittest.TestCase class.')
  host.add_argument('--method', help='Only run this test method.')

  return parser
