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

"""
Various globals used by dtest.
"""

import os

# Terminal colors, shifted onto the ANSI foreground/background bases.
BLACK, RED, GREEN, YELLOW, BLUE, MAGENTA, CYAN, WHITE = range(8)

# Environment variables.
DTEST_CONFIG_PATH_ENV = 'DTEST_CONFIG_PATH'
ANDROID_SERIAL = 'ANDROID_SERIAL'

# Results and log locations.
DTEST_RESULT_ROOT = os.path.join(
    os.environ.get('TMPDIR', '/tmp'), 'dtest_result')
DTEST_LOG_NAME = 'dtest.log'

# Names of the log artifacts delivered to every listener when an invocation
# finishes.
DEVICE_LOG_NAME = 'device_logcat'
TRADEFED_LOG_NAME = 'host_log'
BUILD_ERROR_BUGREPORT_NAME = 'build_error_bugreport'

# Build attribute keys.
BUILD_ATTR_DEVICE_SERIAL = 'device_serial'

# Instrumentation defaults, in milliseconds.
DEFAULT_INSTRUMENTATION_RUNNER = 'android.test.InstrumentationTestRunner'
DEFAULT_TEST_TIMEOUT_MS = 10 * 60 * 1000
DEFAULT_SHELL_TIMEOUT_MS = 10 * 60 * 1000
DEFAULT_COLLECT_TESTS_TIMEOUT_MS = 2 * 60 * 1000
# Delay between tests while enumerating them in log-only mode. Rapid
# enumeration of large suites makes some devices drop the connection.
DEFAULT_TEST_COLLECTION_DELAY_MS = 15
DEFAULT_COLLECT_TESTS_ATTEMPTS = 3

# Native tests.
DEFAULT_NATIVETEST_PATH = '/data/nativetest'

# Run metrics keys.
COVERAGE_TARGET_KEY = 'coverage_target'

# Adb.
ADB = 'adb'
