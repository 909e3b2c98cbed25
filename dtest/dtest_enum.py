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
Dtest custom enum class.
"""

from enum import IntEnum, unique, Enum


@unique
class ExitCode(IntEnum):
    """An Enum class for sys.exit()"""
    SUCCESS = 0
    ERROR = 1
    CONFIG_INVALID = 2
    NO_BUILD = 3
    DEVICE_UNRESPONSIVE = 4
    DEVICE_UNAVAILABLE = 5
    FATAL_HOST_ERROR = 6
    TEST_FAILURE = 7
    DEVICE_NOT_FOUND = 8


@unique
class InvocationStatus(Enum):
    """Terminal classification of one invocation."""
    SUCCESS = 'success'
    FAILED = 'failed'


@unique
class TestFailure(Enum):
    """The kind of failure reported through test_failed."""
    FAILURE = 'failure'
    ERROR = 'error'


@unique
class TestStatus(Enum):
    """Outcome of a single test method."""
    PASSED = 'passed'
    FAILURE = 'failure'
    ERROR = 'error'
    INCOMPLETE = 'incomplete'


@unique
class FreeDeviceState(Enum):
    """State a device is returned to the device pool in."""
    AVAILABLE = 'available'
    UNAVAILABLE = 'unavailable'
    UNRESPONSIVE = 'unresponsive'


@unique
class ForwardingPolicy(Enum):
    """How a ResultForwarder reacts to a listener raising mid fan-out.

    FAIL_FAST stops at the first raising listener, so later listeners never
    see the call. BEST_EFFORT delivers the call to every listener and raises
    once all of them have been visited.
    """
    FAIL_FAST = 'fail_fast'
    BEST_EFFORT = 'best_effort'
