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
dtest exceptions.
"""


class Error(Exception):
    """Base error class."""


class DeviceNotAvailableError(Error):
    """Raised when the device is no longer available for testing."""

    def __init__(self, message='', serial=None):
        super().__init__(message)
        self.serial = serial


class DeviceUnresponsiveError(DeviceNotAvailableError):
    """Raised when the device is visible but does not respond to commands."""


class BuildRetrievalError(Error):
    """Raised when the build provider fails to retrieve a build."""


class TargetSetupError(Error):
    """Raised when a target preparer fails to set up the device."""


class BuildError(TargetSetupError):
    """Raised when the build under test is bad, e.g. it fails to boot."""


class FatalHostError(Error):
    """Raised when the host itself is in a state where it cannot continue."""


class ConfigurationError(Error):
    """Raised when a mandatory option is missing or a value is invalid."""


class InstallError(Error):
    """Raised when a package fails to install during a test run."""


class UnknownTestTypeError(Error):
    """Raised when an unknown test type is requested."""


class ListenerForwardingError(Error):
    """Raised when more than one listener failed during one forwarded call."""

    def __init__(self, method_name, errors):
        super().__init__(
            '%d listener(s) failed in %s: %s'
            % (len(errors), method_name, '; '.join(repr(e) for e in errors))
        )
        self.method_name = method_name
        self.errors = list(errors)
