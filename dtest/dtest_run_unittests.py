#!/usr/bin/env python3
#
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

"""Main entrypoint for all of dtest's unittest.

Usage: dtest_run_unittests.py [module name substring ...]
"""

import logging
import os
import sys
import unittest

from importlib import import_module
from unittest import mock

# Keep the unittest output readable; only fatal records get through.
logging.disable(logging.ERROR)

# The developer's own device and harness config must not leak into tests.
ENV = {
    'ANDROID_SERIAL': '',
    'DTEST_CONFIG_PATH': '',
}

_UNITTEST_SUFFIX = '_unittest.py'


def get_test_modules(patterns=()):
    """Returns the import paths of the *_unittest.py modules under dtest/.

    e.g. dtest/result/result_forwarder_unittest.py becomes
    dtest.result.result_forwarder_unittest.

    Args:
        patterns: Only keep modules whose import path contains one of these.
          Every module is kept when empty.
    """
    package_dir = os.path.dirname(os.path.realpath(__file__))
    root_dir = os.path.dirname(package_dir)
    modules = []
    for dirpath, _, files in os.walk(package_dir):
        for name in files:
            if not name.endswith(_UNITTEST_SUFFIX):
                continue
            rel_path = os.path.relpath(os.path.join(dirpath, name), root_dir)
            module = rel_path[:-len('.py')].replace(os.sep, '.')
            if not patterns or any(p in module for p in patterns):
                modules.append(module)
    return sorted(modules)


def run_test_modules(test_modules):
    """Imports and runs test_modules, returning the unittest.TestResult."""
    suite = unittest.TestSuite()
    loader = unittest.defaultTestLoader
    for module in test_modules:
        suite.addTests(loader.loadTestsFromModule(import_module(module)))
    return unittest.TextTestRunner(verbosity=2).run(suite)


if __name__ == '__main__':
    with mock.patch.dict('os.environ', ENV):
        result = run_test_modules(get_test_modules(sys.argv[1:]))
    sys.exit(0 if result.wasSuccessful() else 1)
