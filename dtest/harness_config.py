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

"""Harness wide settings loaded from a YAML file.

Example file:

  log_level: INFO
  results_dir: /tmp/dtest_result
  listener_policy: fail_fast
  test_timeout_ms: 600000
  adb_path: /opt/platform-tools/adb
"""

from __future__ import annotations

import dataclasses
import logging
import os
from typing import Any, Dict, Optional

import yaml

from dtest import constants
from dtest import dtest_error
from dtest.dtest_enum import ForwardingPolicy

_LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


@dataclasses.dataclass
class HarnessConfig:
  """Settings shared by every command of one dtest process."""

  log_level: str = 'DEBUG'
  results_dir: str = constants.DTEST_RESULT_ROOT
  listener_policy: ForwardingPolicy = ForwardingPolicy.BEST_EFFORT
  collect_tests_attempts: int = constants.DEFAULT_COLLECT_TESTS_ATTEMPTS
  collect_tests_timeout_ms: int = constants.DEFAULT_COLLECT_TESTS_TIMEOUT_MS
  test_collection_delay_ms: int = constants.DEFAULT_TEST_COLLECTION_DELAY_MS
  test_timeout_ms: int = constants.DEFAULT_TEST_TIMEOUT_MS
  shell_timeout_ms: int = constants.DEFAULT_SHELL_TIMEOUT_MS
  adb_path: str = constants.ADB

  @property
  def logging_level(self) -> int:
    return getattr(logging, self.log_level)


_FIELDS = {f.name: f for f in dataclasses.fields(HarnessConfig)}
_INT_KEYS = {name for name, f in _FIELDS.items() if f.type == 'int'}


def _convert(key: str, value: Any):
  """Validates one YAML value and converts it to the field's type."""
  if key in _INT_KEYS:
    if isinstance(value, bool) or not isinstance(value, int):
      raise dtest_error.ConfigurationError(
          '%s must be an integer, got %r' % (key, value))
    if value < 0:
      raise dtest_error.ConfigurationError(
          '%s must not be negative, got %d' % (key, value))
    return value
  if key == 'listener_policy':
    try:
      return ForwardingPolicy(str(value).lower())
    except ValueError as e:
      raise dtest_error.ConfigurationError(
          'listener_policy must be one of %s, got %r'
          % ([p.value for p in ForwardingPolicy], value)) from e
  if key == 'log_level':
    level = str(value).upper()
    if level not in _LOG_LEVELS:
      raise dtest_error.ConfigurationError(
          'log_level must be one of %s, got %r' % (_LOG_LEVELS, value))
    return level
  if not isinstance(value, str):
    raise dtest_error.ConfigurationError(
        '%s must be a string, got %r' % (key, value))
  return os.path.expanduser(value)


def parse_harness_config(data: Optional[Dict[str, Any]]) -> HarnessConfig:
  """Builds a HarnessConfig from the mapping of a YAML document.

  Raises:
      ConfigurationError: on unknown keys or invalid values.
  """
  if data is None:
    return HarnessConfig()
  if not isinstance(data, dict):
    raise dtest_error.ConfigurationError(
        'Harness config must be a mapping, got %s' % type(data).__name__)
  unknown = sorted(set(data) - set(_FIELDS))
  if unknown:
    raise dtest_error.ConfigurationError(
        'Unknown harness config key(s): %s' % ', '.join(map(str, unknown)))
  return HarnessConfig(**{k: _convert(k, v) for k, v in data.items()})


def load_harness_config(path: Optional[str] = None) -> HarnessConfig:
  """Loads the harness config from path.

  Args:
      path: Path of a YAML file. Defaults to the DTEST_CONFIG_PATH
        environment variable.

  Returns:
      The HarnessConfig. Defaults are used when no file exists.

  Raises:
      ConfigurationError: if the file is not valid YAML or holds invalid
        settings.
  """
  path = path or os.environ.get(constants.DTEST_CONFIG_PATH_ENV)
  if not path or not os.path.isfile(path):
    if path:
      logging.debug('No harness config at %s, using defaults', path)
    return HarnessConfig()
  logging.debug('Loading harness config from %s', path)
  with open(path, encoding='utf-8') as f:
    try:
      data = yaml.safe_load(f)
    except yaml.YAMLError as e:
      raise dtest_error.ConfigurationError(
          'Invalid harness config %s: %s' % (path, e)) from e
  return parse_harness_config(data)
