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

"""The build under test and the providers that hand it out."""

from __future__ import annotations

from abc import ABC, abstractmethod
import copy
import logging
from typing import Dict, Optional


class BuildInfo:
  """Identifies the software under test.

  Attributes are free form key/value pairs, e.g. the device serial the build
  is tested on. Files are named host paths that belong to the build, e.g. the
  APKs to install.
  """

  def __init__(
      self,
      build_id: str = '0',
      test_tag: str = 'stub',
      build_target_name: str = 'stub',
  ):
    self.build_id = build_id
    self.test_tag = test_tag
    self.build_target_name = build_target_name
    self.build_flavor: Optional[str] = None
    self.build_branch: Optional[str] = None
    self._attributes: Dict[str, str] = {}
    self._files: Dict[str, str] = {}

  @property
  def build_attributes(self) -> Dict[str, str]:
    return dict(self._attributes)

  def add_build_attribute(self, name: str, value: str):
    self._attributes[name] = value

  def set_file(self, name: str, path: str):
    self._files[name] = path

  def get_file(self, name: str) -> Optional[str]:
    return self._files.get(name)

  @property
  def files(self) -> Dict[str, str]:
    return dict(self._files)

  def clean_up(self):
    """Releases resources held by the build. Nothing to do by default."""

  def clone(self) -> 'BuildInfo':
    """Returns an independent copy with the same id, attributes and files."""
    clone = copy.copy(self)
    clone._attributes = dict(self._attributes)
    clone._files = dict(self._files)
    return clone

  def __repr__(self):
    return 'BuildInfo(%s, %s, %s)' % (
        self.build_id, self.test_tag, self.build_target_name)


class BuildProvider(ABC):
  """Supplies the build to test for an invocation."""

  @abstractmethod
  def get_build(self) -> Optional[BuildInfo]:
    """Returns the build to test, or None if there is nothing to test.

    Raises:
        BuildRetrievalError: if the build could not be fetched.
    """

  def build_not_tested(self, info: BuildInfo):
    """Called when the build was acquired but its tests never ran."""

  def clean_up(self, info: BuildInfo):
    """Releases the build once the invocation is done with it."""
    info.clean_up()


class StubBuildProvider(BuildProvider):
  """Provides a placeholder build, for tests that do not need a real one."""

  def __init__(
      self,
      build_id: str = '0',
      test_tag: str = 'stub',
      build_target_name: str = 'stub',
      build_attributes: Optional[Dict[str, str]] = None,
  ):
    self._build_id = build_id
    self._test_tag = test_tag
    self._build_target_name = build_target_name
    self._build_attributes = dict(build_attributes or {})

  def get_build(self):
    logging.debug('Skipping build provider step')
    info = BuildInfo(self._build_id, self._test_tag, self._build_target_name)
    for name, value in self._build_attributes.items():
      info.add_build_attribute(name, value)
    return info


class ExistingBuildProvider(BuildProvider):
  """Hands out a build that was already fetched by another invocation.

  Used when resuming on another device: the child invocation tests a clone of
  the parent build, and releasing it goes through the parent's provider.
  """

  def __init__(self, build: BuildInfo, original_provider: BuildProvider):
    self._build = build
    self._original_provider = original_provider

  def get_build(self):
    return self._build

  def build_not_tested(self, info):
    self._original_provider.build_not_tested(info)

  def clean_up(self, info):
    self._original_provider.clean_up(info)
