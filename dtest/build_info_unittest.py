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

"""Unittests for build_info."""

import unittest
from unittest import mock

from dtest import build_info


class BuildInfoUnittests(unittest.TestCase):

  def test_clone_is_independent(self):
    info = build_info.BuildInfo('42', 'tag', 'target')
    info.add_build_attribute('device_serial', 'A')
    info.set_file('Foo.apk', '/out/Foo.apk')

    clone = info.clone()
    clone.add_build_attribute('device_serial', 'B')
    clone.set_file('Bar.apk', '/out/Bar.apk')

    self.assertEqual(clone.build_id, '42')
    self.assertEqual(info.build_attributes, {'device_serial': 'A'})
    self.assertEqual(info.files, {'Foo.apk': '/out/Foo.apk'})
    self.assertEqual(clone.get_file('Foo.apk'), '/out/Foo.apk')

  def test_build_attributes_is_a_copy(self):
    info = build_info.BuildInfo()

    info.build_attributes['x'] = 'y'

    self.assertEqual(info.build_attributes, {})


class StubBuildProviderUnittests(unittest.TestCase):

  def test_get_build_makes_a_new_build_each_time(self):
    provider = build_info.StubBuildProvider(
        build_id='7', build_attributes={'branch': 'main'})

    first = provider.get_build()
    second = provider.get_build()

    self.assertIsNot(first, second)
    self.assertEqual(first.build_id, '7')
    self.assertEqual(first.build_attributes, {'branch': 'main'})

  def test_clean_up_releases_the_build(self):
    info = mock.create_autospec(build_info.BuildInfo, instance=True)

    build_info.StubBuildProvider().clean_up(info)

    info.clean_up.assert_called_once()


class ExistingBuildProviderUnittests(unittest.TestCase):

  def test_delegates_release_to_original_provider(self):
    original = mock.create_autospec(build_info.BuildProvider, instance=True)
    info = build_info.BuildInfo('1')
    provider = build_info.ExistingBuildProvider(info, original)

    self.assertIs(provider.get_build(), info)
    provider.build_not_tested(info)
    provider.clean_up(info)

    original.build_not_tested.assert_called_once_with(info)
    original.clean_up.assert_called_once_with(info)


if __name__ == '__main__':
  unittest.main()
