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

"""Identifier of a single test method."""

from typing import NamedTuple

TEST_NAME_TEMPLATE = '%s#%s'


class TestIdentifier(NamedTuple):
  """A (class name, test name) pair. Equality is by both fields."""

  class_name: str
  test_name: str

  def __str__(self):
    return TEST_NAME_TEMPLATE % (self.class_name, self.test_name)
