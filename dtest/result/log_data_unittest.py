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

"""Unittests for log_data."""

import os
import unittest

from pyfakefs import fake_filesystem_unittest

from dtest.result import log_data

LOG_PATH = '/tmp/host_log.txt'


class FileInputStreamSourceUnittests(fake_filesystem_unittest.TestCase):

  def setUp(self):
    self.setUpPyfakefs()

  def test_read_twice(self):
    self.fs.create_file(LOG_PATH, contents='hello')
    source = log_data.FileInputStreamSource(LOG_PATH)

    for _ in range(2):
      with source.create_input_stream() as stream:
        self.assertEqual(stream.read(), b'hello')
    self.assertEqual(source.size(), 5)

  def test_missing_file_is_empty(self):
    source = log_data.FileInputStreamSource('/tmp/gone.txt')

    self.assertEqual(source.size(), 0)
    with source.create_input_stream() as stream:
      self.assertEqual(stream.read(), b'')

  def test_cancel_deletes_only_when_asked(self):
    self.fs.create_file(LOG_PATH)

    log_data.FileInputStreamSource(LOG_PATH).cancel()
    self.assertTrue(os.path.exists(LOG_PATH))

    log_data.FileInputStreamSource(LOG_PATH, delete_on_cancel=True).cancel()
    self.assertFalse(os.path.exists(LOG_PATH))


class LogDataTypeUnittests(unittest.TestCase):

  def test_attributes(self):
    self.assertEqual(log_data.LogDataType.BUGREPORT.file_ext, 'bugreport.txt')
    self.assertTrue(log_data.LogDataType.TEXT.is_text)
    self.assertTrue(log_data.LogDataType.ZIP.is_compressed)
    self.assertEqual(log_data.EMPTY_SOURCE.size(), 0)


if __name__ == '__main__':
  unittest.main()
