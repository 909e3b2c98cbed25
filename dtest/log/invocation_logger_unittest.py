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

"""Unittests for invocation_logger."""

import logging
import os
import threading
import unittest

from dtest.log import invocation_logger


def _read(source):
  with source.create_input_stream() as stream:
    return stream.read().decode('utf-8')


class InvocationLoggerUnittests(unittest.TestCase):

  def setUp(self):
    self.logger = invocation_logger.InvocationLogger(logging.INFO)
    self._old_disable = logging.root.manager.disable
    self._old_level = logging.getLogger().level
    logging.disable(logging.NOTSET)
    logging.getLogger().setLevel(logging.DEBUG)

  def tearDown(self):
    self.logger.close_log()
    logging.disable(self._old_disable)
    logging.getLogger().setLevel(self._old_level)

  def test_get_log_before_init_is_empty(self):
    self.assertEqual(_read(self.logger.get_log()), '')

  def test_captures_records_of_the_calling_thread(self):
    self.logger.init()

    logging.info('hello from the invocation')
    logging.debug('below the level')

    content = _read(self.logger.get_log())
    self.assertIn('hello from the invocation', content)
    self.assertNotIn('below the level', content)

  def test_ignores_records_of_other_threads(self):
    self.logger.init()
    thread = threading.Thread(
        target=lambda: logging.warning('from another thread'))

    thread.start()
    thread.join()

    self.assertNotIn('from another thread', _read(self.logger.get_log()))

  def test_close_log_removes_file_and_handler(self):
    self.logger.init()
    path = self.logger.path

    self.logger.close_log()

    self.assertFalse(os.path.exists(path))
    logging.info('after close')
    self.assertEqual(_read(self.logger.get_log()), '')

  def test_clone_is_a_fresh_logger_with_same_level(self):
    self.logger.init()

    clone = self.logger.clone()

    self.assertEqual(clone.log_level, logging.INFO)
    self.assertIsNone(clone.path)


if __name__ == '__main__':
  unittest.main()
