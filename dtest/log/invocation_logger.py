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

"""Captures the host log of a single invocation."""

import logging
import os
import tempfile
import threading

from dtest.result import log_data

LOG_FORMAT = '%(asctime)s %(filename)s:%(lineno)s:%(levelname)s: %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class _ThreadFilter(logging.Filter):
  """Keeps only the records emitted by one thread."""

  def __init__(self, thread_id):
    super().__init__()
    self._thread_id = thread_id

  def filter(self, record):
    return record.thread == self._thread_id


class InvocationLogger:
  """Writes the log records of the invocation thread to a temporary file.

  Several invocations can run at once on different threads; each one only
  sees its own records.
  """

  def __init__(self, log_level=logging.DEBUG):
    self._log_level = log_level
    self._handler = None
    self._path = None

  @property
  def log_level(self):
    return self._log_level

  @property
  def path(self):
    return self._path

  def init(self):
    """Starts capturing the records of the calling thread."""
    if self._handler is not None:
      return
    fd, self._path = tempfile.mkstemp(prefix='dtest_host_log_', suffix='.txt')
    os.close(fd)
    self._handler = logging.FileHandler(self._path, encoding='utf-8')
    self._handler.setLevel(self._log_level)
    self._handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    self._handler.addFilter(_ThreadFilter(threading.get_ident()))
    logging.getLogger().addHandler(self._handler)

  def get_log(self) -> log_data.InputStreamSource:
    """Returns a snapshot of what was captured so far."""
    if self._handler is None:
      return log_data.EMPTY_SOURCE
    self._handler.flush()
    with open(self._path, 'rb') as f:
      return log_data.ByteArrayInputStreamSource(f.read())

  def close_log(self):
    """Stops capturing and deletes the log file."""
    if self._handler is None:
      return
    logging.getLogger().removeHandler(self._handler)
    self._handler.close()
    self._handler = None
    if os.path.exists(self._path):
      os.remove(self._path)

  def clone(self) -> 'InvocationLogger':
    """Returns a new, not yet started logger with the same settings."""
    return InvocationLogger(self._log_level)
