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

"""Log data types and the stream sources used to hand log data around."""

from abc import ABC, abstractmethod
import enum
import io
import os


@enum.unique
class LogDataType(enum.Enum):
  """Represents the data type of log data."""

  TEXT = ('txt', False, True)
  XML = ('xml', False, True)
  PNG = ('png', True, False)
  ZIP = ('zip', True, False)
  GZIP = ('gz', True, False)
  BUGREPORT = ('bugreport.txt', False, True)
  COVERAGE = ('ec', False, False)
  UNKNOWN = ('dat', False, False)

  def __init__(self, file_ext, compressed, text):
    self.file_ext = file_ext
    self.is_compressed = compressed
    self.is_text = text


class InputStreamSource(ABC):
  """A source of log data that can be read any number of times."""

  @abstractmethod
  def create_input_stream(self) -> io.BufferedIOBase:
    """Returns a new binary stream positioned at the start of the data."""

  def cancel(self):
    """Releases any resources held by the source."""

  def size(self) -> int:
    with self.create_input_stream() as stream:
      return len(stream.read())


class ByteArrayInputStreamSource(InputStreamSource):
  """An InputStreamSource backed by an in-memory bytes value."""

  def __init__(self, data: bytes):
    self._data = data

  def create_input_stream(self):
    return io.BytesIO(self._data)

  def size(self):
    return len(self._data)


class FileInputStreamSource(InputStreamSource):
  """An InputStreamSource backed by a file on the host.

  If delete_on_cancel is set, cancel() removes the file.
  """

  def __init__(self, path, delete_on_cancel=False):
    self._path = path
    self._delete_on_cancel = delete_on_cancel

  @property
  def path(self):
    return self._path

  def create_input_stream(self):
    if not os.path.exists(self._path):
      return io.BytesIO(b'')
    return open(self._path, 'rb')

  def cancel(self):
    if self._delete_on_cancel and os.path.exists(self._path):
      os.remove(self._path)

  def size(self):
    if not os.path.exists(self._path):
      return 0
    return os.path.getsize(self._path)


EMPTY_SOURCE = ByteArrayInputStreamSource(b'')
