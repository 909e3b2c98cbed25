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

"""Schedules commands on the devices of a device pool.

A command is a factory of Configurations. Each time the command runs, the
factory builds a fresh Configuration, which is invoked on its own thread with
one device. Commands that have used the least device time run first.
"""

from __future__ import annotations

import itertools
import logging
import queue
import threading
from typing import Callable, List, Optional

from dtest import dtest_error
from dtest import dtest_utils
from dtest.dtest_enum import FreeDeviceState
from dtest.invoker import rescheduler
from dtest.invoker import test_invocation

# Delay before retrying a command no device was free for.
NO_DEVICE_DELAY_MS = 20
COMMAND_POLL_TIME_S = 1


class DevicePool:
  """Hands out devices, one invocation at a time per device."""

  def __init__(self, devices=()):
    self._lock = threading.Lock()
    self._available = list(devices)
    self._allocated = []

  def allocate_device(self):
    """Returns a free device, or None if every device is in use."""
    with self._lock:
      if not self._available:
        return None
      device = self._available.pop(0)
      self._allocated.append(device)
      return device

  def free_device(self, device, state: FreeDeviceState):
    with self._lock:
      self._allocated.remove(device)
      if state is FreeDeviceState.AVAILABLE:
        self._available.append(device)
      else:
        logging.warning('Device %s is %s, removing it from the pool',
                        device.serial_number, state.value)

  def has_devices(self):
    """Whether any device, free or in use, is left in the pool."""
    with self._lock:
      return bool(self._available or self._allocated)

  @property
  def available_devices(self):
    with self._lock:
      return list(self._available)


class CommandTracker:
  """State shared by every execution of one command."""

  def __init__(self, config_factory: Callable, name: str):
    self.config_factory = config_factory
    self.name = name
    self._lock = threading.Lock()
    self._total_exec_time_ms = 0

  def increment_exec_time(self, exec_time_ms):
    with self._lock:
      self._total_exec_time_ms += exec_time_ms

  @property
  def total_exec_time_ms(self):
    with self._lock:
      return self._total_exec_time_ms


class ExecutableCommand:
  """One configuration of a command, waiting for a device."""

  def __init__(self, tracker: CommandTracker, config, rescheduled=False):
    self.tracker = tracker
    self.config = config
    # Resumed and retried work never starts a new loop iteration.
    self.rescheduled = rescheduled

  @property
  def is_loop_mode(self):
    return self.config.command_options.loop_mode


class _Rescheduler(rescheduler.Rescheduler):
  """Puts work of a running command back into the scheduler's queue."""

  def __init__(self, scheduler, command):
    self._scheduler = scheduler
    self._command = command

  def schedule_config(self, config):
    return self._scheduler.add_exec_command(
        ExecutableCommand(self._command.tracker, config, rescheduled=True))

  def reschedule_command(self):
    config = self._command.tracker.config_factory()
    config.command_options.retry_count = (
        self._command.config.command_options.retry_count + 1)
    return self._scheduler.add_exec_command(
        ExecutableCommand(self._command.tracker, config, rescheduled=True))


class InvocationThread(threading.Thread):
  """Runs one ExecutableCommand on one device."""

  def __init__(self, scheduler, device, command):
    super().__init__(name='Invocation-%s' % device.serial_number, daemon=True)
    self._scheduler = scheduler
    self.device = device
    self.command = command
    self.invocation = None

  def run(self):
    state = FreeDeviceState.AVAILABLE
    start_ms = dtest_utils.current_time_ms()
    self.invocation = self._scheduler.create_run_instance()
    tracker = self.command.tracker
    try:
      self.invocation.invoke(self.device, self.command.config,
                             _Rescheduler(self._scheduler, self.command))
    except dtest_error.DeviceUnresponsiveError as e:
      logging.warning('Device %s is unresponsive. Reason: %s',
                      self.device.serial_number, e)
      state = FreeDeviceState.UNRESPONSIVE
    except dtest_error.DeviceNotAvailableError as e:
      logging.warning('Device %s is not available. Reason: %s',
                      self.device.serial_number, e)
      state = FreeDeviceState.UNAVAILABLE
    except dtest_error.FatalHostError as e:
      logging.error('Fatal error occurred: %s, shutting down', e)
      self._scheduler.shutdown()
    except Exception:  # pylint: disable=broad-except
      logging.exception('Invocation of %s failed', tracker.name)
    finally:
      elapsed = dtest_utils.elapsed_ms(start_ms)
      logging.info("Updating command '%s' with elapsed time %d ms",
                   tracker.name, elapsed)
      tracker.increment_exec_time(elapsed)
      self._scheduler.invocation_done(self, state)


class CommandScheduler(threading.Thread):
  """Runs commands on the devices of a DevicePool until shut down.

  Loop mode commands are queued again every time they start, after their
  minimum loop time. Other commands are dropped once their invocation ends.
  """

  def __init__(self, device_pool: DevicePool):
    super().__init__(name='CommandScheduler', daemon=True)
    self._device_pool = device_pool
    self._lock = threading.RLock()
    self._queue = queue.PriorityQueue()
    self._sequence = itertools.count()
    self._all_commands: List[CommandTracker] = []
    self._invocation_threads: List[InvocationThread] = []
    self._timers: List[threading.Timer] = []
    self._shutdown = False
    self._shutdown_on_empty = False

  def create_run_instance(self):
    return test_invocation.TestInvocation()

  def add_command(self, config_factory: Callable, name: Optional[str] = None,
                  total_exec_time_ms: int = 0) -> bool:
    """Adds a command to the queue.

    Args:
        config_factory: A callable returning a new Configuration per run.
        name: Name of the command, for logging.
        total_exec_time_ms: Device time already used by the command.

    Returns:
        True if the command was queued.
    """
    config = config_factory()
    name = name or config.name
    if config.command_options.dry_run:
      logging.info('Dry run mode; not adding command: %s', name)
      return False
    tracker = CommandTracker(config_factory, name)
    tracker.increment_exec_time(total_exec_time_ms)
    with self._lock:
      if self._shutdown:
        return False
      self._all_commands.append(tracker)
    return self.add_exec_command(ExecutableCommand(tracker, config))

  def add_exec_command(self, command: ExecutableCommand,
                       delay_ms: int = 0) -> bool:
    """Queues command, right away or after delay_ms."""
    with self._lock:
      if self._shutdown:
        return False
      if delay_ms <= 0:
        self._enqueue(command)
        return True
      timer = threading.Timer(
          delay_ms / 1000, lambda: self._enqueue_delayed(command, timer))
      timer.daemon = True
      self._timers.append(timer)
      timer.start()
      return True

  def _enqueue(self, command):
    self._queue.put((command.tracker.total_exec_time_ms, next(self._sequence),
                     command))

  def _enqueue_delayed(self, command, timer):
    with self._lock:
      if timer in self._timers:
        self._timers.remove(timer)
      if not self._shutdown:
        self._enqueue(command)

  def _add_new_exec_command(self, tracker):
    config = tracker.config_factory()
    self.add_exec_command(ExecutableCommand(tracker, config),
                          config.command_options.min_loop_time_ms)

  def _dequeue(self):
    try:
      return self._queue.get(timeout=COMMAND_POLL_TIME_S)[2]
    except queue.Empty:
      return None

  def run(self):
    while not self.is_shutdown():
      self._check_shutdown_on_empty()
      command = self._dequeue()
      if command is None:
        continue
      device = self._device_pool.allocate_device()
      if device is None and not self._device_pool.has_devices():
        logging.error('No devices left to run %s, dropping it',
                      command.tracker.name)
        self._drop_command(command.tracker)
        continue
      if device is None:
        # Bump the exec time so commands take turns while devices are scarce.
        command.tracker.increment_exec_time(1)
        self.add_exec_command(command, NO_DEVICE_DELAY_MS)
        continue
      self._start_invocation(device, command)
      if command.is_loop_mode and not command.rescheduled:
        self._add_new_exec_command(command.tracker)
    logging.info('Waiting for invocation threads to complete')
    for thread in self.invocation_threads:
      thread.join()
    logging.info('All done')

  def _drop_command(self, tracker):
    with self._lock:
      if tracker in self._all_commands:
        self._all_commands.remove(tracker)

  def _start_invocation(self, device, command):
    thread = InvocationThread(self, device, command)
    with self._lock:
      self._invocation_threads.append(thread)
    thread.start()
    return thread

  def invocation_done(self, thread: InvocationThread, state: FreeDeviceState):
    """Called by an InvocationThread once its invocation has ended."""
    with self._lock:
      tracker = thread.command.tracker
      if not thread.command.is_loop_mode and tracker in self._all_commands:
        self._all_commands.remove(tracker)
      self._device_pool.free_device(thread.device, state)
      self._invocation_threads.remove(thread)

  @property
  def invocation_threads(self):
    with self._lock:
      return list(self._invocation_threads)

  @property
  def commands(self):
    with self._lock:
      return list(self._all_commands)

  def _check_shutdown_on_empty(self):
    with self._lock:
      # Resumed and retried work is queued without being a new command.
      if (self._shutdown_on_empty and not self._all_commands and
          not self._invocation_threads and not self._timers and
          self._queue.empty()):
        logging.info('No commands left, shutting down')
        self.shutdown()

  def shutdown_on_empty(self):
    """Shuts down once every command has run and every invocation ended."""
    with self._lock:
      self._shutdown_on_empty = True

  def is_shutdown(self):
    with self._lock:
      return self._shutdown

  def shutdown(self):
    """Stops accepting commands and drops the queued ones.

    Running invocations are allowed to finish.
    """
    with self._lock:
      if self._shutdown:
        return
      self._shutdown = True
      for timer in self._timers:
        timer.cancel()
      self._timers.clear()
      self._all_commands.clear()
      while True:
        try:
          self._queue.get_nowait()
        except queue.Empty:
          break
