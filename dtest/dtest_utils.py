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

"""
Utility functions for dtest.
"""

import logging
import shlex
import sys
import time

from dtest import constants

_ANSI_RESET = '\033[0m'
_ANSI_FOREGROUND_BASE = 30
_ANSI_BACKGROUND_BASE = 40


def _is_tty(stream):
    isatty = getattr(stream, 'isatty', None)
    return bool(isatty and isatty())


def colorize(text, color, bp_color=None, stream=None):
    """Wraps text in the ANSI codes of the given colors.

    Args:
        text: A string to color.
        color: Foreground color, one of the color shifts in constants.py.
        bp_color: Optional background color, also a shift from constants.py.
        stream: The stream text is written to. Only a terminal gets colors.
          Defaults to sys.stdout.

    Returns:
        The colored text, or text unchanged when stream is not a terminal.
    """
    if not _is_tty(stream or sys.stdout):
        return text
    codes = ['1', str(_ANSI_FOREGROUND_BASE + color)]
    if bp_color is not None:
        codes.append(str(_ANSI_BACKGROUND_BASE + bp_color))
    return '\033[%sm%s%s' % (';'.join(codes), text, _ANSI_RESET)


def colorful_print(text, color, bp_color=None, auto_wrap=True):
    """Prints text in color to stdout, without newline if auto_wrap is off."""
    print(colorize(text, color, bp_color), end='\n' if auto_wrap else '')


def _print_and_log(level, color, stream, msg, args):
    text = msg % args if args else str(msg)
    print(colorize(text, color, stream=stream) if color is not None else text,
          file=stream)
    logging.log(level, text)


def print_and_log_error(error, *args):
    """Print error message to stderr and log error message."""
    _print_and_log(logging.ERROR, constants.RED, sys.stderr, error, args)


def print_and_log_warning(warning, *args):
    """Print warning message to stderr and log warning message."""
    _print_and_log(logging.WARNING, constants.YELLOW, sys.stderr, warning,
                   args)


def print_and_log_info(info, *args):
    """Print info message to stdout and log it."""
    _print_and_log(logging.INFO, None, sys.stdout, info, args)


def quote(input_str):
    """Escape a string so the device shell treats it as a single word.

    e.g. testFoo$bar -> 'testFoo$bar'
    """
    return shlex.quote(input_str)


def current_time_ms():
    """Returns the wall clock time in milliseconds."""
    return int(time.time() * 1000)


def elapsed_ms(start_ms):
    return current_time_ms() - start_ms
