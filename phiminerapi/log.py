"""Console logging with coloured channel prefixes and per-thread names."""

from __future__ import annotations

import re
import sys
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, TextIO

__all__ = [
    "LOG_JSON",
    "LOG_PER_GPU",
    "LOG_NEXT",
    "LOG_PROGRAMFLOW",
    "Color",
    "LogChannel",
    "LogSettings",
    "default_settings",
    "strip_ansi",
    "simple_debug_out",
    "get_thread_name",
    "set_thread_name",
    "format_prefix",
    "log",
    "cnote",
    "cwarn",
]

# Verbosity option bits.
LOG_JSON = 1
LOG_PER_GPU = 2
LOG_NEXT = 4
LOG_PROGRAMFLOW = 256


class Color(str, Enum):
    """ANSI terminal escape sequences."""

    RESET = "\x1b[0m"

    BLACK = "\x1b[30m"
    COAL = "\x1b[90m"
    GRAY = "\x1b[37m"
    WHITE = "\x1b[97m"
    MAROON = "\x1b[31m"
    RED = "\x1b[91m"
    GREEN = "\x1b[32m"
    LIME = "\x1b[92m"
    ORANGE = "\x1b[33m"
    YELLOW = "\x1b[93m"
    NAVY = "\x1b[34m"
    BLUE = "\x1b[94m"
    VIOLET = "\x1b[35m"
    PURPLE = "\x1b[95m"
    TEAL = "\x1b[36m"
    CYAN = "\x1b[96m"

    BLACK_BOLD = "\x1b[1;30m"
    COAL_BOLD = "\x1b[1;90m"
    GRAY_BOLD = "\x1b[1;37m"
    WHITE_BOLD = "\x1b[1;97m"
    MAROON_BOLD = "\x1b[1;31m"
    RED_BOLD = "\x1b[1;91m"
    GREEN_BOLD = "\x1b[1;32m"
    LIME_BOLD = "\x1b[1;92m"
    ORANGE_BOLD = "\x1b[1;33m"
    YELLOW_BOLD = "\x1b[1;93m"
    NAVY_BOLD = "\x1b[1;34m"
    BLUE_BOLD = "\x1b[1;94m"
    VIOLET_BOLD = "\x1b[1;35m"
    PURPLE_BOLD = "\x1b[1;95m"
    TEAL_BOLD = "\x1b[1;36m"
    CYAN_BOLD = "\x1b[1;96m"

    ON_BLACK = "\x1b[40m"
    ON_COAL = "\x1b[100m"
    ON_GRAY = "\x1b[47m"
    ON_WHITE = "\x1b[107m"
    ON_MAROON = "\x1b[41m"
    ON_RED = "\x1b[101m"
    ON_GREEN = "\x1b[42m"
    ON_LIME = "\x1b[102m"
    ON_ORANGE = "\x1b[43m"
    ON_YELLOW = "\x1b[103m"
    ON_NAVY = "\x1b[44m"
    ON_BLUE = "\x1b[104m"
    ON_VIOLET = "\x1b[45m"
    ON_PURPLE = "\x1b[105m"
    ON_TEAL = "\x1b[46m"
    ON_CYAN = "\x1b[106m"

    BLACK_UNDER = "\x1b[4;30m"
    GRAY_UNDER = "\x1b[4;37m"
    MAROON_UNDER = "\x1b[4;31m"
    GREEN_UNDER = "\x1b[4;32m"
    ORANGE_UNDER = "\x1b[4;33m"
    NAVY_UNDER = "\x1b[4;34m"
    VIOLET_UNDER = "\x1b[4;35m"
    TEAL_UNDER = "\x1b[4;36m"

    def __str__(self) -> str:
        return self.value


class LogChannel(Enum):
    """Log channels; each value is the coloured tag that starts a line."""

    LOG = Color.GRAY.value + ".."
    WARN = Color.RED.value + " X"
    NOTE = Color.BLUE.value + " i"

    @property
    def label(self) -> str:
        return self.value


@dataclass
class LogSettings:
    """Process-wide logging switches."""

    options: int = 0
    no_color: bool = False
    syslog: bool = False
    stdout: bool = False


default_settings = LogSettings()

_ANSI_SEQUENCE = re.compile("\x1b[^m]*m?")


def strip_ansi(text: str) -> str:
    """Remove every escape sequence running from ESC up to and including ``m``."""
    return _ANSI_SEQUENCE.sub("", text)


def simple_debug_out(
    text: str, settings: LogSettings | None = None, stream: TextIO | None = None
) -> None:
    """Write one log line, stripping colours if the settings ask for it.

    Without an explicit stream the line goes to stdout or stderr as configured.
    Output errors are swallowed.
    """
    settings = settings or default_settings
    if stream is None:
        stream = sys.stdout if settings.stdout else sys.stderr
    line = strip_ansi(text) if settings.no_color else text
    try:
        stream.write(line + "\n")
        stream.flush()
    except Exception:
        return


def get_thread_name() -> str:
    """Name of the calling thread as used in log lines."""
    return threading.current_thread().name


def set_thread_name(name: str) -> None:
    """Rename the calling thread for log lines."""
    threading.current_thread().name = name


def format_prefix(channel: LogChannel, settings: LogSettings | None = None) -> str:
    """Build the start of a log line: channel tag, time and thread name."""
    settings = settings or default_settings
    thread_name = get_thread_name()
    if settings.syslog:
        return f"{thread_name:<8} {Color.RESET.value}"
    stamp = time.strftime("%X", time.localtime())
    return (
        f"{channel.label} {Color.VIOLET.value}{stamp} {Color.BLUE.value}"
        f"{thread_name:<9} {Color.RESET.value}"
    )


def log(channel: LogChannel, *args: Any) -> str:
    """Write the concatenation of ``args`` on ``channel``; returns the line composed."""
    line = format_prefix(channel, default_settings) + "".join(str(arg) for arg in args)
    simple_debug_out(line, default_settings)
    return line


def cnote(*args: Any) -> str:
    """Log on the note channel."""
    return log(LogChannel.NOTE, *args)


def cwarn(*args: Any) -> str:
    """Log on the warning channel."""
    return log(LogChannel.WARN, *args)