# Copyright (c) 2017-2019, Stefan Grönke
# Copyright (c) 2014-2018, iocage
# All rights reserved.
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted providing that the following conditions
# are met:
# 1. Redistributions of source code must retain the above copyright
#    notice, this list of conditions and the following disclaimer.
# 2. Redistributions in binary form must reproduce the above copyright
#    notice, this list of conditions and the following disclaimer in the
#    documentation and/or other materials provided with the distribution.
#
# THIS SOFTWARE IS PROVIDED BY THE AUTHOR ``AS IS'' AND ANY EXPRESS OR
# IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE IMPLIED
# WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE
# ARE DISCLAIMED.  IN NO EVENT SHALL THE AUTHOR BE LIABLE FOR ANY
# DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL
# DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF SUBSTITUTE GOODS
# OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION)
# HOWEVER CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN CONTRACT,
# STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING
# IN ANY WAY OUT OF THE USE OF THIS SOFTWARE, EVEN IF ADVISED OF THE
# POSSIBILITY OF SUCH DAMAGE.
"""Leveled console output of libenclave and the enclave CLI."""
import sys
import typing

import libenclave.errors

# ANSI color and weight of each log level
LEVEL_STYLES: typing.Dict[str, typing.Tuple[typing.Optional[int], bool]] = {
    "critical": (31, True),
    "error": (31, False),
    "warn": (33, False),
    "info": (None, False),
    "notice": (35, False),
    "verbose": (34, False),
    "debug": (32, False),
    "spam": (32, False),
    "screen": (None, False)
}


class LogEntry:
    """A printed message that can be edited while it is on screen."""

    def __init__(
        self,
        message: str,
        level: str,
        indent: int=0,
        logger: typing.Optional['Logger']=None
    ) -> None:
        self.message = message
        self.level = level
        self.indent = indent
        self.logger = logger

    def edit(
        self,
        message: typing.Optional[str]=None,
        indent: typing.Optional[int]=None
    ) -> None:
        """Replace the message or indentation and redraw the entry."""
        if self.logger is None:
            raise libenclave.errors.CannotRedrawLine(
                reason="No logger available"
            )
        if message is not None:
            self.message = message
        if indent is not None:
            self.indent = indent
        self.logger.redraw(self)

    def __len__(self) -> int:
        """Return the number of lines the entry occupies."""
        return len(self.message.splitlines())


class Logger:
    """
    Print messages of a level up to the configured print level.

    Levels from most to least important are critical, error, warn, info,
    notice, verbose, debug and spam. Entries of the special level screen
    are always printed and are the only ones that can be redrawn, which is
    how the CLI updates the progress line of a running event in place.
    """

    LOG_LEVELS = (
        "critical",
        "error",
        "warn",
        "info",
        "notice",
        "verbose",
        "debug",
        "spam",
        "screen"
    )

    INDENT = "  "

    PRINT_HISTORY: typing.List[LogEntry]

    def __init__(
        self,
        print_level: typing.Optional[str]=None,
        stream: typing.Optional[typing.TextIO]=None
    ) -> None:
        self._print_level: typing.Optional[str] = None
        self.print_level = print_level
        self.stream = stream
        self.PRINT_HISTORY = []

    @property
    def print_level(self) -> str:
        """Return the print level, info unless configured."""
        return self._print_level or "info"

    @print_level.setter
    def print_level(self, value: typing.Optional[str]) -> None:
        if (value is not None) and (value not in self.LOG_LEVELS):
            raise libenclave.errors.InvalidLogLevel(log_level=value)
        self._print_level = value

    def log(
        self,
        message: str,
        level: str="info",
        indent: int=0
    ) -> LogEntry:
        """Print a message when its level is within the print level."""
        log_entry = LogEntry(
            message=message,
            level=level,
            indent=indent,
            logger=self
        )
        if self._is_printed(level):
            print(self._format(log_entry), file=self._stream)
            self.PRINT_HISTORY.append(log_entry)
        return log_entry

    def critical(self, message: str, indent: int=0) -> LogEntry:
        """Log a critical message."""
        return self.log(message, level="critical", indent=indent)

    def error(self, message: str, indent: int=0) -> LogEntry:
        """Log an error."""
        return self.log(message, level="error", indent=indent)

    def warn(self, message: str, indent: int=0) -> LogEntry:
        """Log a warning."""
        return self.log(message, level="warn", indent=indent)

    def info(self, message: str, indent: int=0) -> LogEntry:
        """Log an informational message."""
        return self.log(message, level="info", indent=indent)

    def notice(self, message: str, indent: int=0) -> LogEntry:
        """Log a notice."""
        return self.log(message, level="notice", indent=indent)

    def verbose(self, message: str, indent: int=0) -> LogEntry:
        """Log a verbose message."""
        return self.log(message, level="verbose", indent=indent)

    def debug(self, message: str, indent: int=0) -> LogEntry:
        """Log a debug message."""
        return self.log(message, level="debug", indent=indent)

    def spam(self, message: str, indent: int=0) -> LogEntry:
        """Log executed commands and their output."""
        return self.log(message, level="spam", indent=indent)

    def screen(self, message: str, indent: int=0) -> LogEntry:
        """Print a redrawable message regardless of the print level."""
        return self.log(message, level="screen", indent=indent)

    def redraw(self, log_entry: LogEntry) -> None:
        """Overwrite a screen entry that was printed before."""
        if log_entry not in self.PRINT_HISTORY:
            raise libenclave.errors.CannotRedrawLine(
                reason="Log entry not found in history"
            )
        if log_entry.level != "screen":
            raise libenclave.errors.CannotRedrawLine(
                reason=f"Only screen entries can be redrawn: {log_entry.level}"
            )

        # lines printed since the entry, the entry included
        index = self.PRINT_HISTORY.index(log_entry)
        lines_up = sum([len(x) for x in self.PRINT_HISTORY[index:]])

        self._stream.write("".join([
            f"\r\033[{lines_up}F\r",
            self._indent(log_entry.message, log_entry.indent),
            "\033[K",
            "\n" * lines_up,
            "\r"
        ]))

    @property
    def _stream(self) -> typing.TextIO:
        if self.stream is None:
            return sys.stdout
        return self.stream

    def _is_printed(self, level: str) -> bool:
        if level == "screen":
            return True
        levels = self.LOG_LEVELS
        return levels.index(level) <= levels.index(self.print_level)

    def _indent(self, message: str, indent: int) -> str:
        prefix = self.INDENT * indent
        return "\n".join([f"{prefix}{x}" for x in message.splitlines()])

    def _format(self, log_entry: LogEntry) -> str:
        message = self._indent(log_entry.message, log_entry.indent)
        color, bold = LEVEL_STYLES.get(log_entry.level, (None, False))
        if color is None:
            return message
        weight = "1;" if (bold is True) else ""
        return f"\033[{weight}{color}m{message}\033[0m"
