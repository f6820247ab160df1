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
"""Per-unit advisory locks."""
import typing
import fcntl
import os
import types

import libenclave.errors
import libenclave.helpers_object


class UnitLock:
    """
    Exclusive advisory lock of a unit.

    The lock is a flock(2) on a file named after the unit in the lock
    directory. Acquiring a lock that is held elsewhere fails immediately
    with UnitLocked. The lock file is left in place, so that concurrent
    processes always lock the same inode.
    """

    _fd: typing.Optional[typing.TextIO]

    def __init__(
        self,
        name: str,
        lock_directory: str,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        self.logger = libenclave.helpers_object.init_logger(self, logger)
        self.name = name
        self.lock_directory = lock_directory
        self._fd = None

    @property
    def path(self) -> str:
        """Return the path of the lock file."""
        return os.path.join(self.lock_directory, f"{self.name}.lock")

    @property
    def locked(self) -> bool:
        """Return True while this instance holds the lock."""
        return self._fd is not None

    def acquire(self) -> None:
        """Acquire the lock or raise UnitLocked."""
        if self._fd is not None:
            return
        os.makedirs(self.lock_directory, mode=0o700, exist_ok=True)
        fd = open(self.path, "a+", encoding="utf-8")
        try:
            fcntl.flock(fd.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError:
            fd.close()
            raise libenclave.errors.UnitLocked(
                name=self.name,
                logger=self.logger
            )
        fd.seek(0)
        fd.truncate()
        fd.write(f"{os.getpid()}\n")
        fd.flush()
        self._fd = fd
        self.logger.spam(f"Acquired lock {self.path}")

    def release(self) -> None:
        """Release the lock if held."""
        if self._fd is None:
            return
        fcntl.flock(self._fd.fileno(), fcntl.LOCK_UN)
        self._fd.close()
        self._fd = None
        self.logger.spam(f"Released lock {self.path}")

    def __enter__(self) -> 'UnitLock':
        """Acquire the lock when entering the context."""
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: typing.Optional[typing.Type[BaseException]],
        exc_value: typing.Optional[BaseException],
        traceback: typing.Optional[types.TracebackType]
    ) -> None:
        """Release the lock when leaving the context."""
        self.release()
