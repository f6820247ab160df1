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
"""Unit tests for unit locks."""
import typing
import os
import os.path

import pytest

import libenclave.errors
import libenclave.Lock


@pytest.fixture
def lock_directory(tmpdir: typing.Any) -> str:
    """Return a lock directory below tmpdir."""
    return os.path.join(str(tmpdir), "locks")


class TestUnitLock(object):
    """Run tests for per-unit locks."""

    def test_acquire_and_release(
        self,
        lock_directory: str,
        logger: 'libenclave.Logger.Logger'
    ) -> None:

        lock = libenclave.Lock.UnitLock(
            "web01",
            lock_directory=lock_directory,
            logger=logger
        )

        lock.acquire()
        assert lock.locked is True
        assert lock.path == os.path.join(lock_directory, "web01.lock")
        with open(lock.path, "r") as f:
            assert f.read() == f"{os.getpid()}\n"

        lock.release()
        assert lock.locked is False
        assert os.path.isfile(lock.path) is True

    def test_second_lock_is_rejected(
        self,
        lock_directory: str,
        logger: 'libenclave.Logger.Logger'
    ) -> None:

        first = libenclave.Lock.UnitLock("web01", lock_directory, logger)
        second = libenclave.Lock.UnitLock("web01", lock_directory, logger)

        with first:
            with pytest.raises(libenclave.errors.UnitLocked):
                second.acquire()
            assert second.locked is False

        second.acquire()
        assert second.locked is True
        second.release()

    def test_locks_of_other_units_are_independent(
        self,
        lock_directory: str,
        logger: 'libenclave.Logger.Logger'
    ) -> None:

        with libenclave.Lock.UnitLock("web01", lock_directory, logger):
            with libenclave.Lock.UnitLock("web02", lock_directory, logger):
                pass

    def test_context_releases_on_error(
        self,
        lock_directory: str,
        logger: 'libenclave.Logger.Logger'
    ) -> None:

        lock = libenclave.Lock.UnitLock("web01", lock_directory, logger)

        with pytest.raises(RuntimeError):
            with lock:
                raise RuntimeError("failed")

        assert lock.locked is False

    def test_host_lock(
        self,
        host: 'libenclave.Host.Host'
    ) -> None:

        lock = host.lock("web01")

        assert lock.lock_directory == host.config["lock_directory"]
        assert lock.name == "web01"
