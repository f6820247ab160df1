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
"""Unit tests for the process supervisors."""
import typing
import os
import os.path
import signal

import pytest

import libenclave.Supervisor


@pytest.fixture
def bhyve(
    tmpdir: typing.Any,
    logger: 'libenclave.Logger.Logger'
) -> libenclave.Supervisor.BhyveSupervisor:
    """Return a bhyve supervisor with state directories below tmpdir."""
    supervisor = libenclave.Supervisor.BhyveSupervisor(
        pid_directory=os.path.join(str(tmpdir), "run"),
        poll_interval=0,
        logger=logger
    )
    supervisor.vmm_directory = os.path.join(str(tmpdir), "vmm")
    os.makedirs(supervisor.vmm_directory)
    return supervisor


class TestJailSupervisor(object):
    """Run tests for the jail(8) supervisor."""

    def test_commands(
        self,
        logger: 'libenclave.Logger.Logger',
        commands: typing.Any
    ) -> None:

        supervisor = libenclave.Supervisor.JailSupervisor(logger=logger)

        supervisor.launch("web01", "/etc/enclave/web01.conf")
        supervisor.exec("web01", ["/bin/hostname"])
        supervisor.shutdown("web01", "/etc/enclave/web01.conf", timeout=10)

        assert commands.commands == [
            ["/usr/sbin/jail", "-f", "/etc/enclave/web01.conf", "-c", "web01"],
            ["/usr/sbin/jexec", "web01", "/bin/hostname"],
            ["/usr/sbin/jail", "-f", "/etc/enclave/web01.conf", "-r", "web01"]
        ]

    def test_running(
        self,
        logger: 'libenclave.Logger.Logger',
        commands: typing.Any
    ) -> None:

        supervisor = libenclave.Supervisor.JailSupervisor(logger=logger)

        assert supervisor.running("web01") is True

        commands.respond(
            ["/usr/sbin/jls", "-j", "web01"],
            stderr="jls: jail \"web01\" not found",
            returncode=1
        )
        assert supervisor.running("web01") is False

    def test_attach_defaults_to_a_login_shell(
        self,
        logger: 'libenclave.Logger.Logger',
        commands: typing.Any
    ) -> None:

        supervisor = libenclave.Supervisor.JailSupervisor(logger=logger)

        supervisor.attach("web01")
        supervisor.attach("web01", ["/bin/sh"])

        assert commands.passthru_commands == [
            ["/usr/sbin/jexec", "web01", "/usr/bin/login", "-f", "root"],
            ["/usr/sbin/jexec", "web01", "/bin/sh"]
        ]


class TestBhyveSupervisor(object):
    """Run tests for the bhyve(8) supervisor."""

    def test_launch(
        self,
        bhyve: libenclave.Supervisor.BhyveSupervisor,
        commands: typing.Any
    ) -> None:

        bhyve.launch("vm01", "/etc/enclave/vm01.conf")

        assert commands.commands == [[
            "/usr/sbin/daemon",
            "-p", bhyve.pidfile("vm01"),
            "/usr/sbin/bhyve",
            "-k", "/etc/enclave/vm01.conf"
        ]]
        assert os.path.isdir(bhyve.pid_directory) is True

    def test_pid(
        self,
        bhyve: libenclave.Supervisor.BhyveSupervisor
    ) -> None:

        assert bhyve.pid("vm01") is None

        os.makedirs(bhyve.pid_directory)
        with open(bhyve.pidfile("vm01"), "w") as f:
            f.write("4242\n")

        assert bhyve.pid("vm01") == 4242

    def test_wait_pid_until_daemon_wrote_it(
        self,
        bhyve: libenclave.Supervisor.BhyveSupervisor,
        monkeypatch: typing.Any
    ) -> None:

        os.makedirs(bhyve.pid_directory)
        open(bhyve.pidfile("vm01"), "w").close()

        assert bhyve.pid("vm01") is None
        assert bhyve.wait_pid("vm01", timeout=0) is None

        sleeps: typing.List[float] = []

        def _sleep(seconds: float) -> None:
            sleeps.append(seconds)
            if len(sleeps) == 2:
                with open(bhyve.pidfile("vm01"), "w") as f:
                    f.write("4242\n")

        monkeypatch.setattr(libenclave.Supervisor.time, "sleep", _sleep)

        assert bhyve.wait_pid("vm01", timeout=60) == 4242
        assert len(sleeps) == 2

    def test_running(
        self,
        bhyve: libenclave.Supervisor.BhyveSupervisor
    ) -> None:

        assert bhyve.running("vm01") is False

        open(os.path.join(bhyve.vmm_directory, "vm01"), "w").close()

        assert bhyve.running("vm01") is True

    def test_graceful_shutdown(
        self,
        bhyve: libenclave.Supervisor.BhyveSupervisor,
        monkeypatch: typing.Any,
        commands: typing.Any
    ) -> None:

        vmm_device = os.path.join(bhyve.vmm_directory, "vm01")
        open(vmm_device, "w").close()
        os.makedirs(bhyve.pid_directory)
        with open(bhyve.pidfile("vm01"), "w") as f:
            f.write("4242\n")

        signals: typing.List[typing.Tuple[int, int]] = []

        def _kill(pid: int, signum: int) -> None:
            signals.append((pid, signum))
            os.remove(vmm_device)

        monkeypatch.setattr(libenclave.Supervisor.os, "kill", _kill)

        bhyve.shutdown("vm01", "/etc/enclave/vm01.conf", timeout=10)

        assert signals == [(4242, signal.SIGTERM)]
        assert commands.find("/usr/sbin/bhyvectl") == []
        assert os.path.exists(bhyve.pidfile("vm01")) is False

    def test_forced_shutdown_after_timeout(
        self,
        bhyve: libenclave.Supervisor.BhyveSupervisor,
        commands: typing.Any
    ) -> None:

        open(os.path.join(bhyve.vmm_directory, "vm01"), "w").close()

        bhyve.shutdown("vm01", "/etc/enclave/vm01.conf", timeout=0)

        assert commands.find("/usr/sbin/bhyvectl") == [
            ["/usr/sbin/bhyvectl", "--destroy", "--vm=vm01"]
        ]

    def test_console(
        self,
        bhyve: libenclave.Supervisor.BhyveSupervisor,
        commands: typing.Any
    ) -> None:

        bhyve.attach("vm01")

        assert commands.passthru_commands == [
            ["/usr/bin/cu", "-l", "/dev/nmdm-vm01.1B"]
        ]
