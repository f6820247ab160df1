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
"""External process supervisors running units."""
import typing
import os
import os.path
import signal
import time

import libenclave.helpers
import libenclave.helpers_object


class Supervisor:
    """
    Interface of the process supervisor of a kind of unit.

    A supervisor launches a unit from its descriptor file, shuts it down
    gracefully and reports whether it is running.
    """

    def __init__(
        self,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        self.logger = libenclave.helpers_object.init_logger(self, logger)

    def launch(self, name: str, descriptor_path: str) -> None:
        """Start the unit from its descriptor."""
        raise NotImplementedError("To be implemented by inheriting classes")

    def shutdown(self, name: str, descriptor_path: str, timeout: int) -> None:
        """Stop the unit gracefully."""
        raise NotImplementedError("To be implemented by inheriting classes")

    def running(self, name: str) -> bool:
        """Return True if the unit is running."""
        raise NotImplementedError("To be implemented by inheriting classes")

    def pid(self, name: str) -> typing.Optional[int]:
        """Return the pid that accounts for the unit or None."""
        return None

    def wait_pid(self, name: str, timeout: int) -> typing.Optional[int]:
        """Return the pid of a just launched unit or None."""
        return self.pid(name)

    def exec(
        self,
        name: str,
        command: typing.List[str]
    ) -> libenclave.helpers.CommandOutput:
        """Execute a command in the unit and return its output."""
        raise NotImplementedError("To be implemented by inheriting classes")

    def attach(
        self,
        name: str,
        command: typing.Optional[typing.List[str]]=None
    ) -> libenclave.helpers.CommandOutput:
        """Attach the current terminal to the unit."""
        raise NotImplementedError("To be implemented by inheriting classes")


class JailSupervisor(Supervisor):
    """Run jails with jail(8)."""

    jail_command = "/usr/sbin/jail"
    jls_command = "/usr/sbin/jls"
    jexec_command = "/usr/sbin/jexec"

    def launch(self, name: str, descriptor_path: str) -> None:
        """Create the jail from its jail.conf descriptor."""
        libenclave.helpers.exec(
            [self.jail_command, "-f", descriptor_path, "-c", name],
            logger=self.logger
        )

    def shutdown(self, name: str, descriptor_path: str, timeout: int) -> None:
        """Remove the jail, running its stop commands first."""
        libenclave.helpers.exec(
            [self.jail_command, "-f", descriptor_path, "-r", name],
            logger=self.logger
        )

    def running(self, name: str) -> bool:
        """Return True if a jail with the name exists."""
        _, _, returncode = libenclave.helpers.exec(
            [self.jls_command, "-j", name, "jid"],
            logger=self.logger,
            ignore_error=True
        )
        return (returncode == 0) is True

    def exec(
        self,
        name: str,
        command: typing.List[str]
    ) -> libenclave.helpers.CommandOutput:
        """Execute a command in the jail and return its output."""
        return libenclave.helpers.exec(
            [self.jexec_command, name] + command,
            logger=self.logger
        )

    def attach(
        self,
        name: str,
        command: typing.Optional[typing.List[str]]=None
    ) -> libenclave.helpers.CommandOutput:
        """Run a command or a login shell attached to the terminal."""
        if (command is None) or (len(command) == 0):
            command = ["/usr/bin/login", "-f", "root"]
        return libenclave.helpers.exec_passthru(
            [self.jexec_command, name] + command,
            logger=self.logger
        )


class BhyveSupervisor(Supervisor):
    """
    Run virtual machines with bhyve(8).

    The hypervisor is daemonized with daemon(8) which records its pid in a
    pid file. The virtual machine is shut down with SIGTERM, which bhyve
    translates into an ACPI power button press, and destroyed forcefully
    when the guest did not power off in time.
    """

    daemon_command = "/usr/sbin/daemon"
    bhyve_command = "/usr/sbin/bhyve"
    bhyvectl_command = "/usr/sbin/bhyvectl"
    cu_command = "/usr/bin/cu"
    vmm_directory = "/dev/vmm"

    def __init__(
        self,
        pid_directory: str="/var/run/enclave",
        poll_interval: float=0.5,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        self.pid_directory = pid_directory
        self.poll_interval = poll_interval
        Supervisor.__init__(self, logger=logger)

    def pidfile(self, name: str) -> str:
        """Return the path of the hypervisor pid file."""
        return os.path.join(self.pid_directory, f"{name}.pid")

    def console_device(self, name: str) -> str:
        """Return the host side of the serial console device."""
        return f"/dev/nmdm-{name}.1B"

    def launch(self, name: str, descriptor_path: str) -> None:
        """Start the hypervisor in the background."""
        os.makedirs(self.pid_directory, mode=0o700, exist_ok=True)
        libenclave.helpers.exec(
            [
                self.daemon_command,
                "-p", self.pidfile(name),
                self.bhyve_command,
                "-k", descriptor_path
            ],
            logger=self.logger
        )

    def pid(self, name: str) -> typing.Optional[int]:
        """Return the pid of the hypervisor process or None."""
        try:
            with open(self.pidfile(name), "r", encoding="utf-8") as f:
                return int(f.read().strip())
        except (FileNotFoundError, ValueError):
            return None

    def wait_pid(self, name: str, timeout: int) -> typing.Optional[int]:
        """
        Wait up to timeout seconds for the hypervisor pid.

        daemon(8) returns before the pid of its child was written, so the
        pid file may not exist or still be empty right after launch.
        """
        deadline = time.monotonic() + timeout
        pid = self.pid(name)
        while (pid is None) and (time.monotonic() < deadline):
            time.sleep(self.poll_interval)
            pid = self.pid(name)
        return pid

    def running(self, name: str) -> bool:
        """Return True if the kernel knows the virtual machine."""
        return os.path.exists(f"{self.vmm_directory}/{name}")

    def shutdown(self, name: str, descriptor_path: str, timeout: int) -> None:
        """Power off the guest and wait up to timeout seconds."""
        pid = self.pid(name)
        if pid is not None:
            try:
                os.kill(pid, signal.SIGTERM)
            except ProcessLookupError:
                self.logger.debug(f"Hypervisor process {pid} already gone")

        deadline = time.monotonic() + timeout
        while (self.running(name) is True) and (time.monotonic() < deadline):
            time.sleep(self.poll_interval)

        if self.running(name) is True:
            self.logger.warn(
                f"VM {name} did not power off within {timeout} seconds"
            )
            libenclave.helpers.exec(
                [self.bhyvectl_command, "--destroy", f"--vm={name}"],
                logger=self.logger
            )

        if os.path.isfile(self.pidfile(name)):
            os.remove(self.pidfile(name))

    def attach(
        self,
        name: str,
        command: typing.Optional[typing.List[str]]=None
    ) -> libenclave.helpers.CommandOutput:
        """Attach the terminal to the serial console."""
        return libenclave.helpers.exec_passthru(
            [self.cu_command, "-l", self.console_device(name)],
            logger=self.logger
        )
