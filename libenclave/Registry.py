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
"""Process-wide host state shared by all units."""
import typing
import abc
import os
import re

import libenclave.helpers
import libenclave.helpers_object

DEVFS_RULESET_NAME = "enclave_vnet"
DEVFS_RULESET_RULES = [
    "add include $devfsrules_hide_all",
    "add include $devfsrules_unhide_basic",
    "add include $devfsrules_unhide_login",
    "add path 'bpf*' unhide"
]


class Registry(abc.ABC):
    """
    Host registry of enabled units and the shared device rule table.

    init() prepares the host once, enable() and disable() mutate the set of
    units that are started on boot, ensure_devfs_ruleset() makes sure the
    device class rules required by VNET jails exist and teardown() reverts
    everything init() and the units registered.
    """

    @abc.abstractmethod
    def init(self) -> None:
        """Prepare the host registry."""
        pass

    @abc.abstractmethod
    def enable(self, name: str) -> None:
        """Mark a unit to be started on boot."""
        pass

    @abc.abstractmethod
    def disable(self, name: str) -> None:
        """Remove a unit from the boot list."""
        pass

    @abc.abstractmethod
    def enabled(self) -> typing.List[str]:
        """Return the names of all enabled units."""
        pass

    @abc.abstractmethod
    def ensure_devfs_ruleset(self, number: int) -> bool:
        """Create the devfs ruleset unless it exists. True when changed."""
        pass

    @abc.abstractmethod
    def teardown(self) -> None:
        """Remove all host registry state."""
        pass

    def is_enabled(self, name: str) -> bool:
        """Return True if the unit is enabled."""
        return name in self.enabled()


class MemoryRegistry(Registry):
    """In-memory registry without host side effects."""

    def __init__(
        self,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        self.logger = libenclave.helpers_object.init_logger(self, logger)
        self.initialized = False
        self.units: typing.List[str] = []
        self.devfs_rulesets: typing.Dict[int, typing.List[str]] = {}

    def init(self) -> None:
        """Mark the registry initialized."""
        self.initialized = True

    def enable(self, name: str) -> None:
        """Add a unit to the list of enabled units."""
        if name not in self.units:
            self.units.append(name)

    def disable(self, name: str) -> None:
        """Remove a unit from the list of enabled units."""
        if name in self.units:
            self.units.remove(name)

    def enabled(self) -> typing.List[str]:
        """Return a copy of the list of enabled units."""
        return list(self.units)

    def ensure_devfs_ruleset(self, number: int) -> bool:
        """Store the devfs ruleset in memory."""
        if number in self.devfs_rulesets:
            return False
        self.devfs_rulesets[number] = list(DEVFS_RULESET_RULES)
        return True

    def teardown(self) -> None:
        """Forget all registry state."""
        self.initialized = False
        self.units = []
        self.devfs_rulesets = {}


class RCConfRegistry(Registry):
    """
    Registry stored in rc.conf and devfs.rules.

    Enabled units are listed in the enclave_list rc variable which is
    edited with sysrc(8). The devfs ruleset is appended to the devfs.rules
    file once and the devfs service is restarted afterwards.
    """

    sysrc_command = "/usr/sbin/sysrc"
    service_command = "/usr/sbin/service"
    list_variable = "enclave_list"
    enable_variable = "enclave_enable"

    RULESET_PATTERN = re.compile(
        r"^\[(?P<name>[a-z](?:[a-z0-9\-_]*[a-z0-9])?)=(?P<number>[0-9]+)\]"
    )

    def __init__(
        self,
        rc_conf_file: str="/etc/rc.conf",
        devfs_rules_file: str="/etc/devfs.rules",
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        self.logger = libenclave.helpers_object.init_logger(self, logger)
        self.rc_conf_file = rc_conf_file
        self.devfs_rules_file = devfs_rules_file

    def init(self) -> None:
        """Enable the enclave rc script."""
        self._sysrc(f"{self.enable_variable}=YES")

    def enable(self, name: str) -> None:
        """Append the unit to the enclave_list rc variable."""
        if self.is_enabled(name) is True:
            return
        self.logger.verbose(f"Enabling unit {name} on boot")
        self._sysrc(f"{self.list_variable}+={name}")

    def disable(self, name: str) -> None:
        """Remove the unit from the enclave_list rc variable."""
        if self.is_enabled(name) is False:
            return
        self.logger.verbose(f"Disabling unit {name} on boot")
        self._sysrc(f"{self.list_variable}-={name}")

    def enabled(self) -> typing.List[str]:
        """Return the units in the enclave_list rc variable."""
        stdout, _, returncode = libenclave.helpers.exec(
            [
                self.sysrc_command,
                "-f", self.rc_conf_file,
                "-n", self.list_variable
            ],
            logger=self.logger,
            ignore_error=True
        )
        if returncode > 0:
            # the variable is not set yet
            return []
        return str(stdout or "").split()

    def ensure_devfs_ruleset(self, number: int) -> bool:
        """Append the VNET devfs ruleset unless the number is taken."""
        if self._devfs_ruleset_numbers().get(number) is not None:
            self.logger.spam(f"devfs ruleset {number} already present")
            return False

        self.logger.verbose(
            f"Writing devfs ruleset {number} to {self.devfs_rules_file}"
        )
        lines = [f"[{DEVFS_RULESET_NAME}={number}]"] + DEVFS_RULESET_RULES
        with open(self.devfs_rules_file, "a", encoding="utf-8") as f:
            f.write("\n".join(lines) + "\n")
        self._restart_devfs_service()
        return True

    def teardown(self) -> None:
        """Remove rc variables and the devfs ruleset."""
        for variable in [self.list_variable, self.enable_variable]:
            self._sysrc("-x", variable, ignore_error=True)

        if os.path.isfile(self.devfs_rules_file) is False:
            return
        with open(self.devfs_rules_file, "r", encoding="utf-8") as f:
            lines = f.read().splitlines()
        output: typing.List[str] = []
        skipping = False
        for line in lines:
            match = self.RULESET_PATTERN.match(line.strip())
            if match is not None:
                skipping = (match.group("name") == DEVFS_RULESET_NAME)
            if skipping is False:
                output.append(line)
        if output == lines:
            return
        with open(self.devfs_rules_file, "w", encoding="utf-8") as f:
            f.write("\n".join(output) + ("\n" if output else ""))
        self._restart_devfs_service()

    def _devfs_ruleset_numbers(self) -> typing.Dict[int, str]:
        numbers: typing.Dict[int, str] = {}
        if os.path.isfile(self.devfs_rules_file) is False:
            return numbers
        with open(self.devfs_rules_file, "r", encoding="utf-8") as f:
            for line in f.readlines():
                match = self.RULESET_PATTERN.match(line.strip())
                if match is not None:
                    numbers[int(match.group("number"))] = match.group("name")
        return numbers

    def _restart_devfs_service(self) -> None:
        self.logger.debug("Restarting devfs service")
        libenclave.helpers.exec(
            [self.service_command, "devfs", "restart"],
            logger=self.logger
        )

    def _sysrc(
        self,
        *args: str,
        ignore_error: bool=False
    ) -> libenclave.helpers.CommandOutput:
        return libenclave.helpers.exec(
            [self.sysrc_command, "-f", self.rc_conf_file] + list(args),
            logger=self.logger,
            ignore_error=ignore_error
        )
