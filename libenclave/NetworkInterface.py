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
"""Model of host network interfaces managed by enclave."""
import typing
import shlex

import libenclave.helpers
import libenclave.helpers_object


class Interfaces:
    """
    The host interface namespace.

    Interfaces are listed, created, configured and destroyed with
    ifconfig(8). Cloned interfaces print their final name on creation or
    when renamed, which is returned to the caller.
    """

    ifconfig_command = "/sbin/ifconfig"

    def __init__(
        self,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        self.logger = libenclave.helpers_object.init_logger(self, logger)

    def names(self) -> typing.List[str]:
        """Return the names of all interfaces on the host."""
        stdout, _, _ = self._exec([self.ifconfig_command, "-l"])
        return str(stdout).split()

    def exists(self, name: str) -> bool:
        """Return True if the interface exists."""
        return name in self.names()

    def create(
        self,
        cloner: str,
        arguments: typing.List[str]=[]
    ) -> str:
        """Create a cloned interface and return its name."""
        stdout, _, _ = self._exec(
            [self.ifconfig_command, cloner, "create"] + arguments
        )
        return str(stdout).strip()

    def apply(
        self,
        name: str,
        arguments: typing.List[str]
    ) -> str:
        """Configure an interface and return its (possibly new) name."""
        stdout, _, _ = self._exec([self.ifconfig_command, name] + arguments)
        output = str(stdout or "").strip()
        return output if (output != "") else name

    def destroy(self, name: str) -> None:
        """Destroy a cloned interface."""
        self._exec([self.ifconfig_command, name, "destroy"])

    def _exec(
        self,
        command: typing.List[str]
    ) -> libenclave.helpers.CommandOutput:
        return libenclave.helpers.exec(command, logger=self.logger)


class NetworkInterface:
    """
    One ifconfig(8) invocation that creates or configures an interface.

    Settings are applied immediately unless auto_apply is disabled. After
    applying, name holds the current name of the interface, which is the
    name chosen by the cloner for created interfaces or the new name when
    the interface was renamed.
    """

    name: str
    settings: typing.List[typing.Tuple[str, str]]
    extra_settings: typing.List[str]

    def __init__(
        self,
        name: str,
        interfaces: 'Interfaces',
        create: bool=False,
        mtu: typing.Optional[int]=None,
        description: typing.Optional[str]=None,
        rename: typing.Optional[str]=None,
        addm: typing.Optional[typing.Union[str, typing.List[str]]]=None,
        vlan: typing.Optional[int]=None,
        vlandev: typing.Optional[str]=None,
        extra_settings: typing.Optional[typing.List[str]]=None,
        auto_apply: bool=True,
        logger: typing.Optional['libenclave.Logger.Logger']=None,
    ) -> None:

        self.logger = libenclave.helpers_object.init_logger(self, logger)
        self.interfaces = interfaces
        self.name = name
        self.create = create
        self.new_name = rename
        if extra_settings is None:
            extra_settings = ["up"]
        self.extra_settings = extra_settings

        self.settings = []
        if rename is not None:
            self.settings.append(("name", rename))
        if mtu:
            self.settings.append(("mtu", str(int(mtu))))
        if description:
            self.settings.append(("description", shlex.quote(description)))
        if vlan is not None:
            self.settings.append(("vlan", str(int(vlan))))
        if vlandev is not None:
            self.settings.append(("vlandev", vlandev))
        members = [addm] if isinstance(addm, str) else (addm or [])
        for member in members:
            self.settings.append(("addm", member))

        if auto_apply is True:
            self.apply()

    @property
    def arguments(self) -> typing.List[str]:
        """Return the ifconfig arguments of the settings."""
        arguments: typing.List[str] = []
        for key, value in self.settings:
            arguments += [key, value]
        return arguments + self.extra_settings

    def apply(self) -> None:
        """Run ifconfig with the settings and track the interface name."""
        if self.create is True:
            self.name = self.interfaces.create(self.name, self.arguments)
            self.create = False
        else:
            self.name = self.interfaces.apply(self.name, self.arguments)

        if self.new_name is not None:
            self.name = self.new_name
            self.new_name = None
            self.settings = [x for x in self.settings if x[0] != "name"]

    def destroy(self) -> None:
        """Destroy the interface."""
        self.interfaces.destroy(self.name)
