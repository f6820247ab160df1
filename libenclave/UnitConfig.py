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
"""Configuration of a unit persisted as ZFS user properties."""
import typing
import ipaddress

import libenclave.Config
import libenclave.errors
import libenclave.helpers
import libenclave.helpers_object
import libenclave.Types

DEFAULTS: typing.Dict[str, typing.Any] = {
    "kind": "jail",
    "vlan": None,
    "ip4_addr": "dhcp",
    "defaultrouter": None,
    "pcpu": None,
    "memoryuse": None,
    "os_quota": None,
    "data_quota": None,
    "template": None,
    "template_snapshot": None,
    "cloudinit": False,
    "cpus": None,
    "firmware": None,
    "domain": None,
    "boot": True
}

# unset unit values that fall back to the host configuration
HOST_DEFAULTS: typing.Dict[str, str] = {
    "os_quota": "os_quota",
    "data_quota": "data_quota",
    "cpus": "vm_cpus",
    "firmware": "vm_firmware",
    "domain": "domain"
}

IPv4AddressInput = typing.Optional[typing.Union[
    str,
    ipaddress.IPv4Interface
]]


class UnitConfig:
    """
    Configuration of a unit.

    Values are normalized when they are set, so that invalid input raises
    InvalidUnitConfigValue before anything is persisted. The lookup order
    of values is ``_get_{key}`` methods, then stored data, then defaults.
    Stored values are written to and read from ZFS user properties with
    the same string normalization.
    """

    data: typing.Dict[str, typing.Any]
    host_config: typing.Dict[str, typing.Any]

    def __init__(
        self,
        name: str,
        data: typing.Optional[typing.Dict[str, typing.Any]]=None,
        host_config: typing.Optional[typing.Dict[str, typing.Any]]=None,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        self.logger = libenclave.helpers_object.init_logger(self, logger)
        self.data = {}
        if host_config is None:
            self.host_config = dict(libenclave.Config.DEFAULTS)
        else:
            self.host_config = host_config
        self["name"] = name
        if data is not None:
            self.read(data)

    @classmethod
    def from_properties(
        cls,
        name: str,
        properties: typing.Dict[str, str],
        host_config: typing.Optional[typing.Dict[str, typing.Any]]=None,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> 'UnitConfig':
        """Load a configuration from ZFS user properties."""
        known = {
            key: value for key, value in properties.items()
            if key in DEFAULTS
        }
        return cls(
            name=name,
            data=known,
            host_config=host_config,
            logger=logger
        )

    def read(self, data: typing.Dict[str, typing.Any]) -> None:
        """Set many values at once."""
        for key, value in data.items():
            self[key] = value

    def to_properties(self) -> typing.Dict[str, str]:
        """Return the stored values in ZFS user property format."""
        return {
            key: libenclave.helpers.to_string(
                self.data[key],
                true="yes",
                false="no",
                none="none"
            )
            for key in sorted(self.data.keys())
            if key != "name"
        }

    def resolve_defaults(self) -> None:
        """Store host defaults for unset values that have one."""
        for key, host_key in HOST_DEFAULTS.items():
            if self.data.get(key) is None:
                self[key] = self.host_config[host_key]

    def keys(self) -> typing.List[str]:
        """Return all known configuration keys."""
        return ["name"] + list(DEFAULTS.keys())

    def __contains__(self, key: typing.Any) -> bool:
        """Return True if the key is stored."""
        return key in self.data

    def __iter__(self) -> typing.Iterator[str]:
        """Iterate over all known configuration keys."""
        return iter(self.keys())

    def __getitem__(self, key: str) -> typing.Any:
        """Return a configuration value."""
        if (key != "name") and (key not in DEFAULTS):
            raise KeyError(f"Unknown unit config property: {key}")

        get_method_name = f"_get_{key}"
        if get_method_name in dir(self):
            return self.__getattribute__(get_method_name)()

        value = self.data.get(key, DEFAULTS.get(key))
        if (value is None) and (key in HOST_DEFAULTS):
            return self.host_config[HOST_DEFAULTS[key]]
        return value

    def __setitem__(self, key: str, value: typing.Any) -> None:
        """Normalize and store a configuration value."""
        if (key != "name") and (key not in DEFAULTS):
            raise libenclave.errors.InvalidUnitConfigValue(
                property_name=key,
                reason="unknown property",
                logger=self.logger
            )

        try:
            parsed_value = libenclave.helpers.parse_none(value)
        except TypeError:
            parsed_value = value

        setter_method_name = f"_set_{key}"
        try:
            if setter_method_name in dir(self):
                self.__getattribute__(setter_method_name)(parsed_value)
            else:
                self.data[key] = parsed_value
        except libenclave.errors.EnclaveException:
            raise
        except (TypeError, ValueError) as e:
            raise libenclave.errors.InvalidUnitConfigValue(
                property_name=key,
                reason=str(e),
                logger=self.logger
            )

    def _set_name(self, value: str) -> None:
        valid = (value is not None) and libenclave.helpers.validate_name(value)
        if valid is False:
            raise libenclave.errors.InvalidUnitName(
                name=str(value),
                logger=self.logger
            )
        self.data["name"] = value

    def _get_kind(self) -> libenclave.Types.UnitKind:
        return libenclave.Types.UnitKind(self.data.get("kind", "jail"))

    def _set_kind(
        self,
        value: typing.Union[str, libenclave.Types.UnitKind]
    ) -> None:
        self.data["kind"] = str(libenclave.Types.UnitKind(str(value)))

    def _set_vlan(
        self,
        value: typing.Optional[typing.Union[str, int]]
    ) -> None:
        if value is None:
            self.data["vlan"] = None
            return
        vlan = libenclave.helpers.parse_int(value)
        if (vlan < 1) or (vlan > 4094):
            raise ValueError("VLAN id must be between 1 and 4094")
        self.data["vlan"] = vlan

    def _get_vlan(self) -> typing.Optional[int]:
        value = self.data.get("vlan")
        return None if (value is None) else int(value)

    def _set_ip4_addr(self, value: IPv4AddressInput) -> None:
        if (value is None) or (str(value).lower() == "dhcp"):
            self.data["ip4_addr"] = "dhcp"
            return
        if "/" not in str(value):
            raise ValueError("the address requires a prefix length")
        self.data["ip4_addr"] = str(ipaddress.IPv4Interface(str(value)))

    def _get_ip4_addr(self) -> typing.Union[str, ipaddress.IPv4Interface]:
        value = self.data.get("ip4_addr", "dhcp")
        if value == "dhcp":
            return "dhcp"
        return ipaddress.IPv4Interface(value)

    def _get_dhcp(self) -> bool:
        return (self._get_ip4_addr() == "dhcp") is True

    @property
    def dhcp(self) -> bool:
        """Return True if the unit configures its address with DHCP."""
        return self._get_dhcp()

    def _set_defaultrouter(
        self,
        value: typing.Optional[typing.Union[str, ipaddress.IPv4Address]]
    ) -> None:
        if value is None:
            self.data["defaultrouter"] = None
            return
        self.data["defaultrouter"] = str(ipaddress.IPv4Address(str(value)))

    def _get_defaultrouter(self) -> typing.Optional[ipaddress.IPv4Address]:
        value = self.data.get("defaultrouter")
        if value is None:
            return None
        return ipaddress.IPv4Address(value)

    def _set_pcpu(
        self,
        value: typing.Optional[typing.Union[str, int]]
    ) -> None:
        if value is None:
            self.data["pcpu"] = None
            return
        pcpu = libenclave.helpers.parse_int(value)
        if (pcpu < 1) or (pcpu > 100):
            raise ValueError("CPU percentage must be between 1 and 100")
        self.data["pcpu"] = pcpu

    def _get_pcpu(self) -> typing.Optional[int]:
        value = self.data.get("pcpu")
        return None if (value is None) else int(value)

    def __set_size(self, key: str, value: typing.Optional[str]) -> None:
        if value is None:
            self.data[key] = None
            return
        libenclave.helpers.parse_size(value)
        self.data[key] = str(value).upper()

    def _set_memoryuse(self, value: typing.Optional[str]) -> None:
        self.__set_size("memoryuse", value)

    def _set_os_quota(self, value: typing.Optional[str]) -> None:
        self.__set_size("os_quota", value)

    def _set_data_quota(self, value: typing.Optional[str]) -> None:
        self.__set_size("data_quota", value)

    def _set_cpus(
        self,
        value: typing.Optional[typing.Union[str, int]]
    ) -> None:
        if value is None:
            self.data["cpus"] = None
            return
        cpus = libenclave.helpers.parse_int(value)
        if cpus < 1:
            raise ValueError("at least one CPU is required")
        self.data["cpus"] = cpus

    def _get_cpus(self) -> int:
        value = self.data.get("cpus")
        if value is None:
            value = self.host_config[HOST_DEFAULTS["cpus"]]
        return int(value)

    def _set_firmware(self, value: typing.Optional[str]) -> None:
        if value is None:
            self.data["firmware"] = None
            return
        self.data["firmware"] = str(libenclave.Types.AbsolutePath(value))

    def _set_boot(self, value: typing.Union[str, bool]) -> None:
        self.data["boot"] = libenclave.helpers.parse_bool(value)

    def _get_boot(self) -> bool:
        return libenclave.helpers.parse_bool(self.data.get("boot", True))

    def _set_cloudinit(self, value: typing.Union[str, bool]) -> None:
        self.data["cloudinit"] = libenclave.helpers.parse_bool(value)

    def _get_cloudinit(self) -> bool:
        return libenclave.helpers.parse_bool(self.data.get("cloudinit", False))

    @property
    def name(self) -> str:
        """Return the unit name."""
        return str(self.data["name"])

    @property
    def kind(self) -> libenclave.Types.UnitKind:
        """Return the unit kind."""
        return self._get_kind()

    @property
    def hostname(self) -> str:
        """Return the fully qualified host name of the unit."""
        return f"{self.name}.{self['domain']}"

    @property
    def memory(self) -> str:
        """Return the VM memory size, which is the memory limit if set."""
        memoryuse = self.data.get("memoryuse")
        if memoryuse is not None:
            return str(memoryuse)
        return str(self.host_config["vm_memory"])

    def get_string(self, key: str) -> str:
        """Return a configuration value in its humanreadable form."""
        value = self[key]
        return libenclave.helpers.to_string(value, none="-")

    def __repr__(self) -> str:
        """Return a string representation of the object."""
        return f"<{self.__class__.__name__} {self.name}>"
