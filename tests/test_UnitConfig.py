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
"""Unit tests for unit configurations."""
import typing
import ipaddress

import pytest

import libenclave.Config
import libenclave.errors
import libenclave.Types
import libenclave.UnitConfig


@pytest.fixture
def unit_config(
    host_config: typing.Dict[str, typing.Any]
) -> libenclave.UnitConfig.UnitConfig:
    """Return an empty configuration of the unit web01."""
    return libenclave.UnitConfig.UnitConfig(
        name="web01",
        host_config=libenclave.Config.HostConfig(data=host_config)
    )


class TestUnitConfig(object):
    """Run tests for unit configuration values."""

    def test_defaults(
        self,
        unit_config: libenclave.UnitConfig.UnitConfig
    ) -> None:

        assert unit_config.kind == libenclave.Types.UnitKind.JAIL
        assert unit_config["ip4_addr"] == "dhcp"
        assert unit_config.dhcp is True
        assert unit_config["boot"] is True
        assert unit_config["cloudinit"] is False
        assert unit_config["vlan"] is None

    def test_host_defaults(
        self,
        unit_config: libenclave.UnitConfig.UnitConfig
    ) -> None:

        assert unit_config["os_quota"] == "10G"
        assert unit_config["cpus"] == 2
        assert unit_config.hostname == "web01.example.com"
        assert unit_config.memory == "2G"
        assert "os_quota" not in unit_config

        unit_config.resolve_defaults()

        assert "os_quota" in unit_config
        assert unit_config.to_properties()["domain"] == "example.com"

    def test_memory_follows_the_memory_limit(
        self,
        unit_config: libenclave.UnitConfig.UnitConfig
    ) -> None:

        unit_config["memoryuse"] = "512m"

        assert unit_config.memory == "512M"

    def test_static_address(
        self,
        unit_config: libenclave.UnitConfig.UnitConfig
    ) -> None:

        unit_config.read(dict(
            ip4_addr="10.0.0.5/24",
            defaultrouter="10.0.0.1"
        ))

        assert unit_config.dhcp is False
        assert unit_config["ip4_addr"] == ipaddress.IPv4Interface(
            "10.0.0.5/24"
        )
        assert unit_config.get_string("defaultrouter") == "10.0.0.1"
        assert unit_config.get_string("pcpu") == "-"

    @pytest.mark.parametrize("key,value", [
        ("vlan", "0"),
        ("vlan", "4095"),
        ("vlan", "ten"),
        ("pcpu", "0"),
        ("pcpu", "101"),
        ("ip4_addr", "10.0.0.5"),
        ("ip4_addr", "10.0.0.300/24"),
        ("defaultrouter", "gateway"),
        ("memoryuse", "lots"),
        ("cpus", "0"),
        ("kind", "container"),
        ("firmware", "relative/firmware.fd"),
        ("swap", "1G")
    ])
    def test_invalid_values(
        self,
        key: str,
        value: str,
        unit_config: libenclave.UnitConfig.UnitConfig
    ) -> None:

        with pytest.raises(libenclave.errors.InvalidUnitConfigValue):
            unit_config[key] = value

        assert key not in unit_config

    @pytest.mark.parametrize("name", [
        "a",
        "-web01",
        "web01-",
        "web 01",
        "w" * 33
    ])
    def test_invalid_names(self, name: str) -> None:

        with pytest.raises(libenclave.errors.InvalidUnitName):
            libenclave.UnitConfig.UnitConfig(name=name)

    def test_properties(
        self,
        unit_config: libenclave.UnitConfig.UnitConfig
    ) -> None:

        unit_config.read(dict(
            kind="vm",
            vlan=10,
            pcpu="50",
            boot=False,
            defaultrouter=None
        ))

        properties = unit_config.to_properties()

        assert properties == dict(
            kind="vm",
            vlan="10",
            pcpu="50",
            boot="no",
            defaultrouter="none"
        )

        restored = libenclave.UnitConfig.UnitConfig.from_properties(
            "web01",
            dict(properties, unrelated="value"),
            host_config=unit_config.host_config
        )

        assert restored.kind == libenclave.Types.UnitKind.VM
        assert restored["vlan"] == 10
        assert restored["pcpu"] == 50
        assert restored["boot"] is False
        assert restored["defaultrouter"] is None

    def test_unknown_keys_are_not_readable(
        self,
        unit_config: libenclave.UnitConfig.UnitConfig
    ) -> None:

        with pytest.raises(KeyError):
            unit_config["swap"]
