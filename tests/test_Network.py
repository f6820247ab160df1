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
"""Unit tests for unit network devices."""
import typing
import re
import pytest

import libenclave.errors
import libenclave.Network
import libenclave.NetworkInterface
import libenclave.Types

import fakes


@pytest.fixture
def network_manager(
    interfaces: fakes.MemoryInterfaces,
    logger: 'libenclave.Logger.Logger'
) -> libenclave.Network.NetworkManager:
    """Return a network manager with the trunk em0."""
    return libenclave.Network.NetworkManager(
        trunk="em0",
        interfaces=interfaces,
        logger=logger
    )


class TestDeviceNames(object):
    """Run tests for the derivation of device names."""

    def test_device_names_fit_the_interface_name_limit(self) -> None:

        for name in ["a1", "web01", "x" * 32]:
            for prefix, suffix in [("ej", "a"), ("ej", "b"), ("tv", "")]:
                device_name = libenclave.Network.device_name(
                    name,
                    prefix,
                    suffix
                )
                assert len(device_name) < libenclave.Network.IFNAMSIZ
                assert device_name.startswith(prefix)
                assert device_name.endswith(suffix)

    def test_device_names_are_stable(self) -> None:

        first = libenclave.Network.device_name("web01", "ej", "a")
        second = libenclave.Network.device_name("web01", "ej", "a")

        assert first == second

    def test_device_names_are_distinct(self) -> None:

        names = [f"unit{i:04d}" for i in range(2000)]
        names += [f"{'x' * 30}{i:02d}" for i in range(100)]
        device_names = set(
            libenclave.Network.device_name(x, "ej", "a") for x in names
        )

        assert len(device_names) == len(names)

    def test_mac_address(self) -> None:

        mac_address = libenclave.Network.mac_address("vm01")

        assert re.fullmatch(r"([0-9a-f]{2}:){5}[0-9a-f]{2}", mac_address)
        assert mac_address.startswith("58:9c:fc:")
        assert mac_address == libenclave.Network.mac_address("vm01")
        assert mac_address != libenclave.Network.mac_address("vm02")


class TestJailNetwork(object):
    """Run tests for epair devices of jails."""

    def test_create_attaches_the_host_side_to_the_bridge(
        self,
        network_manager: libenclave.Network.NetworkManager,
        interfaces: fakes.MemoryInterfaces
    ) -> None:

        network = network_manager.create(
            "web01",
            libenclave.Types.UnitKind.JAIL
        )
        host_side = interfaces.interfaces[network.device_name]

        assert host_side["peer"] == network.guest_device_name
        assert host_side["up"] is True
        assert host_side["settings"]["description"] == (
            "'associated with unit: web01'"
        )
        assert interfaces.members("vbridge0") == ["em0", network.device_name]

    def test_create_and_destroy_are_idempotent(
        self,
        network_manager: libenclave.Network.NetworkManager,
        interfaces: fakes.MemoryInterfaces
    ) -> None:

        network_manager.create("web01", libenclave.Types.UnitKind.JAIL)
        names = interfaces.names()
        network_manager.create("web01", libenclave.Types.UnitKind.JAIL)

        assert interfaces.names() == names

        network_manager.destroy("web01", libenclave.Types.UnitKind.JAIL)
        network_manager.destroy("web01", libenclave.Types.UnitKind.JAIL)

        assert sorted(interfaces.names()) == ["em0", "lo0", "vbridge0"]
        assert interfaces.members("vbridge0") == ["em0"]

    def test_vlan_bridges_are_shared(
        self,
        network_manager: libenclave.Network.NetworkManager,
        interfaces: fakes.MemoryInterfaces
    ) -> None:

        web01 = network_manager.create(
            "web01",
            libenclave.Types.UnitKind.JAIL,
            vlan=12
        )
        web02 = network_manager.create(
            "web02",
            libenclave.Types.UnitKind.JAIL,
            vlan=12
        )

        assert "em0.12" in interfaces.names()
        assert interfaces.members("vbridge12") == [
            "em0.12",
            web01.device_name,
            web02.device_name
        ]

    def test_failing_bridge_attachment_removes_the_device(
        self,
        network_manager: libenclave.Network.NetworkManager,
        interfaces: fakes.MemoryInterfaces
    ) -> None:

        network_manager.create("web01", libenclave.Types.UnitKind.JAIL)
        names = interfaces.names()
        interfaces.failures.add("apply:vbridge0")

        with pytest.raises(libenclave.errors.ExternalToolFailure):
            network_manager.create("web02", libenclave.Types.UnitKind.JAIL)

        assert interfaces.names() == names

    def test_failing_epair_creation(
        self,
        network_manager: libenclave.Network.NetworkManager,
        interfaces: fakes.MemoryInterfaces
    ) -> None:

        interfaces.failures.add("epair")

        with pytest.raises(libenclave.errors.ExternalToolFailure):
            network_manager.create("web01", libenclave.Types.UnitKind.JAIL)

        network = network_manager.get("web01", libenclave.Types.UnitKind.JAIL)
        assert network.exists is False

    def test_missing_trunk(
        self,
        interfaces: fakes.MemoryInterfaces,
        logger: 'libenclave.Logger.Logger'
    ) -> None:

        network_manager = libenclave.Network.NetworkManager(
            trunk="igb0",
            interfaces=interfaces,
            logger=logger
        )

        with pytest.raises(libenclave.errors.NetworkSubstrateUnavailable):
            network_manager.require_substrate(vlan=12)

        with pytest.raises(libenclave.errors.NetworkSubstrateUnavailable):
            network_manager.create("web01", libenclave.Types.UnitKind.JAIL)


class TestVMNetwork(object):
    """Run tests for tap devices of virtual machines."""

    def test_create_renames_the_tap_device(
        self,
        network_manager: libenclave.Network.NetworkManager,
        interfaces: fakes.MemoryInterfaces
    ) -> None:

        network = network_manager.create("vm01", libenclave.Types.UnitKind.VM)

        assert network.device_name == network.guest_device_name
        assert network.device_name.startswith("tv")
        assert "tap0" not in interfaces.names()
        assert network.device_name in interfaces.members("vbridge0")

        network.destroy()
        assert network.exists is False


class TestInterfaces(object):
    """Run tests for the ifconfig wrapper."""

    def test_interface_names(
        self,
        commands: typing.Any,
        logger: 'libenclave.Logger.Logger'
    ) -> None:

        commands.respond(["/sbin/ifconfig", "-l"], stdout="em0 lo0 bridge0")
        interfaces = libenclave.NetworkInterface.Interfaces(logger=logger)

        assert interfaces.names() == ["em0", "lo0", "bridge0"]
        assert interfaces.exists("bridge0") is True
        assert interfaces.exists("bridge1") is False

    def test_create_returns_the_cloned_name(
        self,
        commands: typing.Any,
        logger: 'libenclave.Logger.Logger'
    ) -> None:

        commands.respond(["/sbin/ifconfig", "epair", "create"], "epair3a\n")
        interfaces = libenclave.NetworkInterface.Interfaces(logger=logger)

        nic = libenclave.NetworkInterface.NetworkInterface(
            name="epair",
            create=True,
            extra_settings=[],
            interfaces=interfaces,
            logger=logger
        )

        assert nic.name == "epair3a"
        assert commands.commands[-1] == ["/sbin/ifconfig", "epair", "create"]

    def test_settings_are_translated_to_arguments(
        self,
        commands: typing.Any,
        logger: 'libenclave.Logger.Logger'
    ) -> None:

        interfaces = libenclave.NetworkInterface.Interfaces(logger=logger)
        nic = libenclave.NetworkInterface.NetworkInterface(
            name="tap0",
            rename="tv0123456789",
            mtu=9000,
            description="associated with unit: vm01",
            addm=["em0", "em1"],
            interfaces=interfaces,
            logger=logger
        )

        assert nic.name == "tv0123456789"
        assert commands.commands[-1] == [
            "/sbin/ifconfig", "tap0",
            "name", "tv0123456789",
            "mtu", "9000",
            "description", "'associated with unit: vm01'",
            "addm", "em0",
            "addm", "em1",
            "up"
        ]
