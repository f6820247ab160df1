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
"""enclave network attachment module."""
import typing
from hashlib import sha224

import libenclave.errors
import libenclave.helpers_object
import libenclave.NetworkInterface
import libenclave.Types

# FreeBSD IFNAMSIZ including the terminating NUL byte
IFNAMSIZ = 16
DEVICE_HASH_LENGTH = 10
BRIDGE_PREFIX = "vbridge"


def device_name(unit_name: str, prefix: str, suffix: str="") -> str:
    """
    Derive a network device name from a unit name.

    The name is a truncated one-way hash, so that it fits the host interface
    name limit and can be recomputed on teardown without stored state.
    Truncating human chosen names instead would let units that share a long
    prefix collide.
    """
    available = IFNAMSIZ - 1 - len(prefix) - len(suffix)
    m = sha224()
    m.update(unit_name.encode("UTF-8", errors="ignore"))
    digest = m.hexdigest()[:min(DEVICE_HASH_LENGTH, available)]
    return f"{prefix}{digest}{suffix}"


def mac_address(unit_name: str, prefix: str="589cfc") -> str:
    """Derive a stable hardware address for the guest side of a unit."""
    m = sha224()
    m.update(unit_name.encode("UTF-8", errors="ignore"))
    address = f"{prefix}{m.hexdigest()[0:12-len(prefix)]}"
    return ":".join([address[i:(i + 2)] for i in range(0, 12, 2)])


class VlanBridge:
    """
    A bridge attached to the trunk interface, optionally VLAN tagged.

    Bridges and VLAN interfaces are created on first use and shared by all
    units on the same VLAN. They are never torn down automatically, since
    other units may still be attached.
    """

    def __init__(
        self,
        vlan: typing.Optional[int],
        trunk: str,
        interfaces: 'libenclave.NetworkInterface.Interfaces',
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        self.logger = libenclave.helpers_object.init_logger(self, logger)
        self.vlan = vlan
        self.trunk = trunk
        self.interfaces = interfaces

    @property
    def name(self) -> str:
        """Return the bridge interface name."""
        return f"{BRIDGE_PREFIX}{self.vlan or 0}"

    @property
    def vlan_interface_name(self) -> typing.Optional[str]:
        """Return the name of the tagged VLAN interface or None."""
        if self.vlan is None:
            return None
        return f"{self.trunk}.{self.vlan}"

    @property
    def member(self) -> str:
        """Return the uplink interface that is member of the bridge."""
        vlan_interface_name = self.vlan_interface_name
        if vlan_interface_name is None:
            return self.trunk
        return vlan_interface_name

    def require_trunk(self) -> None:
        """Raise when the trunk interface does not exist."""
        if self.interfaces.exists(self.trunk) is False:
            raise libenclave.errors.NetworkSubstrateUnavailable(
                interface=self.trunk,
                logger=self.logger
            )

    def require(self) -> str:
        """Create VLAN interface and bridge unless they exist."""
        self.require_trunk()
        existing = self.interfaces.names()

        vlan_interface_name = self.vlan_interface_name
        if (vlan_interface_name is not None):
            if vlan_interface_name not in existing:
                self.logger.verbose(
                    f"Creating VLAN interface {vlan_interface_name}"
                )
                libenclave.NetworkInterface.NetworkInterface(
                    name=vlan_interface_name,
                    create=True,
                    interfaces=self.interfaces,
                    logger=self.logger
                )

        if self.name not in existing:
            self.logger.verbose(f"Creating bridge {self.name}")
            libenclave.NetworkInterface.NetworkInterface(
                name="bridge",
                create=True,
                rename=self.name,
                addm=self.member,
                interfaces=self.interfaces,
                logger=self.logger
            )

        return self.name

    def add_member(self, name: str) -> None:
        """Attach an interface to the bridge."""
        libenclave.NetworkInterface.NetworkInterface(
            name=self.name,
            addm=name,
            interfaces=self.interfaces,
            logger=self.logger
        )


class Network:
    """
    Network device of a single unit.

    Each unit kind implements the device creation behind this interface.
    The device name is derived from the unit name only, so that creation
    and teardown always agree on the device without persisted state.
    """

    prefix: str
    cloner: str

    def __init__(
        self,
        unit_name: str,
        vlan: typing.Optional[int],
        trunk: str,
        interfaces: 'libenclave.NetworkInterface.Interfaces',
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        self.logger = libenclave.helpers_object.init_logger(self, logger)
        self.unit_name = unit_name
        self.interfaces = interfaces
        self.bridge = VlanBridge(
            vlan=vlan,
            trunk=trunk,
            interfaces=interfaces,
            logger=self.logger
        )

    @property
    def device_name(self) -> str:
        """Return the host side device name."""
        return device_name(self.unit_name, self.prefix)

    @property
    def guest_device_name(self) -> str:
        """Return the device name seen by the unit."""
        return self.device_name

    @property
    def mac_address(self) -> str:
        """Return the hardware address of the guest side."""
        return mac_address(self.unit_name)

    @property
    def description(self) -> str:
        """Return the description text of the host device."""
        return f"associated with unit: {self.unit_name}"

    @property
    def exists(self) -> bool:
        """Return True if the device exists on the host."""
        return self.interfaces.exists(self.device_name)

    def create(self) -> str:
        """Create the device and attach it to the bridge."""
        if self.exists is True:
            self.logger.verbose(
                f"Network device {self.device_name} already exists"
            )
            return self.device_name

        bridge_name = self.bridge.require()
        created = self._create_device()
        try:
            self.bridge.add_member(self.device_name)
        except Exception:
            self._destroy_device(created)
            raise
        self.logger.verbose(
            f"Network device {self.device_name} attached to {bridge_name}"
        )
        return self.device_name

    def destroy(self) -> None:
        """Destroy the device unless it is already gone."""
        if self.exists is False:
            self.logger.spam(f"Network device {self.device_name} is absent")
            return
        self.logger.verbose(f"Destroying network device {self.device_name}")
        self.interfaces.destroy(self.device_name)

    def _destroy_device(self, name: str) -> None:
        self.logger.verbose(f"Reverting creation of {name}")
        self.interfaces.destroy(name)

    def _create_device(self) -> str:
        raise NotImplementedError("To be implemented by inheriting classes")


class JailNetwork(Network):
    """
    Virtual ethernet pair of a VNET jail.

    The host side (suffix a) is attached to the bridge, the jail side
    (suffix b) is moved into the jail by jail(8) from the descriptor.
    """

    prefix = "ej"
    cloner = "epair"

    @property
    def device_name(self) -> str:
        """Return the host side epair name."""
        return device_name(self.unit_name, self.prefix, suffix="a")

    @property
    def guest_device_name(self) -> str:
        """Return the jail side epair name."""
        return device_name(self.unit_name, self.prefix, suffix="b")

    def _create_device(self) -> str:
        nic_a = libenclave.NetworkInterface.NetworkInterface(
            name=self.cloner,
            create=True,
            extra_settings=[],
            interfaces=self.interfaces,
            logger=self.logger
        )
        try:
            nic_b_name = nic_a.name[:-1] + "b"
            libenclave.NetworkInterface.NetworkInterface(
                name=nic_a.name,
                rename=self.device_name,
                description=self.description,
                interfaces=self.interfaces,
                logger=self.logger
            )
        except Exception:
            self._destroy_device(nic_a.name)
            raise
        try:
            libenclave.NetworkInterface.NetworkInterface(
                name=nic_b_name,
                rename=self.guest_device_name,
                interfaces=self.interfaces,
                logger=self.logger
            )
        except Exception:
            self._destroy_device(self.device_name)
            raise
        return self.device_name


class VMNetwork(Network):
    """Tap device handed to the hypervisor as virtio-net backend."""

    prefix = "tv"
    cloner = "tap"

    def _create_device(self) -> str:
        nic = libenclave.NetworkInterface.NetworkInterface(
            name=self.cloner,
            create=True,
            extra_settings=[],
            interfaces=self.interfaces,
            logger=self.logger
        )
        try:
            libenclave.NetworkInterface.NetworkInterface(
                name=nic.name,
                rename=self.device_name,
                description=self.description,
                interfaces=self.interfaces,
                logger=self.logger
            )
        except Exception:
            self._destroy_device(nic.name)
            raise
        return self.device_name


_network_classes: typing.Dict[
    libenclave.Types.UnitKind,
    typing.Type[Network]
] = {
    libenclave.Types.UnitKind.JAIL: JailNetwork,
    libenclave.Types.UnitKind.VM: VMNetwork
}


class NetworkManager:
    """Create and destroy the network devices of units."""

    def __init__(
        self,
        trunk: str,
        interfaces: 'libenclave.NetworkInterface.Interfaces',
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        self.logger = libenclave.helpers_object.init_logger(self, logger)
        self.trunk = trunk
        self.interfaces = interfaces

    def get(
        self,
        unit_name: str,
        kind: libenclave.Types.UnitKind,
        vlan: typing.Optional[int]=None
    ) -> Network:
        """Return the network strategy for a unit."""
        network_class = _network_classes[kind]
        return network_class(
            unit_name=unit_name,
            vlan=vlan,
            trunk=self.trunk,
            interfaces=self.interfaces,
            logger=self.logger
        )

    def require_substrate(self, vlan: typing.Optional[int]=None) -> None:
        """Raise when the network of a VLAN cannot be resolved."""
        VlanBridge(
            vlan=vlan,
            trunk=self.trunk,
            interfaces=self.interfaces,
            logger=self.logger
        ).require_trunk()

    def create(
        self,
        unit_name: str,
        kind: libenclave.Types.UnitKind,
        vlan: typing.Optional[int]=None
    ) -> Network:
        """Create the network device of a unit."""
        network = self.get(unit_name, kind, vlan)
        network.create()
        return network

    def destroy(
        self,
        unit_name: str,
        kind: libenclave.Types.UnitKind,
        vlan: typing.Optional[int]=None
    ) -> None:
        """Destroy the network device of a unit."""
        self.get(unit_name, kind, vlan).destroy()
