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
"""Descriptors read by the process supervisors of units."""
import typing
import ipaddress
import os
import os.path

import libenclave.helpers_object
import libenclave.Types

# MyPy
import libenclave.UnitConfig  # noqa: F401

DescriptorSection = typing.Dict[str, typing.Any]


class Descriptor:
    """
    Declarative description of how a unit is run.

    A descriptor is a pure function of the unit configuration and is
    always rendered completely, never merged into a previous version.
    """

    kind: libenclave.Types.UnitKind
    identity: DescriptorSection
    path: typing.Optional[str]
    hooks: typing.Dict[str, typing.List[str]]
    network: DescriptorSection
    devices: typing.List[typing.Tuple[str, str]]
    options: DescriptorSection

    def __init__(
        self,
        kind: libenclave.Types.UnitKind,
        identity: DescriptorSection,
        network: DescriptorSection,
        path: typing.Optional[str]=None,
        hooks: typing.Optional[typing.Dict[str, typing.List[str]]]=None,
        devices: typing.Optional[typing.List[typing.Tuple[str, str]]]=None,
        options: typing.Optional[DescriptorSection]=None
    ) -> None:
        self.kind = kind
        self.identity = identity
        self.network = network
        self.path = path
        self.hooks = hooks or {}
        self.devices = devices or []
        self.options = options or {}

    @property
    def name(self) -> str:
        """Return the name of the described unit."""
        return str(self.identity["name"])

    def render(self) -> str:
        """Return the descriptor in the native supervisor format."""
        if self.kind == libenclave.Types.UnitKind.JAIL:
            return self._render_jail_conf()
        return self._render_bhyve_config()

    @staticmethod
    def _quote(value: typing.Any) -> str:
        escaped = str(value).replace("\\", "\\\\").replace("\"", "\\\"")
        return f"\"{escaped}\""

    def _render_jail_conf(self) -> str:
        lines = [f"{self.name} {{"]
        lines.append(
            f"\thost.hostname = {self._quote(self.identity['hostname'])};"
        )
        lines.append(f"\tpath = {self._quote(self.path)};")
        for key, value in self.options.items():
            if value is True:
                lines.append(f"\t{key};")
            else:
                lines.append(f"\t{key} = {self._quote(value)};")
        lines.append(
            f"\tvnet.interface = {self._quote(self.network['interface'])};"
        )
        for hook, commands in self.hooks.items():
            for index, command in enumerate(commands):
                operator = "=" if (index == 0) else "+="
                lines.append(f"\t{hook} {operator} {self._quote(command)};")
        lines.append("}")
        return "\n".join(lines) + "\n"

    def _render_bhyve_config(self) -> str:
        lines = [f"name={self.name}"]
        for key, value in self.options.items():
            lines.append(f"{key}={_bhyve_value(value)}")
        for key, value in self.devices:
            lines.append(f"{key}={value}")
        for key in ["interface", "dhcp", "address", "netmask", "gateway"]:
            value = self.network.get(key)
            if value is None:
                continue
            lines.append(f"enclave.network.{key}={_bhyve_value(value)}")
        return "\n".join(lines) + "\n"


def _bhyve_value(value: typing.Any) -> str:
    if isinstance(value, bool):
        return "true" if (value is True) else "false"
    return str(value)


def network_section(
    config: 'libenclave.UnitConfig.UnitConfig',
    interface: str,
    dhcp: typing.Optional[bool]=None
) -> DescriptorSection:
    """Return the network section of a unit descriptor."""
    if dhcp is None:
        dhcp = config.dhcp
    if dhcp is True:
        return dict(interface=interface, dhcp=True)

    ip4_addr: ipaddress.IPv4Interface = config["ip4_addr"]
    gateway = config["defaultrouter"]
    return dict(
        interface=interface,
        dhcp=False,
        address=str(ip4_addr.ip),
        netmask=str(ip4_addr.netmask),
        prefixlen=ip4_addr.network.prefixlen,
        gateway=None if (gateway is None) else str(gateway)
    )


class DescriptorGenerator:
    """Render descriptors for one kind of unit."""

    kind: libenclave.Types.UnitKind

    def __init__(
        self,
        host: 'libenclave.Host.Host',
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        self.logger = libenclave.helpers_object.init_logger(self, logger)
        self.host = host

    def render(
        self,
        config: 'libenclave.UnitConfig.UnitConfig'
    ) -> Descriptor:
        """Return the descriptor of a unit."""
        raise NotImplementedError("To be implemented by inheriting classes")


class JailDescriptorGenerator(DescriptorGenerator):
    """
    Render jail.conf descriptors.

    The data dataset is delegated to the jail when it was created. The
    network device and the resource limits are not part of the descriptor,
    the unit creates and releases them around jail(8).
    """

    kind = libenclave.Types.UnitKind.JAIL

    def render(
        self,
        config: 'libenclave.UnitConfig.UnitConfig'
    ) -> Descriptor:
        """Return the jail.conf descriptor of a unit."""
        datasets = self.host.datasets.get_unit(config.name)
        network = self.host.network.get(
            config.name,
            self.kind,
            config["vlan"]
        )
        guest_interface = network.guest_device_name
        network_config = network_section(config, guest_interface)

        start_commands = []
        if network_config["dhcp"] is True:
            start_commands.append(f"/sbin/dhclient {guest_interface}")
        else:
            start_commands.append(" ".join([
                "/sbin/ifconfig",
                guest_interface,
                "inet",
                network_config["address"],
                "netmask",
                network_config["netmask"],
                "up"
            ]))
            if network_config["gateway"] is not None:
                start_commands.append(
                    f"/sbin/route add default {network_config['gateway']}"
                )
        start_commands.append("/sbin/zfs mount -a")
        start_commands.append("/bin/sh /etc/rc")

        return Descriptor(
            kind=self.kind,
            identity=dict(name=config.name, hostname=config.hostname),
            path=datasets.os_mountpoint,
            network=network_config,
            options={
                "vnet": True,
                "devfs_ruleset": self.host.config["devfs_ruleset"],
                "mount.devfs": True,
                "allow.mount": True,
                "allow.mount.zfs": True,
                "enforce_statfs": 1,
                "exec.clean": True
            },
            hooks={
                "exec.created": [
                    f"/sbin/zfs jail {config.name} "
                    f"{datasets.data_dataset_name}"
                ],
                "exec.start": start_commands,
                "exec.stop": ["/bin/sh /etc/rc.shutdown jail"]
            }
        )


class VMDescriptorGenerator(DescriptorGenerator):
    """
    Render bhyve configuration files.

    Guests without cloud-init support fall back to DHCP and get no seed
    image attached.
    """

    kind = libenclave.Types.UnitKind.VM

    def render(
        self,
        config: 'libenclave.UnitConfig.UnitConfig'
    ) -> Descriptor:
        """Return the bhyve descriptor of a unit."""
        datasets = self.host.datasets.get_unit(config.name)
        network = self.host.network.get(
            config.name,
            self.kind,
            config["vlan"]
        )
        cloudinit = config["cloudinit"]
        network_config = network_section(
            config,
            network.device_name,
            dhcp=(True if (cloudinit is False) else None)
        )

        devices = [
            ("pci.0.0.0.device", "hostbridge"),
            ("pci.0.1.0.device", "lpc"),
            ("pci.0.2.0.device", "virtio-net"),
            ("pci.0.2.0.backend", network.device_name),
            ("pci.0.2.0.mac", network.mac_address),
            ("pci.0.3.0.device", "virtio-blk"),
            ("pci.0.3.0.path", f"/dev/zvol/{datasets.os_dataset_name}"),
            ("pci.0.4.0.device", "virtio-blk"),
            ("pci.0.4.0.path", f"/dev/zvol/{datasets.data_dataset_name}")
        ]
        if cloudinit is True:
            seed_image = self.host.seed_images.get(config.name)
            devices += [
                ("pci.0.5.0.device", "ahci"),
                ("pci.0.5.0.port.0.type", "cd"),
                ("pci.0.5.0.port.0.path", seed_image.path)
            ]

        return Descriptor(
            kind=self.kind,
            identity=dict(name=config.name, hostname=config.hostname),
            network=network_config,
            devices=devices,
            options={
                "cpus": config["cpus"],
                "memory.size": config.memory,
                "acpi_tables": True,
                "destroy_on_poweroff": True,
                "lpc.com1.path": f"/dev/nmdm-{config.name}.1A",
                "lpc.bootrom": config["firmware"]
            }
        )


_generators: typing.Dict[
    libenclave.Types.UnitKind,
    typing.Type[DescriptorGenerator]
] = {
    libenclave.Types.UnitKind.JAIL: JailDescriptorGenerator,
    libenclave.Types.UnitKind.VM: VMDescriptorGenerator
}


def render(
    config: 'libenclave.UnitConfig.UnitConfig',
    host: 'libenclave.Host.Host'
) -> Descriptor:
    """Render the descriptor of a unit with the generator of its kind."""
    generator_class = _generators[config.kind]
    return generator_class(host=host, logger=host.logger).render(config)


class DescriptorStore:
    """One descriptor file per unit in a directory."""

    def __init__(
        self,
        directory: str,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        self.logger = libenclave.helpers_object.init_logger(self, logger)
        self.directory = directory

    def path(self, name: str) -> str:
        """Return the descriptor path of a unit."""
        return os.path.join(self.directory, f"{name}.conf")

    def exists(self, name: str) -> bool:
        """Return True if a descriptor of the unit exists."""
        return os.path.isfile(self.path(name))

    def write(self, descriptor: Descriptor) -> str:
        """Write a descriptor, replacing any previous version."""
        os.makedirs(self.directory, mode=0o755, exist_ok=True)
        path = self.path(descriptor.name)
        temporary_path = f"{path}.tmp"
        with open(temporary_path, "w", encoding="utf-8") as f:
            f.write(descriptor.render())
        os.replace(temporary_path, path)
        self.logger.verbose(f"Descriptor written to {path}")
        return path

    def read(self, name: str) -> str:
        """Return the content of a descriptor."""
        with open(self.path(name), "r", encoding="utf-8") as f:
            return f.read()

    def remove(self, name: str) -> None:
        """Remove the descriptor of a unit if it exists."""
        path = self.path(name)
        if os.path.isfile(path) is False:
            return
        os.remove(path)
        self.logger.verbose(f"Descriptor {path} removed")

    def names(self) -> typing.List[str]:
        """Return the names of all units with a descriptor."""
        if os.path.isdir(self.directory) is False:
            return []
        return sorted([
            x[:-len(".conf")] for x in os.listdir(self.directory)
            if x.endswith(".conf")
        ])
