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
"""cloud-init NoCloud seed images of virtual machines."""
import typing
import json
import os
import os.path
import tempfile

import libenclave.helpers
import libenclave.helpers_object

# MyPy
import libenclave.Descriptor  # noqa: F401
import libenclave.UnitConfig  # noqa: F401


class SeedImage:
    """
    A cloud-init NoCloud seed ISO of one virtual machine.

    The image carries meta-data, user-data and network-config and is
    attached to the guest as CD drive labeled cidata. It is regenerated
    whenever the descriptor is written.
    """

    makefs_command = "/usr/sbin/makefs"

    def __init__(
        self,
        name: str,
        directory: str,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        self.logger = libenclave.helpers_object.init_logger(self, logger)
        self.name = name
        self.directory = directory

    @property
    def path(self) -> str:
        """Return the path of the seed image."""
        return os.path.join(self.directory, f"{self.name}.iso")

    @property
    def exists(self) -> bool:
        """Return True if the seed image exists."""
        return os.path.isfile(self.path)

    def meta_data(self, config: 'libenclave.UnitConfig.UnitConfig') -> str:
        """Return the meta-data document."""
        return json.dumps({
            "instance-id": config.name,
            "local-hostname": config.name
        }, indent=2) + "\n"

    def user_data(self, config: 'libenclave.UnitConfig.UnitConfig') -> str:
        """Return the cloud-config user-data document."""
        return "#cloud-config\n" + json.dumps({
            "hostname": config.name,
            "fqdn": config.hostname,
            "manage_etc_hosts": True
        }, indent=2) + "\n"

    def network_config(
        self,
        descriptor: 'libenclave.Descriptor.Descriptor',
        mac_address: str
    ) -> str:
        """Return the network-config (version 2) document."""
        network = descriptor.network
        ethernet: typing.Dict[str, typing.Any] = {
            "match": {"macaddress": mac_address}
        }
        if network["dhcp"] is True:
            ethernet["dhcp4"] = True
        else:
            ethernet["addresses"] = [
                f"{network['address']}/{network['prefixlen']}"
            ]
            if network.get("gateway") is not None:
                ethernet["gateway4"] = network["gateway"]
        return json.dumps({
            "version": 2,
            "ethernets": {"id0": ethernet}
        }, indent=2) + "\n"

    def write(
        self,
        config: 'libenclave.UnitConfig.UnitConfig',
        descriptor: 'libenclave.Descriptor.Descriptor',
        mac_address: str
    ) -> str:
        """Build the seed image, replacing a previous one."""
        os.makedirs(self.directory, mode=0o755, exist_ok=True)
        documents = {
            "meta-data": self.meta_data(config),
            "user-data": self.user_data(config),
            "network-config": self.network_config(descriptor, mac_address)
        }
        with tempfile.TemporaryDirectory(prefix="enclave-seed-") as staging:
            for filename, content in documents.items():
                with open(os.path.join(staging, filename), "w") as f:
                    f.write(content)
            self.remove()
            libenclave.helpers.exec(
                [
                    self.makefs_command,
                    "-t", "cd9660",
                    "-o", "R,L=cidata",
                    self.path,
                    staging
                ],
                logger=self.logger
            )
        self.logger.verbose(f"Seed image written to {self.path}")
        return self.path

    def remove(self) -> None:
        """Remove the seed image if it exists."""
        if self.exists is False:
            return
        os.remove(self.path)
        self.logger.verbose(f"Seed image {self.path} removed")


class SeedImages:
    """The seed image directory of a host."""

    def __init__(
        self,
        directory: str,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        self.logger = libenclave.helpers_object.init_logger(self, logger)
        self.directory = directory

    def get(self, name: str) -> SeedImage:
        """Return the seed image of a unit."""
        return SeedImage(
            name=name,
            directory=self.directory,
            logger=self.logger
        )
