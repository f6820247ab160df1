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
"""enclave Host module."""
import typing
import os

import libenclave.Config
import libenclave.Datasets
import libenclave.Descriptor
import libenclave.Lock
import libenclave.Network
import libenclave.NetworkInterface
import libenclave.Registry
import libenclave.ResourceLimit
import libenclave.SeedImage
import libenclave.Supervisor
import libenclave.Templates
import libenclave.Types
import libenclave.helpers_object

SupervisorMap = typing.Dict[
    libenclave.Types.UnitKind,
    libenclave.Supervisor.Supervisor
]


class Host:
    """
    The host that runs units.

    Bundles the host configuration with the backends that talk to the
    host (ZFS, network interfaces, resource limits, process supervisors
    and the registry). Every backend can be replaced, which is how tests
    run without touching the host.
    """

    config: libenclave.Config.HostConfig
    supervisors: SupervisorMap

    def __init__(
        self,
        config: typing.Optional[typing.Dict[str, typing.Any]]=None,
        zfs: typing.Optional['libenclave.ZFS.ZFS']=None,
        interfaces: typing.Optional[
            'libenclave.NetworkInterface.Interfaces'
        ]=None,
        rctl: typing.Optional['libenclave.ResourceLimit.Rctl']=None,
        supervisors: typing.Optional[SupervisorMap]=None,
        registry: typing.Optional['libenclave.Registry.Registry']=None,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:

        self.logger = libenclave.helpers_object.init_logger(self, logger)
        self.zfs = libenclave.helpers_object.init_zfs(self, zfs)

        if isinstance(config, libenclave.Config.HostConfig):
            self.config = config
        elif config is not None:
            self.config = libenclave.Config.HostConfig(
                data=config,
                logger=self.logger
            )
        else:
            self.config = libenclave.Config.HostConfig.from_environment(
                logger=self.logger
            )

        if interfaces is None:
            interfaces = libenclave.NetworkInterface.Interfaces(
                logger=self.logger
            )
        self.interfaces = interfaces

        if rctl is None:
            rctl = libenclave.ResourceLimit.Rctl(logger=self.logger)
        self.rctl = rctl

        if supervisors is None:
            supervisors = {
                libenclave.Types.UnitKind.JAIL: (
                    libenclave.Supervisor.JailSupervisor(logger=self.logger)
                ),
                libenclave.Types.UnitKind.VM: (
                    libenclave.Supervisor.BhyveSupervisor(
                        pid_directory=self.config["lock_directory"],
                        logger=self.logger
                    )
                )
            }
        self.supervisors = supervisors

        if registry is None:
            registry = libenclave.Registry.RCConfRegistry(logger=self.logger)
        self.registry = registry

        self.datasets = libenclave.Datasets.RootDatasets(
            root_dataset=self.config["root_dataset"],
            zfs=self.zfs,
            logger=self.logger
        )
        self.network = libenclave.Network.NetworkManager(
            trunk=self.config["trunk_interface"],
            interfaces=self.interfaces,
            logger=self.logger
        )
        self.resource_limits = libenclave.ResourceLimit.ResourceLimitManager(
            rctl=self.rctl,
            logger=self.logger
        )
        self.descriptors = libenclave.Descriptor.DescriptorStore(
            directory=self.config["descriptor_directory"],
            logger=self.logger
        )
        self.seed_images = libenclave.SeedImage.SeedImages(
            directory=self.config["seed_directory"],
            logger=self.logger
        )

    def supervisor(
        self,
        kind: libenclave.Types.UnitKind
    ) -> 'libenclave.Supervisor.Supervisor':
        """Return the process supervisor of a kind of unit."""
        return self.supervisors[kind]

    def lock(self, name: str) -> 'libenclave.Lock.UnitLock':
        """Return the advisory lock of a unit."""
        return libenclave.Lock.UnitLock(
            name=name,
            lock_directory=self.config["lock_directory"],
            logger=self.logger
        )

    @property
    def templates(self) -> 'libenclave.Templates.Templates':
        """Return the templates of the host."""
        return libenclave.Templates.Templates(
            host=self,
            zfs=self.zfs,
            logger=self.logger
        )

    def init(self) -> typing.List[str]:
        """
        Prepare the host to run units.

        Creates the root datasets and local directories, enables the rc
        script and makes sure the devfs ruleset of VNET jails exists.
        Returns the names of created datasets.
        """
        created = self.datasets.init()
        for key in [
            "descriptor_directory",
            "lock_directory",
            "seed_directory",
            "iso_directory"
        ]:
            os.makedirs(self.config[key], mode=0o755, exist_ok=True)
        self.registry.init()
        self.registry.ensure_devfs_ruleset(int(self.config["devfs_ruleset"]))
        return created
