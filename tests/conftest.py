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
"""Unit test configuration."""
import typing
import os.path
import pytest

import libenclave.errors
import libenclave.helpers
import libenclave.Host
import libenclave.Logger
import libenclave.Registry
import libenclave.Template
import libenclave.Types
import libenclave.Unit

import fakes


class CommandRecorder:
    """Record host commands instead of executing them."""

    commands: typing.List[typing.List[str]]

    def __init__(self) -> None:
        self.commands = []
        self.passthru_commands: typing.List[typing.List[str]] = []
        self.responses: typing.List[
            typing.Tuple[typing.List[str], str, str, int]
        ] = []

    def respond(
        self,
        prefix: typing.List[str],
        stdout: str="",
        stderr: str="",
        returncode: int=0
    ) -> None:
        """Answer commands starting with the prefix with an output."""
        self.responses.insert(0, (prefix, stdout, stderr, returncode))

    def exec(
        self,
        command: typing.List[str],
        logger: typing.Optional['libenclave.Logger.Logger']=None,
        ignore_error: bool=False,
        **subprocess_args: typing.Any
    ) -> libenclave.helpers.CommandOutput:
        """Record the command and return the configured output."""
        self.commands.append(list(command))
        stdout, stderr, returncode = "", "", 0
        for prefix, _stdout, _stderr, _returncode in self.responses:
            if command[:len(prefix)] == prefix:
                stdout, stderr, returncode = _stdout, _stderr, _returncode
                break
        if (returncode > 0) and (ignore_error is False):
            raise libenclave.errors.ExternalToolFailure(
                command=command,
                returncode=returncode,
                stdout=stdout,
                stderr=stderr
            )
        return stdout, stderr, returncode

    def exec_passthru(
        self,
        command: typing.List[str],
        logger: typing.Optional['libenclave.Logger.Logger']=None,
        **subprocess_args: typing.Any
    ) -> libenclave.helpers.CommandOutput:
        """Record an interactive command."""
        self.passthru_commands.append(list(command))
        return None, None, 0

    def find(self, *prefix: str) -> typing.List[typing.List[str]]:
        """Return all recorded commands starting with the prefix."""
        return [
            x for x in self.commands
            if x[:len(prefix)] == list(prefix)
        ]


@pytest.fixture(autouse=True)
def commands(monkeypatch: typing.Any) -> CommandRecorder:
    """Prevent the tests from executing any host command."""
    recorder = CommandRecorder()
    monkeypatch.setattr(libenclave.helpers, "exec", recorder.exec)
    monkeypatch.setattr(
        libenclave.helpers,
        "exec_passthru",
        recorder.exec_passthru
    )
    return recorder


@pytest.fixture
def logger() -> 'libenclave.Logger.Logger':
    """Make the enclave Logger available to the tests."""
    return libenclave.Logger.Logger(print_level="critical")


@pytest.fixture
def host_config(tmpdir: typing.Any) -> typing.Dict[str, typing.Any]:
    """Return a host configuration with directories below tmpdir."""
    return dict(
        trunk_interface="em0",
        domain="example.com",
        root_dataset="zroot/enclave",
        descriptor_directory=os.path.join(str(tmpdir), "units"),
        lock_directory=os.path.join(str(tmpdir), "run"),
        seed_directory=os.path.join(str(tmpdir), "seeds"),
        iso_directory=os.path.join(str(tmpdir), "isos"),
        os_quota="10G",
        data_quota="20G",
        vm_cpus=2,
        vm_memory="2G",
        release_mirror="https://mirror.example.com/releases"
    )


@pytest.fixture
def zfs(logger: 'libenclave.Logger.Logger') -> fakes.MemoryZFS:
    """Return an in-memory ZFS pool."""
    return fakes.MemoryZFS(logger=logger)


@pytest.fixture
def interfaces(
    logger: 'libenclave.Logger.Logger'
) -> fakes.MemoryInterfaces:
    """Return an in-memory interface namespace with a trunk em0."""
    return fakes.MemoryInterfaces(logger=logger)


@pytest.fixture
def rctl(logger: 'libenclave.Logger.Logger') -> fakes.MemoryRctl:
    """Return an in-memory resource limit rule table."""
    return fakes.MemoryRctl(logger=logger)


@pytest.fixture
def supervisors(
    logger: 'libenclave.Logger.Logger'
) -> typing.Dict[libenclave.Types.UnitKind, fakes.MemorySupervisor]:
    """Return one in-memory supervisor per unit kind."""
    return {
        libenclave.Types.UnitKind.JAIL: fakes.MemorySupervisor(logger=logger),
        libenclave.Types.UnitKind.VM: fakes.MemorySupervisor(logger=logger)
    }


@pytest.fixture
def registry() -> libenclave.Registry.MemoryRegistry:
    """Return an in-memory registry."""
    return libenclave.Registry.MemoryRegistry()


@pytest.fixture
def host(
    host_config: typing.Dict[str, typing.Any],
    zfs: fakes.MemoryZFS,
    interfaces: fakes.MemoryInterfaces,
    rctl: fakes.MemoryRctl,
    supervisors: typing.Dict[
        libenclave.Types.UnitKind,
        fakes.MemorySupervisor
    ],
    registry: libenclave.Registry.MemoryRegistry,
    logger: 'libenclave.Logger.Logger'
) -> libenclave.Host.Host:
    """Return an initialized host with in-memory backends."""
    host = libenclave.Host.Host(
        config=host_config,
        zfs=zfs,
        interfaces=interfaces,
        rctl=rctl,
        supervisors=supervisors,
        registry=registry,
        logger=logger
    )
    host.init()
    return host


@pytest.fixture
def jail_template(
    host: libenclave.Host.Host,
    zfs: fakes.MemoryZFS,
    logger: 'libenclave.Logger.Logger'
) -> libenclave.Template.Template:
    """Return a jail template with the snapshot p1."""
    template = libenclave.Template.Template(
        "base",
        host=host,
        zfs=zfs,
        logger=logger
    )
    template.create(kind=libenclave.Types.UnitKind.JAIL)
    template.snapshot("p1")
    return template


@pytest.fixture
def vm_template(
    host: libenclave.Host.Host,
    zfs: fakes.MemoryZFS,
    logger: 'libenclave.Logger.Logger'
) -> libenclave.Template.Template:
    """Return a cloud-init capable VM template with the snapshot p1."""
    template = libenclave.Template.Template(
        "ubuntu",
        host=host,
        zfs=zfs,
        logger=logger
    )
    template.create(
        kind=libenclave.Types.UnitKind.VM,
        cloudinit=True,
        volume_size="5G"
    )
    template.snapshot("p1")
    return template


@pytest.fixture
def unit(
    host: libenclave.Host.Host,
    zfs: fakes.MemoryZFS,
    logger: 'libenclave.Logger.Logger'
) -> libenclave.Unit.Unit:
    """Return a not yet created unit."""
    return libenclave.Unit.Unit("web01", host=host, zfs=zfs, logger=logger)


@pytest.fixture
def existing_jail(
    unit: libenclave.Unit.Unit,
    jail_template: libenclave.Template.Template
) -> libenclave.Unit.Unit:
    """Return a created and stopped jail."""
    unit.create(template=jail_template.name, start=False)
    return unit


@pytest.fixture
def running_jail(
    existing_jail: libenclave.Unit.Unit
) -> libenclave.Unit.Unit:
    """Return a created and running jail."""
    existing_jail.start()
    return existing_jail


@pytest.fixture
def existing_vm(
    host: libenclave.Host.Host,
    zfs: fakes.MemoryZFS,
    logger: 'libenclave.Logger.Logger',
    vm_template: libenclave.Template.Template
) -> libenclave.Unit.Unit:
    """Return a created and stopped virtual machine."""
    vm = libenclave.Unit.Unit("vm01", host=host, zfs=zfs, logger=logger)
    vm.create(
        template=vm_template.name,
        config=dict(ip4_addr="10.0.0.5/24", defaultrouter="10.0.0.1"),
        start=False
    )
    return vm
