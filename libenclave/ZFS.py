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
"""enclave ZFS command module."""
import typing
import datetime

import libenclave.Logger
import libenclave.helpers
import libenclave.helpers_object


class Snapshot(typing.NamedTuple):
    """A ZFS snapshot as reported by zfs list."""

    dataset: str
    name: str
    creation: int
    createtxg: int

    @property
    def full_name(self) -> str:
        """Return the snapshot identifier dataset@name."""
        return f"{self.dataset}@{self.name}"


class ZFS:
    """
    Thin wrapper around zfs(8).

    All storage operations of libenclave pass through an instance of this
    class. Failures of the zfs command raise ExternalToolFailure with the
    diagnostic output of zfs passed through.
    """

    zfs_command = "/sbin/zfs"

    def __init__(
        self,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        self.logger = libenclave.helpers_object.init_logger(self, logger)

    def _exec(
        self,
        arguments: typing.List[str],
        ignore_error: bool=False
    ) -> libenclave.helpers.CommandOutput:
        return libenclave.helpers.exec(
            [self.zfs_command] + arguments,
            logger=self.logger,
            ignore_error=ignore_error
        )

    @staticmethod
    def _property_arguments(
        properties: typing.Optional[typing.Dict[str, str]]
    ) -> typing.List[str]:
        arguments: typing.List[str] = []
        if properties is None:
            return arguments
        for key, value in properties.items():
            arguments += ["-o", f"{key}={value}"]
        return arguments

    def exists(self, name: str) -> bool:
        """Return True if the dataset, volume or snapshot exists."""
        _, _, returncode = self._exec(
            ["list", "-H", "-o", "name", "-t", "all", name],
            ignore_error=True
        )
        return returncode == 0

    def create_dataset(
        self,
        name: str,
        properties: typing.Optional[typing.Dict[str, str]]=None,
        volume_size: typing.Optional[str]=None
    ) -> None:
        """Create a filesystem, or a volume when a size is given."""
        command = ["create", "-p"] + self._property_arguments(properties)
        if volume_size is not None:
            command += ["-V", str(volume_size)]
        self.logger.verbose(f"Creating ZFS dataset {name}")
        self._exec(command + [name])

    def clone_snapshot(
        self,
        snapshot_name: str,
        target: str,
        properties: typing.Optional[typing.Dict[str, str]]=None
    ) -> None:
        """Clone a snapshot to the target dataset name."""
        self.logger.verbose(f"Cloning snapshot {snapshot_name} to {target}")
        self._exec(
            ["clone"] + self._property_arguments(properties) +
            [snapshot_name, target]
        )

    def snapshot(self, snapshot_names: typing.List[str]) -> None:
        """Atomically create one or many snapshots."""
        self.logger.verbose(f"Creating snapshots {', '.join(snapshot_names)}")
        self._exec(["snapshot"] + snapshot_names)

    def rollback(self, snapshot_name: str) -> None:
        """Revert a dataset to a snapshot, discarding newer snapshots."""
        self.logger.verbose(f"Rolling back to {snapshot_name}")
        self._exec(["rollback", "-r", snapshot_name])

    def rename(self, name: str, new_name: str) -> None:
        """Rename a dataset."""
        self.logger.verbose(f"Renaming {name} to {new_name}")
        self._exec(["rename", name, new_name])

    def destroy(self, name: str, recursive: bool=False) -> None:
        """Destroy a dataset, volume or snapshot."""
        self.logger.verbose(f"Deleting {name}")
        command = ["destroy"]
        if recursive is True:
            command.append("-r")
        self._exec(command + [name])

    def unmount(self, name: str) -> None:
        """Unmount a filesystem."""
        self.logger.spam(f"Unmounting {name}")
        self._exec(["unmount", name])

    def receive(self, name: str, stream: typing.BinaryIO) -> None:
        """Receive a replication stream into a new dataset."""
        self.logger.verbose(f"Receiving ZFS stream into {name}")
        libenclave.helpers.exec(
            [self.zfs_command, "receive", name],
            logger=self.logger,
            stdin=stream
        )

    def list_children(self, name: str) -> typing.List[str]:
        """Return the names of the direct children of a dataset."""
        stdout, _, _ = self._exec([
            "list", "-H", "-o", "name",
            "-t", "filesystem,volume",
            "-d", "1", name
        ])
        return [x for x in str(stdout).splitlines() if x not in ["", name]]

    def list_snapshots(self, name: str) -> typing.List[Snapshot]:
        """Return the snapshots of a dataset ordered by creation."""
        stdout, _, _ = self._exec([
            "list", "-H", "-p",
            "-o", "name,creation,createtxg",
            "-t", "snapshot",
            "-d", "1", name
        ])
        snapshots = []
        for line in str(stdout).splitlines():
            if line.strip() == "":
                continue
            full_name, creation, createtxg = line.split("\t")
            dataset_name, snapshot_name = full_name.split("@", maxsplit=1)
            snapshots.append(Snapshot(
                dataset=dataset_name,
                name=snapshot_name,
                creation=int(creation),
                createtxg=int(createtxg)
            ))
        return sort_snapshots(snapshots)

    def get_property(self, name: str, property_name: str) -> str:
        """Return the raw value of a dataset property."""
        stdout, _, _ = self._exec(
            ["get", "-H", "-p", "-o", "value", property_name, name]
        )
        return str(stdout).strip()

    def get_user_properties(
        self,
        name: str,
        prefix: str
    ) -> typing.Dict[str, str]:
        """Return locally set user properties with the given prefix."""
        stdout, _, _ = self._exec([
            "get", "-H", "-p",
            "-o", "property,value",
            "-s", "local",
            "all", name
        ])
        properties: typing.Dict[str, str] = {}
        for line in str(stdout).splitlines():
            if "\t" not in line:
                continue
            key, value = line.split("\t", maxsplit=1)
            if key.startswith(prefix):
                properties[key[len(prefix):]] = value
        return properties

    def set_property(self, name: str, property_name: str, value: str) -> None:
        """Set a dataset property."""
        self._exec(["set", f"{property_name}={value}", name])

    def set_properties(
        self,
        name: str,
        properties: typing.Dict[str, str]
    ) -> None:
        """Set many dataset properties in one command."""
        if len(properties) == 0:
            return
        self._exec(
            ["set"] +
            [f"{key}={value}" for key, value in properties.items()] +
            [name]
        )

    def inherit_property(self, name: str, property_name: str) -> None:
        """Remove a locally set property."""
        self._exec(["inherit", property_name, name])

    def is_mounted(self, name: str) -> bool:
        """Return True if a filesystem is mounted."""
        return self.get_property(name, "mounted") == "yes"

    def mountpoint(self, name: str) -> typing.Optional[str]:
        """Return the mountpoint of a mounted filesystem or None."""
        if self.is_mounted(name) is False:
            return None
        return self.get_property(name, "mountpoint")


def sort_snapshots(snapshots: typing.List[Snapshot]) -> typing.List[Snapshot]:
    """Order snapshots by creation time and transaction group, not by name."""
    return sorted(snapshots, key=lambda x: (x.creation, x.createtxg))


def get_snapshot_datetime() -> str:
    """Return the current datetime string to label a snapshot."""
    now = datetime.datetime.now(datetime.timezone.utc)
    return now.strftime("%Y%m%d%H%M%S")
