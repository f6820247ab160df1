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
"""enclave datasets module."""
import typing

import libenclave.errors
import libenclave.helpers
import libenclave.helpers_object
import libenclave.Types
import libenclave.ZFS

# MyPy
import libenclave.Logger  # noqa: F401

USER_PROPERTY_PREFIX = "enclave:"


class RootDatasets:
    """
    enclave root dataset abstraction.

    All datasets managed by enclave are located below one root dataset:

    .. code-block:: console

        zroot/enclave
        zroot/enclave/templates/<template>
        zroot/enclave/units/<unit>/os
        zroot/enclave/units/<unit>/data
    """

    zfs: 'libenclave.ZFS.ZFS'
    logger: 'libenclave.Logger.Logger'

    def __init__(
        self,
        root_dataset: str,
        zfs: typing.Optional['libenclave.ZFS.ZFS']=None,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        self.logger = libenclave.helpers_object.init_logger(self, logger)
        self.zfs = libenclave.helpers_object.init_zfs(self, zfs)
        self.root = root_dataset

    @property
    def templates(self) -> str:
        """Return the name of the templates dataset."""
        return f"{self.root}/templates"

    @property
    def units(self) -> str:
        """Return the name of the units dataset."""
        return f"{self.root}/units"

    def init(self) -> typing.List[str]:
        """Create the missing root datasets and return their names."""
        created: typing.List[str] = []
        for dataset_name in [self.root, self.templates, self.units]:
            if self.zfs.exists(dataset_name) is True:
                continue
            self.zfs.create_dataset(dataset_name)
            created.append(dataset_name)
        return created

    def get_unit(self, name: str) -> 'UnitDatasets':
        """Return the datasets of a unit."""
        return UnitDatasets(
            name=name,
            root=self,
            zfs=self.zfs,
            logger=self.logger
        )

    def unit_names(self) -> typing.List[str]:
        """Return the names of all units."""
        if self.zfs.exists(self.units) is False:
            return []
        prefix = f"{self.units}/"
        return sorted([
            x[len(prefix):] for x in self.zfs.list_children(self.units)
        ])


class UnitDatasets:
    """
    The dataset tree of a unit.

    The unit dataset is an unmounted container for two children: ``os`` is
    a clone of a template snapshot and can be replaced at any time, ``data``
    is created independently and is owned by the unit alone. Jails use
    filesystems, virtual machines use volumes.
    """

    def __init__(
        self,
        name: str,
        root: RootDatasets,
        zfs: typing.Optional['libenclave.ZFS.ZFS']=None,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        self.logger = libenclave.helpers_object.init_logger(self, logger)
        self.zfs = libenclave.helpers_object.init_zfs(self, zfs)
        self.name = name
        self.root = root

    @property
    def dataset_name(self) -> str:
        """Return the name of the unit container dataset."""
        return f"{self.root.units}/{self.name}"

    @property
    def os_dataset_name(self) -> str:
        """Return the name of the os dataset."""
        return f"{self.dataset_name}/os"

    @property
    def data_dataset_name(self) -> str:
        """Return the name of the data dataset."""
        return f"{self.dataset_name}/data"

    @property
    def children(self) -> typing.List[str]:
        """Return the names of os and data in creation order."""
        return [self.os_dataset_name, self.data_dataset_name]

    @property
    def exists(self) -> bool:
        """Return True if the unit dataset exists."""
        return self.zfs.exists(self.dataset_name)

    @property
    def os_mountpoint(self) -> str:
        """Return the mountpoint of the os filesystem."""
        return self.zfs.get_property(self.os_dataset_name, "mountpoint")

    def create(
        self,
        template_snapshot: str,
        kind: libenclave.Types.UnitKind,
        os_quota: str,
        data_quota: str,
        properties: typing.Optional[typing.Dict[str, str]]=None
    ) -> None:
        """
        Create the dataset tree of the unit.

        When any step fails, everything created so far is destroyed again
        before the error is raised.
        """
        if self.exists is True:
            raise libenclave.errors.UnitAlreadyExists(
                name=self.name,
                logger=self.logger
            )

        parent_properties = dict(canmount="off")
        if properties is not None:
            parent_properties.update(self._prefixed(properties))

        self.zfs.create_dataset(self.dataset_name, parent_properties)
        try:
            self._create_os(template_snapshot, kind, os_quota)
            self._create_data(kind, data_quota)
        except Exception:
            self.logger.verbose(
                f"Reverting creation of {self.dataset_name}"
            )
            self.zfs.destroy(self.dataset_name, recursive=True)
            raise

    def _create_os(
        self,
        template_snapshot: str,
        kind: libenclave.Types.UnitKind,
        os_quota: str
    ) -> None:
        if kind == libenclave.Types.UnitKind.JAIL:
            self.zfs.clone_snapshot(
                template_snapshot,
                self.os_dataset_name,
                dict(quota=str(os_quota))
            )
            return

        self.zfs.clone_snapshot(
            template_snapshot,
            self.os_dataset_name,
            dict(volmode="dev")
        )
        self._grow_volume(self.os_dataset_name, os_quota)

    def _grow_volume(self, dataset_name: str, size: str) -> None:
        current_size = int(self.zfs.get_property(dataset_name, "volsize"))
        requested_size = libenclave.helpers.parse_size(size)
        if requested_size > current_size:
            self.zfs.set_property(dataset_name, "volsize", str(requested_size))

    def _create_data(
        self,
        kind: libenclave.Types.UnitKind,
        data_quota: str
    ) -> None:
        if kind == libenclave.Types.UnitKind.JAIL:
            self.zfs.create_dataset(
                self.data_dataset_name,
                dict(
                    quota=str(data_quota),
                    jailed="on",
                    mountpoint="/data"
                )
            )
            return

        self.zfs.create_dataset(
            self.data_dataset_name,
            dict(volmode="dev"),
            volume_size=str(data_quota)
        )

    def destroy(self) -> None:
        """
        Recursively destroy the dataset tree.

        Mounted children are unmounted first. A child that is still in use
        raises DatasetBusy, so that the unit has to be stopped first.
        """
        for dataset_name in reversed(self.children):
            if self.zfs.exists(dataset_name) is False:
                continue
            self._release(dataset_name)
        self._destroy(self.dataset_name)

    def _release(self, dataset_name: str) -> None:
        if self.zfs.is_mounted(dataset_name) is False:
            return
        try:
            self.zfs.unmount(dataset_name)
        except libenclave.errors.ExternalToolFailure as e:
            raise libenclave.errors.DatasetBusy(
                dataset_name=dataset_name,
                reason=e.stderr,
                logger=self.logger
            )

    def _destroy(self, dataset_name: str) -> None:
        try:
            self.zfs.destroy(dataset_name, recursive=True)
        except libenclave.errors.ExternalToolFailure as e:
            if "busy" in str(e.stderr or ""):
                raise libenclave.errors.DatasetBusy(
                    dataset_name=dataset_name,
                    reason=e.stderr,
                    logger=self.logger
                )
            raise

    def _require_snapshot_name(self, snapshot_name: str) -> None:
        if libenclave.helpers.validate_name(snapshot_name) is False:
            raise libenclave.errors.InvalidSnapshotName(
                snapshot_name=snapshot_name,
                logger=self.logger
            )

    def _require_snapshot(self, snapshot_name: str) -> None:
        for dataset_name in self.children:
            full_name = f"{dataset_name}@{snapshot_name}"
            if self.zfs.exists(full_name) is False:
                raise libenclave.errors.SnapshotNotFound(
                    snapshot_name=snapshot_name,
                    dataset_name=dataset_name,
                    logger=self.logger
                )

    def snapshot(self, snapshot_name: typing.Optional[str]=None) -> str:
        """
        Snapshot os and data under the same name in one operation.

        Without a name the current UTC datetime is used. Returns the name.
        """
        if snapshot_name is None:
            snapshot_name = libenclave.ZFS.get_snapshot_datetime()
        self._require_snapshot_name(snapshot_name)

        for dataset_name in self.children:
            if self.zfs.exists(f"{dataset_name}@{snapshot_name}") is True:
                raise libenclave.errors.SnapshotAlreadyExists(
                    snapshot_name=snapshot_name,
                    dataset_name=dataset_name,
                    logger=self.logger
                )

        self.zfs.snapshot([f"{x}@{snapshot_name}" for x in self.children])
        return snapshot_name

    def list_snapshots(self) -> typing.List['libenclave.ZFS.Snapshot']:
        """Return the snapshots of os and data ordered by creation."""
        snapshots: typing.List['libenclave.ZFS.Snapshot'] = []
        for dataset_name in self.children:
            snapshots += self.zfs.list_snapshots(dataset_name)
        return libenclave.ZFS.sort_snapshots(snapshots)

    def rollback(self, snapshot_name: str) -> None:
        """Revert os and data to a snapshot present on both datasets."""
        self._require_snapshot(snapshot_name)
        for dataset_name in self.children:
            self.zfs.rollback(f"{dataset_name}@{snapshot_name}")

    def destroy_snapshot(self, snapshot_name: str) -> None:
        """Destroy a snapshot of os and data."""
        self._require_snapshot(snapshot_name)
        for dataset_name in self.children:
            self.zfs.destroy(f"{dataset_name}@{snapshot_name}")

    @property
    def _staging_dataset_name(self) -> str:
        return f"{self.os_dataset_name}.reprovision"

    def reprovision(
        self,
        template_snapshot: str,
        kind: libenclave.Types.UnitKind,
        os_quota: str
    ) -> None:
        """
        Replace os with a new clone of a template snapshot.

        The new clone is created next to the current os before the current
        os is destroyed, so that a failing clone leaves the unit intact.
        The data dataset is never touched.
        """
        staging = self._staging_dataset_name
        if self.zfs.exists(staging) is True:
            self.logger.verbose(f"Removing leftover dataset {staging}")
            self.zfs.destroy(staging, recursive=True)

        if kind == libenclave.Types.UnitKind.JAIL:
            self.zfs.clone_snapshot(
                template_snapshot,
                staging,
                dict(quota=str(os_quota))
            )
        else:
            self.zfs.clone_snapshot(
                template_snapshot,
                staging,
                dict(volmode="dev")
            )

        try:
            if kind == libenclave.Types.UnitKind.VM:
                self._grow_volume(staging, os_quota)
            if self.zfs.exists(self.os_dataset_name) is True:
                self._release(self.os_dataset_name)
                self._destroy(self.os_dataset_name)
        except Exception:
            self.zfs.destroy(staging, recursive=True)
            raise

        self.zfs.rename(staging, self.os_dataset_name)

    def _prefixed(
        self,
        properties: typing.Dict[str, str]
    ) -> typing.Dict[str, str]:
        return {
            f"{USER_PROPERTY_PREFIX}{key}": value
            for key, value in properties.items()
        }

    def read_properties(self) -> typing.Dict[str, str]:
        """Return the enclave user properties of the unit."""
        return self.zfs.get_user_properties(
            self.dataset_name,
            USER_PROPERTY_PREFIX
        )

    def write_properties(self, properties: typing.Dict[str, str]) -> None:
        """Store enclave user properties on the unit dataset."""
        self.zfs.set_properties(self.dataset_name, self._prefixed(properties))
