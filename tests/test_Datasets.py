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
"""Unit tests for unit datasets."""
import pytest

import libenclave.Datasets
import libenclave.errors
import libenclave.Types

import fakes


@pytest.fixture
def root(
    zfs: fakes.MemoryZFS,
    logger: 'libenclave.Logger.Logger'
) -> libenclave.Datasets.RootDatasets:
    """Return initialized root datasets."""
    root = libenclave.Datasets.RootDatasets(
        "zroot/enclave",
        zfs=zfs,
        logger=logger
    )
    root.init()
    return root


@pytest.fixture
def template_snapshot(zfs: fakes.MemoryZFS) -> str:
    """Return a filesystem template snapshot."""
    zfs.create_dataset("zroot/enclave/templates/base")
    zfs.snapshot(["zroot/enclave/templates/base@p1"])
    return "zroot/enclave/templates/base@p1"


@pytest.fixture
def volume_snapshot(zfs: fakes.MemoryZFS) -> str:
    """Return a 5G volume template snapshot."""
    zfs.create_dataset("zroot/enclave/templates/disk", volume_size="5G")
    zfs.snapshot(["zroot/enclave/templates/disk@p1"])
    return "zroot/enclave/templates/disk@p1"


class TestRootDatasets(object):
    """Run tests for the root dataset layout."""

    def test_init_is_idempotent(
        self,
        zfs: fakes.MemoryZFS,
        logger: 'libenclave.Logger.Logger'
    ) -> None:

        root = libenclave.Datasets.RootDatasets(
            "zroot/enclave",
            zfs=zfs,
            logger=logger
        )

        assert root.init() == [
            "zroot/enclave",
            "zroot/enclave/templates",
            "zroot/enclave/units"
        ]
        assert root.init() == []

    def test_unit_names(
        self,
        root: libenclave.Datasets.RootDatasets,
        template_snapshot: str
    ) -> None:

        for name in ["web02", "db01"]:
            root.get_unit(name).create(
                template_snapshot=template_snapshot,
                kind=libenclave.Types.UnitKind.JAIL,
                os_quota="1G",
                data_quota="1G"
            )

        assert root.unit_names() == ["db01", "web02"]


class TestUnitDatasets(object):
    """Run tests for the os and data datasets of units."""

    def test_jail_datasets(
        self,
        root: libenclave.Datasets.RootDatasets,
        template_snapshot: str,
        zfs: fakes.MemoryZFS
    ) -> None:

        datasets = root.get_unit("web01")
        datasets.create(
            template_snapshot=template_snapshot,
            kind=libenclave.Types.UnitKind.JAIL,
            os_quota="10G",
            data_quota="20G",
            properties=dict(kind="jail")
        )

        parent = zfs.datasets["zroot/enclave/units/web01"]
        os_dataset = zfs.datasets["zroot/enclave/units/web01/os"]
        data_dataset = zfs.datasets["zroot/enclave/units/web01/data"]

        assert parent["properties"]["canmount"] == "off"
        assert datasets.read_properties() == dict(kind="jail")
        assert os_dataset["origin"] == template_snapshot
        assert os_dataset["properties"]["quota"] == "10G"
        assert data_dataset["origin"] is None
        assert data_dataset["properties"]["jailed"] == "on"
        assert data_dataset["properties"]["quota"] == "20G"

    def test_vm_volumes_are_grown_to_the_quota(
        self,
        root: libenclave.Datasets.RootDatasets,
        volume_snapshot: str,
        zfs: fakes.MemoryZFS
    ) -> None:

        datasets = root.get_unit("vm01")
        datasets.create(
            template_snapshot=volume_snapshot,
            kind=libenclave.Types.UnitKind.VM,
            os_quota="10G",
            data_quota="20G"
        )

        os_volume = zfs.datasets[datasets.os_dataset_name]
        data_volume = zfs.datasets[datasets.data_dataset_name]

        assert os_volume["type"] == "volume"
        assert os_volume["properties"]["volsize"] == str(10 * 1024 ** 3)
        assert data_volume["properties"]["volsize"] == str(20 * 1024 ** 3)

    def test_vm_volumes_are_never_shrunk(
        self,
        root: libenclave.Datasets.RootDatasets,
        volume_snapshot: str,
        zfs: fakes.MemoryZFS
    ) -> None:

        datasets = root.get_unit("vm01")
        datasets.create(
            template_snapshot=volume_snapshot,
            kind=libenclave.Types.UnitKind.VM,
            os_quota="1G",
            data_quota="1G"
        )

        os_volume = zfs.datasets[datasets.os_dataset_name]
        assert os_volume["properties"]["volsize"] == str(5 * 1024 ** 3)

    def test_failing_creation_is_reverted(
        self,
        root: libenclave.Datasets.RootDatasets,
        volume_snapshot: str,
        zfs: fakes.MemoryZFS
    ) -> None:

        datasets = root.get_unit("vm01")
        zfs.fail("set")

        with pytest.raises(libenclave.errors.ExternalToolFailure):
            datasets.create(
                template_snapshot=volume_snapshot,
                kind=libenclave.Types.UnitKind.VM,
                os_quota="10G",
                data_quota="1G"
            )

        assert datasets.exists is False
        assert len(zfs.snapshots) == 1

    def test_existing_datasets_are_not_overwritten(
        self,
        root: libenclave.Datasets.RootDatasets,
        template_snapshot: str
    ) -> None:

        datasets = root.get_unit("web01")
        arguments = dict(
            template_snapshot=template_snapshot,
            kind=libenclave.Types.UnitKind.JAIL,
            os_quota="1G",
            data_quota="1G"
        )
        datasets.create(**arguments)

        with pytest.raises(libenclave.errors.UnitAlreadyExists):
            datasets.create(**arguments)

    def test_destroy_releases_the_template_snapshot(
        self,
        root: libenclave.Datasets.RootDatasets,
        template_snapshot: str,
        zfs: fakes.MemoryZFS
    ) -> None:

        datasets = root.get_unit("web01")
        datasets.create(
            template_snapshot=template_snapshot,
            kind=libenclave.Types.UnitKind.JAIL,
            os_quota="1G",
            data_quota="1G"
        )
        datasets.destroy()

        assert datasets.exists is False
        zfs.destroy(template_snapshot)
        assert zfs.exists(template_snapshot) is False

    def test_snapshots_are_atomic(
        self,
        root: libenclave.Datasets.RootDatasets,
        template_snapshot: str
    ) -> None:

        datasets = root.get_unit("web01")
        datasets.create(
            template_snapshot=template_snapshot,
            kind=libenclave.Types.UnitKind.JAIL,
            os_quota="1G",
            data_quota="1G"
        )
        datasets.snapshot("s1")

        os_snapshot, data_snapshot = datasets.list_snapshots()
        assert os_snapshot.creation == data_snapshot.creation
        assert os_snapshot.createtxg == data_snapshot.createtxg

    def test_snapshots_are_ordered_by_creation(
        self,
        root: libenclave.Datasets.RootDatasets,
        template_snapshot: str
    ) -> None:

        datasets = root.get_unit("web01")
        datasets.create(
            template_snapshot=template_snapshot,
            kind=libenclave.Types.UnitKind.JAIL,
            os_quota="1G",
            data_quota="1G"
        )
        for label in ["zz", "aa", "mm"]:
            datasets.snapshot(label)

        names = [x.name for x in datasets.list_snapshots()]
        assert names == ["zz", "zz", "aa", "aa", "mm", "mm"]

    def test_rollback_requires_the_snapshot_on_both_datasets(
        self,
        root: libenclave.Datasets.RootDatasets,
        template_snapshot: str,
        zfs: fakes.MemoryZFS
    ) -> None:

        datasets = root.get_unit("web01")
        datasets.create(
            template_snapshot=template_snapshot,
            kind=libenclave.Types.UnitKind.JAIL,
            os_quota="1G",
            data_quota="1G"
        )
        datasets.snapshot("s1")
        zfs.destroy(f"{datasets.data_dataset_name}@s1")

        with pytest.raises(libenclave.errors.SnapshotNotFound):
            datasets.rollback("s1")

    def test_reprovision_keeps_os_when_cloning_fails(
        self,
        root: libenclave.Datasets.RootDatasets,
        template_snapshot: str,
        zfs: fakes.MemoryZFS
    ) -> None:

        datasets = root.get_unit("web01")
        datasets.create(
            template_snapshot=template_snapshot,
            kind=libenclave.Types.UnitKind.JAIL,
            os_quota="1G",
            data_quota="1G"
        )
        zfs.fail("clone")

        with pytest.raises(libenclave.errors.ExternalToolFailure):
            datasets.reprovision(
                template_snapshot=template_snapshot,
                kind=libenclave.Types.UnitKind.JAIL,
                os_quota="1G"
            )

        assert zfs.exists(datasets.os_dataset_name) is True
        assert zfs.exists(f"{datasets.os_dataset_name}.reprovision") is False

    def test_reprovision_removes_leftover_staging_datasets(
        self,
        root: libenclave.Datasets.RootDatasets,
        template_snapshot: str,
        zfs: fakes.MemoryZFS
    ) -> None:

        datasets = root.get_unit("web01")
        datasets.create(
            template_snapshot=template_snapshot,
            kind=libenclave.Types.UnitKind.JAIL,
            os_quota="1G",
            data_quota="1G"
        )
        zfs.create_dataset(f"{datasets.os_dataset_name}.reprovision")

        datasets.reprovision(
            template_snapshot=template_snapshot,
            kind=libenclave.Types.UnitKind.JAIL,
            os_quota="2G"
        )

        os_dataset = zfs.datasets[datasets.os_dataset_name]
        assert os_dataset["origin"] == template_snapshot
        assert os_dataset["properties"]["quota"] == "2G"
        assert zfs.exists(f"{datasets.os_dataset_name}.reprovision") is False
