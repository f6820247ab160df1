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
"""Unit tests for templates."""
import typing
import io
import os.path
import tarfile
import pytest

import libenclave.errors
import libenclave.Template
import libenclave.Types

import fakes


@pytest.fixture
def template(
    host: 'libenclave.Host.Host',
    zfs: fakes.MemoryZFS,
    logger: 'libenclave.Logger.Logger'
) -> libenclave.Template.Template:
    """Return a template that does not exist yet."""
    return libenclave.Template.Template(
        "13.2-RELEASE",
        host=host,
        zfs=zfs,
        logger=logger
    )


@pytest.fixture
def downloads(monkeypatch: typing.Any) -> typing.List[str]:
    """Record downloads and write a placeholder file instead."""
    urls: typing.List[str] = []

    def _download(
        url: str,
        path: str,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        urls.append(url)
        with open(path, "wb") as f:
            f.write(b"enclave")

    monkeypatch.setattr(libenclave.Template, "download", _download)
    return urls


def _write_archive(path: str, members: typing.Dict[str, bytes]) -> None:
    with tarfile.open(path, "w:xz") as tar:
        for name, content in members.items():
            tar_info = tarfile.TarInfo(name)
            tar_info.size = len(content)
            tar.addfile(tar_info, io.BytesIO(content))


class TestTemplate(object):
    """Run tests for template datasets and snapshots."""

    def test_kind_and_cloudinit_are_stored(
        self,
        jail_template: libenclave.Template.Template,
        vm_template: libenclave.Template.Template
    ) -> None:

        assert jail_template.kind == libenclave.Types.UnitKind.JAIL
        assert jail_template.cloudinit is False
        assert vm_template.kind == libenclave.Types.UnitKind.VM
        assert vm_template.cloudinit is True

    def test_resolve_uses_the_most_recent_snapshot(
        self,
        jail_template: libenclave.Template.Template
    ) -> None:

        jail_template.snapshot("p3")
        jail_template.snapshot("p2")

        assert jail_template.resolve().name == "p2"
        assert jail_template.resolve("p3").name == "p3"

    def test_resolve_breaks_creation_ties_by_transaction_group(
        self,
        jail_template: libenclave.Template.Template,
        zfs: fakes.MemoryZFS
    ) -> None:

        zfs.tick = 0
        jail_template.snapshot("b")
        jail_template.snapshot("a")

        assert jail_template.resolve().name == "a"

    def test_resolve_errors(
        self,
        template: libenclave.Template.Template,
        jail_template: libenclave.Template.Template
    ) -> None:

        with pytest.raises(libenclave.errors.TemplateNotFound):
            template.resolve()

        template.create()
        with pytest.raises(libenclave.errors.TemplateHasNoSnapshot):
            template.resolve()

        with pytest.raises(libenclave.errors.SnapshotNotFound):
            jail_template.resolve("missing")

    def test_templates_are_created_once(
        self,
        jail_template: libenclave.Template.Template
    ) -> None:

        with pytest.raises(libenclave.errors.TemplateAlreadyExists):
            jail_template.create()

    def test_vm_templates_are_volumes(
        self,
        vm_template: libenclave.Template.Template,
        zfs: fakes.MemoryZFS
    ) -> None:

        dataset = zfs.datasets[vm_template.dataset_name]

        assert dataset["type"] == "volume"
        assert dataset["properties"]["volsize"] == str(5 * 1024 ** 3)

    def test_release_url(
        self,
        template: libenclave.Template.Template
    ) -> None:

        assert template.release_url("13.2-RELEASE") == (
            "https://mirror.example.com/releases/amd64/13.2-RELEASE/base.txz"
        )

    def test_fetch_release(
        self,
        template: libenclave.Template.Template,
        downloads: typing.List[str],
        monkeypatch: typing.Any
    ) -> None:

        extracted: typing.List[typing.Tuple[str, str]] = []
        monkeypatch.setattr(
            libenclave.Template,
            "extract_archive",
            lambda file, destination, logger=None: extracted.append(
                (os.path.basename(file), destination)
            )
        )

        events = [
            x.type for x in template.fetch_release("13.2-RELEASE")
            if x.pending is False
        ]

        assert events == [
            "TemplateDownload",
            "TemplateExtract",
            "TemplateSnapshot"
        ]
        assert downloads == [template.release_url("13.2-RELEASE")]
        assert extracted == [("base.txz", f"/{template.dataset_name}")]
        assert template.kind == libenclave.Types.UnitKind.JAIL
        assert [x.name for x in template.snapshots] == ["13.2-RELEASE"]

    def test_failing_extraction_removes_the_template(
        self,
        template: libenclave.Template.Template,
        downloads: typing.List[str],
        monkeypatch: typing.Any
    ) -> None:

        def _extract(
            file: str,
            destination: str,
            logger: typing.Optional['libenclave.Logger.Logger']=None
        ) -> None:
            raise libenclave.errors.IllegalArchiveContent(
                asset_name=file,
                reason="test"
            )

        monkeypatch.setattr(libenclave.Template, "extract_archive", _extract)

        with pytest.raises(libenclave.errors.IllegalArchiveContent):
            list(template.fetch_release("13.2-RELEASE"))

        assert template.exists is False

    def test_failing_download_creates_nothing(
        self,
        template: libenclave.Template.Template
    ) -> None:

        with pytest.raises(libenclave.errors.DownloadFailed):
            list(template.receive("gopher://example.com/template.zfs"))

        assert template.exists is False

    def test_receive(
        self,
        template: libenclave.Template.Template,
        downloads: typing.List[str]
    ) -> None:

        list(template.receive(
            "https://example.com/ubuntu.zfs",
            kind=libenclave.Types.UnitKind.VM,
            cloudinit=True
        ))

        assert downloads == ["https://example.com/ubuntu.zfs"]
        assert template.kind == libenclave.Types.UnitKind.VM
        assert template.cloudinit is True
        assert template.resolve().name == "received"

    def test_update_runs_freebsd_update(
        self,
        jail_template: libenclave.Template.Template,
        commands: typing.Any
    ) -> None:

        mountpoint = f"/{jail_template.dataset_name}"
        commands.respond(
            [f"{mountpoint}/bin/freebsd-version"],
            stdout="13.2-RELEASE-p4"
        )

        list(jail_template.update())

        update_command = commands.find("/usr/sbin/freebsd-update")[0]
        assert update_command[-2:] == ["fetch", "install"]
        assert "13.2-RELEASE-p4" in update_command
        assert ["-b", mountpoint] == update_command[2:4]
        assert len(jail_template.snapshots) == 2

    def test_vm_templates_cannot_be_updated(
        self,
        vm_template: libenclave.Template.Template
    ) -> None:

        with pytest.raises(libenclave.errors.TemplateKindMismatch):
            list(vm_template.update())


class TestArchives(object):
    """Run tests for release archives and downloads."""

    def test_extract_archive(self, tmpdir: typing.Any) -> None:

        archive = os.path.join(str(tmpdir), "base.txz")
        destination = os.path.join(str(tmpdir), "root")
        os.makedirs(destination)
        _write_archive(archive, {"./etc/motd": b"welcome\n"})

        libenclave.Template.extract_archive(archive, destination)

        with open(os.path.join(destination, "etc/motd"), "rb") as f:
            assert f.read() == b"welcome\n"

    def test_archives_must_not_escape_the_destination(
        self,
        tmpdir: typing.Any
    ) -> None:

        destination = os.path.join(str(tmpdir), "root")
        os.makedirs(destination)

        for name in ["./../escape", "etc/motd", "/etc/motd"]:
            archive = os.path.join(str(tmpdir), "bad.txz")
            _write_archive(archive, {name: b"x"})
            with pytest.raises(libenclave.errors.IllegalArchiveContent):
                libenclave.Template.extract_archive(archive, destination)

        assert os.listdir(destination) == []

    def test_download_from_a_file_url(self, tmpdir: typing.Any) -> None:

        source = os.path.join(str(tmpdir), "source.iso")
        target = os.path.join(str(tmpdir), "target.iso")
        with open(source, "wb") as f:
            f.write(b"iso")

        libenclave.Template.download(f"file://{source}", target)

        with open(target, "rb") as f:
            assert f.read() == b"iso"

    def test_download_of_a_missing_file_fails(
        self,
        tmpdir: typing.Any
    ) -> None:

        missing = os.path.join(str(tmpdir), "missing.iso")

        with pytest.raises(libenclave.errors.DownloadFailed):
            libenclave.Template.download(
                f"file://{missing}",
                os.path.join(str(tmpdir), "target.iso")
            )


class TestTemplates(object):
    """Run tests for the template collection of a host."""

    def test_names(
        self,
        host: 'libenclave.Host.Host',
        jail_template: libenclave.Template.Template,
        vm_template: libenclave.Template.Template
    ) -> None:

        assert host.templates.names == ["base", "ubuntu"]
        assert [x.kind for x in host.templates] == [
            libenclave.Types.UnitKind.JAIL,
            libenclave.Types.UnitKind.VM
        ]

    def test_download_iso(
        self,
        host: 'libenclave.Host.Host',
        downloads: typing.List[str]
    ) -> None:

        url = "https://example.com/images/installer.iso"
        path = host.templates.download_iso(url)

        assert path == os.path.join(
            host.config["iso_directory"],
            "installer.iso"
        )
        assert host.templates.isos() == ["installer.iso"]

        host.templates.download_iso(url)
        assert downloads == [url]
