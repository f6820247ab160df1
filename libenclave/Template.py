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
"""enclave template module."""
import typing
import os.path
import tarfile
import tempfile
import urllib.error
import urllib.parse
import urllib.request

import libenclave.Datasets
import libenclave.errors
import libenclave.events
import libenclave.helpers
import libenclave.helpers_object
import libenclave.Types
import libenclave.ZFS


KIND_PROPERTY = f"{libenclave.Datasets.USER_PROPERTY_PREFIX}kind"
CLOUDINIT_PROPERTY = f"{libenclave.Datasets.USER_PROPERTY_PREFIX}cloudinit"


class Template:
    """
    A named base image for units.

    Templates are datasets below the templates root dataset. The kind of
    unit a template can be used for and whether the guest supports
    cloud-init configuration are stored as ZFS user properties. Units are
    always cloned from a snapshot of a template.
    """

    host: 'libenclave.Host.Host'
    name: str

    def __init__(
        self,
        name: str,
        host: typing.Optional['libenclave.Host.Host']=None,
        zfs: typing.Optional['libenclave.ZFS.ZFS']=None,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        self.logger = libenclave.helpers_object.init_logger(self, logger)
        self.zfs = libenclave.helpers_object.init_zfs(self, zfs)
        self.host = libenclave.helpers_object.init_host(self, host)
        self.name = name

    @property
    def dataset_name(self) -> str:
        """Return the name of the template dataset."""
        return f"{self.host.datasets.templates}/{self.name}"

    @property
    def exists(self) -> bool:
        """Return True if the template dataset exists."""
        return self.zfs.exists(self.dataset_name)

    def require_exists(self) -> None:
        """Raise TemplateNotFound when the template does not exist."""
        if self.exists is False:
            raise libenclave.errors.TemplateNotFound(
                name=self.name,
                logger=self.logger
            )

    def _get_user_properties(self) -> typing.Dict[str, str]:
        return self.zfs.get_user_properties(
            self.dataset_name,
            libenclave.Datasets.USER_PROPERTY_PREFIX
        )

    @property
    def kind(self) -> libenclave.Types.UnitKind:
        """Return the kind of units the template can be used for."""
        value = self._get_user_properties().get("kind", "jail")
        return libenclave.Types.UnitKind(value)

    @property
    def cloudinit(self) -> bool:
        """Return True if the template guest supports cloud-init."""
        value = self._get_user_properties().get("cloudinit", "no")
        try:
            return libenclave.helpers.parse_bool(value)
        except TypeError:
            return False

    @property
    def snapshots(self) -> typing.List['libenclave.ZFS.Snapshot']:
        """Return the template snapshots from oldest to newest."""
        return self.zfs.list_snapshots(self.dataset_name)

    @property
    def mountpoint(self) -> typing.Optional[str]:
        """Return the mountpoint of a filesystem template."""
        return self.zfs.mountpoint(self.dataset_name)

    def resolve(
        self,
        tag: typing.Optional[str]=None
    ) -> 'libenclave.ZFS.Snapshot':
        """
        Return the snapshot units are cloned from.

        An explicitly named snapshot wins. Otherwise the most recently
        created snapshot is returned, which is not necessarily the one with
        the highest name.
        """
        self.require_exists()
        snapshots = self.snapshots

        if tag is not None:
            for snapshot in snapshots:
                if snapshot.name == tag:
                    return snapshot
            raise libenclave.errors.SnapshotNotFound(
                snapshot_name=tag,
                dataset_name=self.dataset_name,
                logger=self.logger
            )

        if len(snapshots) == 0:
            raise libenclave.errors.TemplateHasNoSnapshot(
                name=self.name,
                logger=self.logger
            )
        return snapshots[-1]

    def snapshot(self, label: typing.Optional[str]=None) -> str:
        """Snapshot the template. The label defaults to the UTC datetime."""
        if label is None:
            label = libenclave.ZFS.get_snapshot_datetime()
        snapshot_name = f"{self.dataset_name}@{label}"
        if self.zfs.exists(snapshot_name) is True:
            raise libenclave.errors.SnapshotAlreadyExists(
                snapshot_name=label,
                dataset_name=self.dataset_name,
                logger=self.logger
            )
        self.zfs.snapshot([snapshot_name])
        return label

    def create(
        self,
        kind: libenclave.Types.UnitKind=libenclave.Types.UnitKind.JAIL,
        cloudinit: bool=False,
        volume_size: typing.Optional[str]=None
    ) -> None:
        """Create an empty template dataset (a volume for VM templates)."""
        if self.exists is True:
            raise libenclave.errors.TemplateAlreadyExists(
                name=self.name,
                logger=self.logger
            )
        properties = {
            KIND_PROPERTY: str(kind),
            CLOUDINIT_PROPERTY: libenclave.helpers.to_string(cloudinit)
        }
        if kind == libenclave.Types.UnitKind.VM:
            self.zfs.create_dataset(
                self.dataset_name,
                dict(volmode="dev", **properties),
                volume_size=volume_size or self.host.config["os_quota"]
            )
        else:
            self.zfs.create_dataset(self.dataset_name, properties)

    def destroy(self) -> None:
        """Destroy the template and all of its snapshots."""
        self.require_exists()
        self.zfs.destroy(self.dataset_name, recursive=True)

    def release_url(self, release: str, asset: str="base") -> str:
        """Return the download URL of a release asset."""
        mirror = self.host.config["release_mirror"].rstrip("/")
        return f"{mirror}/amd64/{release}/{asset}.txz"

    def fetch_release(
        self,
        release: str,
        event_scope: typing.Optional['libenclave.events.Scope']=None
    ) -> typing.Generator['libenclave.events.TemplateEvent', None, None]:
        """Create a jail template from a release base archive."""
        templateDownloadEvent = libenclave.events.TemplateDownload(
            template=self,
            scope=event_scope
        )
        _scope = templateDownloadEvent.scope
        templateExtractEvent = libenclave.events.TemplateExtract(
            template=self,
            scope=_scope
        )

        yield templateDownloadEvent.begin()
        if self.exists is True:
            yield templateDownloadEvent.fail()
            raise libenclave.errors.TemplateAlreadyExists(
                name=self.name,
                logger=self.logger
            )

        with tempfile.TemporaryDirectory(prefix="enclave-") as directory:
            path = os.path.join(directory, "base.txz")
            try:
                download(self.release_url(release), path, logger=self.logger)
            except Exception as e:
                yield templateDownloadEvent.fail(e)
                raise
            yield templateDownloadEvent.end()

            yield templateExtractEvent.begin()
            self.create(kind=libenclave.Types.UnitKind.JAIL)
            templateExtractEvent.add_rollback_step(self.destroy)
            try:
                mountpoint = self.mountpoint
                if mountpoint is None:
                    raise libenclave.errors.TemplateNotFound(
                        name=self.name,
                        logger=self.logger
                    )
                extract_archive(path, mountpoint, logger=self.logger)
            except Exception as e:
                yield from templateExtractEvent.fail_generator(e)
                raise
            yield templateExtractEvent.end()

        yield from self._snapshot_event(
            label=release,
            event_scope=_scope
        )

    def _snapshot_event(
        self,
        label: typing.Optional[str]=None,
        event_scope: typing.Optional['libenclave.events.Scope']=None
    ) -> typing.Generator['libenclave.events.TemplateEvent', None, None]:
        templateSnapshotEvent = libenclave.events.TemplateSnapshot(
            template=self,
            scope=event_scope
        )
        yield templateSnapshotEvent.begin()
        try:
            label = self.snapshot(label)
        except Exception as e:
            yield templateSnapshotEvent.fail(e)
            raise
        yield templateSnapshotEvent.end(f"{self.name}@{label}")

    def update(
        self,
        event_scope: typing.Optional['libenclave.events.Scope']=None
    ) -> typing.Generator['libenclave.events.TemplateEvent', None, None]:
        """Apply FreeBSD updates to a jail template and snapshot it."""
        templateUpdateEvent = libenclave.events.TemplateUpdate(
            template=self,
            scope=event_scope
        )
        yield templateUpdateEvent.begin()
        try:
            self.require_exists()
            if self.kind != libenclave.Types.UnitKind.JAIL:
                raise libenclave.errors.TemplateKindMismatch(
                    name=self.name,
                    kind="freebsd-update",
                    logger=self.logger
                )
            mountpoint = str(self.mountpoint)
            release, _, _ = libenclave.helpers.exec(
                [f"{mountpoint}/bin/freebsd-version", "-u"],
                logger=self.logger
            )
            libenclave.helpers.exec(
                [
                    "/usr/sbin/freebsd-update",
                    "--not-running-from-cron",
                    "-b", mountpoint,
                    "-d", f"{mountpoint}/var/db/freebsd-update",
                    "--currently-running", str(release),
                    "fetch", "install"
                ],
                logger=self.logger
            )
        except Exception as e:
            yield templateUpdateEvent.fail(e)
            raise
        yield templateUpdateEvent.end()

        yield from self._snapshot_event(event_scope=templateUpdateEvent.scope)

    def receive(
        self,
        url: str,
        kind: libenclave.Types.UnitKind=libenclave.Types.UnitKind.JAIL,
        cloudinit: bool=False,
        event_scope: typing.Optional['libenclave.events.Scope']=None
    ) -> typing.Generator['libenclave.events.TemplateEvent', None, None]:
        """Download a prebuilt template replication stream."""
        templateDownloadEvent = libenclave.events.TemplateDownload(
            template=self,
            scope=event_scope
        )
        yield templateDownloadEvent.begin()
        if self.exists is True:
            yield templateDownloadEvent.fail()
            raise libenclave.errors.TemplateAlreadyExists(
                name=self.name,
                logger=self.logger
            )

        with tempfile.TemporaryDirectory(prefix="enclave-") as directory:
            path = os.path.join(directory, "template.zfs")
            try:
                download(url, path, logger=self.logger)
                with open(path, "rb") as stream:
                    self.zfs.receive(self.dataset_name, stream)
            except Exception as e:
                yield templateDownloadEvent.fail(e)
                raise

        templateDownloadEvent.add_rollback_step(self.destroy)
        try:
            self.zfs.set_properties(self.dataset_name, {
                KIND_PROPERTY: str(kind),
                CLOUDINIT_PROPERTY: libenclave.helpers.to_string(cloudinit)
            })
            if len(self.snapshots) == 0:
                self.snapshot()
        except Exception as e:
            yield from templateDownloadEvent.fail_generator(e)
            raise
        yield templateDownloadEvent.end()

    def __str__(self) -> str:
        """Return the template name."""
        return self.name


def extract_archive(
    file: str,
    destination: str,
    logger: typing.Optional['libenclave.Logger.Logger']=None
) -> None:
    """
    Extract a release archive after verifying its member names.

    Members must be relative to ./ and must not contain '..'.
    """
    with tarfile.open(file, "r:xz") as tar:
        for tar_info in tar.getmembers():
            name = tar_info.name
            if name == ".":
                continue
            if name.startswith("./") is False:
                reason = "Names in archives must begin with './'"
            elif ".." in name:
                reason = "Names in archives must not contain '..'"
            else:
                continue
            raise libenclave.errors.IllegalArchiveContent(
                asset_name=file,
                reason=reason,
                logger=logger
            )
        if logger is not None:
            logger.verbose(f"Extracting {file}")
        tar.extractall(destination, filter="fully_trusted")
        if logger is not None:
            logger.verbose(f"{file} was extracted to {destination}")


def download(
    url: str,
    path: str,
    logger: typing.Optional['libenclave.Logger.Logger']=None
) -> None:
    """Download a remote asset to a local path."""
    scheme = urllib.parse.urlparse(url).scheme
    if scheme not in ["http", "https", "ftp", "file"]:
        raise libenclave.errors.DownloadFailed(url=url, logger=logger)
    if logger is not None:
        logger.debug(f"Starting download of {url}")
    try:
        urllib.request.urlretrieve(url, path)  # nosec: validated scheme
    except urllib.error.HTTPError as http_error:
        raise libenclave.errors.DownloadFailed(
            url=url,
            code=http_error.code,
            logger=logger
        )
    except urllib.error.URLError:
        raise libenclave.errors.DownloadFailed(url=url, logger=logger)
    if logger is not None:
        logger.verbose(f"{url} was saved to {path}")
