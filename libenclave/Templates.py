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
"""enclave templates module."""
import typing
import os
import os.path
import urllib.parse

import libenclave.helpers_object
import libenclave.Template


class Templates:
    """Iterate the templates of a host and manage installation media."""

    def __init__(
        self,
        host: typing.Optional['libenclave.Host.Host']=None,
        zfs: typing.Optional['libenclave.ZFS.ZFS']=None,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        self.logger = libenclave.helpers_object.init_logger(self, logger)
        self.zfs = libenclave.helpers_object.init_zfs(self, zfs)
        self.host = libenclave.helpers_object.init_host(self, host)

    def get(self, name: str) -> 'libenclave.Template.Template':
        """Return a template by name."""
        return libenclave.Template.Template(
            name=name,
            host=self.host,
            zfs=self.zfs,
            logger=self.logger
        )

    @property
    def names(self) -> typing.List[str]:
        """Return the names of all templates."""
        templates_dataset = self.host.datasets.templates
        if self.zfs.exists(templates_dataset) is False:
            return []
        prefix = f"{templates_dataset}/"
        return sorted([
            x[len(prefix):]
            for x in self.zfs.list_children(templates_dataset)
        ])

    def __iter__(
        self
    ) -> typing.Generator['libenclave.Template.Template', None, None]:
        """Iterate over all templates."""
        for name in self.names:
            yield self.get(name)

    def download_iso(self, url: str) -> str:
        """Download an installation image into the ISO directory."""
        iso_directory = self.host.config["iso_directory"]
        os.makedirs(iso_directory, mode=0o755, exist_ok=True)
        filename = os.path.basename(urllib.parse.urlparse(url).path)
        path = os.path.join(iso_directory, filename or "download.iso")
        if os.path.isfile(path):
            self.logger.verbose(f"{path} already exists")
            return path
        libenclave.Template.download(url, path, logger=self.logger)
        return path

    def isos(self) -> typing.List[str]:
        """Return the file names of downloaded installation images."""
        iso_directory = self.host.config["iso_directory"]
        if os.path.isdir(iso_directory) is False:
            return []
        return sorted(os.listdir(iso_directory))
