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
"""enclave host configuration stored in a JSON file."""
import typing
import json
import os

import libenclave.errors
import libenclave.helpers_object

DEFAULT_CONFIG_FILE = "/usr/local/etc/enclave.json"
CONFIG_FILE_ENVIRONMENT_VARIABLE = "ENCLAVE_CONFIG"

DEFAULTS: typing.Dict[str, typing.Any] = {
    "trunk_interface": "em0",
    "domain": "local",
    "root_dataset": "zroot/enclave",
    "descriptor_directory": "/usr/local/etc/enclave/units",
    "lock_directory": "/var/run/enclave",
    "seed_directory": "/var/db/enclave/seeds",
    "iso_directory": "/var/db/enclave/isos",
    "os_quota": "10G",
    "data_quota": "20G",
    "vm_cpus": 1,
    "vm_memory": "1G",
    "vm_firmware": "/usr/local/share/uefi-firmware/BHYVE_UEFI.fd",
    "stop_timeout": 60,
    "release_mirror": "https://download.freebsd.org/releases",
    "devfs_ruleset": 5
}


class HostConfig(dict):
    """
    Host wide configuration of libenclave.

    The trunk interface, default domain, dataset paths and quotas are not
    embedded in the logic but read from a JSON file that overrides the
    built-in defaults. Tests and library users may inject a dict instead.
    """

    file: typing.Optional[str]

    def __init__(
        self,
        data: typing.Optional[typing.Dict[str, typing.Any]]=None,
        file: typing.Optional[str]=None,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        self.logger = libenclave.helpers_object.init_logger(self, logger)
        dict.__init__(self, DEFAULTS)
        self.file = file
        if file is not None:
            self.update(self.read(file))
        if data is not None:
            self.update(data)

    @classmethod
    def from_environment(
        cls,
        file: typing.Optional[str]=None,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> 'HostConfig':
        """Load the configuration file selected by argument or environment."""
        if file is None:
            file = os.environ.get(
                CONFIG_FILE_ENVIRONMENT_VARIABLE,
                DEFAULT_CONFIG_FILE
            )
        if os.path.isfile(file) is False:
            if logger is not None:
                logger.spam(f"No host config at {file} - using defaults")
            return cls(logger=logger)
        return cls(file=file, logger=logger)

    def read(self, file: str) -> typing.Dict[str, typing.Any]:
        """Read and validate a JSON configuration file."""
        try:
            with open(file, "r", encoding="utf-8") as f:
                content = f.read().strip()
        except (FileNotFoundError, PermissionError) as e:
            raise libenclave.errors.HostConfigError(
                reason=str(e),
                logger=self.logger
            )

        if content == "":
            return {}

        try:
            data = json.loads(content)
        except json.decoder.JSONDecodeError as e:
            raise libenclave.errors.HostConfigError(
                reason=f"{file}: {e}",
                logger=self.logger
            )

        if isinstance(data, dict) is False:
            raise libenclave.errors.HostConfigError(
                reason=f"{file} does not contain an object",
                logger=self.logger
            )

        unknown_keys = set(data.keys()) - set(DEFAULTS.keys())
        if len(unknown_keys) > 0:
            raise libenclave.errors.HostConfigError(
                reason=f"unknown keys: {', '.join(sorted(unknown_keys))}",
                logger=self.logger
            )

        self.logger.spam(f"Host config was read from {file}")
        return data

    def write(self, file: typing.Optional[str]=None) -> None:
        """Write the configuration as JSON."""
        target = file or self.file or DEFAULT_CONFIG_FILE
        with open(target, "w", encoding="utf-8") as f:
            f.write(json.dumps(dict(self), sort_keys=True, indent=4))
            f.write("\n")
        self.logger.verbose(f"Host config written to {target}")
