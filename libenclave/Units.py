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
"""enclave module of unit collections."""
import typing

import libenclave.Unit
import libenclave.helpers_object


class UnitsGenerator:
    """Asynchronous representation of the units of a host."""

    def __init__(
        self,
        host: typing.Optional['libenclave.Host.Host']=None,
        zfs: typing.Optional['libenclave.ZFS.ZFS']=None,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        self.logger = libenclave.helpers_object.init_logger(self, logger)
        self.zfs = libenclave.helpers_object.init_zfs(self, zfs)
        self.host = libenclave.helpers_object.init_host(self, host)

    @property
    def _class_unit(self) -> typing.Type[libenclave.Unit.UnitGenerator]:
        return libenclave.Unit.UnitGenerator

    @property
    def names(self) -> typing.List[str]:
        """Return the names of all units."""
        return self.host.datasets.unit_names()

    def get(self, name: str) -> 'libenclave.Unit.UnitGenerator':
        """Return a unit by name."""
        return self._class_unit(
            name,
            host=self.host,
            zfs=self.zfs,
            logger=self.logger
        )

    def __iter__(
        self
    ) -> typing.Generator['libenclave.Unit.UnitGenerator', None, None]:
        """Iterate over all units."""
        for name in self.names:
            yield self.get(name)

    def __len__(self) -> int:
        """Return the number of units."""
        return len(self.names)


class Units(UnitsGenerator):
    """Synchronous wrapper of UnitsGenerator."""

    @property
    def _class_unit(self) -> typing.Type[libenclave.Unit.Unit]:
        return libenclave.Unit.Unit
