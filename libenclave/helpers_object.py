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
"""Attach the shared collaborators of libenclave objects."""
import typing

import libenclave.Logger


def init_logger(
    self: typing.Any,
    logger: typing.Optional['libenclave.Logger.Logger']=None
) -> 'libenclave.Logger.Logger':
    """Attach the given logger, or a default one, unless one is attached."""
    if "logger" not in self.__dict__:
        if logger is None:
            logger = libenclave.Logger.Logger()
        object.__setattr__(self, "logger", logger)
    return self.__dict__["logger"]


def init_zfs(
    self: typing.Any,
    zfs: typing.Optional['libenclave.ZFS.ZFS']=None
) -> 'libenclave.ZFS.ZFS':
    """Attach the given ZFS backend, or the zfs(8) wrapper."""
    if "zfs" not in self.__dict__:
        if zfs is None:
            import libenclave.ZFS
            zfs = libenclave.ZFS.ZFS(logger=self.logger)
        object.__setattr__(self, "zfs", zfs)
    return self.__dict__["zfs"]


def init_host(
    self: typing.Any,
    host: typing.Optional['libenclave.Host.Host']=None
) -> 'libenclave.Host.Host':
    """Return the given host or one configured from the environment."""
    if host is not None:
        return host
    import libenclave.Host
    return libenclave.Host.Host(zfs=self.zfs, logger=self.logger)
