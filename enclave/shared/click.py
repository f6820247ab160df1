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
"""Click helpers shared by the enclave commands."""
import typing

import click

import libenclave.errors
import libenclave.Host
import libenclave.Logger
import libenclave.ZFS


class EnclaveClickContext(click.core.Context):
    """Click context with the objects set up by the enclave command group."""

    host: libenclave.Host.Host
    logger: libenclave.Logger.Logger
    zfs: libenclave.ZFS.ZFS
    parent: 'EnclaveClickContext'

    def print_events(
        self,
        generator: typing.Iterable['libenclave.events.EnclaveEvent']
    ) -> None:
        """Print the events of a generator."""
        pass


def parse_properties(
    properties: typing.Tuple[str, ...]
) -> typing.Dict[str, str]:
    """Parse key=value arguments into a dictionary."""
    data: typing.Dict[str, str] = {}
    for prop in properties:
        if "=" not in prop:
            raise click.BadParameter(
                f"Invalid property '{prop}' (expected key=value)",
                param_hint="PROPS"
            )
        key, value = prop.split("=", maxsplit=1)
        data[key] = value
    return data


def exit_code(error: libenclave.errors.EnclaveException) -> int:
    """Return the exit code of a library error."""
    if isinstance(error, libenclave.errors.UsageError):
        return 2
    return 1
