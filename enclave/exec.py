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
"""Execute commands in units from the CLI."""
import click
import typing

import libenclave.errors
import libenclave.Types
import libenclave.Unit

from .shared.click import EnclaveClickContext

__rootcmd__ = True


@click.command(
    context_settings=dict(ignore_unknown_options=True),
    name="exec"
)
@click.pass_context
@click.argument("name", required=True, nargs=1)
@click.argument("command", nargs=-1, type=click.UNPROCESSED)
def cli(
    ctx: EnclaveClickContext,
    name: str,
    command: typing.Tuple[str, ...]
) -> None:
    """
    Run a command or a shell in a running unit.

    Without a command a login shell is started in jails and the serial
    console is attached for virtual machines. Options of the command are
    separated with a double-dash:

        enclave exec web01 -- ps -aux
    """
    logger = ctx.parent.logger

    try:
        unit = libenclave.Unit.UnitGenerator(
            name,
            host=ctx.parent.host,
            zfs=ctx.parent.zfs,
            logger=logger
        )
        unit.require_exists()
        if unit.kind == libenclave.Types.UnitKind.VM:
            if len(command) > 0:
                logger.error("Commands cannot be executed in VMs")
                exit(2)
            _, _, returncode = unit.console()
        else:
            _, _, returncode = unit.exec(list(command))
    except libenclave.errors.EnclaveException:
        exit(1)

    exit(returncode)
