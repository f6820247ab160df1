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
"""Destroy units from the CLI."""
import click
import typing

import libenclave.errors
import libenclave.Unit

from .shared.click import EnclaveClickContext

__rootcmd__ = True


@click.command(name="destroy", help="Destroy the specified units.")
@click.pass_context
@click.option(
    "--force", "-f",
    default=False,
    is_flag=True,
    help="Destroy the units without asking for confirmation."
)
@click.argument("names", nargs=-1, required=True)
def cli(
    ctx: EnclaveClickContext,
    force: bool,
    names: typing.Tuple[str, ...]
) -> None:
    """Destroy units, stopping them first when they are running."""
    logger = ctx.parent.logger

    if not force:
        message = "\n- ".join(
            ["These units will be deleted"] + list(names)
        ) + "\nAre you sure?"
        click.confirm(message, default=False, abort=True)

    failed_units = []
    for name in names:
        try:
            unit = libenclave.Unit.UnitGenerator(
                name,
                host=ctx.parent.host,
                zfs=ctx.parent.zfs,
                logger=logger
            )
            ctx.parent.print_events(unit.destroy())
        except libenclave.errors.EnclaveException:
            failed_units.append(name)
            continue
        logger.log(f"{name} destroyed")

    if len(failed_units) > 0:
        exit(1)
