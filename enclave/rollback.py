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
"""Rollback units to a snapshot with the CLI."""
import click

import libenclave.errors
import libenclave.Unit

from .shared.click import EnclaveClickContext

__rootcmd__ = True


@click.command(name="rollback", help="Rollback a unit to a snapshot.")
@click.pass_context
@click.option(
    "--force", "-f",
    default=False,
    is_flag=True,
    help="Rollback without asking for confirmation."
)
@click.argument("name")
@click.argument("label")
def cli(
    ctx: EnclaveClickContext,
    force: bool,
    name: str,
    label: str
) -> None:
    """Revert os and data to a snapshot, discarding newer snapshots."""
    if not force:
        click.confirm(
            f"Snapshots of {name} newer than {label} will be lost."
            " Are you sure?",
            default=False,
            abort=True
        )
    try:
        unit = libenclave.Unit.UnitGenerator(
            name,
            host=ctx.parent.host,
            zfs=ctx.parent.zfs,
            logger=ctx.parent.logger
        )
        ctx.parent.print_events(unit.rollback(label))
    except libenclave.errors.EnclaveException:
        exit(1)
