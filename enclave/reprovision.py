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
"""Reprovision units with the CLI."""
import click
import typing

import libenclave.errors
import libenclave.Unit

from .shared.click import EnclaveClickContext

__rootcmd__ = True


@click.command(
    name="reprovision",
    help="Replace the os of a stopped unit with a fresh template clone."
)
@click.pass_context
@click.option(
    "--template", "-t",
    default=None,
    help="The template to use (default: the template of the unit)."
)
@click.option(
    "--snapshot", "-s",
    "template_snapshot",
    default=None,
    help="The template snapshot (default: most recent)."
)
@click.argument("name")
def cli(
    ctx: EnclaveClickContext,
    template: typing.Optional[str],
    template_snapshot: typing.Optional[str],
    name: str
) -> None:
    """Reprovision the os dataset, keeping the data dataset."""
    try:
        unit = libenclave.Unit.UnitGenerator(
            name,
            host=ctx.parent.host,
            zfs=ctx.parent.zfs,
            logger=ctx.parent.logger
        )
        ctx.parent.print_events(unit.reprovision(
            template=template,
            template_snapshot=template_snapshot
        ))
    except libenclave.errors.EnclaveException:
        exit(1)
