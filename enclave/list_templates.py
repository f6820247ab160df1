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
"""List templates and installation images with the CLI."""
import click
import typing

import libenclave.errors
import libenclave.helpers

from .shared.click import EnclaveClickContext
from .shared.output import print_table


@click.command(
    name="list-templates",
    help="List templates or downloaded installation images."
)
@click.pass_context
@click.option(
    "--isos", "-i",
    is_flag=True,
    default=False,
    help="List downloaded installation images instead of templates."
)
@click.option("--header/--no-header", "-H/-NH", is_flag=True, default=True,
              help="Show or hide column name heading.")
def cli(
    ctx: EnclaveClickContext,
    isos: bool,
    header: bool
) -> None:
    """List the templates units can be created from."""
    templates = ctx.parent.host.templates

    if isos is True:
        print_table([[x] for x in templates.isos()], ["iso"], header)
        return

    rows: typing.List[typing.List[str]] = []
    try:
        for template in templates:
            snapshots = template.snapshots
            latest = snapshots[-1].name if (len(snapshots) > 0) else "-"
            rows.append([
                template.name,
                str(template.kind),
                libenclave.helpers.to_string(template.cloudinit),
                latest
            ])
    except libenclave.errors.EnclaveException:
        exit(1)

    print_table(rows, ["name", "kind", "cloudinit", "snapshot"], header)
