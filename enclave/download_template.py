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
"""Receive prebuilt templates with the CLI."""
import click

import libenclave.errors
import libenclave.Template
import libenclave.Types

from .shared.click import EnclaveClickContext

__rootcmd__ = True


@click.command(
    name="download-template",
    help="Download a ZFS replication stream and receive it as template."
)
@click.pass_context
@click.option(
    "--kind", "-k",
    default="jail",
    type=click.Choice([str(x) for x in libenclave.Types.UnitKind]),
    help="The kind of units created from the template."
)
@click.option(
    "--cloudinit/--no-cloudinit",
    default=False,
    help="The guest reads a cloud-init seed image (VM templates)."
)
@click.argument("name")
@click.argument("url")
def cli(
    ctx: EnclaveClickContext,
    kind: str,
    cloudinit: bool,
    name: str,
    url: str
) -> None:
    """Create a template from a zfs send stream at an URL."""
    try:
        template = libenclave.Template.Template(
            name,
            host=ctx.parent.host,
            zfs=ctx.parent.zfs,
            logger=ctx.parent.logger
        )
        ctx.parent.print_events(template.receive(
            url,
            kind=libenclave.Types.UnitKind(kind),
            cloudinit=cloudinit
        ))
    except libenclave.errors.EnclaveException:
        exit(1)
