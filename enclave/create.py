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
"""Create units with the CLI."""
import click
import typing

import libenclave.errors
import libenclave.Unit

from .shared.click import (
    EnclaveClickContext,
    exit_code,
    parse_properties
)

__rootcmd__ = True


@click.command(
    name="create",
    help="Create a jail or virtual machine from a template."
)
@click.pass_context
@click.option(
    "--template", "-t",
    required=True,
    help="The template the unit is cloned from."
)
@click.option(
    "--snapshot", "-s",
    "template_snapshot",
    default=None,
    help="The template snapshot (default: most recent)."
)
@click.option(
    "--start/--no-start",
    default=True,
    help="Start the unit after it was created."
)
@click.argument("name")
@click.argument("props", nargs=-1)
def cli(
    ctx: EnclaveClickContext,
    template: str,
    template_snapshot: typing.Optional[str],
    start: bool,
    name: str,
    props: typing.Tuple[str, ...]
) -> None:
    """
    Create a unit.

    Configuration values are passed as key=value pairs:

        enclave create -t base web01 ip4_addr=10.0.0.5/24 vlan=12
    """
    logger = ctx.parent.logger
    config = parse_properties(props)

    try:
        unit = libenclave.Unit.UnitGenerator(
            name,
            host=ctx.parent.host,
            zfs=ctx.parent.zfs,
            logger=logger
        )
        ctx.parent.print_events(unit.create(
            template=template,
            config=config,
            template_snapshot=template_snapshot,
            start=start
        ))
    except libenclave.errors.EnclaveException as e:
        exit(exit_code(e))

    logger.log(f"{name} successfully created")
