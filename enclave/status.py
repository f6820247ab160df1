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
"""Show resource usage statistics of a unit with the CLI."""
import click
import json

import libenclave.errors
import libenclave.Unit

from .shared.click import EnclaveClickContext
from .shared.output import print_table

supported_output_formats = ['table', 'json']


@click.command(name="status", help="Show resource usage of a unit.")
@click.pass_context
@click.option(
    "--output-format", "-f",
    default="table",
    type=click.Choice(supported_output_formats)
)
@click.argument("name")
def cli(
    ctx: EnclaveClickContext,
    output_format: str,
    name: str
) -> None:
    """Print the rctl usage counters of a running unit."""
    logger = ctx.parent.logger
    try:
        unit = libenclave.Unit.UnitGenerator(
            name,
            host=ctx.parent.host,
            zfs=ctx.parent.zfs,
            logger=logger
        )
        statistics = unit.statistics()
    except libenclave.errors.EnclaveException:
        exit(1)

    if output_format == "json":
        print(json.dumps(statistics, indent=2, sort_keys=True))
        return

    print_table(
        [[key, statistics[key]] for key in sorted(statistics.keys())],
        ["resource", "usage"]
    )
