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
"""List units with the CLI."""
import click
import json
import typing

import libenclave.errors
import libenclave.Units

from .shared.click import EnclaveClickContext
from .shared.output import print_list, print_table

supported_output_formats = ['table', 'csv', 'list', 'json']

DEFAULT_COLUMNS = ["name", "kind", "state", "ip4_addr", "template"]


@click.command(name="list", help="List all units and their state.")
@click.pass_context
@click.option("--sort", "-s", "_sort", default=None, nargs=1,
              help="Sorts the list by the given column")
@click.option("--output", "-o", default=None,
              help="Comma separated list of columns")
@click.option("--output-format", "-f", default="table",
              type=click.Choice(supported_output_formats))
@click.option("--header/--no-header", "-H/-NH", is_flag=True, default=True,
              help="Show or hide column name heading.")
def cli(
    ctx: EnclaveClickContext,
    _sort: typing.Optional[str],
    output: typing.Optional[str],
    output_format: str,
    header: bool
) -> None:
    """List units in various formats."""
    logger = ctx.parent.logger

    if output is None:
        columns = DEFAULT_COLUMNS
    else:
        columns = output.strip().split(",")

    try:
        units = libenclave.Units.UnitsGenerator(
            host=ctx.parent.host,
            zfs=ctx.parent.zfs,
            logger=logger
        )
        rows = [_lookup_unit_values(unit, columns) for unit in units]
    except libenclave.errors.EnclaveException:
        exit(1)

    if output_format == "list":
        print_list(rows, columns, header, "\t")
    elif output_format == "csv":
        print_list(rows, columns, header, ";")
    elif output_format == "json":
        print(json.dumps(
            [dict(zip(columns, row)) for row in rows],
            indent=2,
            sort_keys=True
        ))
    else:
        print_table(rows, columns, header, _sort)


def _lookup_unit_values(
    unit: 'libenclave.Unit.UnitGenerator',
    columns: typing.List[str]
) -> typing.List[str]:
    values = []
    for column in columns:
        if column == "name":
            values.append(unit.name)
        elif column == "state":
            values.append(str(unit.state))
        elif column in unit.config.keys():
            values.append(unit.config.get_string(column))
        else:
            values.append("-")
    return values
