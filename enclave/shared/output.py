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
"""Table and list output of the enclave commands."""
import typing

import texttable


def print_table(
    data: typing.List[typing.List[str]],
    columns: typing.List[str],
    show_header: bool=True,
    sort_key: typing.Optional[str]=None
) -> None:
    """Print rows as a texttable, optionally sorted by a column."""
    rows = list(data)
    if sort_key in columns:
        index = columns.index(str(sort_key))
        rows.sort(key=lambda row: row[index])

    table = texttable.Texttable(max_width=0)
    table.set_cols_dtype(["t"] * len(columns))
    if show_header is True:
        table.header([x.upper() for x in columns])
    table.add_rows(rows, header=False)

    output = table.draw()
    if output:
        print(output)


def print_list(
    data: typing.List[typing.List[str]],
    columns: typing.List[str],
    show_header: bool=True,
    separator: str="\t"
) -> None:
    """Print one line per row for scripts (tab or semicolon separated)."""
    lines = [separator.join(row) for row in data]
    if show_header is True:
        lines.insert(0, separator.join(columns).upper())
    for line in lines:
        print(line)
