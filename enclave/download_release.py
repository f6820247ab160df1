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
"""Create templates from FreeBSD releases with the CLI."""
import click
import typing

import libenclave.errors
import libenclave.Template

from .shared.click import EnclaveClickContext

__rootcmd__ = True


@click.command(
    name="download-release",
    help="Download a FreeBSD release and create a jail template from it."
)
@click.pass_context
@click.option(
    "--name", "-n",
    default=None,
    help="Name of the template (default: the release name)."
)
@click.argument("release")
def cli(
    ctx: EnclaveClickContext,
    name: typing.Optional[str],
    release: str
) -> None:
    """Fetch base.txz of a release from the configured mirror."""
    logger = ctx.parent.logger
    template_name = release if (name is None) else name
    try:
        template = libenclave.Template.Template(
            template_name,
            host=ctx.parent.host,
            zfs=ctx.parent.zfs,
            logger=logger
        )
        ctx.parent.print_events(template.fetch_release(release))
    except libenclave.errors.EnclaveException:
        exit(1)
