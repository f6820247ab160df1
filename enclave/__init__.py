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
"""The enclave command line interface."""
import typing
import os
import re
import signal
import sys

import click

import libenclave.errors
import libenclave.events
import libenclave.Config
import libenclave.Host
import libenclave.Logger
import libenclave.ZFS

logger = libenclave.Logger.Logger()

ENCLAVE_CMD_FOLDER = os.path.abspath(os.path.dirname(__file__))

# command names that are served by another command module
COMMAND_ALIASES = {
    "shell": "exec",
    "statistics": "status"
}

# Sometimes SIGINT won't be installed.
signal.signal(signal.SIGINT, signal.default_int_handler)
# If a utility decides to cut off the pipe, we don't care (IE: head)
signal.signal(signal.SIGPIPE, signal.SIG_DFL)


def print_events(
    generator: typing.Iterable['libenclave.events.EnclaveEvent']
) -> None:
    """Print progress events and redraw the line of unfinished events."""
    lines: typing.Dict[str, typing.Dict[str, libenclave.Logger.LogEntry]] = {}
    for event in generator:

        if event.identifier is None:
            identifier = "generic"
        else:
            identifier = event.identifier

        if event.type not in lines:
            lines[event.type] = {}

        # output fragments
        running_indicator = "+" if (event.done or event.skipped) else "-"
        name = event.type
        if event.identifier is not None:
            name += f"@{event.identifier}"

        output = f"[{running_indicator}] {name}: "

        if event.message is not None:
            output += event.message
        else:
            output += event.get_state_string(
                done="OK",
                error="FAILED",
                skipped="SKIPPED",
                pending="..."
            )

        if event.duration is not None:
            output += " [" + str(round(event.duration, 3)) + "s]"

        # new line or update of previous
        if identifier not in lines[event.type]:
            # Indent if previous task is not finished
            lines[event.type][identifier] = logger.screen(
                output,
                indent=event.parent_count
            )
        else:
            lines[event.type][identifier].edit(
                output,
                indent=event.parent_count
            )


def _module_name(command_name: str) -> str:
    command_name = COMMAND_ALIASES.get(command_name, command_name)
    return command_name.replace("-", "_")


class EnclaveCLI(click.MultiCommand):
    """Load every command module in the enclave package."""

    def list_commands(self, ctx: click.core.Context) -> typing.List[str]:
        """Return the names of all commands."""
        rv = []

        for filename in os.listdir(ENCLAVE_CMD_FOLDER):
            if filename.endswith('.py') and \
                    not filename.startswith('__'):
                rv.append(re.sub(r".py$", "", filename).replace("_", "-"))
        rv.sort()

        return rv

    def get_command(
        self,
        ctx: click.core.Context,
        name: str
    ) -> typing.Optional[click.Command]:
        """Import a command module and return its cli."""
        ctx.print_events = print_events  # type: ignore
        module_name = _module_name(name)
        if os.path.isfile(
            os.path.join(ENCLAVE_CMD_FOLDER, f"{module_name}.py")
        ) is False:
            return None

        mod = __import__(f"enclave.{module_name}", None, None, ["cli"])

        try:
            if mod.__rootcmd__ and "--help" not in sys.argv[1:]:
                if os.geteuid() != 0:
                    logger.error(
                        f"You need to have root privileges to run {name}"
                    )
                    exit(1)
        except AttributeError:
            # It's not a root required command.
            pass
        return mod.cli


@click.option(
    "--log-level",
    "-d",
    default=None,
    type=click.Choice(libenclave.Logger.Logger.LOG_LEVELS),
    help="Set the CLI log level"
)
@click.option(
    "--config",
    "-c",
    "config_file",
    default=None,
    type=click.Path(dir_okay=False),
    help=(
        "Path of the host configuration file "
        f"(default: {libenclave.Config.DEFAULT_CONFIG_FILE})"
    )
)
@click.command(cls=EnclaveCLI)
@click.version_option(
    version=libenclave.VERSION,
    prog_name="enclave"
)
@click.pass_context
def cli(
    ctx: click.core.Context,
    log_level: typing.Optional[str],
    config_file: typing.Optional[str]
) -> None:
    """Run FreeBSD jails and bhyve virtual machines on ZFS."""
    logger.print_level = log_level
    ctx.logger = logger  # type: ignore

    ctx.zfs = libenclave.ZFS.ZFS(logger=logger)  # type: ignore

    try:
        if config_file is None:
            host_config = libenclave.Config.HostConfig.from_environment(
                logger=logger
            )
        else:
            host_config = libenclave.Config.HostConfig(
                file=config_file,
                logger=logger
            )
        ctx.host = libenclave.Host.Host(  # type: ignore
            config=host_config,
            zfs=ctx.zfs,  # type: ignore
            logger=logger
        )
    except libenclave.errors.EnclaveException:
        exit(1)
