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
"""Host command execution and value parsing shared by libenclave."""
import typing
import re
import subprocess  # nosec: B404
import sys

import libenclave.errors
import libenclave.Logger

CommandOutput = typing.Tuple[typing.Optional[str], typing.Optional[str], int]

NONE_STRINGS = ["none", "-", ""]
TRUE_STRINGS = ["yes", "true", "on", "1"]
FALSE_STRINGS = ["no", "false", "off", "0"]

# unit and template names
_name_pattern = re.compile(r"[a-z0-9][a-z0-9\.\-_]{0,30}[a-z0-9]", re.I)

# sizes as accepted by zfs(8) and rctl(8), e.g. 512M or 10G
_size_pattern = re.compile(r"(?P<amount>\d+)(?P<unit>[bkmgtBKMGT])?")
_size_units = ["B", "K", "M", "G", "T"]


def _decode(output: typing.Optional[bytes]) -> typing.Optional[str]:
    if output is None:
        return None
    return output.decode("UTF-8").strip()


def _indent_output(output: str) -> str:
    return "\n".join([f"    {line}" for line in output.splitlines()])


def exec(
    command: typing.List[str],
    logger: typing.Optional['libenclave.Logger.Logger']=None,
    ignore_error: bool=False,
    **subprocess_args: typing.Any
) -> CommandOutput:
    """
    Run a host tool and return its stdout, stderr and exit code.

    Every external collaborator of libenclave (zfs, ifconfig, rctl, jail,
    bhyve, sysrc, ...) is invoked through this function, which makes it the
    single seam that tests replace with a recorder.

    Args:

        command (list):
            The executable and its arguments. No shell is involved.

        ignore_error (bool): (default=False)
            Return non-zero exit codes instead of raising.

    Raises:

        ExternalToolFailure:
            The command exited non-zero and ignore_error was not set. The
            exception carries the captured output of the tool verbatim.
    """
    command_line = " ".join(command)
    if logger is not None:
        logger.spam(f"Running {command_line}")

    subprocess_args.setdefault("stdout", subprocess.PIPE)
    subprocess_args.setdefault("stderr", subprocess.PIPE)
    child = subprocess.Popen(command, **subprocess_args)  # nosec: B603
    _stdout, _stderr = child.communicate()
    returncode = child.returncode
    stdout = _decode(_stdout)
    stderr = _decode(_stderr)

    if (logger is not None) and stdout:
        logger.spam(_indent_output(stdout))

    if returncode == 0:
        return stdout, stderr, returncode

    if logger is not None:
        level = "spam" if (ignore_error is True) else "warn"
        logger.log(f"{command_line} exited with {returncode}", level=level)
        if stderr:
            logger.log(_indent_output(stderr), level=level)

    if ignore_error is False:
        raise libenclave.errors.ExternalToolFailure(
            command=command,
            returncode=returncode,
            stdout=stdout,
            stderr=stderr
        )
    return stdout, stderr, returncode


def exec_passthru(
    command: typing.List[str],
    logger: typing.Optional['libenclave.Logger.Logger']=None,
    **subprocess_args: typing.Any
) -> CommandOutput:
    """Run an interactive tool (shell, console) on the current terminal."""
    if logger is not None:
        logger.spam(f"Attaching terminal to {' '.join(command)}")
    child = subprocess.Popen(  # nosec: B603
        command,
        stdin=sys.stdin,
        stdout=sys.stdout,
        stderr=sys.stderr,
        close_fds=True,
        **subprocess_args
    )
    return None, None, child.wait()


def validate_name(name: str) -> bool:
    """
    Return True if the name is a valid unit or template name.

    Names are 2 to 32 characters of letters, digits, dots, dashes and
    underscores, beginning and ending with a letter or digit.
    """
    return _name_pattern.fullmatch(name) is not None


def parse_none(
    data: typing.Any,
    none_matches: typing.List[str]=NONE_STRINGS
) -> None:
    """Return None for None-like input, raise TypeError otherwise."""
    if data is None:
        return None
    if isinstance(data, str) and (data.lower() in none_matches):
        return None
    raise TypeError("Value is not None")


def parse_bool(data: typing.Optional[typing.Union[str, bool]]) -> bool:
    """
    Parse a boolean from a string as found in ZFS properties or rc.conf.

        >>> parse_bool("YES")
        True
        >>> parse_bool("off")
        False
    """
    if isinstance(data, bool):
        return data
    if isinstance(data, str):
        if data.lower() in TRUE_STRINGS:
            return True
        if data.lower() in FALSE_STRINGS:
            return False
    raise TypeError("Value is not a boolean")


def parse_int(data: typing.Optional[typing.Union[str, int]]) -> int:
    """Parse an integer, raising TypeError for anything else."""
    if data is None:
        raise TypeError("None is not a number")
    if isinstance(data, float) and (data.is_integer() is False):
        raise TypeError(f"Value is not an integer: {data}")
    try:
        return int(data)
    except ValueError:
        raise TypeError(f"Value is not an integer: {data}")


def parse_user_input(
    data: typing.Optional[typing.Union[str, bool]]
) -> typing.Optional[typing.Union[str, bool]]:
    """Return booleans and None for their string forms, else the input."""
    try:
        return parse_bool(data)
    except TypeError:
        pass
    try:
        return parse_none(data)
    except TypeError:
        return data


def parse_size(data: typing.Optional[typing.Union[str, int]]) -> int:
    """
    Parse a size with an optional binary unit suffix into bytes.

        >>> parse_size("512M")
        536870912
        >>> parse_size(1024)
        1024
    """
    if isinstance(data, int):
        return data
    if data is None:
        raise TypeError("None is not a size")
    match = _size_pattern.fullmatch(str(data).strip())
    if match is None:
        raise TypeError(f"Value is not a size: {data}")
    exponent = _size_units.index((match["unit"] or "B").upper())
    return int(match["amount"]) * (1024 ** exponent)


def to_string(
    data: typing.Any,
    true: str="yes",
    false: str="no",
    none: str="-",
    delimiter: str=","
) -> str:
    """
    Format a value for ZFS user properties and CLI output.

    Booleans and None are mapped to the given words, lists are joined with
    the delimiter and everything else is passed through str().
    """
    if isinstance(data, list):
        data = delimiter.join([
            to_string(x, true, false, none, delimiter)
            for x in data
            if x is not None
        ]) or None

    value = parse_user_input(data)
    if value is True:
        return true
    if value is False:
        return false
    if value is None:
        return none
    return str(value)
