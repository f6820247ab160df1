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
"""Unit resource limits enforced with rctl(8)."""
import typing

import libenclave.errors
import libenclave.helpers
import libenclave.helpers_object

properties: typing.List[str] = [
    "pcpu",
    "memoryuse"
]


def jail_subject(name: str) -> str:
    """Return the rctl subject of a jail."""
    return f"jail:{name}"


def process_subject(pid: int) -> str:
    """Return the rctl subject of a process."""
    return f"process:{pid}"


class Rctl:
    """The host resource limit rule table."""

    rctl_command = "/usr/bin/rctl"

    def __init__(
        self,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        self.logger = libenclave.helpers_object.init_logger(self, logger)

    def add(self, rule: str) -> None:
        """Add a rule to the rule table."""
        libenclave.helpers.exec(
            [self.rctl_command, "-a", rule],
            logger=self.logger
        )

    def remove(self, rule_filter: str) -> None:
        """Remove all rules matching the filter."""
        command = [self.rctl_command, "-r", rule_filter]
        stdout, stderr, returncode = libenclave.helpers.exec(
            command,
            logger=self.logger,
            ignore_error=True
        )
        if returncode == 0:
            return
        output = f"{stdout or ''}\n{stderr or ''}"
        if "No such process" in output:
            # no rule matched the filter
            return
        raise libenclave.errors.ExternalToolFailure(
            command=command,
            returncode=returncode,
            stdout=stdout,
            stderr=stderr,
            logger=self.logger
        )

    def usage(self, subject: str) -> typing.Dict[str, str]:
        """Return the resource usage of a subject."""
        stdout, _, _ = libenclave.helpers.exec(
            [self.rctl_command, "-u", subject],
            logger=self.logger
        )
        usage: typing.Dict[str, str] = {}
        for line in str(stdout or "").splitlines():
            if "=" not in line:
                continue
            key, value = line.split("=", maxsplit=1)
            usage[key] = value
        return usage


class ResourceLimitManager:
    """Register and release the resource limits of units."""

    def __init__(
        self,
        rctl: Rctl,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        self.logger = libenclave.helpers_object.init_logger(self, logger)
        self.rctl = rctl

    def rules(
        self,
        subject: str,
        pcpu: typing.Optional[int]=None,
        memoryuse: typing.Optional[str]=None
    ) -> typing.List[str]:
        """Return the rules of a subject. Omitted values are unlimited."""
        amounts: typing.Dict[str, typing.Optional[int]] = {
            "pcpu": None if (pcpu is None) else int(pcpu),
            "memoryuse": None
        }
        if memoryuse is not None:
            amounts["memoryuse"] = libenclave.helpers.parse_size(
                str(memoryuse)
            )
        return [
            f"{subject}:{key}:deny={amounts[key]}"
            for key in properties
            if amounts[key] is not None
        ]

    def set(
        self,
        subject: str,
        pcpu: typing.Optional[int]=None,
        memoryuse: typing.Optional[str]=None
    ) -> typing.List[str]:
        """
        Register the limits of a subject.

        When adding a rule fails, the rules added before are removed again
        so that no partial rule set remains.
        """
        rules = self.rules(subject, pcpu=pcpu, memoryuse=memoryuse)
        added: typing.List[str] = []
        for rule in rules:
            try:
                self.rctl.add(rule)
            except Exception:
                for added_rule in reversed(added):
                    self.rctl.remove(added_rule)
                raise
            added.append(rule)
        if len(added) > 0:
            self.logger.verbose(f"Resource limits of {subject} registered")
        return added

    def clear(self, subject: str) -> None:
        """Remove all rules of a subject. Safe to call without rules."""
        self.logger.verbose(f"Clearing resource limits of {subject}")
        self.rctl.remove(subject)

    def usage(self, subject: str) -> typing.Dict[str, str]:
        """Return the resource usage of a subject."""
        return self.rctl.usage(subject)
