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
"""Value types shared by the libenclave modules."""
import enum
import re


class AbsolutePath(str):
    """A host path that is absolute and free of traversal sequences."""

    illegal_sequences = re.compile(r"//|/\.\./|/\.\.$|[\r\n]")

    def __init__(self, sequence: str) -> None:
        if isinstance(sequence, str) is False:
            raise TypeError("AbsolutePath must be a string")
        if sequence.startswith("/") is False:
            raise ValueError(f"Path is not absolute: {sequence}")
        if self.illegal_sequences.search(sequence) is not None:
            raise ValueError(f"Illegal path: {sequence}")


class UnitKind(enum.Enum):
    """The closed set of unit kinds."""

    JAIL = "jail"
    VM = "vm"

    def __str__(self) -> str:
        """Return the kind as it is persisted."""
        return str(self.value)


class UnitState(enum.Enum):
    """Lifecycle states of a unit."""

    ABSENT = "absent"
    STOPPED = "stopped"
    RUNNING = "running"

    def __str__(self) -> str:
        """Return the humanreadable state."""
        return str(self.value)
