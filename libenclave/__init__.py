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
"""Python module to run FreeBSD jails and bhyve VMs on ZFS."""
import sys
import os.path
import importlib
import typing

VERSION_FILE = os.path.join(os.path.dirname(__file__), "VERSION")


class _EnclaveModule(sys.modules["libenclave"].__class__):
    """Import submodules on first attribute access (libenclave.Unit)."""

    def __getattr__(self, key: str) -> typing.Any:
        if key == "VERSION":
            with open(VERSION_FILE, "r", encoding="utf-8") as f:
                return f.readline().strip()
        if key.startswith("_"):
            raise AttributeError(key)
        module_name = f"libenclave.{key}"
        try:
            return importlib.import_module(module_name)
        except ModuleNotFoundError as e:
            if e.name == module_name:
                raise AttributeError(key)
            raise


sys.modules["libenclave"].__class__ = _EnclaveModule
