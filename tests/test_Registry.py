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
"""Unit tests for the host registry."""
import typing
import os.path

import pytest

import libenclave.Registry


@pytest.fixture
def rc_registry(
    tmpdir: typing.Any,
    logger: 'libenclave.Logger.Logger'
) -> libenclave.Registry.RCConfRegistry:
    """Return a registry writing to files below tmpdir."""
    return libenclave.Registry.RCConfRegistry(
        rc_conf_file=os.path.join(str(tmpdir), "rc.conf"),
        devfs_rules_file=os.path.join(str(tmpdir), "devfs.rules"),
        logger=logger
    )


class TestMemoryRegistry(object):
    """Run tests for the in-memory registry."""

    def test_enable_and_disable(
        self,
        registry: libenclave.Registry.MemoryRegistry
    ) -> None:

        registry.enable("web01")
        registry.enable("web01")
        registry.enable("vm01")

        assert registry.enabled() == ["web01", "vm01"]
        assert registry.is_enabled("web01") is True

        registry.disable("web01")
        registry.disable("web01")

        assert registry.enabled() == ["vm01"]

    def test_devfs_ruleset_is_created_once(
        self,
        registry: libenclave.Registry.MemoryRegistry
    ) -> None:

        assert registry.ensure_devfs_ruleset(5) is True
        assert registry.ensure_devfs_ruleset(5) is False
        assert registry.devfs_rulesets[5] == (
            libenclave.Registry.DEVFS_RULESET_RULES
        )

        registry.teardown()
        assert registry.devfs_rulesets == {}


class TestRCConfRegistry(object):
    """Run tests for the rc.conf registry."""

    def test_init_enables_the_rc_script(
        self,
        rc_registry: libenclave.Registry.RCConfRegistry,
        commands: typing.Any
    ) -> None:

        rc_registry.init()

        assert commands.commands == [[
            "/usr/sbin/sysrc",
            "-f", rc_registry.rc_conf_file,
            "enclave_enable=YES"
        ]]

    def test_enable_appends_to_the_unit_list(
        self,
        rc_registry: libenclave.Registry.RCConfRegistry,
        commands: typing.Any
    ) -> None:

        commands.respond(
            ["/usr/sbin/sysrc", "-f", rc_registry.rc_conf_file, "-n"],
            stdout="db01\n"
        )

        rc_registry.enable("web01")

        assert commands.commands[-1] == [
            "/usr/sbin/sysrc",
            "-f", rc_registry.rc_conf_file,
            "enclave_list+=web01"
        ]

    def test_enable_is_idempotent(
        self,
        rc_registry: libenclave.Registry.RCConfRegistry,
        commands: typing.Any
    ) -> None:

        commands.respond(
            ["/usr/sbin/sysrc", "-f", rc_registry.rc_conf_file, "-n"],
            stdout="db01 web01\n"
        )

        rc_registry.enable("web01")

        assert len(commands.commands) == 1
        assert rc_registry.enabled() == ["db01", "web01"]

    def test_disable_removes_from_the_unit_list(
        self,
        rc_registry: libenclave.Registry.RCConfRegistry,
        commands: typing.Any
    ) -> None:

        commands.respond(
            ["/usr/sbin/sysrc", "-f", rc_registry.rc_conf_file, "-n"],
            stdout="web01\n"
        )

        rc_registry.disable("web01")

        assert commands.commands[-1][-1] == "enclave_list-=web01"

    def test_unset_unit_list(
        self,
        rc_registry: libenclave.Registry.RCConfRegistry,
        commands: typing.Any
    ) -> None:

        commands.respond(
            ["/usr/sbin/sysrc", "-f", rc_registry.rc_conf_file, "-n"],
            stderr="sysrc: unknown variable 'enclave_list'",
            returncode=1
        )

        assert rc_registry.enabled() == []

        rc_registry.disable("web01")
        assert len(commands.find("/usr/sbin/sysrc")) == 2

    def test_devfs_ruleset(
        self,
        rc_registry: libenclave.Registry.RCConfRegistry,
        commands: typing.Any
    ) -> None:

        with open(rc_registry.devfs_rules_file, "w") as f:
            f.write("[devfsrules_jail=4]\nadd path 'mem' hide\n")

        assert rc_registry.ensure_devfs_ruleset(5) is True
        assert rc_registry.ensure_devfs_ruleset(5) is False
        assert rc_registry.ensure_devfs_ruleset(4) is False

        with open(rc_registry.devfs_rules_file, "r") as f:
            content = f.read()

        assert content.count("[enclave_vnet=5]") == 1
        assert "add path 'bpf*' unhide" in content
        assert commands.find("/usr/sbin/service", "devfs", "restart") == [
            ["/usr/sbin/service", "devfs", "restart"]
        ]

    def test_teardown_keeps_other_rulesets(
        self,
        rc_registry: libenclave.Registry.RCConfRegistry,
        commands: typing.Any
    ) -> None:

        with open(rc_registry.devfs_rules_file, "w") as f:
            f.write("[devfsrules_jail=4]\nadd path 'mem' hide\n")
        rc_registry.ensure_devfs_ruleset(5)

        rc_registry.teardown()

        with open(rc_registry.devfs_rules_file, "r") as f:
            content = f.read()

        assert content == "[devfsrules_jail=4]\nadd path 'mem' hide\n"
        assert commands.find("/usr/sbin/sysrc", "-f")[:2] == [
            [
                "/usr/sbin/sysrc",
                "-f", rc_registry.rc_conf_file,
                "-x", "enclave_list"
            ],
            [
                "/usr/sbin/sysrc",
                "-f", rc_registry.rc_conf_file,
                "-x", "enclave_enable"
            ]
        ]

    def test_teardown_without_state(
        self,
        rc_registry: libenclave.Registry.RCConfRegistry,
        commands: typing.Any
    ) -> None:

        rc_registry.teardown()

        assert commands.find("/usr/sbin/service") == []
