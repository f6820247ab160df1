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
"""enclave unit module."""
import typing

import libenclave.Descriptor
import libenclave.errors
import libenclave.events
import libenclave.helpers
import libenclave.helpers_object
import libenclave.ResourceLimit
import libenclave.Template
import libenclave.Types
import libenclave.UnitConfig

# MyPy
import libenclave.Datasets  # noqa: F401
import libenclave.Network  # noqa: F401
import libenclave.ZFS  # noqa: F401

UnitEventGenerator = typing.Generator[
    'libenclave.events.EnclaveEvent',
    None,
    None
]


class UnitGenerator:
    """
    Lifecycle controller of a single jail or virtual machine.

    A unit is absent until it was created, stopped after creation and
    running while its process supervisor runs it. All operations are
    generators that yield events while they progress. Preconditions are
    checked before anything is changed, and the side effects of a failing
    operation are reverted by the rollback steps of its event.
    """

    _config: typing.Optional['libenclave.UnitConfig.UnitConfig']

    def __init__(
        self,
        name: str,
        host: typing.Optional['libenclave.Host.Host']=None,
        zfs: typing.Optional['libenclave.ZFS.ZFS']=None,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        self.logger = libenclave.helpers_object.init_logger(self, logger)
        self.zfs = libenclave.helpers_object.init_zfs(self, zfs)
        self.host = libenclave.helpers_object.init_host(self, host)

        if libenclave.helpers.validate_name(name) is False:
            raise libenclave.errors.InvalidUnitName(
                name=name,
                logger=self.logger
            )
        self.name = name
        self._config = None

    @property
    def datasets(self) -> 'libenclave.Datasets.UnitDatasets':
        """Return the dataset tree of the unit."""
        return self.host.datasets.get_unit(self.name)

    @property
    def exists(self) -> bool:
        """Return True if the unit was created."""
        return self.datasets.exists

    @property
    def config(self) -> 'libenclave.UnitConfig.UnitConfig':
        """Return the unit configuration, loaded on first access."""
        if self._config is None:
            self.require_exists()
            self._config = libenclave.UnitConfig.UnitConfig.from_properties(
                name=self.name,
                properties=self.datasets.read_properties(),
                host_config=self.host.config,
                logger=self.logger
            )
        return self._config

    @property
    def kind(self) -> libenclave.Types.UnitKind:
        """Return the kind of the unit."""
        return self.config.kind

    @property
    def supervisor(self) -> 'libenclave.Supervisor.Supervisor':
        """Return the process supervisor of the unit kind."""
        return self.host.supervisor(self.kind)

    @property
    def network(self) -> 'libenclave.Network.Network':
        """Return the network device strategy of the unit."""
        return self.host.network.get(
            self.name,
            self.kind,
            self.config["vlan"]
        )

    @property
    def descriptor_path(self) -> str:
        """Return the path of the descriptor file."""
        return self.host.descriptors.path(self.name)

    @property
    def running(self) -> bool:
        """Return True if the unit is running."""
        return self.supervisor.running(self.name)

    @property
    def state(self) -> libenclave.Types.UnitState:
        """Return the lifecycle state of the unit."""
        if self.exists is False:
            return libenclave.Types.UnitState.ABSENT
        if self.running is True:
            return libenclave.Types.UnitState.RUNNING
        return libenclave.Types.UnitState.STOPPED

    @property
    def _has_resource_limits(self) -> bool:
        return any([
            self.config["pcpu"] is not None,
            self.config["memoryuse"] is not None
        ])

    def _resource_limit_subject(self) -> typing.Optional[str]:
        if self.kind == libenclave.Types.UnitKind.JAIL:
            return libenclave.ResourceLimit.jail_subject(self.name)
        pid = self.supervisor.pid(self.name)
        if pid is None:
            return None
        return libenclave.ResourceLimit.process_subject(pid)

    def _launched_resource_limit_subject(self) -> str:
        if self.kind == libenclave.Types.UnitKind.JAIL:
            return libenclave.ResourceLimit.jail_subject(self.name)
        timeout = int(self.host.config["stop_timeout"])
        pid = self.supervisor.wait_pid(self.name, timeout=timeout)
        if pid is None:
            raise libenclave.errors.HypervisorProcessNotFound(
                name=self.name,
                timeout=timeout,
                logger=self.logger
            )
        return libenclave.ResourceLimit.process_subject(pid)

    def require_exists(self) -> None:
        """Raise UnitNotFound when the unit does not exist."""
        if self.exists is False:
            raise libenclave.errors.UnitNotFound(
                name=self.name,
                logger=self.logger
            )

    def require_running(self) -> None:
        """Raise UnitNotRunning when the unit is not running."""
        if self.running is False:
            raise libenclave.errors.UnitNotRunning(
                name=self.name,
                logger=self.logger
            )

    def require_not_running(self) -> None:
        """Raise UnitAlreadyRunning when the unit is running."""
        if self.running is True:
            raise libenclave.errors.UnitAlreadyRunning(
                name=self.name,
                logger=self.logger
            )

    def require_stopped(self, action: str) -> None:
        """Raise UnitMustBeStopped when the unit is running."""
        if self.running is True:
            raise libenclave.errors.UnitMustBeStopped(
                name=self.name,
                action=action,
                logger=self.logger
            )

    def require_kind(
        self,
        kind: libenclave.Types.UnitKind,
        action: str
    ) -> None:
        """Raise UnitKindUnsupported unless the unit is of the kind."""
        if self.kind != kind:
            raise libenclave.errors.UnitKindUnsupported(
                name=self.name,
                kind=str(self.kind),
                action=action,
                logger=self.logger
            )

    def _resolve_template(
        self,
        template_name: str,
        kind: libenclave.Types.UnitKind,
        template_snapshot: typing.Optional[str]=None
    ) -> typing.Tuple[
        'libenclave.Template.Template',
        'libenclave.ZFS.Snapshot'
    ]:
        template = libenclave.Template.Template(
            name=template_name,
            host=self.host,
            zfs=self.zfs,
            logger=self.logger
        )
        snapshot = template.resolve(template_snapshot)
        if template.kind != kind:
            raise libenclave.errors.TemplateKindMismatch(
                name=template_name,
                kind=str(kind),
                logger=self.logger
            )
        return template, snapshot

    def create(
        self,
        template: str,
        config: typing.Optional[typing.Dict[str, typing.Any]]=None,
        template_snapshot: typing.Optional[str]=None,
        start: bool=True,
        event_scope: typing.Optional['libenclave.events.Scope']=None
    ) -> UnitEventGenerator:
        """
        Create the unit from a template and start it.

        Args:

            template (str):
                Name of the template the os dataset is cloned from.

            config (dict): (optional)
                Unit configuration values. The kind defaults to the kind of
                the template.

            template_snapshot (str): (optional)
                Snapshot of the template. The most recently created
                snapshot is used when omitted.

            start (bool): (default=True)
                Start the unit after it was created. A failing start leaves
                the created unit stopped.
        """
        with self.host.lock(self.name):
            yield from self._create(
                template=template,
                config=config,
                template_snapshot=template_snapshot,
                start=start,
                event_scope=event_scope
            )

    def _create(
        self,
        template: str,
        config: typing.Optional[typing.Dict[str, typing.Any]],
        template_snapshot: typing.Optional[str],
        start: bool,
        event_scope: typing.Optional['libenclave.events.Scope']
    ) -> UnitEventGenerator:

        if self.exists is True:
            raise libenclave.errors.UnitAlreadyExists(
                name=self.name,
                logger=self.logger
            )

        unit_config = libenclave.UnitConfig.UnitConfig(
            name=self.name,
            host_config=self.host.config,
            logger=self.logger
        )
        data = dict(config or {})
        if "kind" not in data:
            source_template = libenclave.Template.Template(
                name=template,
                host=self.host,
                zfs=self.zfs,
                logger=self.logger
            )
            source_template.require_exists()
            data["kind"] = source_template.kind
        unit_config.read(data)

        _template, snapshot = self._resolve_template(
            template,
            unit_config.kind,
            template_snapshot
        )
        self.host.network.require_substrate(unit_config["vlan"])

        unit_config.resolve_defaults()
        unit_config["template"] = _template.name
        unit_config["template_snapshot"] = snapshot.name
        unit_config["cloudinit"] = _template.cloudinit
        self._config = unit_config

        events = libenclave.events
        unitCreateEvent = events.UnitCreate(self, scope=event_scope)
        _scope = unitCreateEvent.scope
        unitDatasetsCreateEvent = events.UnitDatasetsCreate(self, scope=_scope)
        registryUpdateEvent = events.RegistryUpdate(self, scope=_scope)

        yield unitCreateEvent.begin()
        try:
            yield unitDatasetsCreateEvent.begin()
            self.datasets.create(
                template_snapshot=snapshot.full_name,
                kind=unit_config.kind,
                os_quota=unit_config["os_quota"],
                data_quota=unit_config["data_quota"],
                properties=unit_config.to_properties()
            )
            unitCreateEvent.add_rollback_step(self.datasets.destroy)
            yield unitDatasetsCreateEvent.end()

            yield from self._write_descriptor(
                event_scope=_scope,
                rollback_event=unitCreateEvent
            )

            yield registryUpdateEvent.begin()
            if unit_config["boot"] is True:
                self.host.registry.enable(self.name)
                unitCreateEvent.add_rollback_step(
                    lambda: self.host.registry.disable(self.name)
                )
                yield registryUpdateEvent.end()
            else:
                yield registryUpdateEvent.skip("boot disabled")
        except Exception as e:
            for event in [unitDatasetsCreateEvent, registryUpdateEvent]:
                if event.pending is True:
                    yield event.fail(e)
            yield from unitCreateEvent.fail_generator(e)
            self._config = None
            raise

        yield unitCreateEvent.end()

        if start is True:
            yield from self.start(event_scope=_scope)

    def _write_descriptor(
        self,
        event_scope: typing.Optional['libenclave.events.Scope']=None,
        rollback_event: typing.Optional['libenclave.events.EnclaveEvent']=None
    ) -> UnitEventGenerator:
        """Render the descriptor and the seed image of the unit."""
        events = libenclave.events
        descriptorWriteEvent = events.DescriptorWrite(self, scope=event_scope)
        seedImageWriteEvent = events.SeedImageWrite(self, scope=event_scope)

        yield descriptorWriteEvent.begin()
        try:
            descriptor = libenclave.Descriptor.render(self.config, self.host)
            self.host.descriptors.write(descriptor)
        except Exception as e:
            yield descriptorWriteEvent.fail(e)
            raise
        if rollback_event is not None:
            rollback_event.add_rollback_step(
                lambda: self.host.descriptors.remove(self.name)
            )
        yield descriptorWriteEvent.end()

        yield seedImageWriteEvent.begin()
        seed_image = self.host.seed_images.get(self.name)
        if self.kind != libenclave.Types.UnitKind.VM:
            yield seedImageWriteEvent.skip()
            return
        if self.config["cloudinit"] is False:
            seed_image.remove()
            yield seedImageWriteEvent.skip("falling back to DHCP")
            return
        try:
            seed_image.write(
                self.config,
                descriptor,
                mac_address=self.network.mac_address
            )
        except Exception as e:
            yield seedImageWriteEvent.fail(e)
            raise
        if rollback_event is not None:
            rollback_event.add_rollback_step(seed_image.remove)
        yield seedImageWriteEvent.end()

    def start(
        self,
        event_scope: typing.Optional['libenclave.events.Scope']=None
    ) -> UnitEventGenerator:
        """
        Start the unit.

        The network device is created and attached, resource limits of
        jails are applied and the process supervisor is launched. Limits
        of virtual machines are applied to the hypervisor process after it
        was launched. On failure all of these steps are reverted.
        """
        self.require_exists()
        self.require_not_running()

        events = libenclave.events
        unitStartEvent = events.UnitStart(self, scope=event_scope)
        _scope = unitStartEvent.scope

        yield unitStartEvent.begin()
        try:
            if self.host.descriptors.exists(self.name) is False:
                yield from self._write_descriptor(event_scope=_scope)
            yield from self._start_network(unitStartEvent)
            if self.kind == libenclave.Types.UnitKind.JAIL:
                yield from self._apply_resource_limits(unitStartEvent)
            yield from self._launch(unitStartEvent)
            if self.kind == libenclave.Types.UnitKind.VM:
                yield from self._apply_resource_limits(unitStartEvent)
        except Exception as e:
            yield from unitStartEvent.fail_generator(e)
            raise
        yield unitStartEvent.end()

    def _start_network(
        self,
        parent_event: 'libenclave.events.EnclaveEvent'
    ) -> UnitEventGenerator:
        networkSetupEvent = libenclave.events.NetworkSetup(
            self,
            scope=parent_event.scope
        )
        yield networkSetupEvent.begin()
        network = self.network
        try:
            network.create()
        except Exception as e:
            yield networkSetupEvent.fail(e)
            raise
        parent_event.add_rollback_step(network.destroy)
        yield networkSetupEvent.end(network.device_name)

    def _apply_resource_limits(
        self,
        parent_event: 'libenclave.events.EnclaveEvent'
    ) -> UnitEventGenerator:
        resourceLimitEvent = libenclave.events.ResourceLimitAction(
            self,
            scope=parent_event.scope
        )
        yield resourceLimitEvent.begin()

        if self._has_resource_limits is False:
            yield resourceLimitEvent.skip("unlimited")
            return

        try:
            subject = self._launched_resource_limit_subject()
            self.host.resource_limits.set(
                subject,
                pcpu=self.config["pcpu"],
                memoryuse=self.config["memoryuse"]
            )
        except Exception as e:
            yield resourceLimitEvent.fail(e)
            raise
        parent_event.add_rollback_step(
            lambda: self.host.resource_limits.clear(subject)
        )
        yield resourceLimitEvent.end()

    def _clear_resource_limits(
        self,
        subject: typing.Optional[str],
        event_scope: typing.Optional['libenclave.events.Scope']=None
    ) -> UnitEventGenerator:
        resourceLimitEvent = libenclave.events.ResourceLimitAction(
            self,
            scope=event_scope
        )
        yield resourceLimitEvent.begin()
        if subject is None:
            yield resourceLimitEvent.skip()
            return
        try:
            self.host.resource_limits.clear(subject)
        except Exception as e:
            yield resourceLimitEvent.fail(e)
            raise
        yield resourceLimitEvent.end()

    def _launch(
        self,
        parent_event: 'libenclave.events.EnclaveEvent'
    ) -> UnitEventGenerator:
        supervisorLaunchEvent = libenclave.events.SupervisorLaunch(
            self,
            scope=parent_event.scope
        )
        yield supervisorLaunchEvent.begin()
        try:
            self.supervisor.launch(self.name, self.descriptor_path)
        except Exception as e:
            yield supervisorLaunchEvent.fail(e)
            raise
        parent_event.add_rollback_step(self._shutdown_supervisor)
        yield supervisorLaunchEvent.end()

    def _shutdown_supervisor(self) -> None:
        if self.running is False:
            return
        self.supervisor.shutdown(
            self.name,
            self.descriptor_path,
            timeout=int(self.host.config["stop_timeout"])
        )

    def stop(
        self,
        event_scope: typing.Optional['libenclave.events.Scope']=None
    ) -> UnitEventGenerator:
        """
        Stop the unit.

        The supervisor shuts the unit down gracefully, then the network
        device is destroyed and the resource limits are released.
        """
        self.require_exists()
        self.require_running()

        events = libenclave.events
        unitStopEvent = events.UnitStop(self, scope=event_scope)
        _scope = unitStopEvent.scope
        supervisorShutdownEvent = events.SupervisorShutdown(self, scope=_scope)
        networkTeardownEvent = events.NetworkTeardown(self, scope=_scope)

        yield unitStopEvent.begin()
        subject = self._resource_limit_subject()
        try:
            yield supervisorShutdownEvent.begin()
            self._shutdown_supervisor()
            yield supervisorShutdownEvent.end()

            yield networkTeardownEvent.begin()
            self.network.destroy()
            yield networkTeardownEvent.end()

            yield from self._clear_resource_limits(subject, _scope)
        except Exception as e:
            for event in [supervisorShutdownEvent, networkTeardownEvent]:
                if event.pending is True:
                    yield event.fail(e)
            yield unitStopEvent.fail(e)
            raise
        yield unitStopEvent.end()

    def restart(
        self,
        event_scope: typing.Optional['libenclave.events.Scope']=None
    ) -> UnitEventGenerator:
        """Stop and start the unit."""
        self.require_exists()
        self.require_running()

        unitRestartEvent = libenclave.events.UnitRestart(
            self,
            scope=event_scope
        )
        yield unitRestartEvent.begin()
        try:
            yield from self.stop(event_scope=unitRestartEvent.scope)
            yield from self.start(event_scope=unitRestartEvent.scope)
        except Exception as e:
            yield unitRestartEvent.fail(e)
            raise
        yield unitRestartEvent.end()

    def destroy(
        self,
        event_scope: typing.Optional['libenclave.events.Scope']=None
    ) -> UnitEventGenerator:
        """
        Destroy the unit.

        Running units are stopped first. Resource limits are always
        released and every side effect of create is undone in reverse
        order, ending with the dataset tree.
        """
        with self.host.lock(self.name):
            yield from self._destroy(event_scope=event_scope)

    def _destroy(
        self,
        event_scope: typing.Optional['libenclave.events.Scope']=None
    ) -> UnitEventGenerator:
        self.require_exists()

        events = libenclave.events
        unitDestroyEvent = events.UnitDestroy(self, scope=event_scope)
        _scope = unitDestroyEvent.scope

        yield unitDestroyEvent.begin()
        try:
            if self.running is True:
                yield from self.stop(event_scope=_scope)

            descriptorRemoveEvent = events.DescriptorRemove(self, scope=_scope)
            yield descriptorRemoveEvent.begin()
            self.host.descriptors.remove(self.name)
            self.host.seed_images.get(self.name).remove()
            yield descriptorRemoveEvent.end()

            yield from self._clear_resource_limits(
                self._resource_limit_subject(),
                event_scope=_scope
            )

            networkTeardownEvent = events.NetworkTeardown(self, scope=_scope)
            yield networkTeardownEvent.begin()
            self.network.destroy()
            yield networkTeardownEvent.end()

            registryUpdateEvent = events.RegistryUpdate(self, scope=_scope)
            yield registryUpdateEvent.begin()
            self.host.registry.disable(self.name)
            yield registryUpdateEvent.end()

            unitDatasetsDestroyEvent = events.UnitDatasetsDestroy(
                self,
                scope=_scope
            )
            yield unitDatasetsDestroyEvent.begin()
            try:
                self.datasets.destroy()
            except Exception as e:
                yield unitDatasetsDestroyEvent.fail(e)
                raise
            yield unitDatasetsDestroyEvent.end()
        except Exception as e:
            yield unitDestroyEvent.fail(e)
            raise

        self._config = None
        yield unitDestroyEvent.end()

    def snapshot(
        self,
        label: typing.Optional[str]=None,
        event_scope: typing.Optional['libenclave.events.Scope']=None
    ) -> UnitEventGenerator:
        """Snapshot os and data under one label."""
        self.require_exists()
        unitSnapshotCreateEvent = libenclave.events.UnitSnapshotCreate(
            self,
            scope=event_scope
        )
        yield unitSnapshotCreateEvent.begin()
        try:
            label = self.datasets.snapshot(label)
        except Exception as e:
            yield unitSnapshotCreateEvent.fail(e)
            raise
        yield unitSnapshotCreateEvent.end(f"{self.name}@{label}")

    def list_snapshots(self) -> typing.List['libenclave.ZFS.Snapshot']:
        """Return the snapshots of os and data ordered by creation."""
        self.require_exists()
        return self.datasets.list_snapshots()

    def rollback(
        self,
        label: str,
        event_scope: typing.Optional['libenclave.events.Scope']=None
    ) -> UnitEventGenerator:
        """Revert os and data to a snapshot. Newer snapshots are lost."""
        with self.host.lock(self.name):
            self.require_exists()
            unitSnapshotRollbackEvent = libenclave.events.UnitSnapshotRollback(
                self,
                scope=event_scope
            )
            yield unitSnapshotRollbackEvent.begin()
            try:
                self.datasets.rollback(label)
            except Exception as e:
                yield unitSnapshotRollbackEvent.fail(e)
                raise
            yield unitSnapshotRollbackEvent.end(f"{self.name}@{label}")

    def destroy_snapshot(
        self,
        label: str,
        event_scope: typing.Optional['libenclave.events.Scope']=None
    ) -> UnitEventGenerator:
        """Destroy a snapshot of os and data."""
        self.require_exists()
        unitSnapshotDestroyEvent = libenclave.events.UnitSnapshotDestroy(
            self,
            scope=event_scope
        )
        yield unitSnapshotDestroyEvent.begin()
        try:
            self.datasets.destroy_snapshot(label)
        except Exception as e:
            yield unitSnapshotDestroyEvent.fail(e)
            raise
        yield unitSnapshotDestroyEvent.end(f"{self.name}@{label}")

    def reprovision(
        self,
        template: typing.Optional[str]=None,
        template_snapshot: typing.Optional[str]=None,
        event_scope: typing.Optional['libenclave.events.Scope']=None
    ) -> UnitEventGenerator:
        """
        Replace the os dataset with a fresh clone of a template.

        The unit has to be stopped. The data dataset is not touched. The
        template defaults to the one the unit was created from, in which
        case its most recent snapshot is used.
        """
        with self.host.lock(self.name):
            yield from self._reprovision(
                template=template,
                template_snapshot=template_snapshot,
                event_scope=event_scope
            )

    def _reprovision(
        self,
        template: typing.Optional[str],
        template_snapshot: typing.Optional[str],
        event_scope: typing.Optional['libenclave.events.Scope']
    ) -> UnitEventGenerator:
        self.require_exists()
        self.require_stopped("reprovision")

        template_name = template or self.config["template"]
        _template, snapshot = self._resolve_template(
            template_name,
            self.kind,
            template_snapshot
        )

        events = libenclave.events
        unitReprovisionEvent = events.UnitReprovision(self, scope=event_scope)
        _scope = unitReprovisionEvent.scope
        unitConfigWriteEvent = events.UnitConfigWrite(self, scope=_scope)

        yield unitReprovisionEvent.begin()
        try:
            self.datasets.reprovision(
                template_snapshot=snapshot.full_name,
                kind=self.kind,
                os_quota=self.config["os_quota"]
            )

            yield unitConfigWriteEvent.begin()
            self.config["template"] = _template.name
            self.config["template_snapshot"] = snapshot.name
            self.config["cloudinit"] = _template.cloudinit
            self.datasets.write_properties(self.config.to_properties())
            yield unitConfigWriteEvent.end()

            yield from self._write_descriptor(event_scope=_scope)
        except Exception as e:
            if unitConfigWriteEvent.pending is True:
                yield unitConfigWriteEvent.fail(e)
            yield unitReprovisionEvent.fail(e)
            raise
        yield unitReprovisionEvent.end(f"{_template.name}@{snapshot.name}")

    def exec(
        self,
        command: typing.List[str],
        passthru: bool=True
    ) -> libenclave.helpers.CommandOutput:
        """Execute a command in a running jail."""
        self.require_exists()
        self.require_kind(libenclave.Types.UnitKind.JAIL, "exec")
        self.require_running()
        if passthru is True:
            return self.supervisor.attach(self.name, command)
        return self.supervisor.exec(self.name, command)

    def console(self) -> libenclave.helpers.CommandOutput:
        """Attach the terminal to the serial console of a running VM."""
        self.require_exists()
        self.require_kind(libenclave.Types.UnitKind.VM, "attach a console to")
        self.require_running()
        return self.supervisor.attach(self.name)

    def show(self) -> typing.Dict[str, str]:
        """Return the configuration and state of the unit."""
        self.require_exists()
        output = {
            key: self.config.get_string(key)
            for key in self.config.keys()
        }
        output["state"] = str(self.state)
        output["device"] = self.network.device_name
        output["descriptor"] = self.descriptor_path
        return output

    def statistics(self) -> typing.Dict[str, str]:
        """Return the resource usage of a running unit."""
        self.require_exists()
        self.require_running()
        subject = self._resource_limit_subject()
        if subject is None:
            return {}
        return self.host.resource_limits.usage(subject)

    def __repr__(self) -> str:
        """Return a string representation of the object."""
        return f"<{self.__class__.__name__} {self.name}>"


class Unit(UnitGenerator):
    """Synchronous wrapper of UnitGenerator."""

    def create(  # noqa: T484
        self,
        *args,
        **kwargs
    ) -> typing.List['libenclave.events.EnclaveEvent']:
        """Create the unit."""
        return list(UnitGenerator.create(self, *args, **kwargs))

    def start(  # noqa: T484
        self,
        *args,
        **kwargs
    ) -> typing.List['libenclave.events.EnclaveEvent']:
        """Start the unit."""
        return list(UnitGenerator.start(self, *args, **kwargs))

    def stop(  # noqa: T484
        self,
        *args,
        **kwargs
    ) -> typing.List['libenclave.events.EnclaveEvent']:
        """Stop the unit."""
        return list(UnitGenerator.stop(self, *args, **kwargs))

    def restart(  # noqa: T484
        self,
        *args,
        **kwargs
    ) -> typing.List['libenclave.events.EnclaveEvent']:
        """Restart the unit."""
        return list(UnitGenerator.restart(self, *args, **kwargs))

    def destroy(  # noqa: T484
        self,
        *args,
        **kwargs
    ) -> typing.List['libenclave.events.EnclaveEvent']:
        """Destroy the unit."""
        return list(UnitGenerator.destroy(self, *args, **kwargs))

    def snapshot(  # noqa: T484
        self,
        *args,
        **kwargs
    ) -> typing.List['libenclave.events.EnclaveEvent']:
        """Snapshot the unit."""
        return list(UnitGenerator.snapshot(self, *args, **kwargs))

    def rollback(  # noqa: T484
        self,
        *args,
        **kwargs
    ) -> typing.List['libenclave.events.EnclaveEvent']:
        """Rollback the unit to a snapshot."""
        return list(UnitGenerator.rollback(self, *args, **kwargs))

    def destroy_snapshot(  # noqa: T484
        self,
        *args,
        **kwargs
    ) -> typing.List['libenclave.events.EnclaveEvent']:
        """Destroy a snapshot of the unit."""
        return list(UnitGenerator.destroy_snapshot(self, *args, **kwargs))

    def reprovision(  # noqa: T484
        self,
        *args,
        **kwargs
    ) -> typing.List['libenclave.events.EnclaveEvent']:
        """Reprovision the os dataset of the unit."""
        return list(UnitGenerator.reprovision(self, *args, **kwargs))
