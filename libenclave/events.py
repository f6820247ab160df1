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
"""Progress events yielded by unit and template operations."""
import typing
from timeit import default_timer as timer

import libenclave.errors

RollbackStep = typing.Callable[[], typing.Optional[
    typing.Generator['EnclaveEvent', None, None]
]]


class Scope(list):
    """The events of one top-level operation and their nesting depth."""

    PENDING_COUNT: int

    def __init__(self) -> None:
        super().__init__()
        self.PENDING_COUNT = 0


class EnclaveEvent:
    """
    One step of an operation, reported before and after it runs.

    The same event object is yielded when it begins and again when it ends,
    is skipped or fails. Steps with side effects register a compensating
    rollback step on the event of the enclosing operation. When that event
    fails, the registered steps run in reverse order, so that the host is
    left as it was before the operation.
    """

    identifier: typing.Optional[str] = None
    error: typing.Optional[typing.Union[bool, BaseException]]

    def __init__(
        self,
        message: typing.Optional[str]=None,
        scope: typing.Optional[Scope]=None
    ) -> None:
        self.scope = Scope() if (scope is None) else scope
        self.scope.append(self)
        self.parent_count = self.scope.PENDING_COUNT
        self.message = message

        self.done = True
        self.skipped = False
        self.error = None
        self._pending = False
        self._reverted = False
        self._started_at: typing.Optional[float] = None
        self._stopped_at: typing.Optional[float] = None
        self._rollback_steps: typing.List[RollbackStep] = []

    @property
    def type(self) -> str:
        """Return the event type, which is the class name."""
        return type(self).__name__

    @property
    def pending(self) -> bool:
        """Return True between begin and the end of the event."""
        return self._pending

    @pending.setter
    def pending(self, state: bool) -> None:
        if state is self._pending:
            return
        if state is True:
            if self._started_at is not None:
                raise libenclave.errors.EventAlreadyFinished(event=self)
            self._started_at = float(timer())
            self.scope.PENDING_COUNT += 1
        else:
            self._stopped_at = float(timer())
            self.scope.PENDING_COUNT -= 1
        self._pending = state

    @property
    def duration(self) -> typing.Optional[float]:
        """Return the seconds a finished event took."""
        if (self._started_at is None) or (self._stopped_at is None):
            return None
        return self._stopped_at - self._started_at

    def get_state_string(
        self,
        error: str="failed",
        skipped: str="skipped",
        done: str="done",
        pending: str="pending"
    ) -> str:
        """Return one of the given words for the state of the event."""
        if self.error is not None:
            return error
        if self.skipped is True:
            return skipped
        return done if (self.done is True) else pending

    def add_rollback_step(self, method: RollbackStep) -> None:
        """Register a step that reverts a side effect on failure."""
        self._rollback_steps.append(method)

    def rollback(self) -> typing.Generator['EnclaveEvent', None, None]:
        """Run the rollback steps once, newest first."""
        if self._reverted is True:
            return
        self._reverted = True
        steps = list(reversed(self._rollback_steps))
        self._rollback_steps = []
        for step in steps:
            events = step()
            if events is not None:
                yield from events

    def begin(self, message: typing.Optional[str]=None) -> 'EnclaveEvent':
        """Mark the event as started."""
        self.message = message
        self.done = False
        self.pending = True
        self.parent_count = self.scope.PENDING_COUNT - 1
        return self

    def end(self, message: typing.Optional[str]=None) -> 'EnclaveEvent':
        """Mark the event as finished successfully."""
        self.message = message
        self.done = True
        self._finish()
        return self

    def skip(self, message: typing.Optional[str]=None) -> 'EnclaveEvent':
        """Mark the event as finished without doing anything."""
        self.message = message
        self.skipped = True
        self._finish()
        return self

    def fail(
        self,
        exception: typing.Union[bool, BaseException]=True,
        message: typing.Optional[str]=None
    ) -> 'EnclaveEvent':
        """Mark the event as failed after running its rollback steps."""
        list(self.fail_generator(exception=exception, message=message))
        return self

    def fail_generator(
        self,
        exception: typing.Union[bool, BaseException]=True,
        message: typing.Optional[str]=None
    ) -> typing.Generator['EnclaveEvent', None, None]:
        """Yield the events of the rollback steps, then the failed event."""
        self.message = message
        self.error = exception
        yield from self.rollback()
        self._finish()
        yield self

    def _finish(self) -> None:
        self.pending = False
        self.parent_count = self.scope.PENDING_COUNT


# Units


class UnitEvent(EnclaveEvent):
    """Any event related to a unit."""

    unit: 'libenclave.Unit.UnitGenerator'
    identifier: typing.Optional[str]

    def __init__(
        self,
        unit: 'libenclave.Unit.UnitGenerator',
        message: typing.Optional[str]=None,
        scope: typing.Optional[Scope]=None
    ) -> None:

        try:
            self.identifier = unit.name
        except AttributeError:
            self.identifier = None
        self.unit = unit
        EnclaveEvent.__init__(self, message=message, scope=scope)


class UnitCreate(UnitEvent):
    """Create a unit."""

    pass


class UnitStart(UnitEvent):
    """Start a unit."""

    pass


class UnitStop(UnitEvent):
    """Stop a unit."""

    pass


class UnitRestart(UnitEvent):
    """Restart a unit."""

    pass


class UnitDestroy(UnitEvent):
    """Destroy a unit and all of its resources."""

    pass


class UnitReprovision(UnitEvent):
    """Replace a units os dataset."""

    pass


class UnitDatasetsCreate(UnitEvent):
    """Create the dataset tree of a unit."""

    pass


class UnitDatasetsDestroy(UnitEvent):
    """Destroy the dataset tree of a unit."""

    pass


class UnitSnapshotCreate(UnitEvent):
    """Snapshot the os and data datasets of a unit."""

    pass


class UnitSnapshotRollback(UnitEvent):
    """Revert the os and data datasets of a unit."""

    pass


class UnitSnapshotDestroy(UnitEvent):
    """Destroy a snapshot of a unit."""

    pass


class UnitConfigWrite(UnitEvent):
    """Persist a units configuration."""

    pass


class DescriptorWrite(UnitEvent):
    """Render and write a units descriptor."""

    pass


class DescriptorRemove(UnitEvent):
    """Remove a units descriptor."""

    pass


class SeedImageWrite(UnitEvent):
    """Build the guest configuration seed image of a VM."""

    pass


class RegistryUpdate(UnitEvent):
    """Enable or disable a unit in the host registry."""

    pass


class NetworkSetup(UnitEvent):
    """Create and attach the network device of a unit."""

    pass


class NetworkTeardown(UnitEvent):
    """Destroy the network device of a unit."""

    pass


class ResourceLimitAction(UnitEvent):
    """Set or unset a units resource limits."""

    pass


class SupervisorLaunch(UnitEvent):
    """Hand a unit over to its process supervisor."""

    pass


class SupervisorShutdown(UnitEvent):
    """Gracefully shut down a unit."""

    pass


# Templates


class TemplateEvent(EnclaveEvent):
    """Any event related to a template."""

    template: 'libenclave.Template.Template'
    identifier: typing.Optional[str]

    def __init__(
        self,
        template: 'libenclave.Template.Template',
        message: typing.Optional[str]=None,
        scope: typing.Optional[Scope]=None
    ) -> None:
        self.identifier = template.name
        self.template = template
        EnclaveEvent.__init__(self, message=message, scope=scope)


class TemplateDownload(TemplateEvent):
    """Download template assets."""

    pass


class TemplateExtract(TemplateEvent):
    """Extract downloaded template assets."""

    pass


class TemplateUpdate(TemplateEvent):
    """Update a template."""

    pass


class TemplateSnapshot(TemplateEvent):
    """Take a dated template snapshot."""

    pass
