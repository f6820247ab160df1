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
"""Collection of enclave errors."""
import typing

# MyPy
import libenclave.Logger  # noqa: F401


class EnclaveException(Exception):
    """
    Base of all errors raised by libenclave.

    The message is logged as error when a logger is passed, which is how
    the CLI reports failures without printing tracebacks.
    """

    def __init__(
        self,
        message: str,
        level: str="error",
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        if logger is not None:
            logger.log(message, level=level)
        super().__init__(message)


class UsageError(EnclaveException):
    """Raised on malformed invocations (exit code 2)."""

    pass


# Preconditions


class PreconditionError(EnclaveException):
    """Raised when a precondition of an operation is not met."""

    pass


class NotFound(PreconditionError):
    """Raised when a unit, template or snapshot is missing."""

    pass


class AlreadyExists(PreconditionError):
    """Raised on name collisions."""

    pass


class InvalidState(PreconditionError):
    """Raised when an operation is invalid for the current unit state."""

    pass


class UnitNotFound(NotFound):
    """Raised when the unit does not exist."""

    def __init__(
        self,
        name: str,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        msg = f"Unit '{name}' does not exist"
        super().__init__(message=msg, logger=logger)


class UnitAlreadyExists(AlreadyExists):
    """Raised when the unit already exists."""

    def __init__(
        self,
        name: str,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        msg = f"Unit '{name}' already exists"
        super().__init__(message=msg, logger=logger)


class UnitAlreadyRunning(InvalidState):
    """Raised when the unit is already running."""

    def __init__(
        self,
        name: str,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        msg = f"Unit '{name}' is already running"
        super().__init__(message=msg, logger=logger)


class UnitNotRunning(InvalidState):
    """Raised when the unit is not running."""

    def __init__(
        self,
        name: str,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        msg = f"Unit '{name}' is not running"
        super().__init__(message=msg, logger=logger)


class UnitMustBeStopped(InvalidState):
    """Raised when a destructive operation targets a running unit."""

    def __init__(
        self,
        name: str,
        action: str,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        msg = f"Unit '{name}' must be stopped to {action}"
        super().__init__(message=msg, logger=logger)


class UnitKindUnsupported(InvalidState):
    """Raised when an operation is not available for a kind of unit."""

    def __init__(
        self,
        name: str,
        kind: str,
        action: str,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        msg = f"Cannot {action} unit '{name}' of kind {kind}"
        super().__init__(message=msg, logger=logger)


class InvalidUnitName(PreconditionError, ValueError):
    """Raised when a unit name does not match the naming convention."""

    def __init__(
        self,
        name: str,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        msg = (
            f"Invalid unit name '{name}': Names have to begin and end with "
            "an alphanumeric character and may contain '.', '-' and '_'"
        )
        super().__init__(message=msg, logger=logger)


class InvalidUnitConfigValue(PreconditionError, ValueError):
    """Raised when a unit configuration value is invalid."""

    def __init__(
        self,
        property_name: str,
        reason: typing.Optional[str]=None,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        msg = f"Invalid value for property '{property_name}'"
        if reason is not None:
            msg += f": {reason}"
        super().__init__(message=msg, logger=logger)


class NetworkSubstrateUnavailable(PreconditionError):
    """Raised when the trunk interface of a requested VLAN is missing."""

    def __init__(
        self,
        interface: str,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        msg = f"Trunk interface '{interface}' does not exist"
        super().__init__(message=msg, logger=logger)


# Templates


class TemplateNotFound(NotFound):
    """Raised when a template does not exist."""

    def __init__(
        self,
        name: str,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        msg = f"Template '{name}' does not exist"
        super().__init__(message=msg, logger=logger)


class TemplateAlreadyExists(AlreadyExists):
    """Raised when a template already exists."""

    def __init__(
        self,
        name: str,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        msg = f"Template '{name}' already exists"
        super().__init__(message=msg, logger=logger)


class TemplateHasNoSnapshot(NotFound):
    """Raised when a template was never snapshotted."""

    def __init__(
        self,
        name: str,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        msg = f"Template '{name}' has no snapshot yet"
        super().__init__(message=msg, logger=logger)


class TemplateKindMismatch(PreconditionError):
    """Raised when a template does not match the kind of unit."""

    def __init__(
        self,
        name: str,
        kind: str,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        msg = f"Template '{name}' cannot be used for {kind} units"
        super().__init__(message=msg, logger=logger)


# Snapshots


class SnapshotNotFound(NotFound):
    """Raised when a snapshot was not found."""

    def __init__(
        self,
        snapshot_name: str,
        dataset_name: str,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        msg = f"Snapshot not found: {dataset_name}@{snapshot_name}"
        super().__init__(message=msg, logger=logger)


class SnapshotAlreadyExists(AlreadyExists):
    """Raised when a snapshot label is already taken."""

    def __init__(
        self,
        snapshot_name: str,
        dataset_name: str,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        msg = f"Snapshot already exists: {dataset_name}@{snapshot_name}"
        super().__init__(message=msg, logger=logger)


class InvalidSnapshotName(PreconditionError, ValueError):
    """Raised when a snapshot label is invalid."""

    def __init__(
        self,
        snapshot_name: str,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        msg = f"Invalid snapshot name: {snapshot_name}"
        super().__init__(message=msg, logger=logger)


# Resources in use


class ResourceBusy(EnclaveException):
    """Raised when a resource is blocked by active use."""

    pass


class DatasetBusy(ResourceBusy):
    """Raised when a dataset cannot be torn down."""

    def __init__(
        self,
        dataset_name: str,
        reason: typing.Optional[str]=None,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        msg = f"Dataset {dataset_name} is busy"
        if reason is not None:
            msg += f": {reason}"
        super().__init__(message=msg, logger=logger)


class UnitLocked(ResourceBusy):
    """Raised when another process holds the lock of a unit."""

    def __init__(
        self,
        name: str,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        msg = f"Unit '{name}' is locked by another operation"
        super().__init__(message=msg, logger=logger)


# External tools


class HypervisorProcessNotFound(EnclaveException):
    """Raised when a launched virtual machine reports no process."""

    def __init__(
        self,
        name: str,
        timeout: int,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        msg = (
            f"No hypervisor process of VM '{name}' appeared "
            f"within {timeout} seconds"
        )
        super().__init__(message=msg, logger=logger)


class ExternalToolFailure(EnclaveException):
    """Raised when an external command returned a failure."""

    command: typing.List[str]
    returncode: int
    stdout: typing.Optional[str]
    stderr: typing.Optional[str]

    def __init__(
        self,
        command: typing.List[str],
        returncode: int,
        stdout: typing.Optional[str]=None,
        stderr: typing.Optional[str]=None,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        msg = f"Command exited with {returncode}: {' '.join(command)}"
        if stderr:
            msg += f"\n{stderr}"
        super().__init__(message=msg, logger=logger)


class DownloadFailed(EnclaveException):
    """Raised when downloading an asset failed."""

    def __init__(
        self,
        url: str,
        code: typing.Optional[int]=None,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        msg = f"Failed downloading {url}"
        if code is not None:
            msg += f" (exit code {code})"
        super().__init__(message=msg, logger=logger)


class IllegalArchiveContent(EnclaveException):
    """Raised when a release archive contains unsafe member names."""

    def __init__(
        self,
        asset_name: str,
        reason: str,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        msg = f"Asset {asset_name} contains illegal files - {reason}"
        super().__init__(message=msg, logger=logger)


# Configuration


class HostConfigError(EnclaveException):
    """Raised when the host configuration cannot be read."""

    def __init__(
        self,
        reason: str,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        msg = f"Invalid host configuration: {reason}"
        super().__init__(message=msg, logger=logger)


# Logging and Events


class InvalidLogLevel(EnclaveException):
    """Raised when the logger was initialized with an invalid log level."""

    def __init__(
        self,
        log_level: str,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        available_log_levels = libenclave.Logger.Logger.LOG_LEVELS
        available_log_levels_string = ", ".join(available_log_levels)
        msg = (
            f"Invalid log-level '{log_level}'. Choose one of "
            f"{available_log_levels_string}"
        )
        super().__init__(message=msg, logger=logger)


class CannotRedrawLine(EnclaveException):
    """Raised when the LogEntry cannot be redrawn."""

    def __init__(
        self,
        reason: str,
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        msg = "Logger can't redraw line"
        if reason is not None:
            msg += f": {reason}"
        super().__init__(message=msg, logger=logger)


class EventAlreadyFinished(EnclaveException):
    """Raised when a finished event should be started again."""

    def __init__(
        self,
        event: 'libenclave.events.EnclaveEvent',
        logger: typing.Optional['libenclave.Logger.Logger']=None
    ) -> None:
        msg = f"This {event.type} event is already finished"
        super().__init__(message=msg, logger=logger)
