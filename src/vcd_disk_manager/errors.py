"""Exception hierarchy for disk reconfiguration."""

from __future__ import annotations


class DiskManagerError(Exception):
    """Base class for all errors raised by vcd_disk_manager."""


# ---------------------------------------------------------------------------
# Validation - bad input, detected before any remote call
# ---------------------------------------------------------------------------

class ValidationError(DiskManagerError):
    pass


class InvalidSizeFormat(ValidationError):
    def __init__(self, value: str):
        super().__init__(f"Invalid size '{value}': expected a number optionally followed by M, G or T")
        self.value = value


class NonPositiveSize(ValidationError):
    def __init__(self, size_mb: int):
        super().__init__(f"Disk size must be greater than zero (got {size_mb} MB)")
        self.size_mb = size_mb


class InvalidIops(ValidationError):
    def __init__(self, iops: int):
        super().__init__(f"IOPS ceiling must not be negative (got {iops})")
        self.iops = iops


class InvalidUnitForBusType(ValidationError):
    def __init__(self, bus_type: str, unit_number: int, valid_units: list[int]):
        super().__init__(
            f"Unit {unit_number} is not valid for bus type {bus_type}; "
            f"valid units: {_format_units(valid_units)}"
        )
        self.bus_type = bus_type
        self.unit_number = unit_number


class InvalidBusType(ValidationError):
    def __init__(self, value: str):
        super().__init__(
            f"Unknown bus type '{value}'; expected one of ide, parallel, sas, paravirtual, sata"
        )
        self.value = value


class InvalidMachineHandle(ValidationError):
    pass


class SizeReductionNotAllowed(ValidationError):
    def __init__(self, current_mb: int, requested_mb: int):
        super().__init__(
            f"Requested size {requested_mb} MB must be larger than the current size {current_mb} MB"
        )
        self.current_mb = current_mb
        self.requested_mb = requested_mb


# ---------------------------------------------------------------------------
# Preconditions - state of the machine does not allow the operation
# ---------------------------------------------------------------------------

class PreconditionError(DiskManagerError):
    pass


class NoFreeSlot(PreconditionError):
    def __init__(self, bus_type: str, bus_number: int):
        super().__init__(f"No free unit left on {bus_type} bus {bus_number}")
        self.bus_type = bus_type
        self.bus_number = bus_number


class SlotAlreadyOccupied(PreconditionError):
    def __init__(self, bus_type: str, bus_number: int, unit_number: int):
        super().__init__(f"Unit {unit_number} on {bus_type} bus {bus_number} is already in use")
        self.bus_type = bus_type
        self.bus_number = bus_number
        self.unit_number = unit_number


class DiskNotFound(PreconditionError):
    def __init__(self, bus_type: str, bus_number: int, unit_number: int):
        super().__init__(f"No disk found at {bus_type} bus {bus_number} unit {unit_number}")
        self.bus_type = bus_type
        self.bus_number = bus_number
        self.unit_number = unit_number


class StorageProfileNotFound(PreconditionError):
    def __init__(self, name: str, available: list[str]):
        listing = ", ".join(sorted(available)) or "none"
        super().__init__(f"Storage profile '{name}' not found. Available profiles: {listing}")
        self.name = name
        self.available = available


class MachineMustBePoweredOff(PreconditionError):
    def __init__(self, machine: str, power_state: str):
        super().__init__(f"VM {machine} must be powered off (current state: {power_state})")
        self.machine = machine
        self.power_state = power_state


# ---------------------------------------------------------------------------
# Remote - the control plane or the transport failed
# ---------------------------------------------------------------------------

class RemoteError(DiskManagerError):
    pass


class TransportError(RemoteError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SessionNotFound(RemoteError):
    def __init__(self, host: str):
        super().__init__(f"No connected session found for {host}")
        self.host = host


class NegotiationFailed(RemoteError):
    pass


class MalformedDocument(RemoteError):
    pass


class SubmissionFailed(RemoteError):
    pass


class StatusCheckFailed(RemoteError):
    pass


class OperationFailed(RemoteError):
    def __init__(self, status: str, detail: str = ""):
        message = f"Reconfiguration task ended with status '{status}'"
        if detail:
            message += f": {detail}"
        super().__init__(message)
        self.status = status
        self.detail = detail


def _format_units(units: list[int]) -> str:
    """Render [0, 1, 2, 4, 5] as '0-2, 4-5'."""
    ranges: list[str] = []
    start = prev = None
    for unit in sorted(units):
        if start is None:
            start = prev = unit
        elif unit == prev + 1:
            prev = unit
        else:
            ranges.append(f"{start}-{prev}" if start != prev else str(start))
            start = prev = unit
    if start is not None:
        ranges.append(f"{start}-{prev}" if start != prev else str(start))
    return ", ".join(ranges)
