"""Data models for VM disk configuration and remote reconfiguration tasks."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

from .errors import InvalidBusType


class BusType(str, Enum):
    IDE = "ide"
    PARALLEL = "parallel"
    SAS = "sas"
    PARAVIRTUAL = "paravirtual"
    SATA = "sata"
    UNKNOWN = "unknown"

    @property
    def code(self) -> int | None:
        """Wire code of the adapter family (``None`` for UNKNOWN)."""
        return _BUS_TYPE_TO_CODE.get(self)

    @classmethod
    def from_code(cls, code: int | str | None) -> BusType:
        try:
            return _CODE_TO_BUS_TYPE.get(int(code), cls.UNKNOWN)
        except (TypeError, ValueError):
            return cls.UNKNOWN

    @classmethod
    def parse(cls, name: str) -> BusType:
        """Look up a user-supplied bus type name, case-insensitively."""
        try:
            bus_type = cls(name.strip().lower())
        except ValueError:
            raise InvalidBusType(name) from None
        if bus_type is cls.UNKNOWN:
            raise InvalidBusType(name)
        return bus_type


_BUS_TYPE_TO_CODE: dict[BusType, int] = {
    BusType.IDE: 1,
    BusType.PARALLEL: 3,
    BusType.SAS: 4,
    BusType.PARAVIRTUAL: 5,
    BusType.SATA: 6,
}
_CODE_TO_BUS_TYPE: dict[int, BusType] = {code: bt for bt, code in _BUS_TYPE_TO_CODE.items()}


class PowerState(str, Enum):
    POWERED_ON = "poweredOn"
    POWERED_OFF = "poweredOff"
    SUSPENDED = "suspended"
    UNKNOWN = "unknown"

    @classmethod
    def from_status_code(cls, status: int | str | None) -> PowerState:
        try:
            return _VM_STATUS_TO_POWER.get(int(status), cls.UNKNOWN)
        except (TypeError, ValueError):
            return cls.UNKNOWN


# Vm@status values reported by the control plane
_VM_STATUS_TO_POWER: dict[int, PowerState] = {
    3: PowerState.SUSPENDED,
    4: PowerState.POWERED_ON,
    8: PowerState.POWERED_OFF,
}


class TaskStatus(str, Enum):
    QUEUED = "queued"
    PRE_RUNNING = "preRunning"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"
    CANCELED = "canceled"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.SUCCESS, TaskStatus.ERROR, TaskStatus.CANCELED, TaskStatus.ABORTED)

    @property
    def is_failure(self) -> bool:
        return self.is_terminal and self is not TaskStatus.SUCCESS


@dataclass(frozen=True)
class StorageProfileRef:
    name: str = ""
    href: str = ""
    id: str = ""


@dataclass(frozen=True)
class DiskDescriptor:
    """One attached (or to-be-created) virtual disk."""
    disk_id: str | None = None       # assigned by the control plane
    size_mb: int = 0
    unit_number: int = 0
    bus_number: int = 0
    adapter_type: int = 5            # wire code, see BusType
    thin_provisioned: bool = True
    storage_profile: StorageProfileRef | None = None
    override_vm_default: bool = False
    iops: int | None = None

    @property
    def bus_type(self) -> BusType:
        return BusType.from_code(self.adapter_type)

    @property
    def address(self) -> tuple[int, int, int]:
        return (self.adapter_type, self.bus_number, self.unit_number)


@dataclass(frozen=True)
class MachineInfo:
    """Machine-level metadata carried alongside the disk list."""
    href: str = ""
    name: str = ""
    power_state: PowerState = PowerState.UNKNOWN
    default_storage_profile: StorageProfileRef | None = None


@dataclass(frozen=True)
class DiskSpecDocument:
    """Immutable snapshot of a machine's disk specification.

    Fetched fresh for every operation; mutators return a new snapshot and
    submission serializes it back over ``raw_xml``.
    """
    machine: MachineInfo = field(default_factory=MachineInfo)
    disks: tuple[DiskDescriptor, ...] = ()
    modified: bool = False
    raw_xml: bytes = b""

    def with_disks(self, disks: tuple[DiskDescriptor, ...]) -> DiskSpecDocument:
        return replace(self, disks=tuple(disks), modified=True)


@dataclass
class DiskView:
    """Display form of a DiskDescriptor."""
    disk_id: str = ""
    size_mb: int = 0
    unit_number: int = 0
    bus_number: int = 0
    bus_type: str = BusType.UNKNOWN.value
    thin_provisioned: bool = False
    storage_profile_name: str = ""
    override_vm_default: bool = False
    iops: int | None = None


@dataclass
class OperationResult:
    """Outcome of a mutating operation; truthy only on success."""
    ok: bool = False
    message: str = ""
    error: Exception | None = None
    timed_out: bool = False
    task_href: str = ""

    def __bool__(self) -> bool:
        return self.ok
