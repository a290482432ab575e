"""Unit-number address space per controller family and free-slot allocation."""

from __future__ import annotations

from collections.abc import Iterable

from .errors import InvalidUnitForBusType, NoFreeSlot, SlotAlreadyOccupied
from .models import BusType, DiskDescriptor

# SCSI-style controllers reserve unit 7 for the controller itself.
_SCSI_UNITS = tuple(u for u in range(16) if u != 7)

# SATA unit 30 is accepted by some UIs but rejected here.
_ADDRESS_SPACE: dict[BusType, tuple[int, ...]] = {
    BusType.IDE: (0, 1),
    BusType.SATA: tuple(range(30)),
    BusType.PARALLEL: _SCSI_UNITS,
    BusType.SAS: _SCSI_UNITS,
    BusType.PARAVIRTUAL: _SCSI_UNITS,
}


def address_space(bus_type: BusType) -> tuple[int, ...]:
    """Valid unit numbers for *bus_type*, ascending. Empty for UNKNOWN."""
    return _ADDRESS_SPACE.get(bus_type, ())


def allocate_unit(
    bus_type: BusType,
    bus_number: int,
    existing: Iterable[DiskDescriptor],
    requested_unit: int | None = None,
) -> int:
    """Validate *requested_unit* or pick the lowest free one.

    *existing* may contain descriptors from other buses; only those on
    (bus_type, bus_number) are considered occupied.
    """
    units = address_space(bus_type)
    occupied = {
        d.unit_number for d in existing
        if d.adapter_type == bus_type.code and d.bus_number == bus_number
    }

    if requested_unit is not None:
        if requested_unit not in units:
            raise InvalidUnitForBusType(bus_type.value, requested_unit, list(units))
        if requested_unit in occupied:
            raise SlotAlreadyOccupied(bus_type.value, bus_number, requested_unit)
        return requested_unit

    for unit in units:
        if unit not in occupied:
            return unit
    raise NoFreeSlot(bus_type.value, bus_number)
