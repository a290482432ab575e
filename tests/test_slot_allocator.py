"""Tests for unit-number address spaces and slot allocation."""

import pytest

from vcd_disk_manager.errors import InvalidUnitForBusType, NoFreeSlot, SlotAlreadyOccupied
from vcd_disk_manager.models import BusType, DiskDescriptor
from vcd_disk_manager.slot_allocator import address_space, allocate_unit

KNOWN_BUS_TYPES = [bt for bt in BusType if bt is not BusType.UNKNOWN]


def _disks(bus_type, units, bus_number=0):
    return [
        DiskDescriptor(disk_id=str(2000 + u), size_mb=10, unit_number=u,
                       bus_number=bus_number, adapter_type=bus_type.code)
        for u in units
    ]


class TestAddressSpace:
    def test_ide(self):
        assert address_space(BusType.IDE) == (0, 1)

    def test_sata_excludes_unit_30(self):
        units = address_space(BusType.SATA)
        assert units == tuple(range(30))
        assert 30 not in units

    @pytest.mark.parametrize("bus_type", [BusType.PARALLEL, BusType.SAS, BusType.PARAVIRTUAL])
    def test_scsi_families_skip_unit_7(self, bus_type):
        units = address_space(bus_type)
        assert 7 not in units
        assert units == (0, 1, 2, 3, 4, 5, 6, 8, 9, 10, 11, 12, 13, 14, 15)

    def test_unknown_has_no_units(self):
        assert address_space(BusType.UNKNOWN) == ()


class TestAllocateUnrequested:
    def test_empty_bus_gets_unit_zero(self):
        assert allocate_unit(BusType.PARAVIRTUAL, 0, []) == 0

    def test_first_gap_is_used(self):
        existing = _disks(BusType.PARAVIRTUAL, [0, 1, 3])
        assert allocate_unit(BusType.PARAVIRTUAL, 0, existing) == 2

    def test_unit_7_is_skipped(self):
        existing = _disks(BusType.SAS, range(7))
        assert allocate_unit(BusType.SAS, 0, existing) == 8

    def test_other_buses_do_not_occupy(self):
        existing = _disks(BusType.PARAVIRTUAL, [0, 1], bus_number=1) + _disks(BusType.SATA, [0, 1])
        assert allocate_unit(BusType.PARAVIRTUAL, 0, existing) == 0

    @pytest.mark.parametrize("bus_type", KNOWN_BUS_TYPES)
    def test_full_bus_raises(self, bus_type):
        existing = _disks(bus_type, address_space(bus_type))
        with pytest.raises(NoFreeSlot):
            allocate_unit(bus_type, 0, existing)

    @pytest.mark.parametrize("bus_type", KNOWN_BUS_TYPES)
    def test_returns_minimum_free_unit(self, bus_type):
        space = address_space(bus_type)
        # occupy every other unit and check the lowest gap is chosen
        occupied = space[::2]
        expected = min(u for u in space if u not in occupied)
        assert allocate_unit(bus_type, 0, _disks(bus_type, occupied)) == expected


class TestAllocateRequested:
    def test_free_unit_accepted(self):
        assert allocate_unit(BusType.SATA, 3, [], requested_unit=29) == 29

    def test_occupied_unit_rejected(self):
        existing = _disks(BusType.PARAVIRTUAL, [0, 1])
        with pytest.raises(SlotAlreadyOccupied):
            allocate_unit(BusType.PARAVIRTUAL, 0, existing, requested_unit=1)

    @pytest.mark.parametrize(
        "bus_type, unit",
        [
            (BusType.IDE, 2),
            (BusType.SATA, 30),
            (BusType.PARAVIRTUAL, 7),
            (BusType.PARALLEL, 16),
            (BusType.SAS, -1),
        ],
    )
    def test_out_of_range_rejected(self, bus_type, unit):
        with pytest.raises(InvalidUnitForBusType):
            allocate_unit(bus_type, 0, [], requested_unit=unit)

    def test_out_of_range_wins_over_occupancy(self):
        existing = _disks(BusType.IDE, [0, 1])
        with pytest.raises(InvalidUnitForBusType, match="valid units: 0-1"):
            allocate_unit(BusType.IDE, 0, existing, requested_unit=5)
