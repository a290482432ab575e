"""Read-only projection of a VM's disks into their display form."""

from __future__ import annotations

from .models import DiskDescriptor, DiskSpecDocument, DiskView


def to_view(disk: DiskDescriptor) -> DiskView:
    return DiskView(
        disk_id=disk.disk_id or "",
        size_mb=disk.size_mb,
        unit_number=disk.unit_number,
        bus_number=disk.bus_number,
        bus_type=disk.bus_type.value,
        thin_provisioned=disk.thin_provisioned,
        storage_profile_name=disk.storage_profile.name if disk.storage_profile else "",
        override_vm_default=disk.override_vm_default,
        iops=disk.iops,
    )


def project_disks(doc: DiskSpecDocument) -> list[DiskView]:
    """Display form of every disk, in document order."""
    return [to_view(d) for d in doc.disks]
