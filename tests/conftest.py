"""Shared fixtures: canned VM documents and an in-memory control plane."""

from __future__ import annotations

import pytest

from vcd_disk_manager.models import DiskSpecDocument, StorageProfileRef, TaskStatus
from vcd_disk_manager.vm_document import TaskInfo, parse_vm_document, render_vm_document

HOST = "vcd.example.com"
VM_HREF = f"https://{HOST}/api/vApp/vm-6f2c9a1e-3b4d-4c5e-8f90-123456789abc"
VAPP_HREF = f"https://{HOST}/api/vApp/vapp-0a1b2c3d-0000-4000-8000-000000000001"
VDC_HREF = f"https://{HOST}/api/vdc/9e8d7c6b-0000-4000-8000-000000000002"
TASK_HREF = f"https://{HOST}/api/task/5a5a5a5a-0000-4000-8000-000000000003"

GOLD = StorageProfileRef(
    name="Gold",
    href=f"https://{HOST}/api/vdcStorageProfile/gold",
    id="urn:vcloud:vdcstorageProfile:gold",
)
SILVER = StorageProfileRef(
    name="Silver",
    href=f"https://{HOST}/api/vdcStorageProfile/silver",
    id="urn:vcloud:vdcstorageProfile:silver",
)


def disk_xml(disk_id, size_mb, unit, bus, adapter, profile=GOLD, override=False, iops=None):
    iops_xml = f"<iops>{iops}</iops>" if iops is not None else ""
    return f"""
      <DiskSettings>
        <DiskId>{disk_id}</DiskId>
        <SizeMb>{size_mb}</SizeMb>
        <UnitNumber>{unit}</UnitNumber>
        <BusNumber>{bus}</BusNumber>
        <AdapterType>{adapter}</AdapterType>
        <ThinProvisioned>true</ThinProvisioned>
        <StorageProfile href="{profile.href}" id="{profile.id}" name="{profile.name}"
            type="application/vnd.vmware.vcloud.vdcStorageProfile+xml"/>
        <overrideVmDefault>{str(override).lower()}</overrideVmDefault>
        {iops_xml}
        <VirtualQuantity>{size_mb * 1024 * 1024}</VirtualQuantity>
        <VirtualQuantityUnit>byte</VirtualQuantityUnit>
      </DiskSettings>"""


def make_vm_xml(disks=None, status=8, name="app01") -> bytes:
    """A Vm entity with the given DiskSettings fragments (default: two paravirtual disks)."""
    if disks is None:
        disks = [
            disk_xml(2000, 8192, 0, 0, 5),
            disk_xml(2001, 40, 1, 0, 5),
        ]
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<Vm xmlns="http://www.vmware.com/vcloud/v1.5"
    xmlns:ovf="http://schemas.dmtf.org/ovf/envelope/1"
    name="{name}" status="{status}" href="{VM_HREF}"
    type="application/vnd.vmware.vcloud.vm+xml">
  <Link rel="up" href="{VAPP_HREF}" type="application/vnd.vmware.vcloud.vApp+xml"/>
  <Link rel="edit" href="{VM_HREF}" type="application/vnd.vmware.vcloud.vm+xml"/>
  <Description>test machine</Description>
  <ovf:VirtualHardwareSection ovf:transport="">
    <ovf:Info>Virtual hardware requirements</ovf:Info>
  </ovf:VirtualHardwareSection>
  <VmSpecSection Modified="false">
    <ovf:Info>The configuration parameters for logical VM</ovf:Info>
    <OsType>ubuntu64Guest</OsType>
    <NumCpus>2</NumCpus>
    <DiskSection>{"".join(disks)}
    </DiskSection>
  </VmSpecSection>
  <StorageProfile href="{GOLD.href}" id="{GOLD.id}" name="{GOLD.name}"
      type="application/vnd.vmware.vcloud.vdcStorageProfile+xml"/>
</Vm>""".encode("utf-8")


def task_xml(status="running", href=TASK_HREF, error_message=None) -> bytes:
    error = f'<Error message="{error_message}" majorErrorCode="500"/>' if error_message else ""
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<Task xmlns="http://www.vmware.com/vcloud/v1.5" status="{status}" operationName="vappUpdateVm"
    href="{href}" type="application/vnd.vmware.vcloud.task+xml">{error}</Task>""".encode("utf-8")


class FakeControlPlane:
    """In-memory stand-in for VcdClient.

    Submitted documents are applied immediately so a later fetch sees them.
    """

    def __init__(
        self,
        raw: bytes | None = None,
        profiles=(GOLD, SILVER),
        statuses=("success",),
        submit_error: Exception | None = None,
        status_error: Exception | None = None,
        task_href: str = TASK_HREF,
    ):
        self.raw = raw if raw is not None else make_vm_xml()
        self.profiles = list(profiles)
        self.statuses = list(statuses)
        self.submit_error = submit_error
        self.status_error = status_error
        self.task_href = task_href
        self.fetched: list[str] = []
        self.submitted: list[DiskSpecDocument] = []
        self.status_checks = 0
        self.profile_lookups = 0

    def fetch_vm_document(self, vm_href: str) -> DiskSpecDocument:
        self.fetched.append(vm_href)
        return parse_vm_document(self.raw)

    def list_storage_profiles(self, doc: DiskSpecDocument):
        self.profile_lookups += 1
        return list(self.profiles)

    def submit_reconfigure(self, doc: DiskSpecDocument) -> TaskInfo:
        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append(doc)
        self.raw = render_vm_document(doc)
        return TaskInfo(href=self.task_href, status=TaskStatus.QUEUED)

    def get_task(self, task_href: str) -> TaskInfo:
        self.status_checks += 1
        if self.status_error is not None:
            raise self.status_error
        index = min(self.status_checks - 1, len(self.statuses) - 1)
        return TaskInfo(href=task_href, status=TaskStatus(self.statuses[index]))


class RecordingWaiter:
    """Replaces Event.wait: records requested waits and never blocks."""

    def __init__(self, cancel_after: int | None = None):
        self.waits: list[float] = []
        self.cancel_after = cancel_after

    def __call__(self, seconds: float) -> bool:
        self.waits.append(seconds)
        return self.cancel_after is not None and len(self.waits) > self.cancel_after


@pytest.fixture
def vm_xml() -> bytes:
    return make_vm_xml()


@pytest.fixture
def vm_doc(vm_xml) -> DiskSpecDocument:
    return parse_vm_document(vm_xml)


@pytest.fixture
def control_plane() -> FakeControlPlane:
    return FakeControlPlane()


@pytest.fixture
def waiter() -> RecordingWaiter:
    return RecordingWaiter()
