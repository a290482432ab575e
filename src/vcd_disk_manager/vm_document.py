"""XML codec for the VM entity, reconfiguration tasks and related references.

Only the parts of the documents this tool understands are modelled; on
submission the originally fetched XML is re-parsed and the disk section is
reconciled against the snapshot so everything else round-trips untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from xml.etree import ElementTree

from .errors import MalformedDocument
from .models import (
    DiskDescriptor,
    DiskSpecDocument,
    MachineInfo,
    PowerState,
    StorageProfileRef,
    TaskStatus,
)

logger = logging.getLogger(__name__)

VCLOUD_NS = "http://www.vmware.com/vcloud/v1.5"
VERSIONS_NS = "http://www.vmware.com/vcloud/versions"

VM_MEDIA_TYPE = "application/vnd.vmware.vcloud.vm+xml"
VDC_MEDIA_TYPE = "application/vnd.vmware.vcloud.vdc+xml"
STORAGE_PROFILE_MEDIA_TYPE = "application/vnd.vmware.vcloud.vdcStorageProfile+xml"

_NAMESPACES = {
    "": VCLOUD_NS,
    "ovf": "http://schemas.dmtf.org/ovf/envelope/1",
    "rasd": "http://schemas.dmtf.org/wbem/wscim/1/cim-schema/2/CIM_ResourceAllocationSettingData",
    "vssd": "http://schemas.dmtf.org/wbem/wscim/1/cim-schema/2/CIM_VirtualSystemSettingData",
    "vmw": "http://www.vmware.com/schema/ovf",
    "ovfenv": "http://schemas.dmtf.org/ovf/environment/1",
    "xsi": "http://www.w3.org/2001/XMLSchema-instance",
}
for _prefix, _uri in _NAMESPACES.items():
    ElementTree.register_namespace(_prefix, _uri)


def _q(tag: str, ns: str = VCLOUD_NS) -> str:
    return f"{{{ns}}}{tag}"


def _parse(raw: bytes, what: str) -> ElementTree.Element:
    try:
        return ElementTree.fromstring(raw)
    except ElementTree.ParseError as e:
        raise MalformedDocument(f"Could not parse {what}: {e}") from e


def _text(elem: ElementTree.Element, tag: str, default: str = "") -> str:
    child = elem.find(_q(tag))
    if child is None or child.text is None:
        return default
    return child.text.strip()


def _int(elem: ElementTree.Element, tag: str, default: int | None = 0) -> int | None:
    value = _text(elem, tag)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise MalformedDocument(f"<{tag}> is not an integer: {value!r}") from None


def _bool(elem: ElementTree.Element, tag: str, default: bool = False) -> bool:
    value = _text(elem, tag)
    if not value:
        return default
    return value.lower() == "true"


def _profile_ref(elem: ElementTree.Element | None) -> StorageProfileRef | None:
    if elem is None:
        return None
    return StorageProfileRef(
        name=elem.get("name", ""),
        href=elem.get("href", ""),
        id=elem.get("id", ""),
    )


# ---------------------------------------------------------------------------
# VM entity
# ---------------------------------------------------------------------------

def _disk_section(root: ElementTree.Element) -> ElementTree.Element:
    spec = root.find(_q("VmSpecSection"))
    if spec is None:
        raise MalformedDocument("VM document has no VmSpecSection (API version too old?)")
    section = spec.find(_q("DiskSection"))
    if section is None:
        section = ElementTree.SubElement(spec, _q("DiskSection"))
    return section


def _parse_disk(elem: ElementTree.Element) -> DiskDescriptor:
    return DiskDescriptor(
        disk_id=_text(elem, "DiskId") or None,
        size_mb=_int(elem, "SizeMb"),
        unit_number=_int(elem, "UnitNumber"),
        bus_number=_int(elem, "BusNumber"),
        adapter_type=_int(elem, "AdapterType"),
        thin_provisioned=_bool(elem, "ThinProvisioned"),
        storage_profile=_profile_ref(elem.find(_q("StorageProfile"))),
        override_vm_default=_bool(elem, "overrideVmDefault"),
        iops=_int(elem, "iops", default=None),
    )


def parse_vm_document(raw: bytes) -> DiskSpecDocument:
    """Build a DiskSpecDocument snapshot from a fetched ``Vm`` entity."""
    root = _parse(raw, "VM document")
    if root.tag != _q("Vm"):
        raise MalformedDocument(f"Expected a Vm entity, got {root.tag}")

    machine = MachineInfo(
        href=root.get("href", ""),
        name=root.get("name", ""),
        power_state=PowerState.from_status_code(root.get("status")),
        default_storage_profile=_profile_ref(root.find(_q("StorageProfile"))),
    )
    disks = tuple(_parse_disk(e) for e in _disk_section(root).findall(_q("DiskSettings")))
    logger.debug("Parsed %d disk(s) for VM %s (%s)", len(disks), machine.name, machine.power_state.value)
    return DiskSpecDocument(machine=machine, disks=disks, modified=False, raw_xml=raw)


def _build_disk_element(disk: DiskDescriptor) -> ElementTree.Element:
    # Child order follows the DiskSettings schema sequence.
    elem = ElementTree.Element(_q("DiskSettings"))
    ElementTree.SubElement(elem, _q("SizeMb")).text = str(disk.size_mb)
    ElementTree.SubElement(elem, _q("UnitNumber")).text = str(disk.unit_number)
    ElementTree.SubElement(elem, _q("BusNumber")).text = str(disk.bus_number)
    ElementTree.SubElement(elem, _q("AdapterType")).text = str(disk.adapter_type)
    ElementTree.SubElement(elem, _q("ThinProvisioned")).text = str(disk.thin_provisioned).lower()
    if disk.storage_profile is not None:
        profile = ElementTree.SubElement(elem, _q("StorageProfile"))
        profile.set("href", disk.storage_profile.href)
        if disk.storage_profile.id:
            profile.set("id", disk.storage_profile.id)
        profile.set("name", disk.storage_profile.name)
        profile.set("type", STORAGE_PROFILE_MEDIA_TYPE)
    ElementTree.SubElement(elem, _q("overrideVmDefault")).text = str(disk.override_vm_default).lower()
    if disk.iops is not None:
        ElementTree.SubElement(elem, _q("iops")).text = str(disk.iops)
    return elem


def render_vm_document(doc: DiskSpecDocument) -> bytes:
    """Serialize *doc* back into the fetched ``Vm`` entity for submission."""
    root = _parse(doc.raw_xml, "VM document")
    section = _disk_section(root)
    wanted = {d.disk_id: d for d in doc.disks if d.disk_id}

    for elem in list(section.findall(_q("DiskSettings"))):
        disk_id = _text(elem, "DiskId")
        disk = wanted.get(disk_id)
        if disk is None:
            section.remove(elem)
            continue
        size = elem.find(_q("SizeMb"))
        if size is not None:
            size.text = str(disk.size_mb)
        quantity = elem.find(_q("VirtualQuantity"))
        if quantity is not None:
            quantity.text = str(disk.size_mb * 1024 * 1024)

    for disk in doc.disks:
        if not disk.disk_id:
            section.append(_build_disk_element(disk))

    if doc.modified:
        root.find(_q("VmSpecSection")).set("Modified", "true")
    return ElementTree.tostring(root, encoding="utf-8", xml_declaration=True)


# ---------------------------------------------------------------------------
# Tasks, links, versions, storage profiles
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TaskInfo:
    href: str
    status: TaskStatus
    detail: str = ""


def parse_task(raw: bytes) -> TaskInfo:
    root = _parse(raw, "task")
    if root.tag != _q("Task"):
        raise MalformedDocument(f"Expected a Task entity, got {root.tag}")
    try:
        status = TaskStatus(root.get("status", ""))
    except ValueError:
        raise MalformedDocument(f"Unknown task status {root.get('status')!r}") from None
    error = root.find(_q("Error"))
    detail = error.get("message", "") if error is not None else ""
    return TaskInfo(href=root.get("href", ""), status=status, detail=detail)


@dataclass(frozen=True)
class Link:
    rel: str
    href: str
    type: str = ""


def parse_links(raw: bytes) -> list[Link]:
    root = _parse(raw, "entity")
    return [
        Link(rel=e.get("rel", ""), href=e.get("href", ""), type=e.get("type", ""))
        for e in root.findall(_q("Link"))
    ]


def root_media_tag(raw: bytes) -> str:
    """Local name of the document element (``Vm``, ``VApp``, ``Vdc`` ...)."""
    tag = _parse(raw, "entity").tag
    return tag.rsplit("}", 1)[-1]


def parse_vdc_storage_profiles(raw: bytes) -> list[StorageProfileRef]:
    root = _parse(raw, "VDC document")
    profiles = root.find(_q("VdcStorageProfiles"))
    if profiles is None:
        return []
    return [_profile_ref(e) for e in profiles.findall(_q("VdcStorageProfile"))]


def parse_supported_versions(raw: bytes) -> list[tuple[str, bool]]:
    """Return ``(version, deprecated)`` pairs from ``/api/versions``."""
    root = _parse(raw, "versions document")
    result = []
    for info in root.findall(_q("VersionInfo", VERSIONS_NS)):
        version = info.find(_q("Version", VERSIONS_NS))
        if version is None or not (version.text or "").strip():
            continue
        deprecated = info.get("deprecated", "false").lower() == "true"
        result.append((version.text.strip(), deprecated))
    return result
