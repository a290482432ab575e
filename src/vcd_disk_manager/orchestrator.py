"""Public disk operations: fetch the VM, transform its disk section, submit, wait.

Every call fetches a fresh document and resubmits it whole. There is no
optimistic-concurrency token in the protocol, so two concurrent mutations
of the same VM can overwrite each other; callers must serialize them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from typing import Protocol

from . import disk_spec
from .config import AppConfig
from .disk_query import project_disks
from .errors import (
    DiskManagerError,
    InvalidBusType,
    InvalidIops,
    InvalidUnitForBusType,
    NonPositiveSize,
)
from .models import (
    BusType,
    DiskSpecDocument,
    DiskView,
    OperationResult,
    StorageProfileRef,
)
from .operation_monitor import OperationMonitor, ProgressCallback, TaskClient
from .sizes import parse_size_mb
from .slot_allocator import address_space
from .vcd_client import SessionProvider, connect, resolve_machine_href

logger = logging.getLogger(__name__)


class DiskClient(TaskClient, Protocol):
    def fetch_vm_document(self, vm_href: str) -> DiskSpecDocument: ...

    def list_storage_profiles(self, doc: DiskSpecDocument) -> list[StorageProfileRef]: ...


ClientFactory = Callable[[str, bool], DiskClient]
Mutation = Callable[[DiskSpecDocument, DiskClient], DiskSpecDocument]


def _bus_type(value: BusType | str) -> BusType:
    if value is BusType.UNKNOWN:
        raise InvalidBusType(value.value)
    return value if isinstance(value, BusType) else BusType.parse(value)


def _check_unit(bus_type: BusType, unit: int | None) -> None:
    units = address_space(bus_type)
    if unit is not None and unit not in units:
        raise InvalidUnitForBusType(bus_type.value, unit, list(units))


class DiskOrchestrator:
    """Add, remove, resize and list the hard disks of a VM."""

    def __init__(
        self,
        sessions: SessionProvider,
        config: AppConfig | None = None,
        *,
        client_factory: ClientFactory | None = None,
        on_progress: ProgressCallback | None = None,
        waiter: Callable[[float], bool] | None = None,
    ):
        self.sessions = sessions
        self.config = config or AppConfig()
        self._client_factory = client_factory or self._connect
        self.on_progress = on_progress
        self._waiter = waiter
        self._monitor: OperationMonitor | None = None

    def _connect(self, machine_href: str, skip_cert_check: bool) -> DiskClient:
        return connect(
            machine_href,
            self.sessions,
            skip_cert_check=skip_cert_check,
            api_version=self.config.vcd.api_version,
            timeout=self.config.vcd.http_timeout_seconds,
        )

    def _open(self, machine: str, skip_cert_check: bool | None) -> tuple[str, DiskClient]:
        href = resolve_machine_href(machine, self.config.vcd.host)
        if skip_cert_check is None:
            skip_cert_check = self.config.vcd.disable_ssl
        return href, self._client_factory(href, skip_cert_check)

    def cancel(self) -> None:
        """Stop waiting on the in-flight task (the task itself keeps running)."""
        if self._monitor is not None:
            self._monitor.cancel()

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def query_disks(self, machine: str, *, skip_cert_check: bool | None = None) -> list[DiskView]:
        href, client = self._open(machine, skip_cert_check)
        return project_disks(client.fetch_vm_document(href))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_disk(
        self,
        machine: str,
        size: str | int,
        storage_profile: str | None = None,
        bus_type: BusType | str = BusType.PARAVIRTUAL,
        bus_id: int = 0,
        unit_id: int | None = None,
        iops: int | None = None,
        *,
        timeout: float | None = None,
        skip_cert_check: bool | None = None,
    ) -> OperationResult:
        try:
            bt = _bus_type(bus_type)
            size_mb = parse_size_mb(size)
            if size_mb <= 0:
                raise NonPositiveSize(size_mb)
            if iops is not None and iops < 0:
                raise InvalidIops(iops)
            _check_unit(bt, unit_id)
        except DiskManagerError as e:
            return self._failed("add disk", machine, e)

        def mutate(doc: DiskSpecDocument, client: DiskClient) -> DiskSpecDocument:
            available: list[StorageProfileRef] = []
            if storage_profile not in (None, "", disk_spec.DEFAULT_PROFILE):
                available = client.list_storage_profiles(doc)
            profile, override = disk_spec.resolve_storage_profile(doc, storage_profile, available)
            return disk_spec.add_disk(
                doc,
                size_mb=size_mb,
                storage_profile=profile,
                override_vm_default=override,
                bus_type=bt,
                bus_number=bus_id,
                unit_number=unit_id,
                iops=iops,
            )

        return self._mutate("add disk", machine, mutate, timeout, skip_cert_check)

    def remove_disk(
        self,
        machine: str,
        bus_type: BusType | str,
        bus_id: int,
        unit_id: int,
        confirmed: bool = False,
        *,
        timeout: float | None = None,
        skip_cert_check: bool | None = None,
    ) -> OperationResult:
        try:
            bt = _bus_type(bus_type)
            _check_unit(bt, unit_id)
        except DiskManagerError as e:
            return self._failed("remove disk", machine, e)

        def mutate(doc: DiskSpecDocument, client: DiskClient) -> DiskSpecDocument:
            return disk_spec.remove_disk(
                doc, bus_type=bt, bus_number=bus_id, unit_number=unit_id, confirmed=confirmed,
            )

        return self._mutate(
            "remove disk", machine, mutate, timeout, skip_cert_check,
            unchanged_message=(
                f"Disk {bt.value} {bus_id}:{unit_id} not removed: confirmation required"
            ),
        )

    def resize_disk(
        self,
        machine: str,
        bus_type: BusType | str,
        bus_id: int,
        unit_id: int,
        new_size: str | int,
        *,
        timeout: float | None = None,
        skip_cert_check: bool | None = None,
    ) -> OperationResult:
        try:
            bt = _bus_type(bus_type)
            _check_unit(bt, unit_id)
            new_size_mb = parse_size_mb(new_size)
            if new_size_mb <= 0:
                raise NonPositiveSize(new_size_mb)
        except DiskManagerError as e:
            return self._failed("resize disk", machine, e)

        def mutate(doc: DiskSpecDocument, client: DiskClient) -> DiskSpecDocument:
            return disk_spec.resize_disk(
                doc, bus_type=bt, bus_number=bus_id, unit_number=unit_id, new_size_mb=new_size_mb,
            )

        return self._mutate("resize disk", machine, mutate, timeout, skip_cert_check)

    # ------------------------------------------------------------------

    def _mutate(
        self,
        action: str,
        machine: str,
        mutate: Mutation,
        timeout: float | None,
        skip_cert_check: bool | None,
        *,
        unchanged_message: str = "Nothing to change",
    ) -> OperationResult:
        try:
            href, client = self._open(machine, skip_cert_check)
            doc = mutate(client.fetch_vm_document(href), client)
            if not doc.modified:
                logger.warning("%s on %s: %s", action, doc.machine.name or machine, unchanged_message)
                return OperationResult(ok=False, message=unchanged_message)

            monitor_cfg = self.config.monitor
            if timeout is not None:
                monitor_cfg = replace(monitor_cfg, timeout_seconds=timeout)
            self._monitor = OperationMonitor(
                client, monitor_cfg, on_progress=self.on_progress, waiter=self._waiter,
            )
            task_href, completed = self._monitor.run(doc)
        except DiskManagerError as e:
            return self._failed(action, machine, e)
        finally:
            self._monitor = None

        if not completed:
            return OperationResult(
                ok=False,
                message=f"Timeout reached; task {task_href} may still complete",
                timed_out=True,
                task_href=task_href,
            )
        return OperationResult(ok=True, message=f"{action} on {doc.machine.name} succeeded", task_href=task_href)

    @staticmethod
    def _failed(action: str, machine: str, error: DiskManagerError) -> OperationResult:
        logger.error("%s on %s failed: %s", action, machine, error)
        return OperationResult(ok=False, message=str(error), error=error)
