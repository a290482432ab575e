"""Submit a reconfiguration and follow the resulting remote task to completion."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Protocol

from .config import MonitorConfig
from .errors import OperationFailed, RemoteError, StatusCheckFailed, SubmissionFailed
from .models import DiskSpecDocument, TaskStatus
from .vm_document import TaskInfo

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[TaskStatus, float], None]


class TaskClient(Protocol):
    def submit_reconfigure(self, doc: DiskSpecDocument) -> TaskInfo: ...

    def get_task(self, task_href: str) -> TaskInfo: ...


class OperationMonitor:
    """Drives one submission and its status polling.

    The remaining budget is decremented by the poll interval on every
    non-terminal status, so slow status responses stretch the wall-clock
    time beyond ``timeout``. Running out of budget or being cancelled ends
    observation only; the remote task is never cancelled.
    """

    def __init__(
        self,
        client: TaskClient,
        config: MonitorConfig | None = None,
        *,
        on_progress: ProgressCallback | None = None,
        waiter: Callable[[float], bool] | None = None,
    ):
        self.client = client
        self.config = config or MonitorConfig()
        self.on_progress = on_progress
        self._cancel = threading.Event()
        # waiter(seconds) -> True when cancelled during the wait
        self._wait = waiter or self._cancel.wait
        self.progress_updates = 0

    def cancel(self) -> None:
        """Stop observing; safe to call from another thread."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    # ------------------------------------------------------------------

    def submit(self, doc: DiskSpecDocument) -> str:
        """Send *doc* as a whole-VM reconfiguration; returns the task href."""
        try:
            task = self.client.submit_reconfigure(doc)
        except RemoteError as e:
            raise SubmissionFailed(f"Reconfiguration of {doc.machine.name} was not accepted: {e}") from e
        if not task.href:
            raise SubmissionFailed(f"Reconfiguration of {doc.machine.name} returned no task handle")
        logger.info("Submitted reconfiguration of %s (task %s)", doc.machine.name, task.href)
        return task.href

    def wait(self, task_href: str) -> bool:
        """Poll *task_href* until success (True) or until the budget runs out (False)."""
        if self._wait(self.config.grace_seconds) or self.cancelled:
            logger.warning("Stopped watching task %s before the first status check", task_href)
            return False

        remaining = self.config.timeout_seconds
        interval = self.config.poll_interval_seconds
        while remaining > 0:
            try:
                task = self.client.get_task(task_href)
            except RemoteError as e:
                raise StatusCheckFailed(f"Could not read status of task {task_href}: {e}") from e

            if task.status is TaskStatus.SUCCESS:
                logger.info("Task %s completed successfully", task_href)
                return True
            if task.status.is_failure:
                raise OperationFailed(task.status.value, task.detail)

            remaining -= interval
            if remaining < 0:
                break
            self._report(task.status, remaining)
            if remaining == 0:
                break
            if self._wait(interval) or self.cancelled:
                logger.warning("Stopped watching task %s (cancelled); it may still complete", task_href)
                return False

        logger.warning(
            "Timeout reached after %.0fs; task %s may still be running",
            self.config.timeout_seconds, task_href,
        )
        return False

    def run(self, doc: DiskSpecDocument) -> tuple[str, bool]:
        task_href = self.submit(doc)
        return task_href, self.wait(task_href)

    def _report(self, status: TaskStatus, remaining: float) -> None:
        self.progress_updates += 1
        logger.info("Task status: %s (%.0fs of budget left)", status.value, remaining)
        if self.on_progress is not None:
            self.on_progress(status, remaining)
