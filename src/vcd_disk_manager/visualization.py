"""Rich console rendering of disk listings and operation outcomes."""

from __future__ import annotations

import json
from dataclasses import asdict

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .models import DiskView, OperationResult, TaskStatus

console = Console()


# ---------------------------------------------------------------------------
# Disk listing
# ---------------------------------------------------------------------------

def print_disk_table(machine: str, disks: list[DiskView]) -> None:
    """Print the VM's disks as a table, in document order."""
    table = Table(title=f"Hard disks of {machine}", show_lines=False)
    table.add_column("Bus type", style="cyan")
    table.add_column("Bus", justify="right")
    table.add_column("Unit", justify="right")
    table.add_column("Size (MB)", justify="right", style="bold")
    table.add_column("Thin", justify="center")
    table.add_column("Storage profile")
    table.add_column("Override", justify="center")
    table.add_column("IOPS", justify="right")
    table.add_column("Disk ID", style="dim")

    for d in disks:
        table.add_row(
            d.bus_type,
            str(d.bus_number),
            str(d.unit_number),
            f"{d.size_mb:,}",
            "✓" if d.thin_provisioned else "✗",
            d.storage_profile_name or "[dim]-[/]",
            "✓" if d.override_vm_default else "",
            str(d.iops) if d.iops is not None else "",
            d.disk_id,
        )

    console.print(table)
    total_mb = sum(d.size_mb for d in disks)
    console.print(f"[bold]{len(disks)}[/] disk(s), [bold]{total_mb / 1024:,.1f}[/] GB total")


def print_disks_json(disks: list[DiskView]) -> None:
    console.print_json(json.dumps([asdict(d) for d in disks]))


# ---------------------------------------------------------------------------
# Operation results
# ---------------------------------------------------------------------------

def print_progress(status: TaskStatus, remaining: float) -> None:
    console.print(f"[dim]… task {status.value}, {remaining:.0f}s left[/]")


def print_result(action: str, result: OperationResult) -> None:
    if result:
        console.print(Panel(
            f"[bold green]✓ {result.message}[/]\n[dim]Task: {result.task_href}[/]",
            title=action,
            border_style="green",
        ))
    elif result.timed_out:
        console.print(Panel(
            f"[bold yellow]{result.message}[/]\n"
            f"[dim]The change was submitted but its outcome was not observed.[/]",
            title=action,
            border_style="yellow",
        ))
    else:
        console.print(Panel(f"[bold red]✗ {result.message}[/]", title=action, border_style="red"))
