"""Command-line entry point - list, add, remove and resize VM hard disks."""

from __future__ import annotations

import argparse
import logging
import sys

from rich.logging import RichHandler

from .config import load_config
from .errors import DiskManagerError
from .models import BusType
from .orchestrator import DiskOrchestrator
from .vcd_client import StaticSessionProvider
from .visualization import (
    console,
    print_disk_table,
    print_disks_json,
    print_progress,
    print_result,
)

logger = logging.getLogger("vcd_disk_manager")

_BUS_TYPES = [bt.value for bt in BusType if bt is not BusType.UNKNOWN]


def _setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False, markup=True)],
    )


def _add_address_args(parser: argparse.ArgumentParser, required: bool) -> None:
    parser.add_argument(
        "--bus-type",
        choices=_BUS_TYPES,
        default=None if required else BusType.PARAVIRTUAL.value,
        required=required,
        help="Controller family of the disk.",
    )
    parser.add_argument("--bus-id", type=int, default=None if required else 0, required=required,
                        help="Controller instance number.")
    parser.add_argument("--unit-id", type=int, default=None, required=required,
                        help="Unit number on the controller.")


def _add_timeout_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for the reconfiguration task (default: VCD_TASK_TIMEOUT or 30).",
    )


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="vcd-disk",
        description="Attach, detach and grow VM hard disks with explicit bus/unit placement.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose/debug logging.")
    parser.add_argument(
        "--skip-cert-check",
        action="store_true",
        default=None,
        help="Do not validate the endpoint's TLS certificate.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    get = sub.add_parser("get", help="List the VM's hard disks.")
    get.add_argument("vm", help="VM href, vm-<uuid> or urn:vcloud:vm:<uuid>.")
    get.add_argument("--json", action="store_true", help="Print the disks as JSON.")

    add = sub.add_parser("add", help="Attach a new hard disk.")
    add.add_argument("vm")
    add.add_argument("--size", required=True, help="Size such as 100M, 1G, 2T (bare numbers are MB).")
    add.add_argument("--storage-profile", default=None,
                     help="Storage profile name; '*' or omitted uses the VM default.")
    _add_address_args(add, required=False)
    add.add_argument("--iops", type=int, default=None, help="IOPS ceiling for the new disk.")
    _add_timeout_arg(add)

    remove = sub.add_parser("remove", help="Detach and delete a hard disk (VM must be powered off).")
    remove.add_argument("vm")
    _add_address_args(remove, required=True)
    remove.add_argument("--confirm", action="store_true", help="Actually remove the disk.")
    _add_timeout_arg(remove)

    resize = sub.add_parser("resize", help="Grow a hard disk.")
    resize.add_argument("vm")
    _add_address_args(resize, required=True)
    resize.add_argument("--size", required=True, help="New size; must be larger than the current one.")
    _add_timeout_arg(resize)

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    _setup_logging(args.verbose)

    cfg = load_config()
    orchestrator = DiskOrchestrator(
        StaticSessionProvider.from_config(cfg.vcd),
        cfg,
        on_progress=print_progress,
    )

    if args.command == "get":
        try:
            disks = orchestrator.query_disks(args.vm, skip_cert_check=args.skip_cert_check)
        except DiskManagerError as e:
            console.print(f"[bold red]Could not read disks:[/] {e}")
            logger.debug("Query error", exc_info=True)
            return 1
        if args.json:
            print_disks_json(disks)
        else:
            print_disk_table(args.vm, disks)
        return 0

    common = {"timeout": args.timeout, "skip_cert_check": args.skip_cert_check}
    if args.command == "add":
        result = orchestrator.add_disk(
            args.vm,
            args.size,
            storage_profile=args.storage_profile,
            bus_type=args.bus_type,
            bus_id=args.bus_id,
            unit_id=args.unit_id,
            iops=args.iops,
            **common,
        )
    elif args.command == "remove":
        result = orchestrator.remove_disk(
            args.vm, args.bus_type, args.bus_id, args.unit_id, confirmed=args.confirm, **common,
        )
    else:
        result = orchestrator.resize_disk(
            args.vm, args.bus_type, args.bus_id, args.unit_id, args.size, **common,
        )

    print_result(f"{args.command} disk", result)
    return 0 if result else 1


if __name__ == "__main__":
    sys.exit(main())
