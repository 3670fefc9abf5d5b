"""CLI entry points for vboxctl."""

from __future__ import annotations

import argparse
import dataclasses
from pathlib import Path
from typing import Any, Dict, List, Optional

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from vboxctl.config import Settings, load_config
from vboxctl.constants import BOOT_DEVICES, MAX_BOOT_SLOTS
from vboxctl.exceptions import ManagerError, UsageError
from vboxctl.executor import set_vboxmanage
from vboxctl.machine import Machine
from vboxctl.models import FLAG_OPTIONS, Flag, PFRule
from vboxctl.registry import create_machine, get_machine, list_machine_ids
from vboxctl.utils import log

LIFECYCLE_COMMANDS = ("start", "pause", "save", "poweroff", "reset", "delete")


def machine_to_dict(m: Machine) -> Dict[str, Any]:
    return {
        "name": m.name,
        "uuid": m.uuid,
        "state": m.state.value,
        "cpus": m.cpus,
        "memory_mb": m.memory_mb,
        "vram_mb": m.vram_mb,
        "cfg_file": m.cfg_file,
        "base_folder": m.base_folder,
        "flags": [option.lstrip("-") for bit, option, _ in FLAG_OPTIONS if bit in m.flags],
        "boot_order": list(m.boot_order),
        "description": m.description,
    }


def show_machine(m: Machine, fmt: str = "text") -> None:
    data = machine_to_dict(m)
    if fmt == "yaml":
        print(yaml.safe_dump(data, sort_keys=False), end="")
        return
    for key, value in data.items():
        if isinstance(value, list):
            value = ", ".join(value) or "-"
        print(f"  {key}: {value}")


def show_config(settings: Settings) -> None:
    """Print the resolved settings."""
    for field in dataclasses.fields(settings):
        value = getattr(settings, field.name)
        if field.name == "stop_timeout" and value is None:
            value = "unbounded"
        print(f"  {field.name}: {value if value is not None else '-'}")


def list_machines_table() -> None:
    entries = list_machine_ids()
    if not entries:
        log("WARN", "No machines registered")
        return
    max_name = max(len(name) for name, _ in entries)
    for name, uuid in entries:
        print(f"  {name:<{max_name}}  {uuid}")


def parse_boot_order(raw: str) -> List[str]:
    devices = [item.strip().lower() for item in raw.split(",") if item.strip()]
    for dev in devices:
        if dev not in BOOT_DEVICES:
            raise UsageError(f"Unknown boot device '{dev}'. Supported: {', '.join(sorted(BOOT_DEVICES))}")
    if len(devices) > MAX_BOOT_SLOTS:
        log("WARN", f"Only the first {MAX_BOOT_SLOTS} boot devices are applied; ignoring {', '.join(devices[MAX_BOOT_SLOTS:])}")
    return devices


def apply_modifications(m: Machine, args: argparse.Namespace) -> None:
    if args.cpus is not None:
        m.cpus = args.cpus
    if args.memory is not None:
        m.memory_mb = args.memory
    if args.vram is not None:
        m.vram_mb = args.vram
    if args.ostype is not None:
        m.os_type = args.ostype
    if args.description is not None:
        m.description = args.description
    if args.boot is not None:
        m.boot_order = parse_boot_order(args.boot)
    for name in args.enable:
        m.flags |= Flag.from_option(name)
    for name in args.disable:
        m.flags &= ~Flag.from_option(name)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vboxctl", description="VirtualBox machine lifecycle manager")
    parser.add_argument("--config", type=Path, default=None, help="Path to a YAML config file")
    parser.add_argument("--show-config", action="store_true", help="Show resolved configuration and exit")
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    sub.add_parser("list", help="List registered machines")

    info = sub.add_parser("info", help="Show a machine")
    info.add_argument("machine", help="Machine name or UUID")
    info.add_argument("--format", choices=("text", "yaml"), default="text")

    create = sub.add_parser("create", help="Create and register a machine")
    create.add_argument("name")
    create.add_argument("--basefolder", default=None)

    for command in LIFECYCLE_COMMANDS:
        p = sub.add_parser(command, help=f"{command.capitalize()} a machine")
        p.add_argument("machine", help="Machine name or UUID")

    graceful = {
        "stop": "Gracefully stop a machine (ACPI power button)",
        "restart": "Gracefully restart a machine",
    }
    for command, help_text in graceful.items():
        p = sub.add_parser(command, help=help_text)
        p.add_argument("machine", help="Machine name or UUID")
        p.add_argument("--timeout", type=float, default=None, help="Give up waiting for poweroff after this many seconds")

    modify = sub.add_parser("modify", help="Change machine settings")
    modify.add_argument("machine", help="Machine name or UUID")
    modify.add_argument("--cpus", type=int)
    modify.add_argument("--memory", type=int, help="Main memory in MB")
    modify.add_argument("--vram", type=int, help="Video memory in MB")
    modify.add_argument("--ostype")
    modify.add_argument("--description")
    modify.add_argument("--boot", metavar="DEV[,DEV...]", help="Boot order: none, floppy, dvd, disk, net")
    modify.add_argument("--enable", action="append", default=[], metavar="FLAG")
    modify.add_argument("--disable", action="append", default=[], metavar="FLAG")

    natpf = sub.add_parser("natpf", help="Manage NAT port-forwarding rules")
    natpf.add_argument("machine", help="Machine name or UUID")
    natpf.add_argument("--nic", type=int, default=1)
    natpf_sub = natpf.add_subparsers(dest="natpf_action", metavar="ACTION")
    natpf_add = natpf_sub.add_parser("add")
    natpf_add.add_argument("rule_name")
    natpf_add.add_argument("rule", help="proto,hostip,hostport,guestip,guestport")
    natpf_delete = natpf_sub.add_parser("delete")
    natpf_delete.add_argument("rule_name")
    return parser


def run_command(args: argparse.Namespace, settings: Settings) -> int:
    command = args.command
    if command == "list":
        list_machines_table()
        return 0
    if command == "create":
        m = create_machine(args.name, args.basefolder or settings.basefolder)
        show_machine(m)
        return 0

    m = get_machine(args.machine)
    if command == "info":
        show_machine(m, args.format)
    elif command in ("stop", "restart"):
        timeout = args.timeout if args.timeout is not None else settings.stop_timeout
        getattr(m, command)(timeout=timeout, interval=settings.stop_interval)
    elif command == "modify":
        apply_modifications(m, args)
        m.modify()
        log("SUCCESS", f"Modified {m.id}")
    elif command == "natpf":
        if args.natpf_action == "add":
            rule = PFRule.parse(args.rule)
            m.add_natpf(args.nic, args.rule_name, rule)
            log("SUCCESS", f"Added rule {args.rule_name} ({rule}) to NIC {args.nic} of {m.id}")
        elif args.natpf_action == "delete":
            m.del_natpf(args.nic, args.rule_name)
            log("SUCCESS", f"Deleted rule {args.rule_name} from NIC {args.nic} of {m.id}")
        else:
            raise UsageError("natpf requires an action: add or delete")
    else:
        getattr(m, command)()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_config(args.config)
    except ManagerError as exc:
        log("ERROR", str(exc))
        return 1
    set_vboxmanage(settings.vboxmanage)

    if args.show_config:
        show_config(settings)
        return 0
    if args.command is None:
        parser.print_help()
        return 2

    try:
        return run_command(args, settings)
    except KeyboardInterrupt:
        log("WARN", "Interrupted")
        return 130
    except ManagerError as exc:
        log("ERROR", str(exc))
        return 1
