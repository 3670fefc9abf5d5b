"""Lookup, enumeration and creation of registered machines."""

from __future__ import annotations

from typing import List, Optional, Tuple

from vboxctl.exceptions import MachineExistsError, UsageError
from vboxctl.executor import vbm, vbm_out
from vboxctl.machine import Machine
from vboxctl.parser import parse_vm_list
from vboxctl.utils import log


def get_machine(machine_id: str) -> Machine:
    """Find a machine by name or UUID and return a fresh snapshot of it."""
    return Machine.load(machine_id)


def list_machine_ids() -> List[Tuple[str, str]]:
    """Return (name, uuid) for every registered machine."""
    return parse_vm_list(vbm_out("list", "vms"))


def list_machines() -> List[Machine]:
    """Resolve every registered machine; the first failure aborts the listing."""
    return [get_machine(uuid) for _, uuid in list_machine_ids()]


def create_machine(name: str, basefolder: Optional[str] = None) -> Machine:
    """Create and register a machine; ``basefolder`` None keeps VirtualBox's default."""
    if not name:
        raise UsageError("Machine name is empty")

    # Not atomic: another caller may register the same name before createvm runs.
    if any(existing == name for existing, _ in list_machine_ids()):
        raise MachineExistsError(name)

    args = ["createvm", "--name", name, "--register"]
    if basefolder:
        args.extend(["--basefolder", basefolder])
    vbm(*args)
    log("SUCCESS", f"Created machine {name}")
    return get_machine(name)
