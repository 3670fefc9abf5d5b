"""Shared test fixtures, including a fake VBoxManage that keeps machine state."""

from __future__ import annotations

import subprocess
import uuid as uuidlib
from typing import Dict, List, Optional
from unittest.mock import patch

import pytest

from vboxctl.executor import set_vboxmanage

NOT_FOUND = "VBoxManage: error: Could not find a registered machine named '{id}'\n"
NOT_RUNNING = "VBoxManage: error: Machine '{id}' is not currently running\n"


class FakeVBoxManage:
    """Stand-in for subprocess.run that emulates the VBoxManage commands vboxctl issues."""

    def __init__(self) -> None:
        self.machines: List[Dict[str, str]] = []
        self.calls: List[List[str]] = []
        self.list_output: Optional[str] = None
        # Power-button presses needed before a running machine powers off.
        self.acpi_presses_needed = 1
        self._presses: Dict[str, int] = {}
        self.fail: Dict[str, str] = {}  # verb -> stderr

    def add_machine(self, name: str, state: str = "poweroff", **props: str) -> Dict[str, str]:
        machine = {
            "name": name,
            "UUID": props.pop("UUID", str(uuidlib.uuid4())),
            "VMState": state,
            "memory": "512",
            "cpus": "1",
            "vram": "16",
            "CfgFile": f"/vms/{name}/{name}.vbox",
        }
        machine.update(props)
        self.machines.append(machine)
        return machine

    def find(self, machine_id: str) -> Optional[Dict[str, str]]:
        for machine in self.machines:
            if machine_id in (machine["name"], machine["UUID"]):
                return machine
        return None

    def commands(self, include_queries: bool = False) -> List[List[str]]:
        """Recorded calls, by default without showvminfo/list queries."""
        if include_queries:
            return list(self.calls)
        return [call for call in self.calls if call[0] not in ("showvminfo", "list")]

    def __call__(self, cmd, check=False, text=True, capture_output=False, **kwargs):
        args = list(cmd[1:])
        self.calls.append(args)
        if args[0] in self.fail:
            return self._result(cmd, 1, stderr=self.fail[args[0]])
        handler = getattr(self, "_" + args[0], None)
        if handler is None:
            return self._result(cmd, 1, stderr=f"VBoxManage: error: Unknown command '{args[0]}'\n")
        return handler(cmd, args[1:])

    @staticmethod
    def _result(cmd, returncode=0, stdout="", stderr=""):
        return subprocess.CompletedProcess(args=cmd, returncode=returncode, stdout=stdout, stderr=stderr)

    def _list(self, cmd, args):
        if self.list_output is not None:
            return self._result(cmd, stdout=self.list_output)
        lines = [f'"{m["name"]}" {{{m["UUID"]}}}' for m in self.machines]
        return self._result(cmd, stdout="".join(line + "\n" for line in lines))

    def _showvminfo(self, cmd, args):
        machine = self.find(args[0])
        if machine is None:
            return self._result(cmd, 1, stderr=NOT_FOUND.format(id=args[0]))
        lines = []
        for key, value in machine.items():
            if key in ("memory", "cpus", "vram"):
                lines.append(f"{key}={value}")
            else:
                lines.append(f'{key}="{value}"')
        return self._result(cmd, stdout="\n".join(lines) + "\n")

    def _createvm(self, cmd, args):
        name = args[args.index("--name") + 1]
        folder = args[args.index("--basefolder") + 1] if "--basefolder" in args else "/vms"
        machine = self.add_machine(name, CfgFile=f"{folder}/{name}/{name}.vbox")
        return self._result(cmd, stdout=f"Virtual machine '{name}' is created and registered.\nUUID: {machine['UUID']}\n")

    def _startvm(self, cmd, args):
        machine = self.find(args[0])
        if machine is None:
            return self._result(cmd, 1, stderr=NOT_FOUND.format(id=args[0]))
        if machine["VMState"] in ("running", "paused"):
            return self._result(cmd, 1, stderr=f"VBoxManage: error: The machine '{args[0]}' is already locked\n")
        machine["VMState"] = "running"
        return self._result(cmd)

    def _controlvm(self, cmd, args):
        machine = self.find(args[0])
        if machine is None:
            return self._result(cmd, 1, stderr=NOT_FOUND.format(id=args[0]))
        action = args[1]
        state = machine["VMState"]
        if state not in ("running", "paused"):
            return self._result(cmd, 1, stderr=NOT_RUNNING.format(id=args[0]))
        if action == "resume" and state == "paused":
            machine["VMState"] = "running"
        elif action == "pause" and state == "running":
            machine["VMState"] = "paused"
        elif action == "savestate":
            machine["VMState"] = "saved"
        elif action == "poweroff":
            machine["VMState"] = "poweroff"
        elif action == "acpipowerbutton":
            presses = self._presses.get(machine["UUID"], 0) + 1
            self._presses[machine["UUID"]] = presses
            if presses >= self.acpi_presses_needed:
                machine["VMState"] = "poweroff"
                self._presses.pop(machine["UUID"])
        elif action in ("reset",) or action.startswith("natpf"):
            pass
        else:
            return self._result(cmd, 1, stderr=f"VBoxManage: error: Invalid state for '{action}'\n")
        return self._result(cmd)

    def _modifyvm(self, cmd, args):
        machine = self.find(args[0])
        if machine is None:
            return self._result(cmd, 1, stderr=NOT_FOUND.format(id=args[0]))
        options = dict(zip(args[1::2], args[2::2]))
        renamed = {"--usbehci": "ehci", "--usbxhci": "xhci"}
        for option, value in options.items():
            key = renamed.get(option, option.lstrip("-"))
            if key in ("cpus", "memory", "vram", "description") or key in renamed.values():
                machine[key] = value
            elif key.startswith("boot") and key[4:].isdigit():
                machine[key] = value
            elif value in ("on", "off"):
                machine[key] = value
        return self._result(cmd)

    def _unregistervm(self, cmd, args):
        machine = self.find(args[0])
        if machine is None:
            return self._result(cmd, 1, stderr=NOT_FOUND.format(id=args[0]))
        self.machines.remove(machine)
        return self._result(cmd)

    def _storagectl(self, cmd, args):
        return self._result(cmd)

    def _storageattach(self, cmd, args):
        return self._result(cmd)


@pytest.fixture
def fake_vbm():
    """Route every VBoxManage invocation to a FakeVBoxManage."""
    fake = FakeVBoxManage()
    set_vboxmanage("/usr/bin/VBoxManage")
    with patch("vboxctl.utils.subprocess.run", side_effect=fake):
        yield fake
    set_vboxmanage(None)


@pytest.fixture
def no_sleep():
    with patch("vboxctl.machine.time.sleep") as mock_sleep:
        yield mock_sleep


@pytest.fixture
def clean_env(monkeypatch):
    """Clear every environment variable vboxctl reads."""
    for key in (
        "VBOXMANAGE",
        "VBOX_INSTALL_PATH",
        "VBOX_MSI_INSTALL_PATH",
        "VBOXCTL_CONFIG",
        "VBOXCTL_STOP_INTERVAL",
        "VBOXCTL_STOP_TIMEOUT",
        "VBOXCTL_BASEFOLDER",
    ):
        monkeypatch.delenv(key, raising=False)
