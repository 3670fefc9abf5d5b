"""Machine snapshot model and lifecycle transitions."""

from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from vboxctl.constants import BOOT_DEVICES, MACHINE_NOT_FOUND_RE, MAX_BOOT_SLOTS, START_TYPE, STOP_POLL_INTERVAL
from vboxctl.exceptions import (
    CommandError,
    MachineNotFoundError,
    OperationCancelled,
    ParseError,
    UsageError,
    WaitTimeoutError,
)
from vboxctl.executor import vbm, vbm_out
from vboxctl.models import FLAG_OPTIONS, NIC, Flag, MachineState, PFRule, StorageController, StorageMedium
from vboxctl.parser import parse_machinereadable, parse_state, parse_switch, parse_uint
from vboxctl.utils import bool_to_switch, log

_OFF_STATES = (MachineState.POWEROFF, MachineState.ABORTED, MachineState.SAVED)


@dataclass
class Machine:
    """Snapshot of one VirtualBox machine as of the last refresh."""

    name: str = ""
    uuid: str = ""
    state: MachineState = MachineState.POWEROFF
    cpus: int = 0
    memory_mb: int = 0
    vram_mb: int = 0
    cfg_file: str = ""
    base_folder: str = ""
    os_type: str = ""
    flags: Flag = Flag(0)
    boot_order: List[str] = field(default_factory=list)  # up to 4 of none|floppy|dvd|disk|net
    description: str = ""

    @property
    def id(self) -> str:
        """Identifier passed to VBoxManage: the name, else the UUID."""
        if self.name:
            return self.name
        if self.uuid:
            return self.uuid
        raise UsageError("Machine has neither a name nor a UUID")

    @classmethod
    def from_vminfo(cls, props: Dict[str, str]) -> "Machine":
        """Build a machine from parsed ``showvminfo --machinereadable`` key/values."""
        m = cls()
        for key, value in props.items():
            if key == "name":
                m.name = value
            elif key == "UUID":
                m.uuid = value
            elif key == "VMState":
                m.state = parse_state(value)
            elif key == "memory":
                m.memory_mb = parse_uint(key, value)
            elif key == "cpus":
                m.cpus = parse_uint(key, value)
            elif key == "vram":
                m.vram_mb = parse_uint(key, value)
            elif key == "CfgFile":
                m.cfg_file = value
                m.base_folder = os.path.dirname(value)
            elif key == "description":
                m.description = value

        if "VMState" not in props:
            # Inaccessible machines are reported without a state.
            raise ParseError("VMState: missing")

        for bit, _, info_key in FLAG_OPTIONS:
            if info_key in props and parse_switch(info_key, props[info_key]):
                m.flags |= bit

        for slot in range(1, MAX_BOOT_SLOTS + 1):
            device = props.get(f"boot{slot}")
            if device is None:
                continue
            if device not in BOOT_DEVICES:
                raise ParseError(f"boot{slot}: unrecognized boot device '{device}'")
            m.boot_order.append(device)
        return m

    @classmethod
    def load(cls, machine_id: str) -> "Machine":
        """Query ``showvminfo`` for a machine by name or UUID."""
        if not machine_id:
            raise UsageError("Machine name or UUID is empty")
        try:
            stdout = vbm_out("showvminfo", machine_id, "--machinereadable")
        except CommandError as exc:
            if MACHINE_NOT_FOUND_RE.search(exc.stderr):
                raise MachineNotFoundError(machine_id) from exc
            raise
        return cls.from_vminfo(parse_machinereadable(stdout))

    def refresh(self) -> None:
        """Reload the snapshot; on failure the current values are kept."""
        fresh = self.load(self.id)
        self.__dict__.update(fresh.__dict__)

    # Lifecycle transitions. Each one routes on the cached state.

    def start(self) -> None:
        if self.state == MachineState.PAUSED:
            log("INFO", f"Resuming {self.id}")
            vbm("controlvm", self.id, "resume")
        elif self.state in _OFF_STATES:
            log("INFO", f"Starting {self.id}")
            vbm("startvm", self.id, "--type", START_TYPE)
        else:
            log("DEBUG", f"{self.id} already running")

    def save(self) -> None:
        """Suspend the machine and save its state to disk."""
        if self.state in _OFF_STATES:
            log("DEBUG", f"{self.id} is {self.state}; nothing to save")
            return
        if self.state == MachineState.PAUSED:
            self.start()
        log("INFO", f"Saving state of {self.id}")
        vbm("controlvm", self.id, "savestate")

    def pause(self) -> None:
        if self.state != MachineState.RUNNING:
            log("DEBUG", f"{self.id} is {self.state}; nothing to pause")
            return
        log("INFO", f"Pausing {self.id}")
        vbm("controlvm", self.id, "pause")

    def stop(
        self,
        timeout: Optional[float] = None,
        interval: float = STOP_POLL_INTERVAL,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        """Gracefully stop the machine via the ACPI power button.

        The button is pressed every ``interval`` seconds until the machine reports
        poweroff. Without ``timeout`` or ``cancel`` this blocks until it does.
        """
        if self.state in _OFF_STATES:
            log("DEBUG", f"{self.id} is {self.state}; nothing to stop")
            return
        if self.state == MachineState.PAUSED:
            self.start()

        log("INFO", f"Stopping {self.id}")
        deadline = None if timeout is None else time.monotonic() + timeout
        while self.state != MachineState.POWEROFF:
            if cancel is not None and cancel.is_set():
                raise OperationCancelled(f"Stopping {self.id} was cancelled")
            if deadline is not None and time.monotonic() >= deadline:
                raise WaitTimeoutError(f"{self.id} did not power off within {timeout}s (state: {self.state})")
            vbm("controlvm", self.id, "acpipowerbutton")
            if cancel is not None:
                cancel.wait(interval)
            else:
                time.sleep(interval)
            self.refresh()
        log("SUCCESS", f"{self.id} stopped")

    def poweroff(self) -> None:
        """Forcefully stop the machine. Unsaved guest state is lost."""
        if self.state in _OFF_STATES:
            log("DEBUG", f"{self.id} is {self.state}; nothing to power off")
            return
        log("INFO", f"Powering off {self.id}")
        vbm("controlvm", self.id, "poweroff")

    def restart(
        self,
        timeout: Optional[float] = None,
        interval: float = STOP_POLL_INTERVAL,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        """Gracefully restart the machine. The keyword arguments are passed to stop()."""
        if self.state in (MachineState.PAUSED, MachineState.SAVED):
            self.start()
            # stop() routes on the cached state, which must reflect the start.
            self.refresh()
        self.stop(timeout=timeout, interval=interval, cancel=cancel)
        self.start()

    def reset(self) -> None:
        """Forcefully restart the machine. Unsaved guest state is lost."""
        if self.state in (MachineState.PAUSED, MachineState.SAVED):
            self.start()
        log("INFO", f"Resetting {self.id}")
        vbm("controlvm", self.id, "reset")

    def delete(self) -> None:
        """Power off, unregister and delete the machine with its disk images."""
        self.poweroff()
        log("INFO", f"Deleting {self.id}")
        vbm("unregistervm", self.id, "--delete")

    # Configuration.

    def modify(self) -> None:
        """Apply the whole local configuration, then refresh."""
        args = [
            "modifyvm",
            self.id,
            "--firmware", "bios",
            "--bioslogofadein", "off",
            "--bioslogofadeout", "off",
            "--bioslogodisplaytime", "0",
            "--biosbootmenu", "disabled",
            "--cpus", str(self.cpus),
            "--memory", str(self.memory_mb),
            "--vram", str(self.vram_mb),
            "--description", self.description,
        ]
        if self.os_type:
            args.extend(["--ostype", self.os_type])
        for bit, option, _ in FLAG_OPTIONS:
            args.extend([option, self.flags.get(bit)])
        # Only four slots exist; the rest are ignored.
        for slot, device in enumerate(self.boot_order[:MAX_BOOT_SLOTS], start=1):
            args.extend([f"--boot{slot}", device])
        vbm(*args)
        self.refresh()

    def modify_simple(self) -> None:
        """Apply cpus, memory, USB switches and description only, then refresh."""
        vbm(
            "modifyvm",
            self.id,
            "--cpus", str(self.cpus),
            "--memory", str(self.memory_mb),
            "--usb", self.flags.get(Flag.USB),
            "--usbehci", self.flags.get(Flag.USB_EHCI),
            "--usbxhci", self.flags.get(Flag.USB_XHCI),
            "--description", self.description,
        )
        self.refresh()

    # Peripherals.

    def add_natpf(self, n: int, name: str, rule: PFRule) -> None:
        """Add a NAT port-forwarding rule named ``name`` to the n-th NIC."""
        vbm("controlvm", self.id, f"natpf{n}", f"{name},{rule.format()}")

    def del_natpf(self, n: int, name: str) -> None:
        vbm("controlvm", self.id, f"natpf{n}", "delete", name)

    def set_nic(self, n: int, nic: NIC) -> None:
        args = [
            "modifyvm",
            self.id,
            f"--nic{n}", nic.network,
            f"--nictype{n}", nic.hardware,
            f"--cableconnected{n}", "on",
        ]
        if nic.network == "hostonly":
            args.extend([f"--hostonlyadapter{n}", nic.hostonly_adapter])
        vbm(*args)

    def add_storage_ctl(self, name: str, ctl: StorageController) -> None:
        args = ["storagectl", self.id, "--name", name]
        if ctl.sys_bus:
            args.extend(["--add", ctl.sys_bus])
        if ctl.ports > 0:
            args.extend(["--portcount", str(ctl.ports)])
        if ctl.chipset:
            args.extend(["--controller", ctl.chipset])
        args.extend(["--hostiocache", bool_to_switch(ctl.host_io_cache)])
        args.extend(["--bootable", bool_to_switch(ctl.bootable)])
        vbm(*args)

    def del_storage_ctl(self, name: str) -> None:
        vbm("storagectl", self.id, "--name", name, "--remove")

    def attach_storage(self, ctl_name: str, medium: StorageMedium) -> None:
        vbm(
            "storageattach",
            self.id,
            "--storagectl", ctl_name,
            "--port", str(medium.port),
            "--device", str(medium.device),
            "--type", medium.drive_type,
            "--medium", medium.medium,
        )
