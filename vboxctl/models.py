"""Data models for vboxctl."""

from __future__ import annotations

import enum
import ipaddress
from dataclasses import dataclass
from typing import NamedTuple, Optional, Union

from vboxctl.constants import (
    DRIVE_TYPES,
    NIC_HARDWARE,
    NIC_NETWORKS,
    PF_PROTOCOLS,
    STORAGE_BUSES,
    STORAGE_CHIPSETS,
)
from vboxctl.exceptions import UsageError
from vboxctl.utils import bool_to_switch

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class MachineState(str, enum.Enum):
    POWEROFF = "poweroff"
    RUNNING = "running"
    PAUSED = "paused"
    SAVED = "saved"
    ABORTED = "aborted"

    def __str__(self) -> str:
        return self.value


class Flag(enum.IntFlag):
    """Independent hardware/feature switches; an absent bit means "off"."""

    ACPI = 1 << 0
    IOAPIC = 1 << 1
    RTC_USE_UTC = 1 << 2
    CPU_HOTPLUG = 1 << 3
    PAE = 1 << 4
    LONG_MODE = 1 << 5
    HPET = 1 << 6
    HW_VIRT_EX = 1 << 7
    TRIPLE_FAULT_RESET = 1 << 8
    NESTED_PAGING = 1 << 9
    LARGE_PAGES = 1 << 10
    VTX_VPID = 1 << 11
    VTX_UX = 1 << 12
    ACCELERATE_3D = 1 << 13
    USB = 1 << 14
    USB_EHCI = 1 << 15
    USB_XHCI = 1 << 16

    def get(self, bit: "Flag") -> str:
        """Return "on" if every bit of ``bit`` is set, else "off"."""
        return bool_to_switch((self & bit) == bit)

    @classmethod
    def from_option(cls, name: str) -> "Flag":
        """Look a flag up by its modifyvm option name (``acpi``, ``--usbehci``...)."""
        key = name.strip().lstrip("-").lower()
        for bit, option, _ in FLAG_OPTIONS:
            if option.lstrip("-") == key:
                return bit
        supported = ", ".join(option.lstrip("-") for _, option, _ in FLAG_OPTIONS)
        raise UsageError(f"Unknown flag '{name}'. Supported: {supported}")


# (bit, modifyvm option, showvminfo --machinereadable key)
FLAG_OPTIONS = (
    (Flag.ACPI, "--acpi", "acpi"),
    (Flag.IOAPIC, "--ioapic", "ioapic"),
    (Flag.RTC_USE_UTC, "--rtcuseutc", "rtcuseutc"),
    (Flag.CPU_HOTPLUG, "--cpuhotplug", "cpuhotplug"),
    (Flag.PAE, "--pae", "pae"),
    (Flag.LONG_MODE, "--longmode", "longmode"),
    (Flag.HPET, "--hpet", "hpet"),
    (Flag.HW_VIRT_EX, "--hwvirtex", "hwvirtex"),
    (Flag.TRIPLE_FAULT_RESET, "--triplefaultreset", "triplefaultreset"),
    (Flag.NESTED_PAGING, "--nestedpaging", "nestedpaging"),
    (Flag.LARGE_PAGES, "--largepages", "largepages"),
    (Flag.VTX_VPID, "--vtxvpid", "vtxvpid"),
    (Flag.VTX_UX, "--vtxux", "vtxux"),
    (Flag.ACCELERATE_3D, "--accelerate3d", "accelerate3d"),
    (Flag.USB, "--usb", "usb"),
    (Flag.USB_EHCI, "--usbehci", "ehci"),
    (Flag.USB_XHCI, "--usbxhci", "xhci"),
)


@dataclass
class NIC:
    network: str
    hardware: str = "82540EM"
    hostonly_adapter: str = ""

    def __post_init__(self) -> None:
        if self.network not in NIC_NETWORKS:
            raise UsageError(f"Unsupported NIC network '{self.network}'. Supported: {', '.join(sorted(NIC_NETWORKS))}")
        if self.hardware not in NIC_HARDWARE:
            raise UsageError(
                f"Unsupported NIC hardware '{self.hardware}'. Supported: {', '.join(sorted(NIC_HARDWARE))}"
            )
        if self.network == "hostonly" and not self.hostonly_adapter:
            raise UsageError("hostonly_adapter is required when network is 'hostonly'")


@dataclass
class StorageController:
    sys_bus: str = ""
    ports: int = 0  # 0 leaves the VirtualBox default
    chipset: str = ""
    host_io_cache: bool = False
    bootable: bool = False

    def __post_init__(self) -> None:
        if self.sys_bus and self.sys_bus not in STORAGE_BUSES:
            raise UsageError(f"Unsupported storage bus '{self.sys_bus}'. Supported: {', '.join(sorted(STORAGE_BUSES))}")
        if self.chipset and self.chipset not in STORAGE_CHIPSETS:
            raise UsageError(
                f"Unsupported storage chipset '{self.chipset}'. Supported: {', '.join(sorted(STORAGE_CHIPSETS))}"
            )
        if self.ports < 0:
            raise UsageError(f"Storage controller port count must be >= 0 (got {self.ports})")


@dataclass
class StorageMedium:
    port: int
    device: int
    drive_type: str
    medium: str  # path, "none", "emptydrive", "additions"...

    def __post_init__(self) -> None:
        if self.drive_type not in DRIVE_TYPES:
            raise UsageError(f"Unsupported drive type '{self.drive_type}'. Supported: {', '.join(sorted(DRIVE_TYPES))}")
        if self.port < 0 or self.device < 0:
            raise UsageError("Storage port and device must be >= 0")


class PFRule(NamedTuple):
    """NAT port-forwarding rule."""

    proto: str
    host_port: int
    guest_port: int
    host_ip: Optional[IPAddress] = None
    guest_ip: Optional[IPAddress] = None

    def format(self) -> str:
        """Serialize as the ``proto,hostip,hostport,guestip,guestport`` part of a natpf rule."""
        host_ip = str(self.host_ip) if self.host_ip is not None else ""
        guest_ip = str(self.guest_ip) if self.guest_ip is not None else ""
        return f"{self.proto},{host_ip},{self.host_port},{guest_ip},{self.guest_port}"

    def __str__(self) -> str:
        host_ip = str(self.host_ip) if self.host_ip is not None else ""
        guest_ip = str(self.guest_ip) if self.guest_ip is not None else ""
        return f"{self.proto}://{host_ip}:{self.host_port} --> {guest_ip}:{self.guest_port}"

    @classmethod
    def parse(cls, raw: str) -> "PFRule":
        """Parse ``proto,hostip,hostport,guestip,guestport`` (IP fields may be empty)."""
        parts = [part.strip() for part in raw.split(",")]
        if len(parts) != 5:
            raise UsageError(f"Invalid port-forward rule '{raw}': expected proto,hostip,hostport,guestip,guestport")
        proto, host_ip_raw, host_port_raw, guest_ip_raw, guest_port_raw = parts
        proto = proto.lower()
        if proto not in PF_PROTOCOLS:
            raise UsageError(f"Invalid port-forward rule '{raw}': protocol must be tcp or udp")
        ports = []
        for label, value in (("host", host_port_raw), ("guest", guest_port_raw)):
            try:
                port = int(value)
            except ValueError:
                raise UsageError(f"Invalid port-forward rule '{raw}': {label} port must be an integer")
            if not (1 <= port <= 65535):
                raise UsageError(f"Invalid port-forward rule '{raw}': {label} port {port} out of range (1-65535)")
            ports.append(port)
        try:
            host_ip = ipaddress.ip_address(host_ip_raw) if host_ip_raw else None
            guest_ip = ipaddress.ip_address(guest_ip_raw) if guest_ip_raw else None
        except ValueError as exc:
            raise UsageError(f"Invalid port-forward rule '{raw}': {exc}")
        return cls(proto=proto, host_port=ports[0], guest_port=ports[1], host_ip=host_ip, guest_ip=guest_ip)
