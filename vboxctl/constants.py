"""Global constants and defaults for vboxctl."""

from __future__ import annotations

import os
import re
from pathlib import Path

VBOXMANAGE_NAME = "VBoxManage"
# Directories checked for the binary when it is not on PATH (Windows installers set these).
VBOX_INSTALL_ENV_VARS = ("VBOX_INSTALL_PATH", "VBOX_MSI_INSTALL_PATH")

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "vboxctl" / "config.yaml"
TRUTHY = {"1", "true", "yes", "on"}

_LOG_VERBOSE = os.environ.get("LOG_VERBOSE", "").lower() in TRUTHY

# `showvminfo --machinereadable`: key=value, either side optionally double-quoted.
VMINFO_LINE_RE = re.compile(r'^(?:"(?P<qkey>[^"]*)"|(?P<key>[^=]*))=(?:"(?P<qval>.*)"|(?P<val>.*))$')
# `list vms`: "name" {uuid}
VM_NAME_UUID_RE = re.compile(r'^"(?P<name>.+)" \{(?P<uuid>[^{}]+)\}$')
MACHINE_NOT_FOUND_RE = re.compile(r"could not find a registered machine", re.IGNORECASE)

STOP_POLL_INTERVAL = 1.0
START_TYPE = "headless"
MAX_BOOT_SLOTS = 4
UINT32_MAX = 2**32 - 1

BOOT_DEVICES = {"none", "floppy", "dvd", "disk", "net"}

NIC_NETWORKS = {"none", "null", "nat", "natnetwork", "bridged", "intnet", "hostonly", "generic"}
NIC_HARDWARE = {"Am79C970A", "Am79C973", "82540EM", "82543GC", "82545EM", "virtio"}

STORAGE_BUSES = {"ide", "sata", "scsi", "floppy", "sas", "usb", "pcie", "virtio"}
STORAGE_CHIPSETS = {
    "LSILogic",
    "LSILogicSAS",
    "BusLogic",
    "IntelAHCI",
    "PIIX3",
    "PIIX4",
    "ICH6",
    "I82078",
    "USB",
    "NVMe",
    "VirtIO",
}
DRIVE_TYPES = {"dvddrive", "hdd", "fdd"}
PF_PROTOCOLS = {"tcp", "udp"}
