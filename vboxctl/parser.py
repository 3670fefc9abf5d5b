"""Parsing of VBoxManage's line-oriented output."""

from __future__ import annotations

from typing import Dict, List, Tuple

from vboxctl.constants import UINT32_MAX, VM_NAME_UUID_RE, VMINFO_LINE_RE
from vboxctl.exceptions import ParseError, UnknownStateError
from vboxctl.models import MachineState


def parse_machinereadable(text: str) -> Dict[str, str]:
    """Collect the key/value pairs of ``showvminfo --machinereadable`` output.

    Quotes around keys and values are stripped verbatim (no escape handling).
    Lines that are not ``key=value`` are skipped; a repeated key keeps the last value.
    """
    props: Dict[str, str] = {}
    for line in text.splitlines():
        match = VMINFO_LINE_RE.match(line.rstrip("\r"))
        if match is None:
            continue
        key = match.group("qkey") if match.group("qkey") is not None else match.group("key")
        value = match.group("qval") if match.group("qval") is not None else match.group("val")
        props[key] = value
    return props


def parse_vm_list(text: str) -> List[Tuple[str, str]]:
    """Return (name, uuid) pairs from ``list vms``; malformed lines are skipped."""
    entries: List[Tuple[str, str]] = []
    for line in text.splitlines():
        match = VM_NAME_UUID_RE.match(line.strip())
        if match is None:
            continue
        entries.append((match.group("name"), match.group("uuid")))
    return entries


def parse_uint(key: str, value: str) -> int:
    if not value.isdigit() or not value.isascii():
        raise ParseError(f"{key}: expected an unsigned integer (got '{value}')")
    number = int(value)
    if number > UINT32_MAX:
        raise ParseError(f"{key}: value {number} out of range")
    return number


def parse_state(value: str) -> MachineState:
    try:
        return MachineState(value)
    except ValueError:
        raise UnknownStateError(f"VMState: unrecognized machine state '{value}'") from None


def parse_switch(key: str, value: str) -> bool:
    if value == "on":
        return True
    if value == "off":
        return False
    raise ParseError(f"{key}: expected 'on' or 'off' (got '{value}')")
