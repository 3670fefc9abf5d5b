"""Custom exceptions for vboxctl."""

from __future__ import annotations

from typing import List, Optional


class ManagerError(RuntimeError):
    """Base class for every error raised by vboxctl."""


class CommandError(ManagerError):
    """Raised when VBoxManage cannot be spawned or exits non-zero."""

    def __init__(
        self,
        cmd: List[str],
        stderr: str = "",
        returncode: Optional[int] = None,
        stdout: str = "",
    ) -> None:
        self.cmd = list(cmd)
        self.stderr = stderr
        self.returncode = returncode
        self.stdout = stdout
        detail = stderr.strip() or f"exit status {returncode}"
        super().__init__(f"{' '.join(self.cmd)}: {detail}")


class MachineNotFoundError(ManagerError):
    """Raised when no registered machine matches a name or UUID."""

    def __init__(self, machine_id: str) -> None:
        self.machine_id = machine_id
        super().__init__(f"Machine '{machine_id}' does not exist")


class MachineExistsError(ManagerError):
    """Raised by create_machine when the name is already registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Machine '{name}' already exists")


class UsageError(ManagerError, ValueError):
    """Raised on malformed input before any command is issued."""


class ParseError(ManagerError, ValueError):
    """Raised when a recognized field of VBoxManage output is malformed."""


class UnknownStateError(ParseError):
    """Raised when VMState holds a value outside the known states."""


class WaitTimeoutError(ManagerError):
    """Raised when a machine does not reach the awaited state in time."""


class OperationCancelled(ManagerError):
    """Raised when a caller cancels a blocking wait."""
