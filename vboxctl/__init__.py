"""vboxctl package: VirtualBox machine lifecycle control through VBoxManage."""

__all__ = [
    "cli",
    "config",
    "constants",
    "exceptions",
    "executor",
    "machine",
    "models",
    "parser",
    "registry",
    "utils",
]
