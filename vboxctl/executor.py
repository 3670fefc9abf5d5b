"""Invocation of the VBoxManage command-line tool."""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Optional, Tuple

from vboxctl.constants import VBOX_INSTALL_ENV_VARS, VBOXMANAGE_NAME
from vboxctl.exceptions import CommandError
from vboxctl.utils import get_env, run

_vboxmanage: Optional[str] = None


def set_vboxmanage(path: Optional[str]) -> None:
    """Pin the VBoxManage binary used by every later call (None restores lookup)."""
    global _vboxmanage
    _vboxmanage = path or None


def vboxmanage_path() -> str:
    """Resolve the VBoxManage binary.

    Order: explicit override, ``$VBOXMANAGE``, ``PATH``, the VirtualBox install
    directories from the environment. Falls back to the bare name so a missing
    binary surfaces as a spawn failure.
    """
    if _vboxmanage:
        return _vboxmanage
    env_override = get_env("VBOXMANAGE")
    if env_override:
        return env_override
    found = shutil.which(VBOXMANAGE_NAME)
    if found:
        return found
    for var in VBOX_INSTALL_ENV_VARS:
        install_dir = get_env(var)
        if not install_dir:
            continue
        for name in (VBOXMANAGE_NAME, f"{VBOXMANAGE_NAME}.exe"):
            candidate = Path(install_dir) / name
            if candidate.is_file() and os.access(candidate, os.X_OK):
                return str(candidate)
    return VBOXMANAGE_NAME


def vbm_out_err(*args: str) -> Tuple[str, str]:
    """Run VBoxManage and return (stdout, stderr); raise CommandError on failure."""
    cmd = [vboxmanage_path(), *args]
    try:
        result = run(cmd, check=False, capture_output=True, encoding="utf-8", errors="replace")
    except OSError as exc:
        raise CommandError(cmd, stderr=str(exc)) from exc
    if result.returncode != 0:
        raise CommandError(cmd, stderr=result.stderr or "", returncode=result.returncode, stdout=result.stdout or "")
    return result.stdout or "", result.stderr or ""


def vbm_out(*args: str) -> str:
    stdout, _ = vbm_out_err(*args)
    return stdout


def vbm(*args: str) -> None:
    vbm_out_err(*args)
