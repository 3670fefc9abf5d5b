"""Configuration loading and environment variable parsing for vboxctl."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from vboxctl.constants import DEFAULT_CONFIG_PATH, STOP_POLL_INTERVAL
from vboxctl.exceptions import ManagerError
from vboxctl.utils import get_env, log, parse_float

_KNOWN_KEYS = {"vboxmanage", "stop_interval", "stop_timeout", "basefolder"}


@dataclass
class Settings:
    vboxmanage: Optional[str] = None
    stop_interval: float = STOP_POLL_INTERVAL
    stop_timeout: Optional[float] = None  # None waits forever
    basefolder: Optional[str] = None


def read_config_file(config_path: Path) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(config_path.read_text())
    except OSError as exc:
        raise ManagerError(f"Cannot read config {config_path}: {exc}")
    except yaml.YAMLError as exc:
        raise ManagerError(f"Config {config_path} contains invalid YAML: {exc}")
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ManagerError(f"Config {config_path} must contain a YAML mapping, got {type(data).__name__}")
    unknown = sorted(set(data) - _KNOWN_KEYS)
    if unknown:
        log("WARN", f"Ignoring unknown config keys in {config_path}: {', '.join(map(str, unknown))}")
    return data


def _optional_str(name: str, raw: Any) -> Optional[str]:
    if raw is None:
        return None
    if not isinstance(raw, (str, Path)):
        raise ManagerError(f"{name} must be a string (got {raw!r})")
    value = str(raw).strip()
    return value or None


def load_config(config_path: Optional[Path] = None) -> Settings:
    """Build Settings from the YAML config file, then environment overrides."""
    explicit = config_path is not None
    if config_path is None:
        env_path = get_env("VBOXCTL_CONFIG")
        if env_path:
            config_path = Path(env_path).expanduser()
            explicit = True
        else:
            config_path = DEFAULT_CONFIG_PATH

    data: Dict[str, Any] = {}
    if config_path.exists():
        data = read_config_file(config_path)
        log("DEBUG", f"Loaded config from {config_path}")
    elif explicit:
        raise ManagerError(f"Config file missing: {config_path}")

    vboxmanage = _optional_str("vboxmanage", data.get("vboxmanage"))
    basefolder = _optional_str("basefolder", data.get("basefolder"))
    stop_interval = parse_float("stop_interval", data.get("stop_interval", STOP_POLL_INTERVAL))
    stop_timeout_raw = data.get("stop_timeout")

    env_vboxmanage = get_env("VBOXMANAGE")
    if env_vboxmanage is not None:
        vboxmanage = env_vboxmanage.strip() or None
    env_basefolder = get_env("VBOXCTL_BASEFOLDER")
    if env_basefolder is not None:
        basefolder = env_basefolder.strip() or None
    env_interval = get_env("VBOXCTL_STOP_INTERVAL")
    if env_interval is not None:
        stop_interval = parse_float("VBOXCTL_STOP_INTERVAL", env_interval)
    env_timeout = get_env("VBOXCTL_STOP_TIMEOUT")
    if env_timeout is not None:
        stop_timeout_raw = env_timeout.strip() or None

    if stop_interval <= 0:
        raise ManagerError(f"stop_interval must be > 0 (got {stop_interval})")
    stop_timeout = None
    if stop_timeout_raw is not None:
        stop_timeout = parse_float("stop_timeout", stop_timeout_raw)

    return Settings(
        vboxmanage=vboxmanage,
        stop_interval=stop_interval,
        stop_timeout=stop_timeout,
        basefolder=basefolder,
    )
