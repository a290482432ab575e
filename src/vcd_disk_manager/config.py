"""Configuration management - loads settings from .env and environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


def _load_dotenv(path: Path | None = None) -> None:
    """Minimal .env loader (avoids external dependency)."""
    candidates = [
        path,
        Path.cwd() / ".env",
        Path(__file__).resolve().parents[2] / ".env",
    ]
    env_path = None
    for candidate in candidates:
        if candidate and candidate.exists():
            env_path = candidate
            break
    if env_path is None:
        return
    for line in env_path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        key, _, value = line.partition("=")
        key, value = key.strip(), value.strip()
        if key and key not in os.environ:
            os.environ[key] = value


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


@dataclass
class VcdConfig:
    host: str = ""
    auth_token: str = ""
    token_type: str = "bearer"       # bearer | vcloud
    api_version: str = ""            # empty = negotiate
    disable_ssl: bool = False
    http_timeout_seconds: float = 30.0


@dataclass
class MonitorConfig:
    timeout_seconds: float = 30.0
    grace_seconds: float = 5.0
    poll_interval_seconds: float = 3.0


@dataclass
class AppConfig:
    vcd: VcdConfig = field(default_factory=VcdConfig)
    monitor: MonitorConfig = field(default_factory=MonitorConfig)


def load_config(env_file: Path | None = None) -> AppConfig:
    """Load configuration from environment / .env file."""
    _load_dotenv(env_file)

    vcd = VcdConfig(
        host=os.getenv("VCD_HOST", ""),
        auth_token=os.getenv("VCD_AUTH_TOKEN", ""),
        token_type=os.getenv("VCD_TOKEN_TYPE", "bearer").strip().lower(),
        api_version=os.getenv("VCD_API_VERSION", ""),
        disable_ssl=_env_flag("VCD_DISABLE_SSL", "false"),
        http_timeout_seconds=float(os.getenv("VCD_HTTP_TIMEOUT", "30")),
    )

    monitor = MonitorConfig(
        timeout_seconds=float(os.getenv("VCD_TASK_TIMEOUT", "30")),
        grace_seconds=float(os.getenv("VCD_TASK_GRACE", "5")),
        poll_interval_seconds=float(os.getenv("VCD_TASK_POLL_INTERVAL", "3")),
    )

    return AppConfig(vcd=vcd, monitor=monitor)
