"""Tests for environment / .env configuration loading."""

import os

import pytest

from vcd_disk_manager.config import load_config

_VARS = [
    "VCD_HOST", "VCD_AUTH_TOKEN", "VCD_TOKEN_TYPE", "VCD_API_VERSION", "VCD_DISABLE_SSL",
    "VCD_HTTP_TIMEOUT", "VCD_TASK_TIMEOUT", "VCD_TASK_GRACE", "VCD_TASK_POLL_INTERVAL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for var in _VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    # .env values are written straight into os.environ
    for var in _VARS:
        os.environ.pop(var, None)


def test_defaults(tmp_path):
    cfg = load_config(tmp_path / "missing.env")
    assert cfg.vcd.host == ""
    assert cfg.vcd.token_type == "bearer"
    assert cfg.vcd.disable_ssl is False
    assert cfg.monitor.timeout_seconds == 30
    assert cfg.monitor.grace_seconds == 5
    assert cfg.monitor.poll_interval_seconds == 3


def test_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("VCD_HOST", "vcd.example.com")
    monkeypatch.setenv("VCD_TOKEN_TYPE", "VCloud")
    monkeypatch.setenv("VCD_DISABLE_SSL", "true")
    monkeypatch.setenv("VCD_TASK_TIMEOUT", "120")
    cfg = load_config(tmp_path / "missing.env")
    assert cfg.vcd.host == "vcd.example.com"
    assert cfg.vcd.token_type == "vcloud"
    assert cfg.vcd.disable_ssl is True
    assert cfg.monitor.timeout_seconds == 120


def test_dotenv_does_not_override_environment(monkeypatch, tmp_path):
    env_file = tmp_path / "custom.env"
    env_file.write_text(
        "# comment\nVCD_HOST=from-file\nVCD_AUTH_TOKEN=abc123\n\nVCD_API_VERSION=36.3\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("VCD_HOST", "from-env")
    cfg = load_config(env_file)
    assert cfg.vcd.host == "from-env"
    assert cfg.vcd.auth_token == "abc123"
    assert cfg.vcd.api_version == "36.3"
