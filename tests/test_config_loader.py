from __future__ import annotations

from pathlib import Path

import pytest

from blescan.core.config_loader import load_config, normalize_uuids
from blescan.core.errors import ConfigLoadError, ConfigValidationError


def _write_config(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("BLESCAN_CONFIG", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))


def test_load_packaged_defaults() -> None:
    loaded = load_config()
    assert loaded.config.scan_timeout_s == 5.0
    assert loaded.config.service_uuids == ()
    assert loaded.config.connect_timeout_s == 10.0
    assert loaded.config.adapter is None
    assert loaded.config.log_level == "WARNING"
    assert len(loaded.sources) == 1
    assert loaded.warnings == ()


def test_user_config_overrides_defaults(tmp_path: Path) -> None:
    _write_config(
        tmp_path / "cfg" / "blescan" / "config.yaml",
        """
scan:
  timeout_s: 2.5
  service_uuids: ["180F", "0000180a-0000-1000-8000-00805F9B34FB"]
adapter: hci1
""",
    )

    loaded = load_config()
    assert loaded.config.scan_timeout_s == 2.5
    assert loaded.config.service_uuids == (
        "0000180f-0000-1000-8000-00805f9b34fb",
        "0000180a-0000-1000-8000-00805f9b34fb",
    )
    assert loaded.config.connect_timeout_s == 10.0
    assert loaded.config.adapter == "hci1"
    assert loaded.sources[-1].endswith("config.yaml")


def test_explicit_config_path(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    path = tmp_path / "elsewhere.yaml"
    _write_config(path, "log_level: DEBUG\n")
    monkeypatch.setenv("BLESCAN_CONFIG", str(path))

    assert load_config().config.log_level == "DEBUG"


def test_missing_explicit_config_rejected(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("BLESCAN_CONFIG", str(tmp_path / "missing.yaml"))

    with pytest.raises(ConfigLoadError):
        load_config()


def test_unknown_keys_rejected(tmp_path: Path) -> None:
    _write_config(
        tmp_path / "cfg" / "blescan" / "config.yaml",
        """
scan:
  duration: 4
""",
    )

    with pytest.raises(ConfigValidationError) as exc:
        load_config()
    assert "scan" in str(exc.value)


def test_invalid_uuid_rejected(tmp_path: Path) -> None:
    _write_config(
        tmp_path / "cfg" / "blescan" / "config.yaml",
        """
scan:
  service_uuids: ["battery"]
""",
    )

    with pytest.raises(ConfigValidationError):
        load_config()


def test_duplicate_yaml_keys_rejected(tmp_path: Path) -> None:
    _write_config(
        tmp_path / "cfg" / "blescan" / "config.yaml",
        """
connect:
  timeout_s: 3
  timeout_s: 4
""",
    )

    with pytest.raises(ConfigValidationError):
        load_config()


def test_duplicate_service_uuids_warn(tmp_path: Path) -> None:
    _write_config(
        tmp_path / "cfg" / "blescan" / "config.yaml",
        """
scan:
  service_uuids: ["180f", "0000180F-0000-1000-8000-00805f9b34fb"]
""",
    )

    loaded = load_config()
    assert loaded.config.service_uuids == ("0000180f-0000-1000-8000-00805f9b34fb",)
    assert any("Duplicate service UUID" in warning for warning in loaded.warnings)


def test_normalize_uuids_expands_short_forms() -> None:
    assert normalize_uuids(["2A19", "0000fe95"]) == (
        "00002a19-0000-1000-8000-00805f9b34fb",
        "0000fe95-0000-1000-8000-00805f9b34fb",
    )
