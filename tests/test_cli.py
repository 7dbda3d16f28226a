from __future__ import annotations

from typer.testing import CliRunner

from blescan import cli
from blescan.core.config_loader import ScanConfig
from blescan.core.model import (
    CharacteristicNode,
    CharacteristicProperties,
    DiscoveredDevice,
    ExploreResult,
    ServiceNode,
)

HRM = DiscoveredDevice(identity="E8:9F:6D:00:AA:01", name="HRM-Pro", rssi=-48)
BATTERY_SERVICE = "0000180f-0000-1000-8000-00805f9b34fb"
BATTERY_LEVEL = "00002a19-0000-1000-8000-00805f9b34fb"


class FakeService:
    def __init__(self) -> None:
        self.config = ScanConfig()
        self.config_sources = ("/pkg/blescan/defaults/config.yaml",)
        self.load_warnings = ()
        self.explore_calls: list[dict] = []

    def list_devices(self, timeout_s=None, service_uuids=None, on_log=None):
        if on_log is not None:
            on_log("Scanning started")
        return [HRM, DiscoveredDevice(identity="5B:01:22:33:44:55", name="", rssi=-90)]

    def explore(self, device_hint, **kwargs):
        if kwargs.get("notify_uuids"):
            kwargs["on_value"](BATTERY_LEVEL, "d")
        return ExploreResult(
            device=HRM,
            services=(ServiceNode(uuid=BATTERY_SERVICE, description="Battery Service"),),
            characteristics={
                BATTERY_SERVICE: (
                    CharacteristicNode(
                        uuid=BATTERY_LEVEL,
                        properties=CharacteristicProperties(read=True, notify=True),
                        description="Battery Level",
                        preview="d",
                    ),
                )
            },
            logs=("Connected to E8:9F:6D:00:AA:01",),
        )


runner = CliRunner()


def test_scan_command(monkeypatch):
    monkeypatch.setattr(cli, "ScanService", FakeService)
    result = runner.invoke(cli.app, ["scan"])
    assert result.exit_code == 0
    lines = result.stdout.splitlines()
    assert lines[0] == " -48 dBm  HRM-Pro  E8:9F:6D:00:AA:01"
    assert "(no name)" in lines[1]


def test_scan_command_show_log(monkeypatch):
    monkeypatch.setattr(cli, "ScanService", FakeService)
    result = runner.invoke(cli.app, ["scan", "--show-log"])
    assert result.exit_code == 0
    assert "* Scanning started" in result.stderr


def test_scan_command_no_devices(monkeypatch):
    class EmptyService(FakeService):
        def list_devices(self, timeout_s=None, service_uuids=None, on_log=None):
            return []

    monkeypatch.setattr(cli, "ScanService", EmptyService)
    result = runner.invoke(cli.app, ["scan"])
    assert result.exit_code == 0
    assert "No BLE devices found" in result.stdout


def test_explore_command_prints_tree(monkeypatch):
    monkeypatch.setattr(cli, "ScanService", FakeService)
    result = runner.invoke(cli.app, ["explore", "hrm"])
    assert result.exit_code == 0
    assert "Target: E8:9F:6D:00:AA:01 (HRM-Pro)" in result.stdout
    assert f"Service {BATTERY_SERVICE}  Battery Service" in result.stdout
    assert f"Char {BATTERY_LEVEL}  [read | notify]" in result.stdout
    assert "Value: d" in result.stdout


def test_explore_command_reports_notifications(monkeypatch):
    monkeypatch.setattr(cli, "ScanService", FakeService)
    result = runner.invoke(cli.app, ["explore", "hrm", "--notify", "2a19", "--listen", "0"])
    assert result.exit_code == 0
    assert f"Notify {BATTERY_LEVEL}: d" in result.stdout


def test_explore_command_error_is_clean(monkeypatch):
    class FailingService(FakeService):
        def explore(self, device_hint, **kwargs):
            from blescan.core.errors import AdapterUnavailableError

            raise AdapterUnavailableError("Bluetooth adapter is not powered on (state: poweredOff)")

    monkeypatch.setattr(cli, "ScanService", FailingService)
    result = runner.invoke(cli.app, ["explore", "hrm"])
    assert result.exit_code == 1
    assert "Error: Bluetooth adapter is not powered on (state: poweredOff)" in result.stderr
    assert "Traceback" not in result.stdout
    assert "Traceback" not in result.stderr


def test_config_command(monkeypatch):
    monkeypatch.setattr(cli, "ScanService", FakeService)
    result = runner.invoke(cli.app, ["config"])
    assert result.exit_code == 0
    assert "Source: /pkg/blescan/defaults/config.yaml" in result.stdout
    assert "scan.service_uuids: <any>" in result.stdout
    assert "adapter: <default>" in result.stdout


def test_load_warning_is_printed(monkeypatch):
    class WarnService(FakeService):
        def __init__(self) -> None:
            super().__init__()
            self.load_warnings = ("Duplicate service UUID '0000180f-0000-1000-8000-00805f9b34fb' ignored",)

    monkeypatch.setattr(cli, "ScanService", WarnService)
    result = runner.invoke(cli.app, ["--log-level", "INFO", "scan"])
    assert result.exit_code == 0
    assert "Warning: Duplicate service UUID" in result.stderr


def test_log_level_is_case_insensitive(monkeypatch):
    monkeypatch.setattr(cli, "ScanService", FakeService)
    result = runner.invoke(cli.app, ["--log-level", "debug", "scan"])
    assert result.exit_code == 0


def test_unknown_log_level_is_a_usage_error(monkeypatch):
    monkeypatch.setattr(cli, "ScanService", FakeService)
    result = runner.invoke(cli.app, ["--log-level", "foo", "scan"])
    assert result.exit_code == 2
    assert not isinstance(result.exception, ValueError)
