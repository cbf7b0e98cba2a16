import json
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from rn_storybook_test.simulator.simctl import (
    SimctlError,
    Simulator,
    SimulatorDevice,
    parse_devices,
    select_best_device,
)

RUN = "rn_storybook_test.simulator.simctl.subprocess.run"

DEVICES_JSON = json.dumps({
    "devices": {
        "com.apple.CoreSimulator.SimRuntime.iOS-17-5": [
            {"udid": "A", "name": "iPhone 15", "state": "Shutdown", "isAvailable": True},
            {"udid": "B", "name": "iPhone 15 Pro", "state": "Shutdown", "isAvailable": True},
            {"udid": "C", "name": "iPad Air", "state": "Booted", "isAvailable": True},
        ],
        "com.apple.CoreSimulator.SimRuntime.iOS-16-4": [
            {"udid": "D", "name": "iPhone 14", "state": "Shutdown", "isAvailable": True},
            {"udid": "E", "name": "iPhone 16", "state": "Shutdown", "isAvailable": False},
        ],
    }
})


def device(udid, name, state="Shutdown", available=True):
    return SimulatorDevice(udid=udid, name=name, state=state, is_available=available)


def ok(stdout=""):
    return subprocess.CompletedProcess([], 0, stdout, "")


class TestParseDevices:
    def test_flattens_runtimes(self):
        devices = parse_devices(DEVICES_JSON)
        assert [d.udid for d in devices] == ["A", "B", "C", "D", "E"]
        assert devices[2].is_booted
        assert not devices[4].is_available

    def test_invalid_json(self):
        with pytest.raises(SimctlError):
            parse_devices("not json")


class TestSelectBestDevice:
    def test_prefers_standard_iphone_with_highest_name(self):
        best = select_best_device(parse_devices(DEVICES_JSON))
        assert best.udid == "A"

    def test_booted_iphone_wins(self):
        devices = [device("A", "iPhone 15"), device("B", "iPhone SE (3rd generation)", state="Booted")]
        assert select_best_device(devices).udid == "B"

    def test_skips_unavailable_and_non_iphone(self):
        devices = [device("A", "iPad Pro", state="Booted"), device("B", "iPhone 15", available=False)]
        assert select_best_device(devices) is None

    def test_empty(self):
        assert select_best_device([]) is None


class TestSimulator:
    def test_boot_best_boots_shutdown_device(self):
        with patch(RUN, side_effect=[ok(DEVICES_JSON), ok()]) as run:
            sim = Simulator()
            assert sim.boot_best() == "A"

        assert sim.udid == "A"
        assert run.call_args_list[1].args[0] == ["xcrun", "simctl", "boot", "A"]

    def test_boot_best_reuses_booted_device(self):
        payload = json.dumps({"devices": {"r": [
            {"udid": "X", "name": "iPhone 15", "state": "Booted", "isAvailable": True},
        ]}})
        with patch(RUN, return_value=ok(payload)) as run:
            assert Simulator().boot_best() == "X"
        run.assert_called_once()

    def test_no_iphone_raises(self):
        with patch(RUN, return_value=ok(json.dumps({"devices": {}}))):
            with pytest.raises(SimctlError, match="No iPhone simulator"):
                Simulator().boot_best()

    def test_missing_app_error_message(self):
        failed = subprocess.CompletedProcess([], 2, "", "No such app")
        with patch(RUN, return_value=failed):
            with pytest.raises(SimctlError, match="App com.example is not installed"):
                Simulator().ensure_installed("com.example")

    def test_terminate_ignores_failures(self):
        failed = subprocess.CompletedProcess([], 3, "", "not running")
        with patch(RUN, return_value=failed):
            Simulator().terminate("com.example")

    def test_missing_xcrun(self):
        with patch(RUN, side_effect=FileNotFoundError("xcrun")):
            with pytest.raises(SimctlError):
                Simulator().launch("com.example")

    def test_screenshot_and_status_bar_commands(self, tmp_path):
        with patch(RUN, return_value=ok()) as run:
            sim = Simulator(xcrun="/usr/bin/xcrun")
            assert sim.screenshot(tmp_path / "a.png") == Path(tmp_path / "a.png")
            sim.override_status_bar()
            sim.open_url("exp://127.0.0.1:8081")

        screenshot, status_bar, open_url = (call.args[0] for call in run.call_args_list)
        assert screenshot == [
            "/usr/bin/xcrun", "simctl", "io", "booted", "screenshot", "--type", "png", str(tmp_path / "a.png"),
        ]
        assert status_bar[:5] == ["/usr/bin/xcrun", "simctl", "status_bar", "booted", "override"]
        assert "--time" in status_bar
        assert open_url[-2:] == ["booted", "exp://127.0.0.1:8081"]
