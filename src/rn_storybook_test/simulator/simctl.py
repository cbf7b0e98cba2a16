"""
iOS Simulator control through ``xcrun simctl``.

All commands target the booted simulator once one has been chosen with
``boot_best``.
"""

from __future__ import annotations

import json
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from ..logging import get_logger

logger = get_logger(__name__)

STANDARD_IPHONE = re.compile(r"^iPhone \d+$")

# Fixed status bar so clock, battery and signal never show up as diffs
STATUS_BAR_OVERRIDES = [
    "--time", "06:06",
    "--operatorName", "",
    "--wifiBars", "3",
    "--cellularBars", "4",
    "--batteryLevel", "100",
]


class SimctlError(Exception):
    """Raised when a simctl command fails."""


@dataclass(frozen=True)
class SimulatorDevice:
    udid: str
    name: str
    state: str
    is_available: bool
    device_type: str = ""

    @property
    def is_booted(self) -> bool:
        return self.state == "Booted"


def parse_devices(payload: str) -> List[SimulatorDevice]:
    """Parse ``simctl list devices --json`` output into a flat device list."""
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise SimctlError(f"Unexpected simctl output: {exc}") from exc

    devices = []
    for runtime_devices in data.get("devices", {}).values():
        for device in runtime_devices:
            devices.append(SimulatorDevice(
                udid=device["udid"],
                name=device["name"],
                state=device.get("state", "Shutdown"),
                is_available=bool(device.get("isAvailable", False)),
                device_type=device.get("deviceTypeIdentifier", ""),
            ))
    return devices


def select_best_device(devices: Sequence[SimulatorDevice]) -> Optional[SimulatorDevice]:
    """
    Pick the simulator to run on.

    Only available iPhones are considered. Booted devices win, then plain
    ``iPhone <n>`` models, then the name that sorts last (newest model).
    """
    candidates = [d for d in devices if "iPhone" in d.name and d.is_available]
    if not candidates:
        return None

    # Stable sorts applied from the least to the most significant key
    ordered = sorted(candidates, key=lambda d: d.name, reverse=True)
    ordered.sort(key=lambda d: 0 if STANDARD_IPHONE.match(d.name) else 1)
    ordered.sort(key=lambda d: 0 if d.is_booted else 1)
    return ordered[0]


class Simulator:
    """Runs simctl commands against the booted simulator."""

    def __init__(self, xcrun: str = "xcrun") -> None:
        self._xcrun = xcrun
        self.udid: Optional[str] = None

    def _run(self, *args: str, ignore_error: bool = False, error_message: Optional[str] = None) -> str:
        command = [self._xcrun, "simctl", *args]
        logger.debug(f"Running: {' '.join(command)}")
        try:
            completed = subprocess.run(command, capture_output=True, text=True)
        except OSError as exc:
            if ignore_error:
                logger.debug(f"Ignoring failure of {' '.join(command)}: {exc}")
                return ""
            raise SimctlError(error_message or f"Failed to run {' '.join(command)}: {exc}") from exc

        if completed.returncode != 0:
            if ignore_error:
                logger.debug(f"Ignoring exit code {completed.returncode} of {' '.join(command)}")
                return ""
            detail = (completed.stderr or completed.stdout or "").strip()
            raise SimctlError(error_message or f"{' '.join(command)} failed: {detail}")
        return completed.stdout

    def list_devices(self) -> List[SimulatorDevice]:
        return parse_devices(self._run("list", "devices", "--json"))

    def boot_best(self) -> str:
        """Boot (or reuse) the best iPhone simulator and return its UDID."""
        device = select_best_device(self.list_devices())
        if device is None:
            raise SimctlError("No iPhone simulator found")

        if not device.is_booted:
            logger.info(f"Booting simulator {device.name} ({device.udid})")
            self._run("boot", device.udid)

        self.udid = device.udid
        return device.udid

    def wait_until_booted(self) -> None:
        self._run("bootstatus", "booted")

    def override_status_bar(self) -> None:
        logger.info("Setting consistent status bar state")
        self._run("status_bar", "booted", "override", *STATUS_BAR_OVERRIDES)

    def ensure_installed(self, app_id: str) -> None:
        self._run(
            "get_app_container", "booted", app_id,
            error_message=f"App {app_id} is not installed on device.",
        )

    def terminate(self, app_id: str) -> None:
        self._run("terminate", "booted", app_id, ignore_error=True)

    def launch(self, app_id: str) -> None:
        self._run("launch", "booted", app_id)

    def open_url(self, url: str) -> None:
        logger.info(f"Opening deep link: {url}")
        self._run("openurl", "booted", url)

    def screenshot(self, path: Path) -> Path:
        self._run("io", "booted", "screenshot", "--type", "png", str(path))
        return Path(path)
