"""iOS Simulator control via xcrun simctl."""

from .simctl import Simulator, SimulatorDevice, SimctlError, parse_devices, select_best_device

__all__ = [
    "Simulator",
    "SimulatorDevice",
    "SimctlError",
    "parse_devices",
    "select_best_device",
]
