"""Padmap controller subsystem."""

from padmap.controller.poller import ButtonEvent, EdgeDetector, Poller
from padmap.controller.source import (
    DeviceStateSource,
    DeviceUnavailable,
    EvdevStateSource,
    RawState,
    find_gamepad,
)
from padmap.controller.symbols import STICK_THRESHOLD, TRIGGER_THRESHOLD, InputSymbol

__all__ = [
    "InputSymbol",
    "TRIGGER_THRESHOLD",
    "STICK_THRESHOLD",
    "RawState",
    "DeviceStateSource",
    "DeviceUnavailable",
    "EvdevStateSource",
    "find_gamepad",
    "ButtonEvent",
    "EdgeDetector",
    "Poller",
]
