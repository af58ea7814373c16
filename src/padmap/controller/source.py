"""Raw device state sampling."""

from __future__ import annotations

import contextlib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

import evdev

from padmap.controller.symbols import BUTTON_CODE_MAP, BUTTON_MASKS, DPAD_X_MAP, DPAD_Y_MAP

if TYPE_CHECKING:
    from padmap.config import ControllerConfig

logger = logging.getLogger(__name__)

_TRIGGER_MAX = 255
_AXIS_MAX = 32767
_AXIS_MIN = -32768


class DeviceUnavailable(Exception):
    """Raised when the controller cannot be opened or sampled."""


@dataclass(frozen=True)
class RawState:
    """One snapshot of the whole controller, XInput style."""

    buttons: int = 0
    """Bitmask of pressed digital buttons (see BUTTON_MASKS)."""
    left_trigger: int = 0
    right_trigger: int = 0
    thumb_lx: int = 0
    thumb_ly: int = 0
    """Positive = up."""
    thumb_rx: int = 0
    thumb_ry: int = 0


class DeviceStateSource(ABC):
    """Something that can report the current state of one controller slot."""

    @abstractmethod
    def open(self) -> None:
        """Prepare the source. Raises DeviceUnavailable if it cannot be used."""

    @abstractmethod
    def sample(self) -> RawState:
        """Return the current state. Raises DeviceUnavailable when not connected."""

    def close(self) -> None:  # noqa: B027 - optional hook
        """Release the underlying device."""


def find_gamepad() -> str | None:
    """Return the path of the first evdev device with a gamepad south button."""
    for path in evdev.list_devices():
        try:
            device = evdev.InputDevice(path)
        except OSError:
            continue
        try:
            keys = device.capabilities().get(evdev.ecodes.EV_KEY, [])
        except OSError:
            keys = []
        finally:
            device.close()
        if evdev.ecodes.BTN_SOUTH in keys:
            return path
    return None


class EvdevStateSource(DeviceStateSource):
    """Samples an evdev gamepad by querying its absolute state each tick."""

    def __init__(self, config: ControllerConfig) -> None:
        self._config = config
        self._path = config.device_path
        self._device: evdev.InputDevice[str] | None = None
        self._ranges: dict[int, tuple[int, int]] = {}

    @property
    def device(self) -> evdev.InputDevice[str] | None:
        return self._device

    def open(self) -> None:
        self._path = self._config.device_path or find_gamepad() or ""
        if not self._path:
            raise DeviceUnavailable(
                "No controller device found. Check 'controller.device_path' in config."
            )
        self._connect()

    def close(self) -> None:
        if self._device is None:
            return
        if self._config.grab:
            with contextlib.suppress(OSError):
                self._device.ungrab()
        with contextlib.suppress(OSError):
            self._device.close()
        self._device = None
        logger.info("Controller released.")

    def sample(self) -> RawState:
        if self._device is None:
            if not self._path:
                raise DeviceUnavailable("Controller was never opened.")
            self._connect()
        assert self._device is not None

        try:
            active = self._device.active_keys()
            axes = {code: self._device.absinfo(code).value for code in self._ranges}
        except OSError as e:
            logger.debug("Controller read failed, dropping device: %s", e)
            self._device = None
            raise DeviceUnavailable(str(e)) from e

        return self._build_state(active, axes)

    # --- Internal ---

    def _connect(self) -> None:
        try:
            device = evdev.InputDevice(self._path)
        except OSError as e:
            raise DeviceUnavailable(f"Cannot open {self._path}: {e}") from e

        self._ranges = {}
        for code, info in device.capabilities(absinfo=True).get(evdev.ecodes.EV_ABS, []):
            self._ranges[code] = (info.min, info.max)

        if self._config.grab:
            try:
                device.grab()
                logger.info("Controller grabbed exclusively.")
            except OSError as e:
                logger.warning("Could not grab controller: %s", e)

        self._device = device
        logger.info("Opened controller: %s (%s)", device.name, self._path)

    def _build_state(self, active: list[int], axes: dict[int, int]) -> RawState:
        buttons = 0
        for code in active:
            symbol = BUTTON_CODE_MAP.get(code)
            if symbol is not None:
                buttons |= BUTTON_MASKS[symbol]

        ecodes = evdev.ecodes
        dpad_x = DPAD_X_MAP.get(axes.get(ecodes.ABS_HAT0X, 0))
        dpad_y = DPAD_Y_MAP.get(axes.get(ecodes.ABS_HAT0Y, 0))
        for symbol in (dpad_x, dpad_y):
            if symbol is not None:
                buttons |= BUTTON_MASKS[symbol]

        return RawState(
            buttons=buttons,
            left_trigger=self._scale_trigger(ecodes.ABS_Z, axes),
            right_trigger=self._scale_trigger(ecodes.ABS_RZ, axes),
            thumb_lx=self._scale_axis(ecodes.ABS_X, axes),
            # evdev Y grows downwards, XInput Y grows upwards
            thumb_ly=_invert(self._scale_axis(ecodes.ABS_Y, axes)),
            thumb_rx=self._scale_axis(ecodes.ABS_RX, axes),
            thumb_ry=_invert(self._scale_axis(ecodes.ABS_RY, axes)),
        )

    def _scale_trigger(self, code: int, axes: dict[int, int]) -> int:
        if code not in axes:
            return 0
        low, high = self._ranges[code]
        if high <= low:
            return 0
        scaled = round((axes[code] - low) * _TRIGGER_MAX / (high - low))
        return max(0, min(_TRIGGER_MAX, scaled))

    def _scale_axis(self, code: int, axes: dict[int, int]) -> int:
        """Map an axis onto the signed 16-bit range."""
        if code not in axes:
            return 0
        low, high = self._ranges[code]
        if high <= low:
            return 0
        if (low, high) == (_AXIS_MIN, _AXIS_MAX):
            return axes[code]
        span = _AXIS_MAX - _AXIS_MIN
        scaled = _AXIS_MIN + round((axes[code] - low) * span / (high - low))
        return max(_AXIS_MIN, min(_AXIS_MAX, scaled))


def _invert(value: int) -> int:
    return min(_AXIS_MAX, -value)
