"""Keyboard signal transports."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence

import evdev

from padmap.keyboard.keys import KeyCode, KeySignal, Modifier

logger = logging.getLogger(__name__)


class OutputEmissionError(Exception):
    """Raised when key signals could not be delivered to the OS."""


class KeyTransport(ABC):
    """Delivers batches of key signals, in order, best effort."""

    @abstractmethod
    def send(self, signals: Sequence[KeySignal]) -> None:
        """Apply all signals in order. Raises OutputEmissionError."""

    def close(self) -> None:  # noqa: B027 - optional hook
        """Release OS resources."""


def _is_plain(key: KeyCode) -> bool:
    """Letters, digits and F-keys share their evdev name: KEY_A, KEY_7, KEY_F5."""
    return len(key.value) == 1 or (key.value[0] == "F" and key.value[1:].isdigit())


# KeyCode / Modifier -> evdev KEY_* name
EVDEV_KEY_NAMES: dict[KeyCode | Modifier, str] = {
    **{key: f"KEY_{key.value}" for key in KeyCode if _is_plain(key)},
    KeyCode.SPACE: "KEY_SPACE",
    KeyCode.ENTER: "KEY_ENTER",
    KeyCode.TAB: "KEY_TAB",
    KeyCode.ESCAPE: "KEY_ESC",
    KeyCode.BACKSPACE: "KEY_BACKSPACE",
    KeyCode.DELETE: "KEY_DELETE",
    KeyCode.INSERT: "KEY_INSERT",
    KeyCode.HOME: "KEY_HOME",
    KeyCode.END: "KEY_END",
    KeyCode.PAGE_UP: "KEY_PAGEUP",
    KeyCode.PAGE_DOWN: "KEY_PAGEDOWN",
    KeyCode.UP: "KEY_UP",
    KeyCode.DOWN: "KEY_DOWN",
    KeyCode.LEFT: "KEY_LEFT",
    KeyCode.RIGHT: "KEY_RIGHT",
    **{key: f"KEY_KP{key.value[-1]}" for key in KeyCode if key.value.startswith("Numpad")},
    Modifier.CTRL: "KEY_LEFTCTRL",
    Modifier.ALT: "KEY_LEFTALT",
    Modifier.SHIFT: "KEY_LEFTSHIFT",
    Modifier.WIN: "KEY_LEFTMETA",
}


def evdev_code(key: KeyCode | Modifier) -> int:
    return int(getattr(evdev.ecodes, EVDEV_KEY_NAMES[key]))


class UInputTransport(KeyTransport):
    """Injects key signals through a virtual uinput keyboard."""

    def __init__(self, device_name: str = "padmap virtual keyboard") -> None:
        self._device_name = device_name
        self._ui: evdev.UInput | None = None

    def open(self) -> None:
        if self._ui is not None:
            return
        codes = sorted({evdev_code(key) for key in EVDEV_KEY_NAMES})
        try:
            self._ui = evdev.UInput({evdev.ecodes.EV_KEY: codes}, name=self._device_name)
        except (OSError, evdev.UInputError) as e:
            raise OutputEmissionError(f"Cannot create virtual keyboard: {e}") from e
        logger.info("Virtual keyboard ready: %s", self._device_name)

    def send(self, signals: Sequence[KeySignal]) -> None:
        if not signals:
            return
        if self._ui is None:
            self.open()
        assert self._ui is not None

        try:
            for signal in signals:
                value = 1 if signal.pressed else 0
                self._ui.write(evdev.ecodes.EV_KEY, evdev_code(signal.key), value)
            self._ui.syn()
        except OSError as e:
            raise OutputEmissionError(f"Key injection failed: {e}") from e

    def close(self) -> None:
        if self._ui is None:
            return
        try:
            self._ui.close()
        except OSError as e:
            logger.debug("Closing virtual keyboard failed: %s", e)
        self._ui = None
