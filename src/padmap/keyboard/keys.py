"""Output key and modifier enums."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class KeyCode(StrEnum):
    """All keys a rule can press."""

    # function keys
    F1 = "F1"
    F2 = "F2"
    F3 = "F3"
    F4 = "F4"
    F5 = "F5"
    F6 = "F6"
    F7 = "F7"
    F8 = "F8"
    F9 = "F9"
    F10 = "F10"
    F11 = "F11"
    F12 = "F12"

    # letters
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    E = "E"
    F = "F"
    G = "G"
    H = "H"
    I = "I"  # noqa: E741
    J = "J"
    K = "K"
    L = "L"
    M = "M"
    N = "N"
    O = "O"  # noqa: E741
    P = "P"
    Q = "Q"
    R = "R"
    S = "S"
    T = "T"
    U = "U"
    V = "V"
    W = "W"
    X = "X"
    Y = "Y"
    Z = "Z"

    # digits
    DIGIT_0 = "0"
    DIGIT_1 = "1"
    DIGIT_2 = "2"
    DIGIT_3 = "3"
    DIGIT_4 = "4"
    DIGIT_5 = "5"
    DIGIT_6 = "6"
    DIGIT_7 = "7"
    DIGIT_8 = "8"
    DIGIT_9 = "9"

    # editing / navigation
    SPACE = "Space"
    ENTER = "Enter"
    TAB = "Tab"
    ESCAPE = "Escape"
    BACKSPACE = "Backspace"
    DELETE = "Delete"
    INSERT = "Insert"
    HOME = "Home"
    END = "End"
    PAGE_UP = "PageUp"
    PAGE_DOWN = "PageDown"

    # arrows
    UP = "Up"
    DOWN = "Down"
    LEFT = "Left"
    RIGHT = "Right"

    # numpad
    NUMPAD_0 = "Numpad0"
    NUMPAD_1 = "Numpad1"
    NUMPAD_2 = "Numpad2"
    NUMPAD_3 = "Numpad3"
    NUMPAD_4 = "Numpad4"
    NUMPAD_5 = "Numpad5"
    NUMPAD_6 = "Numpad6"
    NUMPAD_7 = "Numpad7"
    NUMPAD_8 = "Numpad8"
    NUMPAD_9 = "Numpad9"

    @property
    def is_extended(self) -> bool:
        """Function keys are sent with the extended-key flag."""
        return self in _EXTENDED_KEYS


_EXTENDED_KEYS = frozenset(
    {
        KeyCode.F1,
        KeyCode.F2,
        KeyCode.F3,
        KeyCode.F4,
        KeyCode.F5,
        KeyCode.F6,
        KeyCode.F7,
        KeyCode.F8,
        KeyCode.F9,
        KeyCode.F10,
        KeyCode.F11,
        KeyCode.F12,
    }
)


class Modifier(StrEnum):
    """Modifier keys, declared in the order they are pressed."""

    CTRL = "ctrl"
    ALT = "alt"
    SHIFT = "shift"
    WIN = "win"

    @property
    def label(self) -> str:
        return self.value.capitalize()


def ordered_modifiers(modifiers: frozenset[Modifier] | set[Modifier]) -> list[Modifier]:
    """Return modifiers in canonical press order (Ctrl, Alt, Shift, Win)."""
    return [mod for mod in Modifier if mod in modifiers]


@dataclass(frozen=True)
class KeySignal:
    """One atomic key transition handed to a transport."""

    key: KeyCode | Modifier
    pressed: bool  # True = down, False = up

    @property
    def extended(self) -> bool:
        return isinstance(self.key, KeyCode) and self.key.is_extended
