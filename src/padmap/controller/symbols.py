"""Input symbol enum, XInput button masks and evdev code mappings."""

from __future__ import annotations

from enum import StrEnum


class InputSymbol(StrEnum):
    """All logical controller inputs, in intra-tick priority order.

    Digital buttons come first, then triggers treated as buttons, then the
    eight stick directions.
    """

    A = "A"
    B = "B"
    X = "X"
    Y = "Y"
    LB = "LB"
    RB = "RB"
    MENU = "menu"
    VIEW = "view"
    XBOX = "xbox"
    SHARE = "share"
    LS = "LS"  # Left stick click
    RS = "RS"  # Right stick click
    DPAD_UP = "dpad_up"
    DPAD_DOWN = "dpad_down"
    DPAD_LEFT = "dpad_left"
    DPAD_RIGHT = "dpad_right"
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"
    P4 = "P4"

    LT = "LT"
    RT = "RT"

    LEFT_STICK_UP = "left_stick_up"
    LEFT_STICK_DOWN = "left_stick_down"
    LEFT_STICK_LEFT = "left_stick_left"
    LEFT_STICK_RIGHT = "left_stick_right"
    RIGHT_STICK_UP = "right_stick_up"
    RIGHT_STICK_DOWN = "right_stick_down"
    RIGHT_STICK_LEFT = "right_stick_left"
    RIGHT_STICK_RIGHT = "right_stick_right"

    @property
    def label(self) -> str:
        """Human readable name."""
        return _LABELS.get(self, self.value)

    def is_button(self) -> bool:
        return self in BUTTON_MASKS

    def is_trigger(self) -> bool:
        return self in TRIGGER_SYMBOLS

    def is_stick_direction(self) -> bool:
        return self in STICK_SYMBOLS

    def is_paddle(self) -> bool:
        return self in PADDLE_SYMBOLS


# Pressed iff trigger value (0-255) is strictly above this.
TRIGGER_THRESHOLD = 128

# Stick direction active iff axis value is beyond +/- this.
STICK_THRESHOLD = 16384

# Digital button -> bit in RawState.buttons (XInput layout, paddles above 16 bits)
BUTTON_MASKS: dict[InputSymbol, int] = {
    InputSymbol.A: 0x1000,
    InputSymbol.B: 0x2000,
    InputSymbol.X: 0x4000,
    InputSymbol.Y: 0x8000,
    InputSymbol.LB: 0x0100,
    InputSymbol.RB: 0x0200,
    InputSymbol.MENU: 0x0010,
    InputSymbol.VIEW: 0x0020,
    InputSymbol.XBOX: 0x0400,
    InputSymbol.SHARE: 0x0800,
    InputSymbol.LS: 0x0040,
    InputSymbol.RS: 0x0080,
    InputSymbol.DPAD_UP: 0x0001,
    InputSymbol.DPAD_DOWN: 0x0002,
    InputSymbol.DPAD_LEFT: 0x0004,
    InputSymbol.DPAD_RIGHT: 0x0008,
    InputSymbol.P1: 0x40000,
    InputSymbol.P2: 0x80000,
    InputSymbol.P3: 0x100000,
    InputSymbol.P4: 0x200000,
}

TRIGGER_SYMBOLS: tuple[InputSymbol, ...] = (InputSymbol.LT, InputSymbol.RT)

STICK_SYMBOLS: tuple[InputSymbol, ...] = (
    InputSymbol.LEFT_STICK_UP,
    InputSymbol.LEFT_STICK_DOWN,
    InputSymbol.LEFT_STICK_LEFT,
    InputSymbol.LEFT_STICK_RIGHT,
    InputSymbol.RIGHT_STICK_UP,
    InputSymbol.RIGHT_STICK_DOWN,
    InputSymbol.RIGHT_STICK_LEFT,
    InputSymbol.RIGHT_STICK_RIGHT,
)

PADDLE_SYMBOLS: tuple[InputSymbol, ...] = (
    InputSymbol.P1,
    InputSymbol.P2,
    InputSymbol.P3,
    InputSymbol.P4,
)

# Buttons found on every standard pad (no Elite paddles, no guide/share)
STANDARD_SYMBOLS: tuple[InputSymbol, ...] = (
    InputSymbol.A,
    InputSymbol.B,
    InputSymbol.X,
    InputSymbol.Y,
    InputSymbol.LB,
    InputSymbol.RB,
    InputSymbol.LT,
    InputSymbol.RT,
    InputSymbol.MENU,
    InputSymbol.VIEW,
    InputSymbol.LS,
    InputSymbol.RS,
    InputSymbol.DPAD_UP,
    InputSymbol.DPAD_DOWN,
    InputSymbol.DPAD_LEFT,
    InputSymbol.DPAD_RIGHT,
)

_LABELS: dict[InputSymbol, str] = {
    InputSymbol.MENU: "Menu",
    InputSymbol.VIEW: "View",
    InputSymbol.XBOX: "Xbox",
    InputSymbol.SHARE: "Share",
    InputSymbol.LS: "LS (click)",
    InputSymbol.RS: "RS (click)",
    InputSymbol.DPAD_UP: "D-Pad ↑",
    InputSymbol.DPAD_DOWN: "D-Pad ↓",
    InputSymbol.DPAD_LEFT: "D-Pad ←",
    InputSymbol.DPAD_RIGHT: "D-Pad →",
    InputSymbol.P1: "P1 (upper left paddle)",
    InputSymbol.P2: "P2 (upper right paddle)",
    InputSymbol.P3: "P3 (lower left paddle)",
    InputSymbol.P4: "P4 (lower right paddle)",
    InputSymbol.LEFT_STICK_UP: "Left stick ↑",
    InputSymbol.LEFT_STICK_DOWN: "Left stick ↓",
    InputSymbol.LEFT_STICK_LEFT: "Left stick ←",
    InputSymbol.LEFT_STICK_RIGHT: "Left stick →",
    InputSymbol.RIGHT_STICK_UP: "Right stick ↑",
    InputSymbol.RIGHT_STICK_DOWN: "Right stick ↓",
    InputSymbol.RIGHT_STICK_LEFT: "Right stick ←",
    InputSymbol.RIGHT_STICK_RIGHT: "Right stick →",
}

# evdev key code -> button symbol
# Standard Linux gamepad codes as reported by xpad / xone
BUTTON_CODE_MAP: dict[int, InputSymbol] = {
    304: InputSymbol.A,  # BTN_SOUTH
    305: InputSymbol.B,  # BTN_EAST
    307: InputSymbol.X,  # BTN_NORTH (xpad reports X here)
    308: InputSymbol.Y,  # BTN_WEST
    310: InputSymbol.LB,  # BTN_TL
    311: InputSymbol.RB,  # BTN_TR
    314: InputSymbol.VIEW,  # BTN_SELECT
    315: InputSymbol.MENU,  # BTN_START
    316: InputSymbol.XBOX,  # BTN_MODE
    317: InputSymbol.LS,  # BTN_THUMBL
    318: InputSymbol.RS,  # BTN_THUMBR
    167: InputSymbol.SHARE,  # KEY_RECORD
    544: InputSymbol.DPAD_UP,  # BTN_DPAD_UP (pads without a HAT)
    545: InputSymbol.DPAD_DOWN,
    546: InputSymbol.DPAD_LEFT,
    547: InputSymbol.DPAD_RIGHT,
    708: InputSymbol.P1,  # BTN_TRIGGER_HAPPY5
    709: InputSymbol.P2,  # BTN_TRIGGER_HAPPY6
    710: InputSymbol.P3,  # BTN_TRIGGER_HAPPY7
    711: InputSymbol.P4,  # BTN_TRIGGER_HAPPY8
}

# evdev HAT (dpad) value -> symbol or None (center)
DPAD_X_MAP: dict[int, InputSymbol | None] = {
    -1: InputSymbol.DPAD_LEFT,
    0: None,
    1: InputSymbol.DPAD_RIGHT,
}

DPAD_Y_MAP: dict[int, InputSymbol | None] = {
    -1: InputSymbol.DPAD_UP,
    0: None,
    1: InputSymbol.DPAD_DOWN,
}
