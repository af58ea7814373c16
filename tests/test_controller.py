"""Tests for controller symbols, edge detection, polling and evdev sampling."""

from __future__ import annotations

import asyncio
import random
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import evdev
import pytest

from padmap.config import ControllerConfig
from padmap.controller.poller import ButtonEvent, EdgeDetector, Poller
from padmap.controller.source import DeviceUnavailable, EvdevStateSource, RawState, find_gamepad
from padmap.controller.symbols import (
    BUTTON_MASKS,
    STICK_THRESHOLD,
    TRIGGER_THRESHOLD,
    InputSymbol,
)


def _buttons(*symbols: InputSymbol) -> int:
    mask = 0
    for symbol in symbols:
        mask |= BUTTON_MASKS[symbol]
    return mask


def test_input_symbol_enum():
    assert InputSymbol.A == "A"
    assert InputSymbol.DPAD_UP == "dpad_up"
    assert InputSymbol.LEFT_STICK_UP.label == "Left stick ↑"
    assert InputSymbol.LB.label == "LB"


def test_symbol_groups():
    assert InputSymbol.LT.is_trigger()
    assert not InputSymbol.LT.is_button()
    assert InputSymbol.P3.is_paddle()
    assert InputSymbol.P3.is_button()
    assert InputSymbol.RIGHT_STICK_LEFT.is_stick_direction()
    assert len(InputSymbol) == 30


def test_button_masks_are_distinct_bits():
    masks = list(BUTTON_MASKS.values())
    assert len(set(masks)) == len(masks)
    for mask in masks:
        assert mask & (mask - 1) == 0


# --- EdgeDetector ---


def test_press_and_release_edges():
    detector = EdgeDetector()
    pressed = RawState(buttons=_buttons(InputSymbol.A))

    assert detector.feed(pressed) == [ButtonEvent(InputSymbol.A, True)]
    assert detector.feed(pressed) == []  # still held, no repeat
    assert detector.feed(RawState()) == [ButtonEvent(InputSymbol.A, False)]
    assert detector.feed(RawState()) == []


def test_first_snapshot_after_reset_reports_presses():
    detector = EdgeDetector()
    state = RawState(buttons=_buttons(InputSymbol.B))
    detector.feed(state)

    detector.reset()
    assert detector.feed(state) == [ButtonEvent(InputSymbol.B, True)]


def test_events_ordered_buttons_triggers_sticks():
    detector = EdgeDetector()
    state = RawState(
        buttons=_buttons(InputSymbol.DPAD_UP, InputSymbol.A),
        right_trigger=255,
        left_trigger=200,
        thumb_lx=-20000,
        thumb_ry=20000,
    )
    symbols = [event.symbol for event in detector.feed(state)]
    assert symbols == [
        InputSymbol.A,
        InputSymbol.DPAD_UP,
        InputSymbol.LT,
        InputSymbol.RT,
        InputSymbol.LEFT_STICK_LEFT,
        InputSymbol.RIGHT_STICK_UP,
    ]


def test_trigger_threshold_is_strict():
    detector = EdgeDetector()
    assert detector.feed(RawState(left_trigger=TRIGGER_THRESHOLD)) == []
    assert detector.feed(RawState(left_trigger=TRIGGER_THRESHOLD + 1)) == [
        ButtonEvent(InputSymbol.LT, True)
    ]
    assert detector.feed(RawState(left_trigger=TRIGGER_THRESHOLD)) == [
        ButtonEvent(InputSymbol.LT, False)
    ]


def test_stick_threshold_is_strict():
    detector = EdgeDetector()
    assert detector.feed(RawState(thumb_ly=STICK_THRESHOLD)) == []
    assert detector.feed(RawState(thumb_ly=-STICK_THRESHOLD)) == []
    assert detector.feed(RawState(thumb_ly=-STICK_THRESHOLD - 1)) == [
        ButtonEvent(InputSymbol.LEFT_STICK_DOWN, True)
    ]


def test_stick_flip_releases_then_presses():
    detector = EdgeDetector()
    detector.feed(RawState(thumb_rx=30000))
    events = detector.feed(RawState(thumb_rx=-30000))
    assert events == [
        ButtonEvent(InputSymbol.RIGHT_STICK_LEFT, True),
        ButtonEvent(InputSymbol.RIGHT_STICK_RIGHT, False),
    ]


def test_random_states_never_duplicate_edges():
    rng = random.Random(1234)
    masks = list(BUTTON_MASKS.values())
    detector = EdgeDetector()
    held: dict[InputSymbol, int] = {}

    for _ in range(2000):
        state = RawState(
            buttons=sum(mask for mask in masks if rng.random() < 0.3),
            left_trigger=rng.randint(0, 255),
            right_trigger=rng.randint(0, 255),
            thumb_lx=rng.randint(-32768, 32767),
            thumb_ly=rng.randint(-32768, 32767),
            thumb_rx=rng.randint(-32768, 32767),
            thumb_ry=rng.randint(-32768, 32767),
        )
        for event in detector.feed(state):
            held[event.symbol] = held.get(event.symbol, 0) + (1 if event.pressed else -1)
            assert held[event.symbol] in (0, 1)


def test_events_carry_device_id():
    detector = EdgeDetector(device_id=2)
    (event,) = detector.feed(RawState(buttons=_buttons(InputSymbol.Y)))
    assert event.device_id == 2


# --- Poller ---


def _drain(poller: Poller) -> list[ButtonEvent]:
    events = []
    while not poller._queue.empty():
        event = poller._queue.get_nowait()
        if event is not None:
            events.append(event)
    return events


def test_tick_publishes_edges(source):
    poller = Poller(source, ControllerConfig())
    source.state = RawState(buttons=_buttons(InputSymbol.X))
    poller.tick()
    poller.tick()
    assert _drain(poller) == [ButtonEvent(InputSymbol.X, True)]


def test_tick_skips_when_device_unavailable(source):
    poller = Poller(source, ControllerConfig())
    source.available = False
    poller.tick()
    assert _drain(poller) == []

    source.available = True
    source.state = RawState(buttons=_buttons(InputSymbol.A))
    poller.tick()
    assert _drain(poller) == [ButtonEvent(InputSymbol.A, True)]


def test_tick_drops_events_when_queue_full(source):
    poller = Poller(source, ControllerConfig(queue_size=2))
    source.state = RawState(buttons=_buttons(InputSymbol.A, InputSymbol.B, InputSymbol.X))
    poller.tick()

    assert poller.dropped == 1
    assert [e.symbol for e in _drain(poller)] == [InputSymbol.A, InputSymbol.B]


@pytest.mark.asyncio
async def test_poller_start_stop(source):
    poller = Poller(source, ControllerConfig(poll_interval_ms=1))
    await poller.start()
    assert poller.running
    assert source.opened == 1

    source.state = RawState(buttons=_buttons(InputSymbol.RB))
    await asyncio.sleep(0.05)
    await poller.stop()
    assert not poller.running
    assert source.closed == 1

    events = [event async for event in poller.events()]
    assert events == [ButtonEvent(InputSymbol.RB, True)]


@pytest.mark.asyncio
async def test_poller_restart_resets_state(source):
    poller = Poller(source, ControllerConfig(poll_interval_ms=1000))
    source.state = RawState(buttons=_buttons(InputSymbol.A))

    async with poller:
        poller.tick()
    assert [event async for event in poller.events()] == [ButtonEvent(InputSymbol.A, True)]

    async with poller:
        poller.tick()
    assert [event async for event in poller.events()] == [ButtonEvent(InputSymbol.A, True)]


@pytest.mark.asyncio
async def test_poller_start_fails_without_device(source):
    source.available = False
    poller = Poller(source, ControllerConfig())
    with pytest.raises(DeviceUnavailable):
        await poller.start()
    assert not poller.running


@pytest.mark.asyncio
async def test_poller_stop_with_full_queue(source):
    poller = Poller(source, ControllerConfig(queue_size=1, poll_interval_ms=1000))
    await poller.start()
    source.state = RawState(buttons=_buttons(InputSymbol.A, InputSymbol.B))
    poller.tick()
    await poller.stop()

    events = [event async for event in poller.events()]
    assert events == [ButtonEvent(InputSymbol.A, True)]


# --- EvdevStateSource ---


def _mock_device(active: list[int], values: dict[int, int]) -> MagicMock:
    ecodes = evdev.ecodes
    ranges = {
        ecodes.ABS_X: (-32768, 32767),
        ecodes.ABS_Y: (-32768, 32767),
        ecodes.ABS_Z: (0, 1023),
        ecodes.ABS_RZ: (0, 1023),
        ecodes.ABS_HAT0X: (-1, 1),
        ecodes.ABS_HAT0Y: (-1, 1),
    }
    device = MagicMock()
    device.name = "Mock Controller"
    device.capabilities.return_value = {
        ecodes.EV_ABS: [
            (code, SimpleNamespace(min=low, max=high)) for code, (low, high) in ranges.items()
        ]
    }
    device.active_keys.return_value = active
    device.absinfo.side_effect = lambda code: SimpleNamespace(value=values.get(code, 0))
    return device


def test_evdev_source_builds_state():
    ecodes = evdev.ecodes
    device = _mock_device(
        active=[304, 315],
        values={
            ecodes.ABS_X: 12000,
            ecodes.ABS_Y: -32768,
            ecodes.ABS_Z: 1023,
            ecodes.ABS_HAT0X: -1,
        },
    )
    config = ControllerConfig(device_path="/dev/input/event0")

    with patch("evdev.InputDevice", return_value=device):
        src = EvdevStateSource(config)
        src.open()
        state = src.sample()

    assert state.buttons == _buttons(InputSymbol.A, InputSymbol.MENU, InputSymbol.DPAD_LEFT)
    assert state.left_trigger == 255
    assert state.right_trigger == 0
    assert state.thumb_lx == 12000
    assert state.thumb_ly == 32767  # pushed fully up
    assert state.thumb_rx == 0


def test_evdev_source_read_error_drops_device():
    device = _mock_device(active=[], values={})
    config = ControllerConfig(device_path="/dev/input/event0")

    with patch("evdev.InputDevice", return_value=device) as mock_input_device:
        src = EvdevStateSource(config)
        src.open()
        device.active_keys.side_effect = OSError("No such device")
        with pytest.raises(DeviceUnavailable):
            src.sample()
        assert src.device is None

        device.active_keys.side_effect = None
        device.active_keys.return_value = [305]
        assert src.sample().buttons == _buttons(InputSymbol.B)
        assert mock_input_device.call_count == 2


def test_evdev_source_open_without_device():
    with patch("evdev.list_devices", return_value=[]):
        src = EvdevStateSource(ControllerConfig())
        with pytest.raises(DeviceUnavailable):
            src.open()


def test_evdev_source_grab_and_close():
    device = _mock_device(active=[], values={})
    config = ControllerConfig(device_path="/dev/input/event0", grab=True)

    with patch("evdev.InputDevice", return_value=device):
        src = EvdevStateSource(config)
        src.open()
        device.grab.assert_called_once()
        src.close()

    device.ungrab.assert_called_once()
    device.close.assert_called_once()
    assert src.device is None


def test_find_gamepad_skips_non_gamepads():
    keyboard = MagicMock()
    keyboard.capabilities.return_value = {evdev.ecodes.EV_KEY: [evdev.ecodes.KEY_A]}
    gamepad = MagicMock()
    gamepad.capabilities.return_value = {evdev.ecodes.EV_KEY: [evdev.ecodes.BTN_SOUTH]}
    devices = {"/dev/input/event0": keyboard, "/dev/input/event1": gamepad}

    with (
        patch("evdev.list_devices", return_value=list(devices)),
        patch("evdev.InputDevice", side_effect=devices.__getitem__),
    ):
        assert find_gamepad() == "/dev/input/event1"
    keyboard.close.assert_called_once()
    gamepad.close.assert_called_once()


def test_find_gamepad_ignores_unreadable_devices():
    with (
        patch("evdev.list_devices", return_value=["/dev/input/event0"]),
        patch("evdev.InputDevice", side_effect=PermissionError("denied")),
    ):
        assert find_gamepad() is None
