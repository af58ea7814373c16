"""Fixed-rate controller poller with edge detection."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import TYPE_CHECKING

from padmap.controller.source import DeviceStateSource, DeviceUnavailable, RawState
from padmap.controller.symbols import (
    BUTTON_MASKS,
    STICK_SYMBOLS,
    STICK_THRESHOLD,
    TRIGGER_THRESHOLD,
    InputSymbol,
)

if TYPE_CHECKING:
    from padmap.config import ControllerConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ButtonEvent:
    """A press or release of one input symbol."""

    symbol: InputSymbol
    pressed: bool  # True = pressed, False = released
    device_id: int = 0


class EdgeDetector:
    """Turns successive RawState snapshots into press/release edges.

    Events of one snapshot are ordered buttons, then triggers, then stick
    directions, each group in InputSymbol order.
    """

    def __init__(self, device_id: int = 0) -> None:
        self._device_id = device_id
        self._prev_buttons = 0
        self._prev_lt = False
        self._prev_rt = False
        self._prev_sticks: dict[InputSymbol, bool] = {}
        self.reset()

    def reset(self) -> None:
        """Forget the previous snapshot; everything counts as released."""
        self._prev_buttons = 0
        self._prev_lt = False
        self._prev_rt = False
        self._prev_sticks = dict.fromkeys(STICK_SYMBOLS, False)

    def feed(self, state: RawState) -> list[ButtonEvent]:
        events: list[ButtonEvent] = []
        self._diff_buttons(state, events)
        self._diff_triggers(state, events)
        self._diff_sticks(state, events)
        return events

    def _emit(self, events: list[ButtonEvent], symbol: InputSymbol, pressed: bool) -> None:
        events.append(ButtonEvent(symbol=symbol, pressed=pressed, device_id=self._device_id))

    def _diff_buttons(self, state: RawState, events: list[ButtonEvent]) -> None:
        changed = state.buttons ^ self._prev_buttons
        if changed:
            for symbol, mask in BUTTON_MASKS.items():
                if changed & mask:
                    self._emit(events, symbol, bool(state.buttons & mask))
        self._prev_buttons = state.buttons

    def _diff_triggers(self, state: RawState, events: list[ButtonEvent]) -> None:
        lt = state.left_trigger > TRIGGER_THRESHOLD
        if lt != self._prev_lt:
            self._emit(events, InputSymbol.LT, lt)
            self._prev_lt = lt

        rt = state.right_trigger > TRIGGER_THRESHOLD
        if rt != self._prev_rt:
            self._emit(events, InputSymbol.RT, rt)
            self._prev_rt = rt

    def _diff_sticks(self, state: RawState, events: list[ButtonEvent]) -> None:
        current = {
            InputSymbol.LEFT_STICK_UP: state.thumb_ly > STICK_THRESHOLD,
            InputSymbol.LEFT_STICK_DOWN: state.thumb_ly < -STICK_THRESHOLD,
            InputSymbol.LEFT_STICK_LEFT: state.thumb_lx < -STICK_THRESHOLD,
            InputSymbol.LEFT_STICK_RIGHT: state.thumb_lx > STICK_THRESHOLD,
            InputSymbol.RIGHT_STICK_UP: state.thumb_ry > STICK_THRESHOLD,
            InputSymbol.RIGHT_STICK_DOWN: state.thumb_ry < -STICK_THRESHOLD,
            InputSymbol.RIGHT_STICK_LEFT: state.thumb_rx < -STICK_THRESHOLD,
            InputSymbol.RIGHT_STICK_RIGHT: state.thumb_rx > STICK_THRESHOLD,
        }
        for symbol in STICK_SYMBOLS:
            if current[symbol] != self._prev_sticks[symbol]:
                self._emit(events, symbol, current[symbol])
                self._prev_sticks[symbol] = current[symbol]


class Poller:
    """Samples a DeviceStateSource at a fixed rate and queues edge events.

    Usage::

        poller = Poller(source, config)
        await poller.start()
        async for event in poller.events():
            ...
        await poller.stop()

    Or use as async context manager::

        async with Poller(source, config) as poller:
            async for event in poller.events():
                ...

    The queue is bounded; when it is full new events are dropped instead of
    delaying the next tick.
    """

    def __init__(self, source: DeviceStateSource, config: ControllerConfig) -> None:
        self._source = source
        self._config = config
        self._detector = EdgeDetector(device_id=config.device_index)
        self._capacity = config.queue_size
        # One extra slot so the closing sentinel always fits
        self._queue: asyncio.Queue[ButtonEvent | None] = asyncio.Queue(maxsize=self._capacity + 1)
        self._poll_task: asyncio.Task[None] | None = None
        self._running = False
        self._dropped = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def dropped(self) -> int:
        """Number of events dropped because the queue was full."""
        return self._dropped

    async def start(self) -> None:
        """Open the source and start polling. Raises DeviceUnavailable."""
        if self._running:
            return

        self._source.open()

        self._queue = asyncio.Queue(maxsize=self._capacity + 1)
        self._detector.reset()
        self._dropped = 0

        self._running = True
        self._poll_task = asyncio.create_task(self._poll_loop(), name="controller-poller")
        logger.info("Polling controller every %d ms.", self._config.poll_interval_ms)

    async def stop(self) -> None:
        """Stop polling and close the event stream."""
        if not self._running:
            return
        self._running = False

        if self._poll_task is not None:
            self._poll_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._poll_task
            self._poll_task = None

        self._queue.put_nowait(None)  # sentinel
        self._source.close()
        if self._dropped:
            logger.warning("Dropped %d controller events (queue full).", self._dropped)

    async def events(self) -> AsyncIterator[ButtonEvent]:
        """Async iterator yielding edge events until the poller is stopped."""
        queue = self._queue
        while True:
            event = await queue.get()
            if event is None:
                break
            yield event

    async def __aenter__(self) -> Poller:
        await self.start()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.stop()

    # --- Internal ---

    async def _poll_loop(self) -> None:
        loop = asyncio.get_running_loop()
        interval = self._config.poll_interval_ms / 1000
        deadline = loop.time()
        while True:
            deadline += interval
            delay = deadline - loop.time()
            if delay < 0:
                # Fell behind; resume the cadence from now instead of bursting
                deadline = loop.time()
                delay = 0
            await asyncio.sleep(delay)
            self.tick()

    def tick(self) -> None:
        """Take one sample and publish its edges."""
        try:
            state = self._source.sample()
        except DeviceUnavailable:
            return
        except Exception as e:
            logger.debug("Controller sample failed: %s", e)
            return

        for event in self._detector.feed(state):
            self._publish(event)

    def _publish(self, event: ButtonEvent) -> None:
        if self._queue.qsize() >= self._capacity:
            self._dropped += 1
            logger.debug("Event queue full, dropping %s", event)
            return
        self._queue.put_nowait(event)
