"""Shared fakes for controller input and keyboard output."""

from __future__ import annotations

from collections.abc import Sequence

import pytest

from padmap.controller.source import DeviceStateSource, DeviceUnavailable, RawState
from padmap.keyboard.keys import KeySignal
from padmap.keyboard.transport import KeyTransport, OutputEmissionError


class FakeSource(DeviceStateSource):
    """Returns whatever ``state`` is set to; ``available`` toggles the device."""

    def __init__(self) -> None:
        self.state = RawState()
        self.available = True
        self.opened = 0
        self.closed = 0

    def open(self) -> None:
        if not self.available:
            raise DeviceUnavailable("fake controller unplugged")
        self.opened += 1

    def sample(self) -> RawState:
        if not self.available:
            raise DeviceUnavailable("fake controller unplugged")
        return self.state

    def close(self) -> None:
        self.closed += 1


class RecordingTransport(KeyTransport):
    """Records every batch; raises OutputEmissionError while ``fail`` is set."""

    def __init__(self) -> None:
        self.batches: list[list[KeySignal]] = []
        self.fail = False
        self.closed = False

    def send(self, signals: Sequence[KeySignal]) -> None:
        if self.fail:
            raise OutputEmissionError("injected failure")
        self.batches.append(list(signals))

    @property
    def signals(self) -> list[KeySignal]:
        return [signal for batch in self.batches for signal in batch]

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()
