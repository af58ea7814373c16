"""Padmap keyboard output subsystem."""

from padmap.keyboard.keys import KeyCode, KeySignal, Modifier
from padmap.keyboard.sink import KeyboardSink
from padmap.keyboard.transport import KeyTransport, OutputEmissionError, UInputTransport

__all__ = [
    "KeyCode",
    "Modifier",
    "KeySignal",
    "KeyTransport",
    "UInputTransport",
    "OutputEmissionError",
    "KeyboardSink",
]
