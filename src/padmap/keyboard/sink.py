"""Stateful keyboard output: tracks held keys so presses never double up."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable

from padmap.keyboard.keys import KeyCode, KeySignal, Modifier, ordered_modifiers
from padmap.keyboard.transport import KeyTransport

logger = logging.getLogger(__name__)


class KeyboardSink:
    """Owns the "currently held" keyboard state.

    A key or modifier is recorded as held from the moment its down-signal is
    handed to the transport until its up-signal has been delivered. Pressing
    something already held and releasing something not held are no-ops, so
    every held key gets exactly one down and, eventually, exactly one up.

    A failed press still records the keys as held and a failed release keeps
    them held: the OS may have seen part of the batch, and a later release
    (or ``release_all``) must still be able to let go of them.
    """

    def __init__(self, transport: KeyTransport) -> None:
        self._transport = transport
        self._lock = threading.Lock()
        self._held_keys: dict[KeyCode, None] = {}  # insertion ordered set
        self._held_mods: list[Modifier] = []  # acquisition order

    @property
    def held_keys(self) -> tuple[KeyCode, ...]:
        with self._lock:
            return tuple(self._held_keys)

    @property
    def held_modifiers(self) -> tuple[Modifier, ...]:
        with self._lock:
            return tuple(self._held_mods)

    def press_keys(self, keys: Iterable[KeyCode], modifiers: Iterable[Modifier] = ()) -> None:
        """Press modifiers, then keys, skipping whatever is already held."""
        with self._lock:
            new_mods = [
                mod for mod in ordered_modifiers(set(modifiers)) if mod not in self._held_mods
            ]
            new_keys: list[KeyCode] = []
            for key in keys:
                if key not in self._held_keys and key not in new_keys:
                    new_keys.append(key)

            if not new_mods and not new_keys:
                return

            self._held_mods.extend(new_mods)
            self._held_keys.update(dict.fromkeys(new_keys))
            signals = [KeySignal(mod, True) for mod in new_mods]
            signals += [KeySignal(key, True) for key in new_keys]
            self._transport.send(signals)

    def release_keys(self, keys: Iterable[KeyCode], modifiers: Iterable[Modifier] = ()) -> None:
        """Release held keys, then held modifiers innermost-first."""
        with self._lock:
            up_keys: list[KeyCode] = []
            for key in keys:
                if key in self._held_keys and key not in up_keys:
                    up_keys.append(key)
            wanted = set(modifiers)
            up_mods = [mod for mod in reversed(self._held_mods) if mod in wanted]

            if not up_keys and not up_mods:
                return

            signals = [KeySignal(key, False) for key in up_keys]
            signals += [KeySignal(mod, False) for mod in up_mods]
            self._transport.send(signals)

            for key in up_keys:
                del self._held_keys[key]
            self._held_mods = [mod for mod in self._held_mods if mod not in up_mods]

    def release_all(self) -> None:
        """Release everything recorded as held and clear the state.

        The state is cleared even when the transport fails; the error is
        raised afterwards.
        """
        with self._lock:
            signals = [KeySignal(key, False) for key in reversed(self._held_keys)]
            signals += [KeySignal(mod, False) for mod in reversed(self._held_mods)]
            self._held_keys.clear()
            self._held_mods.clear()
            if not signals:
                return
            logger.debug("Releasing %d held keys.", len(signals))
            self._transport.send(signals)

    def simulate_one_shot(
        self, keys: Iterable[KeyCode], modifiers: Iterable[Modifier] = ()
    ) -> None:
        """Tap a chord: press everything, then release in reverse order.

        Held-state bookkeeping is not touched.
        """
        key_list = list(dict.fromkeys(keys))
        mods = ordered_modifiers(set(modifiers))
        with self._lock:
            down = [KeySignal(mod, True) for mod in mods]
            down += [KeySignal(key, True) for key in key_list]
            if not down:
                return
            self._transport.send(down)

            up = [KeySignal(key, False) for key in reversed(key_list)]
            up += [KeySignal(mod, False) for mod in reversed(mods)]
            self._transport.send(up)

    def tap(self, key: KeyCode) -> None:
        """Press and release a single key."""
        self.simulate_one_shot([key])
