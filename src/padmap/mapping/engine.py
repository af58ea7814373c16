"""Dispatch engine: resolves controller events against the rule table."""

from __future__ import annotations

import logging
from collections.abc import Callable

from padmap.controller.poller import ButtonEvent
from padmap.controller.symbols import InputSymbol
from padmap.keyboard.sink import KeyboardSink
from padmap.keyboard.transport import OutputEmissionError
from padmap.mapping.rule import ForwardTarget, KeyboardTarget, MappingRule
from padmap.mapping.table import RuleTable

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[Exception], None]

# Symbols currently being resolved through forward rules, one set per event
RecursionGuard = set[InputSymbol]


class DispatchEngine:
    """Drives the keyboard sink from button events.

    Keyboard rules press or release their keys. Forward rules act as if
    their targets had been pressed or released, recursing through chains of
    forward rules; a symbol already being resolved in the current event is
    skipped, so cyclic rule graphs terminate and the cyclic edge is dropped.

    Output failures are logged and reported to ``on_error`` but never raised;
    the remaining targets and later events are still processed.
    """

    def __init__(
        self,
        table: RuleTable,
        sink: KeyboardSink,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self._table = table
        self._sink = sink
        self._on_error = on_error

    def set_error_callback(self, callback: ErrorCallback | None) -> None:
        self._on_error = callback

    def dispatch(self, event: ButtonEvent) -> None:
        """Resolve one event. Each call gets its own recursion guard."""
        guard: RecursionGuard = set()
        self._resolve(event.symbol, event.pressed, guard)

    # --- Internal ---

    def _resolve(self, symbol: InputSymbol, pressed: bool, guard: RecursionGuard) -> None:
        if symbol in guard:
            logger.debug("Cycle break at %s", symbol)
            return

        rule = self._table.find_enabled_by_source(symbol)
        if rule is None:
            return

        if isinstance(rule.target, KeyboardTarget):
            self._emit(rule, rule.target, pressed)
        else:
            self._forward(rule, rule.target, pressed, guard)

    def _forward(
        self,
        rule: MappingRule,
        target: ForwardTarget,
        pressed: bool,
        guard: RecursionGuard,
    ) -> None:
        guard.add(rule.source)
        try:
            for symbol in target.targets:
                target_rule = self._table.find_enabled_by_source(symbol, exclude_id=rule.id)
                if target_rule is None:
                    continue

                if isinstance(target_rule.target, KeyboardTarget):
                    self._emit(target_rule, target_rule.target, pressed)
                elif symbol in guard:
                    logger.debug("Cycle break: %s -> %s", rule.source, symbol)
                else:
                    guard.add(symbol)
                    try:
                        self._forward(target_rule, target_rule.target, pressed, guard)
                    finally:
                        guard.discard(symbol)
        finally:
            guard.discard(rule.source)

    def _emit(self, rule: MappingRule, target: KeyboardTarget, pressed: bool) -> None:
        try:
            if pressed:
                self._sink.press_keys(target.keys, target.modifiers)
            else:
                self._sink.release_keys(target.keys, target.modifiers)
        except OutputEmissionError as e:
            logger.warning("Output for rule %s failed: %s", rule.id, e)
            if self._on_error is not None:
                self._on_error(e)
