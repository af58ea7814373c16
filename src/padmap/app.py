"""Padmap application - wires poller, rule table, dispatch and keyboard together."""

from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from collections.abc import Callable, Iterable
from enum import Enum
from pathlib import Path

from padmap.config import AppConfig
from padmap.controller.poller import Poller
from padmap.controller.source import DeviceStateSource, DeviceUnavailable, EvdevStateSource
from padmap.controller.symbols import InputSymbol
from padmap.keyboard.keys import KeyCode, Modifier
from padmap.keyboard.sink import KeyboardSink
from padmap.keyboard.transport import KeyTransport, OutputEmissionError, UInputTransport
from padmap.mapping.engine import DispatchEngine
from padmap.mapping.rule import ConflictingSourceRule, MappingRule, RuleError, SelfTargetingRule
from padmap.mapping.table import RuleTable

logger = logging.getLogger(__name__)


class State(Enum):
    STOPPED = "stopped"
    RUNNING = "running"


StateCallback = Callable[[State], None]
RulesCallback = Callable[[], None]
ErrorCallback = Callable[[Exception], None]


class App:
    """Main Padmap application.

    Owns the rule table and the Stopped/Running lifecycle. Rule methods are
    plain synchronous calls and may be used from any thread; ``start`` and
    ``stop`` run on the event loop.
    """

    def __init__(
        self,
        config: AppConfig,
        source: DeviceStateSource | None = None,
        transport: KeyTransport | None = None,
        config_path: Path | None = None,
    ) -> None:
        self._config = config
        self._config_path = config_path
        self._table = RuleTable(config.rules)
        self._source = source or EvdevStateSource(config.controller)
        self._transport = transport or UInputTransport(config.output.device_name)
        self._sink = KeyboardSink(self._transport)
        self._engine = DispatchEngine(self._table, self._sink, on_error=self._report_error)
        self._poller = Poller(self._source, config.controller)
        self._consumer: asyncio.Task[None] | None = None
        self._lifecycle_lock = asyncio.Lock()
        # Serializes check-then-write rule mutations and their autosave
        self._rules_lock = threading.RLock()
        self._state = State.STOPPED

        self._on_state_change: StateCallback | None = None
        self._on_rules_change: RulesCallback | None = None
        self._on_error: ErrorCallback | None = None

    @property
    def state(self) -> State:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is State.RUNNING

    @property
    def sink(self) -> KeyboardSink:
        return self._sink

    # --- Hooks ---

    def set_on_state_change(self, callback: StateCallback | None) -> None:
        self._on_state_change = callback

    def set_on_rules_change(self, callback: RulesCallback | None) -> None:
        self._on_rules_change = callback

    def set_on_error(self, callback: ErrorCallback | None) -> None:
        self._on_error = callback

    # --- Lifecycle ---

    async def start(self) -> None:
        """Start mapping. Raises DeviceUnavailable if the controller can't be opened."""
        async with self._lifecycle_lock:
            if self._state is State.RUNNING:
                return

            try:
                await self._poller.start()
            except DeviceUnavailable as e:
                logger.error("Cannot start mapping: %s", e)
                self._report_error(e)
                raise

            self._consumer = asyncio.create_task(self._consume(), name="dispatch-consumer")
            self._set_state(State.RUNNING)
            logger.info("Mapping started with %d rules.", len(self._table))

    async def stop(self) -> None:
        """Stop mapping and release every key still held."""
        async with self._lifecycle_lock:
            if self._state is State.STOPPED:
                return

            try:
                await self._poller.stop()
                if self._consumer is not None:
                    await self._consumer  # drains what the poller already queued
            finally:
                self._consumer = None
                self._release_all()
                self._set_state(State.STOPPED)
            logger.info("Mapping stopped.")

    async def run_until_stopped(self, stop_event: asyncio.Event) -> None:
        """Start, wait for ``stop_event``, then stop."""
        await self.start()
        try:
            await stop_event.wait()
        finally:
            await self.stop()

    # --- Rules ---

    def get_rules(self) -> list[MappingRule]:
        return self._table.all()

    def set_rules(self, rules: Iterable[MappingRule]) -> None:
        """Replace the whole table at once."""
        with self._rules_lock:
            self._table.replace_all(rules)
            self._save_rules()
        self._notify_rules_changed()

    def export_rules(self) -> list[MappingRule]:
        return self._table.all()

    def import_rules(self, rules: Iterable[MappingRule]) -> None:
        """Replace the table with externally loaded rules.

        Duplicate enabled sources are accepted but logged; dispatch then uses
        the first one in table order.
        """
        rule_list = list(rules)
        claimed: set[InputSymbol] = set()
        for rule in rule_list:
            if not rule.enabled:
                continue
            if rule.source in claimed:
                logger.warning("Imported rules map %s more than once.", rule.source.label)
            claimed.add(rule.source)
        self.set_rules(rule_list)

    def has_conflict(self, source: InputSymbol, exclude_id: str = "") -> bool:
        return self._table.has_conflict(source, exclude_id)

    def add_rule(self, rule: MappingRule) -> MappingRule:
        """Add a rule. Raises ConflictingSourceRule / SelfTargetingRule."""
        with self._rules_lock:
            if self._table.find_by_id(rule.id) is not None:
                raise RuleError(f"Rule id '{rule.id}' already exists.")
            self._check_rule(rule)
            self._table.add(rule)
            self._save_rules()
        logger.info("Added rule %s: %s", rule.id, rule.describe())
        self._notify_rules_changed()
        return rule

    def add_keyboard_rule(
        self,
        source: InputSymbol,
        keys: Iterable[KeyCode],
        modifiers: Iterable[Modifier] = (),
        name: str = "",
    ) -> MappingRule:
        rule = MappingRule.keyboard(
            _generate_rule_id(), source, tuple(keys), frozenset(modifiers), name=name
        )
        return self.add_rule(rule)

    def add_forward_rule(
        self,
        source: InputSymbol,
        targets: Iterable[InputSymbol],
        name: str = "",
    ) -> MappingRule:
        rule = MappingRule.forward(_generate_rule_id(), source, tuple(targets), name=name)
        return self.add_rule(rule)

    def remove_rule(self, rule_id: str) -> bool:
        with self._rules_lock:
            removed = self._table.remove(rule_id)
            if removed:
                self._save_rules()
        if removed:
            logger.info("Removed rule %s", rule_id)
            self._notify_rules_changed()
        return removed

    def replace_rule(self, rule: MappingRule) -> MappingRule:
        """Replace the rule with the same id. Raises RuleError if there is none."""
        with self._rules_lock:
            self._replace_locked(rule)
        self._notify_rules_changed()
        return rule

    def set_rule_enabled(self, rule_id: str, enabled: bool) -> MappingRule:
        with self._rules_lock:
            rule = self._table.find_by_id(rule_id)
            if rule is None:
                raise RuleError(f"No rule with id '{rule_id}'.")
            if rule.enabled == enabled:
                return rule
            updated = rule.with_enabled(enabled)
            self._replace_locked(updated)
        self._notify_rules_changed()
        return updated

    # --- Internal ---

    def _replace_locked(self, rule: MappingRule) -> None:
        if self._table.find_by_id(rule.id) is None:
            raise RuleError(f"No rule with id '{rule.id}'.")
        self._check_rule(rule)
        if not self._table.replace(rule):
            raise RuleError(f"No rule with id '{rule.id}'.")
        self._save_rules()

    def _check_rule(self, rule: MappingRule) -> None:
        if rule.targets_itself:
            raise SelfTargetingRule(rule.source)
        if rule.enabled and self._table.has_conflict(rule.source, exclude_id=rule.id):
            raise ConflictingSourceRule(rule.source)

    async def _consume(self) -> None:
        async for event in self._poller.events():
            try:
                self._engine.dispatch(event)
            except Exception as e:
                logger.exception("Error dispatching %s", event)
                self._report_error(e)

    def _release_all(self) -> None:
        try:
            self._sink.release_all()
        except OutputEmissionError as e:
            logger.error("Releasing held keys failed: %s", e)
            self._report_error(e)
        finally:
            self._transport.close()

    def _save_rules(self) -> None:
        if self._config_path is None:
            return
        try:
            AppConfig.save_rules(self._table.all(), self._config_path)
        except OSError as e:
            logger.warning("Could not save rules to %s: %s", self._config_path, e)
            self._report_error(e)

    def _notify_rules_changed(self) -> None:
        if self._on_rules_change is not None:
            _call_hook("rules-change", self._on_rules_change)

    def _set_state(self, state: State) -> None:
        self._state = state
        if self._on_state_change is not None:
            _call_hook("state-change", self._on_state_change, state)

    def _report_error(self, error: Exception) -> None:
        if self._on_error is not None:
            _call_hook("error", self._on_error, error)


def _call_hook(name: str, callback: Callable[..., None], *args: object) -> None:
    """Run a user hook; a failing hook is logged and never reaches the caller."""
    try:
        callback(*args)
    except Exception:
        logger.exception("%s hook failed", name)


def _generate_rule_id() -> str:
    return f"rule_{uuid.uuid4().hex[:12]}"
