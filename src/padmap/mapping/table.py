"""Thread-safe ordered rule table."""

from __future__ import annotations

import threading
from collections.abc import Iterable

from padmap.controller.symbols import InputSymbol
from padmap.mapping.rule import MappingRule


class RuleTable:
    """Ordered collection of MappingRule, copy-on-write.

    Rules are immutable and the table only ever swaps one tuple for another,
    so readers never lock and always see whole rules. Writers are serialized
    by a lock. No conflict checking happens here; callers check
    ``has_conflict`` before adding.
    """

    def __init__(self, rules: Iterable[MappingRule] = ()) -> None:
        self._lock = threading.Lock()
        self._rules: tuple[MappingRule, ...] = tuple(rules)

    def __len__(self) -> int:
        return len(self._rules)

    # --- Writers ---

    def add(self, rule: MappingRule) -> None:
        with self._lock:
            self._rules = (*self._rules, rule)

    def remove(self, rule_id: str) -> bool:
        """Remove the rule with this id. Returns False if there was none."""
        with self._lock:
            for i, rule in enumerate(self._rules):
                if rule.id == rule_id:
                    self._rules = self._rules[:i] + self._rules[i + 1 :]
                    return True
            return False

    def replace(self, rule: MappingRule) -> bool:
        """Swap in a new version of the rule with the same id, keeping its position."""
        with self._lock:
            for i, current in enumerate(self._rules):
                if current.id == rule.id:
                    self._rules = (*self._rules[:i], rule, *self._rules[i + 1 :])
                    return True
            return False

    def replace_all(self, rules: Iterable[MappingRule]) -> None:
        new_rules = tuple(rules)
        with self._lock:
            self._rules = new_rules

    def clear(self) -> None:
        with self._lock:
            self._rules = ()

    # --- Readers ---

    def all(self) -> list[MappingRule]:
        """Snapshot of the rules in table order."""
        return list(self._rules)

    def has_conflict(self, source: InputSymbol, exclude_id: str = "") -> bool:
        """True if an enabled rule other than ``exclude_id`` claims ``source``."""
        return any(
            rule.enabled and rule.source == source and rule.id != exclude_id
            for rule in self._rules
        )

    def find_by_source(self, source: InputSymbol) -> MappingRule | None:
        """First rule for ``source``, enabled or not."""
        for rule in self._rules:
            if rule.source == source:
                return rule
        return None

    def find_enabled_by_source(
        self, source: InputSymbol, exclude_id: str = ""
    ) -> MappingRule | None:
        """First enabled rule for ``source`` (table order wins on duplicates)."""
        for rule in self._rules:
            if rule.enabled and rule.source == source and rule.id != exclude_id:
                return rule
        return None

    def find_by_id(self, rule_id: str) -> MappingRule | None:
        for rule in self._rules:
            if rule.id == rule_id:
                return rule
        return None
