"""Mapping rules - Pydantic v2 based."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from padmap.controller.symbols import InputSymbol
from padmap.keyboard.keys import KeyCode, Modifier, ordered_modifiers


class RuleError(Exception):
    """Raised when a rule mutation is rejected."""


class ConflictingSourceRule(RuleError):
    """Raised when another enabled rule already claims the same source."""

    def __init__(self, source: InputSymbol) -> None:
        super().__init__(f"Source {source.label!r} already has a mapping rule.")
        self.source = source


class SelfTargetingRule(RuleError):
    """Raised when a forward rule lists its own source as a target."""

    def __init__(self, source: InputSymbol) -> None:
        super().__init__(f"Cannot forward {source.label!r} to itself.")
        self.source = source


class KeyboardTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["keyboard"] = "keyboard"
    keys: tuple[KeyCode, ...] = ()
    """Keys held while the source is held, pressed in this order."""
    modifiers: frozenset[Modifier] = frozenset()

    @model_validator(mode="after")
    def not_empty(self) -> KeyboardTarget:
        if not self.keys and not self.modifiers:
            raise ValueError("Keyboard target needs at least one key or modifier.")
        return self

    def describe(self) -> str:
        parts = [mod.label for mod in ordered_modifiers(self.modifiers)]
        parts += [key.value for key in self.keys]
        return "+".join(parts)


class ForwardTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["forward"] = "forward"
    targets: Annotated[tuple[InputSymbol, ...], Field(min_length=1)]
    """Inputs treated as pressed while the source is held."""

    @field_validator("targets")
    @classmethod
    def targets_unique(cls, v: tuple[InputSymbol, ...]) -> tuple[InputSymbol, ...]:
        if len(set(v)) != len(v):
            raise ValueError("Forward targets must not repeat.")
        return v

    def describe(self) -> str:
        return "+".join(symbol.label for symbol in self.targets)


Target = Annotated[KeyboardTarget | ForwardTarget, Field(discriminator="kind")]


class MappingRule(BaseModel):
    """One source input mapped to keyboard output or to other inputs.

    Rules are immutable; enabling, disabling or editing produces a new rule
    with the same id.
    """

    model_config = ConfigDict(frozen=True)

    id: Annotated[str, Field(min_length=1)]
    name: str = ""
    source: InputSymbol
    target: Target
    enabled: bool = True

    @property
    def is_keyboard(self) -> bool:
        return isinstance(self.target, KeyboardTarget)

    @property
    def is_forward(self) -> bool:
        return isinstance(self.target, ForwardTarget)

    @property
    def targets_itself(self) -> bool:
        return isinstance(self.target, ForwardTarget) and self.source in self.target.targets

    def with_enabled(self, enabled: bool) -> MappingRule:
        return self.model_copy(update={"enabled": enabled})

    def describe(self) -> str:
        arrow = "→ 🎮" if self.is_forward else "→ ⌨"
        text = f"{self.source.label} {arrow} {self.target.describe()}"
        if self.name:
            text = f"{self.name}: {text}"
        if not self.enabled:
            text += " (disabled)"
        return text

    @classmethod
    def keyboard(
        cls,
        rule_id: str,
        source: InputSymbol,
        keys: list[KeyCode] | tuple[KeyCode, ...],
        modifiers: frozenset[Modifier] | set[Modifier] = frozenset(),
        name: str = "",
    ) -> MappingRule:
        """Build a rule that holds keys while the source is held."""
        return cls(
            id=rule_id,
            name=name,
            source=source,
            target=KeyboardTarget(keys=tuple(keys), modifiers=frozenset(modifiers)),
        )

    @classmethod
    def forward(
        cls,
        rule_id: str,
        source: InputSymbol,
        targets: list[InputSymbol] | tuple[InputSymbol, ...],
        name: str = "",
    ) -> MappingRule:
        """Build a rule that acts as if the target inputs were pressed."""
        return cls(
            id=rule_id, name=name, source=source, target=ForwardTarget(targets=tuple(targets))
        )
