"""Padmap configuration - Pydantic v2 based."""

from __future__ import annotations

import logging
import os
import tempfile
import tomllib
from pathlib import Path
from typing import Annotated

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from padmap.mapping.rule import MappingRule

logger = logging.getLogger(__name__)


class ControllerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    device_path: str = ""
    """Path to evdev device. Empty string = auto-detect."""
    device_index: Annotated[int, Field(ge=0, le=3)] = 0
    """Controller slot stamped on every event."""
    grab: bool = False
    """Exclusively grab the device (prevents events leaking to other apps)."""
    poll_interval_ms: Annotated[int, Field(ge=1, le=1000)] = 10
    """Sampling period; 10 ms = 100 Hz."""
    queue_size: Annotated[int, Field(ge=1, le=4096)] = 64
    """Pending events kept before new ones are dropped."""


class OutputConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    device_name: Annotated[str, Field(min_length=1)] = "padmap virtual keyboard"
    """Name of the uinput keyboard used to inject keys."""


class AppConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    controller: ControllerConfig = Field(default_factory=ControllerConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    rules: list[MappingRule] = Field(default_factory=list)
    """Mapping rules in priority order."""

    @field_validator("rules")
    @classmethod
    def rule_ids_unique(cls, v: list[MappingRule]) -> list[MappingRule]:
        seen: set[str] = set()
        for rule in v:
            if rule.id in seen:
                raise ValueError(f"Duplicate rule id '{rule.id}'.")
            seen.add(rule.id)
        return v

    @classmethod
    def load(cls, path: Path | None = None) -> AppConfig:
        """Load config from TOML file. Uses defaults if file not found.

        An unreadable file is renamed to ``<name>.backup`` and defaults are
        returned.
        """
        from padmap.paths import default_config_path

        config_path = path or default_config_path()
        if not config_path.exists():
            return cls()

        try:
            with config_path.open("rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            backup = config_path.with_name(config_path.name + ".backup")
            logger.warning("Config %s is corrupt (%s); moved to %s.", config_path, e, backup)
            config_path.replace(backup)
            return cls()

        return cls.model_validate(data)

    @classmethod
    def load_with_override(
        cls,
        base: Path | None = None,
        override: Path | None = None,
    ) -> AppConfig:
        """Load base config, then merge override TOML on top."""
        from padmap.paths import default_config_path

        base_path = base or default_config_path()
        base_data: dict[str, object] = {}
        if base_path.exists():
            with base_path.open("rb") as f:
                base_data = tomllib.load(f)

        if override and override.exists():
            with override.open("rb") as f:
                override_data = tomllib.load(f)
            base_data = _deep_merge(base_data, override_data)

        return cls.model_validate(base_data)

    def to_toml_data(self) -> dict[str, object]:
        return self.model_dump(mode="json")

    def save(self, path: Path | None = None) -> Path:
        """Write the whole config as TOML. Returns the path written.

        The file is written next to the target and renamed over it; a crash
        mid-write leaves the previous config intact.
        """
        from padmap.paths import default_config_path

        target = path or default_config_path()
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=target.parent, prefix=f".{target.name}.", suffix=".tmp"
        )
        tmp = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                tomli_w.dump(self.to_toml_data(), f)
            os.replace(tmp, target)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        return target

    @staticmethod
    def save_rules(rules: list[MappingRule], path: Path | None = None) -> Path:
        """Replace only the rule list in the config file, keeping other settings."""
        from padmap.paths import default_config_path

        target = path or default_config_path()
        try:
            current = AppConfig.load(target)
        except ValidationError as e:
            logger.warning("Existing config %s is invalid (%s); rewriting it.", target, e)
            current = AppConfig()
        updated = current.model_copy(update={"rules": list(rules)})
        return updated.save(target)


def _deep_merge(base: dict[str, object], override: dict[str, object]) -> dict[str, object]:
    """Recursively merge override into base."""
    result: dict[str, object] = dict(base)
    for key, value in override.items():
        base_value = result.get(key)
        if isinstance(base_value, dict) and isinstance(value, dict):
            result[key] = _deep_merge(base_value, value)
        else:
            result[key] = value
    return result
