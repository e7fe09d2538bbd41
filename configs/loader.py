"""Configuration loading and validation utilities for program searches."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from evolution.genome import Rates


class ConfigValidationError(ValueError):
    """Raised when a search config fails validation."""


_REQUIRED_KEYS: tuple[str, ...] = (
    "goal",
    "population_size",
    "genome_length",
)
_OPTIONAL_DEFAULTS: dict[str, Any] = {
    "tape_size": 50,
    "max_ops": 10000,
    "seed": None,
    "workers": None,
    "report_interval": 100,
}
_RATE_KEYS: tuple[str, ...] = ("survival", "mutation", "crossover", "roulette_selection", "rotation")


@dataclass(frozen=True)
class SearchConfig:
    """Validated search configuration container.

    Provides typed field access for the parameters the search consumes and
    dictionary-style access for extra keys carried through from the file.
    """

    goal: str
    population_size: int
    genome_length: int
    tape_size: int = 50
    max_ops: int = 10000
    rates: Rates = field(default_factory=Rates)
    seed: int | None = None
    workers: int | None = None
    report_interval: int = 100
    extras: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Return a configuration value by key.

        Args:
            key: Configuration key name.
            default: Value to return if key does not exist.

        Returns:
            Value associated with ``key`` or ``default``.
        """
        if key != "extras" and hasattr(self, key):
            return getattr(self, key)
        return self.extras.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        """Return a full dictionary view of the configuration."""
        payload = {
            "goal": self.goal,
            "population_size": self.population_size,
            "genome_length": self.genome_length,
            "tape_size": self.tape_size,
            "max_ops": self.max_ops,
            "rates": asdict(self.rates),
            "seed": self.seed,
            "workers": self.workers,
            "report_interval": self.report_interval,
        }
        payload.update(self.extras)
        return payload


class ConfigLoader:
    """Load and validate search configuration files (YAML or JSON)."""

    @staticmethod
    def load(path: str | Path) -> SearchConfig:
        """Load a single search config from ``path``.

        Args:
            path: Path to a YAML or JSON config file.

        Returns:
            A validated ``SearchConfig`` instance.
        """
        payload = _read_config_payload(path)
        if not isinstance(payload, Mapping):
            raise ConfigValidationError("Config file must contain a mapping object.")
        return ConfigLoader.from_mapping(payload)

    @staticmethod
    def from_mapping(payload: Mapping[str, Any]) -> SearchConfig:
        return _validate_and_build(payload)


def _read_config_payload(path: str | Path) -> Any:
    """Read raw config payload from JSON or YAML file."""
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigValidationError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()
    content = config_path.read_text(encoding="utf-8")

    try:
        if suffix == ".json":
            return json.loads(content)
        if suffix in {".yaml", ".yml"}:
            return yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigValidationError(f"Failed to parse config '{config_path}': {exc}") from exc

    raise ConfigValidationError(f"Unsupported config extension: {suffix}")


def _as_int(payload: Mapping[str, Any], key: str) -> int:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigValidationError(f"Field '{key}' expected int, got {type(value).__name__}.")
    return value


def _optional_int(payload: Mapping[str, Any], key: str) -> int | None:
    if payload.get(key) is None:
        return None
    return _as_int(payload, key)


def _build_rates(raw: Any) -> Rates:
    if raw is None:
        return Rates()
    if not isinstance(raw, Mapping):
        raise ConfigValidationError("Section 'rates' must be a mapping.")

    extras = [key for key in raw if key not in _RATE_KEYS]
    if extras:
        raise ConfigValidationError(f"Section 'rates' has unknown field(s): {extras}.")

    values: dict[str, float] = {}
    for key, value in raw.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigValidationError(f"Field 'rates.{key}' expected float, got {type(value).__name__}.")
        values[key] = float(value)
    try:
        return Rates(**values)
    except ValueError as exc:
        raise ConfigValidationError(str(exc)) from exc


def _validate_and_build(payload: Mapping[str, Any]) -> SearchConfig:
    """Validate raw mapping and build ``SearchConfig``."""
    missing = [key for key in _REQUIRED_KEYS if key not in payload]
    if missing:
        raise ConfigValidationError(f"Missing required config keys: {', '.join(missing)}")

    merged = {**_OPTIONAL_DEFAULTS, **dict(payload)}

    goal = merged["goal"]
    if not isinstance(goal, str) or not goal:
        raise ConfigValidationError("goal must be a non-empty string")

    population_size = _as_int(merged, "population_size")
    genome_length = _as_int(merged, "genome_length")
    tape_size = _as_int(merged, "tape_size")
    max_ops = _as_int(merged, "max_ops")
    report_interval = _as_int(merged, "report_interval")
    seed = _optional_int(merged, "seed")
    workers = _optional_int(merged, "workers")

    if population_size < 2:
        raise ConfigValidationError("population_size must be >= 2")
    if genome_length < 1:
        raise ConfigValidationError("genome_length must be >= 1")
    if tape_size < 1:
        raise ConfigValidationError("tape_size must be >= 1")
    if max_ops < 0:
        raise ConfigValidationError("max_ops must be >= 0")
    if workers is not None and workers < 1:
        raise ConfigValidationError("workers must be >= 1")

    known = set(_REQUIRED_KEYS) | set(_OPTIONAL_DEFAULTS) | {"rates"}
    extras = {k: v for k, v in payload.items() if k not in known}

    return SearchConfig(
        goal=goal,
        population_size=population_size,
        genome_length=genome_length,
        tape_size=tape_size,
        max_ops=max_ops,
        rates=_build_rates(merged.get("rates")),
        seed=seed,
        workers=workers,
        report_interval=report_interval,
        extras=extras,
    )
