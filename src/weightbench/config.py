# Copyright (c) Syntropy Systems
"""Configuration management for weightbench."""
from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import cast

import yaml

from weightbench.errors import ConfigError
from weightbench.models import TrialConfig

CONFIG_FILENAME = "weightbench.yaml"


@dataclass(frozen=True)
class BenchConfig:
    """Configuration for weightbench."""

    # Points sampled per component range, endpoints included
    steps: int = 50

    # Trials per sampled point
    repeats: int = 20

    lowest_range_only: bool = False
    highest_range_only: bool = False

    # Fraction of failed trials tolerated per operation
    max_discard_fraction: float = 0.1

    # Fraction of group medians trimmed from each end before fitting
    trim_fraction: float = 0.0

    # Per-trial timeout in seconds
    trial_timeout: float = 60.0

    # Operations benchmarked in parallel, one sandbox each
    concurrency: int = 1

    # Multiplier from nanoseconds to the rendered time unit
    time_scale: int = 1000

    # "keep" or "clamp" negative coefficients when rendering
    negative_policy: str = "keep"

    # Run the sandbox's verify step after every trial
    verify: bool = False

    def __post_init__(self) -> None:
        validate_config(self)

    @property
    def trial(self) -> TrialConfig:
        """TrialConfig view of the sweep settings."""
        return TrialConfig(
            steps=self.steps,
            repeats=self.repeats,
            lowest_range_only=self.lowest_range_only,
            highest_range_only=self.highest_range_only,
        )

    def with_overrides(self, **overrides: object) -> BenchConfig:
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        unknown = set(changes) - {f.name for f in fields(self)}
        if unknown:
            msg = f"Unknown config option(s): {sorted(unknown)}"
            raise ConfigError(msg)
        return replace(self, **changes)  # type: ignore[arg-type]


def validate_config(config: BenchConfig) -> None:
    """Raise ConfigError for out-of-range values."""
    if config.steps < 1:
        msg = f"steps must be >= 1, got {config.steps}"
        raise ConfigError(msg)
    if config.repeats < 1:
        msg = f"repeats must be >= 1, got {config.repeats}"
        raise ConfigError(msg)
    if config.lowest_range_only and config.highest_range_only:
        msg = "lowest_range_only and highest_range_only are mutually exclusive"
        raise ConfigError(msg)
    if not 0.0 <= config.max_discard_fraction <= 1.0:
        msg = f"max_discard_fraction must be within [0, 1], got {config.max_discard_fraction}"
        raise ConfigError(msg)
    if not 0.0 <= config.trim_fraction < 0.5:
        msg = f"trim_fraction must be within [0, 0.5), got {config.trim_fraction}"
        raise ConfigError(msg)
    if config.trial_timeout <= 0:
        msg = f"trial_timeout must be positive, got {config.trial_timeout}"
        raise ConfigError(msg)
    if config.concurrency < 1:
        msg = f"concurrency must be >= 1, got {config.concurrency}"
        raise ConfigError(msg)
    if config.time_scale < 1:
        msg = f"time_scale must be >= 1, got {config.time_scale}"
        raise ConfigError(msg)
    if config.negative_policy not in ("keep", "clamp"):
        msg = f"negative_policy must be 'keep' or 'clamp', got {config.negative_policy!r}"
        raise ConfigError(msg)


def find_config_file(start_path: Path | None = None) -> Path | None:
    """Find the nearest weightbench.yaml by walking up from start_path.

    Returns None if no config file is found.
    """
    if start_path is None:
        start_path = Path.cwd()

    current = start_path.resolve()

    while current != current.parent:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        current = current.parent

    # Check root
    candidate = current / CONFIG_FILENAME
    if candidate.is_file():
        return candidate

    return None


def get_global_config_dir() -> Path:
    """Get the global weightbench config directory (~/.weightbench)."""
    return Path.home() / ".weightbench"


_INT_OPTIONS = ("steps", "repeats", "concurrency", "time_scale")
_FLOAT_OPTIONS = ("max_discard_fraction", "trim_fraction", "trial_timeout")
_BOOL_OPTIONS = ("lowest_range_only", "highest_range_only", "verify")


def load_config(config_path: Path | None = None) -> BenchConfig:
    """Load configuration from weightbench.yaml or defaults.

    Looks for config in:
    1. Provided config_path
    2. Nearest weightbench.yaml walking up
    3. ~/.weightbench/config.yaml
    4. Defaults
    """
    if config_path is None:
        config_path = find_config_file()
        if config_path is None:
            global_config = get_global_config_dir() / "config.yaml"
            if global_config.exists():
                config_path = global_config

    if config_path is None or not config_path.exists():
        return BenchConfig()

    try:
        with config_path.open() as f:
            loaded = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        msg = f"Cannot read {config_path}: {e}"
        raise ConfigError(msg) from e

    data = cast("dict[str, object]", loaded or {})
    if not isinstance(data, dict):
        msg = f"{config_path} must contain a mapping"
        raise ConfigError(msg)

    values: dict[str, object] = {}
    for key in _INT_OPTIONS:
        value = data.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            values[key] = int(value)
    for key in _FLOAT_OPTIONS:
        value = data.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            values[key] = float(value)
    for key in _BOOL_OPTIONS:
        value = data.get(key)
        if isinstance(value, bool):
            values[key] = value
    negative_policy = data.get("negative_policy")
    if isinstance(negative_policy, str):
        values["negative_policy"] = negative_policy

    return BenchConfig(**values)  # type: ignore[arg-type]
