"""Configuration management for pydeadcode.

Loads defaults from the environment (and a ``.env`` file in the working
directory) and turns them, together with command-line overrides, into one
immutable AnalysisSettings value per run.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

from .analyzer.aggregator import SortPolicy
from .analyzer.heuristics import ConfidenceWeights, HeuristicRules
from .analyzer.sources import parse_exclude
from .exceptions import ConfigurationError

__version__ = "0.3.0"

DEFAULT_MAX_WORKERS = 8


def default_workers() -> int:
    """Worker threads used when none are configured: one per CPU, at most 8."""
    return min(os.cpu_count() or 1, DEFAULT_MAX_WORKERS)


@dataclass(frozen=True)
class AnalysisSettings:
    """Validated settings threaded through one analysis run.

    Raises:
        ConfigurationError: On construction, if a value is out of range
    """
    min_confidence: int = 0
    sort_policy: SortPolicy = SortPolicy.BY_LOCATION
    workers: int = field(default_factory=default_workers)
    exclude: Tuple[str, ...] = ()
    weights: ConfidenceWeights = field(default_factory=ConfidenceWeights)
    rules: HeuristicRules = field(default_factory=HeuristicRules.load)

    def __post_init__(self):
        if isinstance(self.min_confidence, bool) or not isinstance(self.min_confidence, int):
            raise ConfigurationError("min_confidence", self.min_confidence, "must be an integer")
        if not 0 <= self.min_confidence <= 100:
            raise ConfigurationError("min_confidence", self.min_confidence, "must be between 0 and 100")

        try:
            policy = SortPolicy(self.sort_policy)
        except ValueError:
            choices = ", ".join(p.value for p in SortPolicy)
            raise ConfigurationError("sort_policy", self.sort_policy, f"must be one of: {choices}") from None
        # frozen: normalize plain strings to the enum
        object.__setattr__(self, "sort_policy", policy)

        if isinstance(self.workers, bool) or not isinstance(self.workers, int) or self.workers < 1:
            raise ConfigurationError("workers", self.workers, "must be a positive integer")

        object.__setattr__(self, "exclude", tuple(self.exclude))


class Config:
    """Configuration loader with environment variable support.

    Environment variables:
        PYDEADCODE_MIN_CONFIDENCE: Default minimum confidence (0-100, default 0)
        PYDEADCODE_SORT: Default sort policy (by-location, by-size)
        PYDEADCODE_WORKERS: Default number of worker threads
        PYDEADCODE_EXCLUDE: Default comma-separated exclusion globs
    """

    def __init__(self, env_file: Optional[Path] = None):
        """Initialize config by loading a .env file.

        Args:
            env_file: Path to the .env file (defaults to ./.env). Variables
                already set in the environment take precedence.
        """
        load_dotenv(env_file if env_file is not None else Path.cwd() / ".env")

    @property
    def min_confidence(self) -> int:
        return self._int("PYDEADCODE_MIN_CONFIDENCE", 0)

    @property
    def sort_policy(self) -> str:
        return os.getenv("PYDEADCODE_SORT", SortPolicy.BY_LOCATION.value)

    @property
    def workers(self) -> int:
        return self._int("PYDEADCODE_WORKERS", default_workers())

    @property
    def exclude(self) -> Tuple[str, ...]:
        """Exclusion globs from PYDEADCODE_EXCLUDE."""
        return tuple(parse_exclude(os.getenv("PYDEADCODE_EXCLUDE")))

    def to_settings(self, **overrides) -> AnalysisSettings:
        """Build validated settings; non-None ``overrides`` win over the environment.

        Raises:
            ConfigurationError: If any resulting value is invalid
        """
        values = {
            "min_confidence": self.min_confidence,
            "sort_policy": self.sort_policy,
            "workers": self.workers,
            "exclude": self.exclude,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return AnalysisSettings(**values)

    @staticmethod
    def _int(name: str, default: int) -> int:
        raw = os.getenv(name)
        if raw is None or raw.strip() == "":
            return default
        try:
            return int(raw)
        except ValueError:
            raise ConfigurationError(name, raw, "must be an integer") from None
