"""
Configuration management for the ratings engine.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


class StratumScheme(Enum):
    NONE = "none"
    PHASE_BY_INNINGS = "phase"
    VENUE = "venue"


class FitMethod(Enum):
    IRLS = "irls"
    LBFGSB = "lbfgsb"


# Run values modelled by the runs model (5s and 7s are excluded as negligible)
RUN_CATEGORIES: tuple[int, ...] = (0, 1, 2, 3, 4, 6)


@dataclass(frozen=True)
class WicketPrior:
    """Pseudo-counts for each competitor-vs-Average wicket observation."""
    wickets: float = 1.0
    survivals: float = 37.0

    @property
    def balls(self) -> float:
        return self.wickets + self.survivals


DEFAULT_WICKET_PRIOR = WicketPrior(1.0, 37.0)
PHASE_WICKET_PRIOR = WicketPrior(2.0, 75.0)


@dataclass(frozen=True)
class RunsPrior:
    """Pseudo-counts per run value for each competitor-vs-Average observation."""
    counts: tuple[tuple[int, float], ...] = (
        (0, 19.0),
        (1, 12.0),
        (2, 2.0),
        (3, 0.5),
        (4, 3.5),
        (6, 1.0),
    )

    def as_dict(self) -> dict[int, float]:
        return dict(self.counts)


@dataclass(frozen=True)
class OptimizerConfig:
    """Maximum-likelihood search settings."""
    method: FitMethod = FitMethod.IRLS
    max_iter: int = 50
    tol: float = 1e-10
    ability_bound: float = 10.0  # Box constraint for L-BFGS-B only
    lbfgsb_max_iter: int = 1000
    lbfgsb_max_fun: int = 15000
    max_step_halvings: int = 20


@dataclass(frozen=True)
class FilterConfig:
    """Upstream eligibility thresholds applied before aggregation."""
    min_balls_faced: int = 0
    min_balls_bowled: int = 0


@dataclass
class RatingsConfig:
    """Top-level engine configuration."""
    wicket_prior: Optional[WicketPrior] = None  # None -> default for the scheme
    runs_prior: RunsPrior = field(default_factory=RunsPrior)
    optimizer: OptimizerConfig = field(default_factory=OptimizerConfig)
    filters: FilterConfig = field(default_factory=FilterConfig)

    stratum_scheme: StratumScheme = StratumScheme.NONE
    phase_length_overs: int = 10
    excluded_runs: frozenset[int] = frozenset({5, 7})
    parallel: bool = False
    log_level: str = "INFO"

    def resolved_wicket_prior(self) -> WicketPrior:
        if self.wicket_prior is not None:
            return self.wicket_prior
        if self.stratum_scheme == StratumScheme.PHASE_BY_INNINGS:
            return PHASE_WICKET_PRIOR
        return DEFAULT_WICKET_PRIOR

    def run_categories(self) -> tuple[int, ...]:
        """Modelled run values: RUN_CATEGORIES less the excluded ones, 0 first."""
        if 0 in self.excluded_runs:
            raise ValueError("Run value 0 is the reference category and cannot be excluded")
        return tuple(k for k in RUN_CATEGORIES if k not in self.excluded_runs)

    @classmethod
    def from_env(cls) -> "RatingsConfig":
        """Load configuration from environment variables."""
        wicket_prior = None
        if os.getenv("RATINGS_PRIOR_WICKETS") or os.getenv("RATINGS_PRIOR_SURVIVALS"):
            wicket_prior = WicketPrior(
                wickets=float(os.getenv("RATINGS_PRIOR_WICKETS", "1")),
                survivals=float(os.getenv("RATINGS_PRIOR_SURVIVALS", "37")),
            )
        return cls(
            wicket_prior=wicket_prior,
            optimizer=OptimizerConfig(
                method=FitMethod(os.getenv("RATINGS_FIT_METHOD", "irls").lower()),
                max_iter=int(os.getenv("RATINGS_MAX_ITER", "50")),
                tol=float(os.getenv("RATINGS_TOL", "1e-10")),
                lbfgsb_max_iter=int(os.getenv("RATINGS_LBFGSB_MAX_ITER", "1000")),
            ),
            filters=FilterConfig(
                min_balls_faced=int(os.getenv("RATINGS_MIN_BALLS_FACED", "0")),
                min_balls_bowled=int(os.getenv("RATINGS_MIN_BALLS_BOWLED", "0")),
            ),
            stratum_scheme=StratumScheme(os.getenv("RATINGS_STRATUM_SCHEME", "none").lower()),
            parallel=os.getenv("RATINGS_PARALLEL", "").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
