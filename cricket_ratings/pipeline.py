"""
Ratings pipeline.

Aggregate -> design -> prior -> fit -> normalize -> score, for the wicket
model and the runs model. The two fits share one CompetitorIndex and nothing
else, so they can run in parallel.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd
from scipy.special import expit

from cricket_ratings.config import RatingsConfig
from cricket_ratings.data.ball_event import Competitor, Role
from cricket_ratings.errors import DataShapeError
from cricket_ratings.models.aggregator import (
    EventsLike,
    RunsTable,
    WicketTable,
    aggregate_runs,
    aggregate_wickets,
    events_to_frame,
)
from cricket_ratings.models.design import (
    CompetitorIndex,
    build_runs_observations,
    build_wicket_observations,
)
from cricket_ratings.models.likelihood import BinomialLogitModel, MultinomialRunsModel
from cricket_ratings.models.normalizer import NormalizedAbilities, normalize
from cricket_ratings.models.optimizer import FitResult, fit
from cricket_ratings.models.prior import inject_runs_prior, inject_wicket_prior
from cricket_ratings.models.scorer import CompositeTable, baseline_order_effect, score_competitors

logger = logging.getLogger(__name__)


@dataclass
class FittedWicketModel:
    """Wicket model fit with its normalized parameters."""
    table: WicketTable
    model: BinomialLogitModel
    fit: FitResult
    normalized: NormalizedAbilities

    @property
    def baseline(self) -> float:
        return baseline_order_effect(self.normalized, self.table.stratum_weights)

    def survival_probability(
        self,
        batter: str,
        bowler: str,
        stratum: Optional[str] = None,
    ) -> float:
        """P(batter survives a ball from bowler); Average is a valid name."""
        if stratum is None:
            nu = self.baseline
        elif stratum in self.table.strata:
            nu = self.normalized.auxiliary()[f"nu[{stratum}]"]
        else:
            raise DataShapeError(f"Unknown stratum {stratum!r}; fitted strata are {self.table.strata}")
        log_odds = (
            nu
            + self.normalized.ability(Competitor(batter, Role.BAT))
            - self.normalized.ability(Competitor(bowler, Role.BOWL))
        )
        return float(expit(log_odds))


@dataclass
class FittedRunsModel:
    """Runs model fit with its normalized parameters."""
    table: RunsTable
    model: MultinomialRunsModel
    fit: FitResult
    normalized: NormalizedAbilities

    @property
    def log_nu(self) -> np.ndarray:
        return np.concatenate([[0.0], self.normalized.aux])

    def category_probabilities(self, batter: str, bowler: str) -> dict[int, float]:
        """P(run value) for one ball of batter against bowler."""
        d = (
            self.normalized.ability(Competitor(batter, Role.BAT))
            - self.normalized.ability(Competitor(bowler, Role.BOWL))
        )
        scores = self.log_nu + self.model.k * d
        probs = np.exp(scores - np.logaddexp.reduce(scores))
        return dict(zip(self.model.categories, (float(p) for p in probs)))


@dataclass
class RatingsResult:
    """Everything a rating run produces."""
    index: CompetitorIndex
    wicket: FittedWicketModel
    runs: FittedRunsModel
    composite: CompositeTable

    @property
    def batting(self) -> pd.DataFrame:
        return self.composite.batting

    @property
    def bowling(self) -> pd.DataFrame:
        return self.composite.bowling

    def auxiliary(self) -> dict[str, float]:
        return {**self.wicket.normalized.auxiliary(), **self.runs.normalized.auxiliary()}

    def summary_str(self, top: int = 10) -> str:
        lines = [
            "=" * 60,
            "PLAYER RATINGS",
            "=" * 60,
            f"Competitors: {len(self.index)}",
            f"Wicket model: loglik {self.wicket.fit.loglik:.3f} "
            f"({self.wicket.fit.iterations} iterations, {self.wicket.fit.method.value})",
            f"Runs model:   loglik {self.runs.fit.loglik:.3f} "
            f"({self.runs.fit.iterations} iterations, {self.runs.fit.method.value})",
            "",
            "Order effects:",
        ]
        lines += [f"  {name:<24} {value:+.4f}" for name, value in self.auxiliary().items()]
        lines += ["", f"Top {top} batters (effective average, higher is better):"]
        lines.append(self.batting.head(top).to_string(index=False))
        lines += ["", f"Top {top} bowlers (effective average, lower is better):"]
        lines.append(self.bowling.head(top).to_string(index=False))
        return "\n".join(lines)


def fit_wicket_model(
    table: WicketTable,
    index: CompetitorIndex,
    config: RatingsConfig,
) -> FittedWicketModel:
    logger.info("Fitting wicket model: %d balls across %d strata", table.total_balls, len(table.strata))
    obs = build_wicket_observations(table, index)
    obs = inject_wicket_prior(obs, config.resolved_wicket_prior(), table.stratum_weights)
    model = BinomialLogitModel(obs)
    result = fit(model, config.optimizer)
    return FittedWicketModel(table=table, model=model, fit=result, normalized=normalize(model, result.params))


def fit_runs_model(
    table: RunsTable,
    index: CompetitorIndex,
    config: RatingsConfig,
) -> FittedRunsModel:
    logger.info("Fitting runs model: %d batter-bowler pairs", len(table.counts))
    obs = build_runs_observations(table, index)
    obs = inject_runs_prior(obs, config.runs_prior, table.categories, config.excluded_runs)
    model = MultinomialRunsModel(obs, table.categories)
    result = fit(model, config.optimizer)
    return FittedRunsModel(table=table, model=model, fit=result, normalized=normalize(model, result.params))


def rate_players(events: EventsLike, config: Optional[RatingsConfig] = None) -> RatingsResult:
    """Fit both models on filtered deliveries and build the composite tables.

    Args:
        events: BallEvents or an equivalent DataFrame, already filtered
        config: Engine configuration (defaults if omitted)

    Raises:
        DataShapeError, IdentifiabilityError: the input cannot be fitted
        ConvergenceError, NumericalError: an optimizer failed
    """
    config = config or RatingsConfig()
    frame = events_to_frame(events)

    wicket_table = aggregate_wickets(frame, config.stratum_scheme, config.phase_length_overs)
    runs_table = aggregate_runs(frame, config.excluded_runs, config.run_categories())
    index = CompetitorIndex.from_tables(wicket_table, runs_table)

    if config.parallel:
        with ThreadPoolExecutor(max_workers=2) as ex:
            wicket_future = ex.submit(fit_wicket_model, wicket_table, index, config)
            runs_future = ex.submit(fit_runs_model, runs_table, index, config)
            wicket, runs = wicket_future.result(), runs_future.result()
    else:
        wicket = fit_wicket_model(wicket_table, index, config)
        runs = fit_runs_model(runs_table, index, config)

    composite = score_competitors(
        wicket.normalized, runs.normalized, wicket_table.stratum_weights, runs_table.categories,
    )
    logger.info("Rated %d competitors", len(composite.scores))
    return RatingsResult(index=index, wicket=wicket, runs=runs, composite=composite)
