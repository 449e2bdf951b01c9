"""
Composite Scorer.

Combines normalized wicket-model and runs-model abilities into per-player
summaries against a zero-ability opponent:

- dismissal probability: inverse-logit of minus the survival log-odds
- expected runs per ball: sum_k k nu_k e^(k d) / sum_k nu_k e^(k d)
- effective average: expected runs / dismissal probability

Batters rank by effective average descending, bowlers ascending. A dismissal
probability of exactly 0 leaves the effective average undefined (None), and
such players sort after every defined row.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd
from scipy.special import expit, softmax

from cricket_ratings.config import RUN_CATEGORIES
from cricket_ratings.data.ball_event import Competitor, Role
from cricket_ratings.models.normalizer import NormalizedAbilities

logger = logging.getLogger(__name__)


@dataclass
class CompositeScore:
    """Summary statistics for one competitor."""
    competitor: Competitor
    wicket_ability: float
    runs_ability: float
    dismissal_prob: float
    expected_runs: float
    effective_average: Optional[float]

    @property
    def average_defined(self) -> bool:
        return self.effective_average is not None


def baseline_order_effect(wicket: NormalizedAbilities, stratum_weights: np.ndarray) -> float:
    """Stratum-weighted mean survival log-odds intercept."""
    weights = np.asarray(stratum_weights, dtype=float)
    if len(weights) != len(wicket.aux):
        raise ValueError(
            f"Expected {len(wicket.aux)} stratum weights, got {len(weights)}"
        )
    return float(weights @ wicket.aux / weights.sum())


def dismissal_probability(baseline: float, ability: float, role: Role) -> float:
    """P(wicket) on one ball against a zero-ability opponent."""
    log_odds = baseline + ability if role == Role.BAT else baseline - ability
    return float(expit(-log_odds))


def expected_runs(
    log_nu: np.ndarray,
    ability: float,
    role: Role,
    categories: tuple[int, ...] = RUN_CATEGORIES,
) -> float:
    """Expected runs per ball against a zero-ability opponent."""
    k = np.array(categories, dtype=float)
    d = ability if role == Role.BAT else -ability
    return float(softmax(log_nu + k * d) @ k)


def effective_average(runs_per_ball: float, dismissal_prob: float) -> Optional[float]:
    """Runs per dismissal, or None when no dismissal is possible."""
    if dismissal_prob <= 0.0:
        return None
    return runs_per_ball / dismissal_prob


@dataclass
class CompositeTable:
    """Ranked composite scores for each side."""
    scores: list[CompositeScore]

    def _frame(self, role: Role) -> pd.DataFrame:
        rows = [s for s in self.scores if s.competitor.role == role]
        frame = pd.DataFrame({
            "player": [s.competitor.name for s in rows],
            "wicket_ability": [s.wicket_ability for s in rows],
            "runs_ability": [s.runs_ability for s in rows],
            "dismissal_prob": [s.dismissal_prob for s in rows],
            "expected_runs": [s.expected_runs for s in rows],
            "effective_average": [
                s.effective_average if s.average_defined else np.nan for s in rows
            ],
            "average_defined": [s.average_defined for s in rows],
        })
        ascending = role == Role.BOWL
        return (
            frame.sort_values(
                ["average_defined", "effective_average", "player"],
                ascending=[False, ascending, True],
                na_position="last",
                kind="mergesort",
            )
            .reset_index(drop=True)
        )

    @property
    def batting(self) -> pd.DataFrame:
        return self._frame(Role.BAT)

    @property
    def bowling(self) -> pd.DataFrame:
        return self._frame(Role.BOWL)


def score_competitors(
    wicket: NormalizedAbilities,
    runs: NormalizedAbilities,
    stratum_weights: np.ndarray,
    categories: tuple[int, ...] = RUN_CATEGORIES,
) -> CompositeTable:
    """Composite scores for every competitor rated by both models."""
    baseline = baseline_order_effect(wicket, stratum_weights)
    log_nu = np.concatenate([[0.0], runs.aux])

    missing = [c for c in wicket.index if c not in runs.index]
    if missing:
        logger.warning("%d competitors have no runs-model rating and are not scored", len(missing))

    scores = []
    for competitor in wicket.index:
        if competitor not in runs.index:
            continue
        w_ability = wicket.ability(competitor)
        r_ability = runs.ability(competitor)
        p_out = dismissal_probability(baseline, w_ability, competitor.role)
        er = expected_runs(log_nu, r_ability, competitor.role, categories)
        average = effective_average(er, p_out)
        if average is None:
            logger.warning("%s has zero dismissal probability; effective average undefined", competitor)
        scores.append(CompositeScore(
            competitor=competitor,
            wicket_ability=w_ability,
            runs_ability=r_ability,
            dismissal_prob=p_out,
            expected_runs=er,
            effective_average=average,
        ))
    return CompositeTable(scores=scores)
