"""
Prior Injector.

Appends synthetic "ghost" observations pairing every competitor with the
Average sentinel, plus one Average-vs-Average anchor row. The pseudo-counts
shrink sparse competitors toward Average and make the maximum-likelihood
solution unique.

Synthetic rows carry the data's stratum shares as their stratum weights, so
the prior is stated against the average conditions of the real balls.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
from scipy import sparse

from cricket_ratings.config import RUN_CATEGORIES, RunsPrior, WicketPrior
from cricket_ratings.errors import IdentifiabilityError
from cricket_ratings.models.design import REFERENCE, ObservationSet

logger = logging.getLogger(__name__)


def _ghost_rows(
    obs: ObservationSet,
    outcome: np.ndarray,
    stratum_weights: Optional[np.ndarray],
) -> ObservationSet:
    index = obs.index
    batters = index.batting_positions
    bowlers = index.bowling_positions

    # Average Bowl vs each batter, each bowler vs Average Bat, then the anchor
    batter_col = np.concatenate([batters, np.full(len(bowlers), REFERENCE), [REFERENCE]])
    bowler_col = np.concatenate([np.full(len(batters), REFERENCE), bowlers, [REFERENCE]])
    n = len(batter_col)

    if obs.n_strata:
        weights = np.asarray(stratum_weights, dtype=float)
        strata = sparse.csr_matrix(np.tile(weights, (n, 1)))
    else:
        strata = sparse.csr_matrix((n, 0))

    return ObservationSet(
        index=index,
        batter=batter_col.astype(np.int64),
        bowler=bowler_col.astype(np.int64),
        strata=strata,
        outcome=np.tile(outcome, (n, 1)),
        synthetic=np.ones(n, dtype=bool),
        stratum_names=obs.stratum_names,
    )


def inject_wicket_prior(
    obs: ObservationSet,
    prior: WicketPrior,
    stratum_weights: Optional[np.ndarray] = None,
) -> ObservationSet:
    """Append (wickets, survivals) pseudo-count rows against Average."""
    if prior.wickets < 0 or prior.survivals < 0:
        raise ValueError(f"Prior pseudo-counts must be non-negative: {prior}")
    if obs.n_strata and stratum_weights is None:
        raise ValueError("Stratified observations need stratum weights for the prior rows")

    ghosts = _ghost_rows(obs, np.array([prior.wickets, prior.survivals]), stratum_weights)
    combined = obs.append(ghosts)
    check_identifiability(combined)
    logger.info(
        "Injected %d prior rows (%.1f wickets / %.1f survivals each)",
        len(ghosts), prior.wickets, prior.survivals,
    )
    return combined


def inject_runs_prior(
    obs: ObservationSet,
    prior: RunsPrior,
    categories: tuple[int, ...] = RUN_CATEGORIES,
    excluded_runs: frozenset[int] = frozenset(),
) -> ObservationSet:
    """Append per-run-value pseudo-count rows against Average.

    Counts for excluded run values are dropped; counts for any other value
    outside the categories are an error.
    """
    counts = {k: v for k, v in prior.as_dict().items() if k not in excluded_runs}
    unknown = set(counts) - set(categories)
    if unknown:
        raise ValueError(f"Prior counts for unmodelled run values: {sorted(unknown)}")
    outcome = np.array([counts.get(k, 0.0) for k in categories], dtype=float)
    if (outcome < 0).any():
        raise ValueError(f"Prior pseudo-counts must be non-negative: {prior}")

    ghosts = _ghost_rows(obs, outcome, None)
    combined = obs.append(ghosts)
    check_identifiability(combined)
    logger.info("Injected %d prior rows (%.1f balls each)", len(ghosts), outcome.sum())
    return combined


def reference_mass(obs: ObservationSet) -> np.ndarray:
    """Total count per competitor column in rows against the Average sentinel."""
    mass = np.zeros(len(obs.index))
    totals = obs.outcome.sum(axis=1)

    vs_average_bowl = (obs.bowler == REFERENCE) & (obs.batter != REFERENCE)
    np.add.at(mass, obs.batter[vs_average_bowl], totals[vs_average_bowl])
    vs_average_bat = (obs.batter == REFERENCE) & (obs.bowler != REFERENCE)
    np.add.at(mass, obs.bowler[vs_average_bat], totals[vs_average_bat])
    return mass


def check_identifiability(obs: ObservationSet) -> None:
    """Every competitor column needs positive mass against the reference."""
    mass = reference_mass(obs)
    empty = np.flatnonzero(mass <= 0)
    if len(empty):
        names = ", ".join(str(obs.index.competitor(i)) for i in empty[:5])
        raise IdentifiabilityError(
            f"{len(empty)} competitors have no mass against Average (e.g. {names})"
        )
