"""Tests for the Prior Injector."""

from __future__ import annotations

import numpy as np
import pytest

from cricket_ratings.config import RunsPrior, StratumScheme, WicketPrior
from cricket_ratings.errors import IdentifiabilityError
from cricket_ratings.models.aggregator import aggregate_runs, aggregate_wickets
from cricket_ratings.models.design import (
    REFERENCE,
    CompetitorIndex,
    build_runs_observations,
    build_wicket_observations,
)
from cricket_ratings.models.prior import (
    check_identifiability,
    inject_runs_prior,
    inject_wicket_prior,
    reference_mass,
)
from cricket_ratings.tests.conftest import make_ball


class TestWicketPrior:
    def test_one_ghost_per_competitor_plus_anchor(self, wicket_obs):
        table, obs = wicket_obs
        combined = inject_wicket_prior(obs, WicketPrior(1, 37), table.stratum_weights)
        ghosts = combined.synthetic

        assert ghosts.sum() == len(obs.index) + 1
        assert (~ghosts).sum() == len(obs)

    def test_ghost_rows_face_average(self, wicket_obs):
        table, obs = wicket_obs
        combined = inject_wicket_prior(obs, WicketPrior(1, 37), table.stratum_weights)
        ghost_bat = combined.batter[combined.synthetic]
        ghost_bowl = combined.bowler[combined.synthetic]

        # Exactly one side is Average, except the single anchor row
        one_sided = (ghost_bat == REFERENCE) ^ (ghost_bowl == REFERENCE)
        both = (ghost_bat == REFERENCE) & (ghost_bowl == REFERENCE)
        assert one_sided.sum() == len(obs.index)
        assert both.sum() == 1

    def test_pseudo_counts_carried(self, wicket_obs):
        table, obs = wicket_obs
        combined = inject_wicket_prior(obs, WicketPrior(2, 75), table.stratum_weights)
        assert combined.outcome[combined.synthetic] == pytest.approx(
            np.tile([2.0, 75.0], (len(obs.index) + 1, 1))
        )

    def test_every_competitor_has_positive_reference_mass(self, wicket_obs):
        table, obs = wicket_obs
        combined = inject_wicket_prior(obs, WicketPrior(1, 37), table.stratum_weights)
        mass = reference_mass(combined)
        assert (mass > 0).all()
        assert mass == pytest.approx(np.full(len(obs.index), 38.0))

    def test_real_rows_alone_are_not_identifiable(self, wicket_obs):
        _, obs = wicket_obs
        with pytest.raises(IdentifiabilityError):
            check_identifiability(obs)

    def test_zero_pseudo_counts_fail_identifiability(self, wicket_obs):
        table, obs = wicket_obs
        with pytest.raises(IdentifiabilityError):
            inject_wicket_prior(obs, WicketPrior(0, 0), table.stratum_weights)

    def test_negative_pseudo_counts_rejected(self, wicket_obs):
        table, obs = wicket_obs
        with pytest.raises(ValueError):
            inject_wicket_prior(obs, WicketPrior(-1, 37), table.stratum_weights)

    def test_ghost_rows_use_stratum_shares(self):
        events = [make_ball(innings=1)] * 3 + [make_ball(innings=2, wicket=True)]
        table = aggregate_wickets(events, StratumScheme.PHASE_BY_INNINGS)
        obs = build_wicket_observations(table)
        combined = inject_wicket_prior(obs, WicketPrior(1, 37), table.stratum_weights)

        ghost_strata = combined.strata.toarray()[combined.synthetic]
        assert ghost_strata == pytest.approx(np.tile([0.75, 0.25], (len(ghost_strata), 1)))

    def test_stratified_prior_needs_weights(self):
        events = [make_ball(innings=1), make_ball(innings=2)]
        obs = build_wicket_observations(aggregate_wickets(events, StratumScheme.PHASE_BY_INNINGS))
        with pytest.raises(ValueError):
            inject_wicket_prior(obs, WicketPrior(1, 37))


class TestRunsPrior:
    def test_category_pseudo_counts(self, runs_obs):
        table, obs = runs_obs
        combined = inject_runs_prior(obs, RunsPrior(), table.categories)
        expected = [19.0, 12.0, 2.0, 0.5, 3.5, 1.0]
        for row in combined.outcome[combined.synthetic]:
            assert list(row) == expected

    def test_missing_categories_default_to_zero(self, runs_obs):
        table, obs = runs_obs
        combined = inject_runs_prior(obs, RunsPrior(counts=((0, 30.0), (1, 8.0))), table.categories)
        assert combined.outcome[combined.synthetic][0] == pytest.approx([30, 8, 0, 0, 0, 0])

    def test_unmodelled_category_rejected(self, runs_obs):
        table, obs = runs_obs
        with pytest.raises(ValueError, match="unmodelled"):
            inject_runs_prior(obs, RunsPrior(counts=((5, 1.0),)), table.categories)

    def test_excluded_values_are_dropped_from_the_prior(self, small_events):
        table = aggregate_runs(small_events, frozenset({4, 5, 7}), (0, 1, 2, 3, 6))
        obs = build_runs_observations(table, CompetitorIndex.from_tables(table))
        combined = inject_runs_prior(obs, RunsPrior(), table.categories, frozenset({4, 5, 7}))
        assert combined.outcome[combined.synthetic][0] == pytest.approx([19.0, 12.0, 2.0, 0.5, 1.0])
