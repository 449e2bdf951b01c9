"""End-to-end tests for rate_players."""

from __future__ import annotations

from dataclasses import replace

import numpy as np
import pandas as pd
import pytest
from scipy.special import expit

from cricket_ratings.config import (
    FitMethod,
    OptimizerConfig,
    RatingsConfig,
    StratumScheme,
    WicketPrior,
)
from cricket_ratings.data.ball_event import Competitor, Role
from cricket_ratings.data.synthetic import simulate_deliveries
from cricket_ratings.errors import DataShapeError
from cricket_ratings.pipeline import rate_players
from cricket_ratings.tests.conftest import make_ball, repeat_balls


class TestShrinkage:
    def test_one_wicket_in_ten_balls_is_pulled_towards_average(self, config):
        events = repeat_balls(9, striker="A", bowler="B") + [make_ball("A", "B", wicket=True)]
        result = rate_players(events, config)

        p = result.wicket.survival_probability("A", "B")
        # Raw rate is 0.9, the prior alone says 37/38
        assert 0.9 < p < 37 / 38

    def test_average_pairing_is_a_valid_query(self, config):
        events = repeat_balls(9, striker="A", bowler="B") + [make_ball("A", "B", wicket=True)]
        result = rate_players(events, config)
        p_avg = result.wicket.survival_probability("Average", "Average")
        assert 0.9 < p_avg < 1.0

    def test_six_hitter_outscores_blocker(self, config):
        events = (
            repeat_balls(50, striker="X", bowler="B", runs=6)
            + repeat_balls(50, striker="Y", bowler="B", runs=0)
        )
        result = rate_players(events, config)
        batting = result.batting.set_index("player")

        assert batting.loc["X", "expected_runs"] > batting.loc["Y", "expected_runs"]
        assert batting.loc["X", "runs_ability"] > batting.loc["Y", "runs_ability"]
        assert list(result.batting["player"]) == ["X", "Y"]


class TestResultShape:
    def test_category_probabilities_sum_to_one(self, small_events, config):
        result = rate_players(small_events, config)
        probs = result.runs.category_probabilities("Batter_01", "Bowler_02")
        assert set(probs) == {0, 1, 2, 3, 4, 6}
        assert sum(probs.values()) == pytest.approx(1.0)

    def test_models_share_one_index(self, small_events, config):
        result = rate_players(small_events, config)
        assert result.wicket.model.index is result.runs.model.index
        assert result.index is result.wicket.model.index

    def test_every_player_appears_once(self, small_events, config):
        result = rate_players(small_events, config)
        assert sorted(result.batting["player"]) == ["Batter_01", "Batter_02", "Batter_03"]
        assert sorted(result.bowling["player"]) == ["Bowler_01", "Bowler_02"]

    def test_summary_lists_order_effects(self, small_events, config):
        summary = rate_players(small_events, config).summary_str(top=3)
        assert "PLAYER RATINGS" in summary
        assert "nu[all]" in summary
        assert "log_nu[6]" in summary

    def test_accepts_dataframe_input(self, small_events, config):
        frame = pd.DataFrame({
            "match_id": [e.match_id for e in small_events],
            "innings": [e.innings for e in small_events],
            "over": [e.over for e in small_events],
            "striker": [e.striker for e in small_events],
            "bowler": [e.bowler for e in small_events],
            "runs_off_bat": [e.runs_off_bat for e in small_events],
            "wicket": [e.is_wicket for e in small_events],
        })
        from_frame = rate_players(frame, config)
        from_events = rate_players(small_events, config)
        assert from_frame.wicket.fit.params == pytest.approx(from_events.wicket.fit.params)

    def test_invalid_input_raises_before_fitting(self, config):
        with pytest.raises(DataShapeError):
            rate_players([make_ball("Root", "Root")], config)


class TestDeterminism:
    def test_repeat_runs_are_identical(self, small_events, config):
        first = rate_players(small_events, config)
        second = rate_players(small_events, config)
        assert np.array_equal(first.wicket.fit.params, second.wicket.fit.params)
        assert np.array_equal(first.runs.fit.params, second.runs.fit.params)

    def test_parallel_matches_serial(self, small_events, config):
        serial = rate_players(small_events, config)
        parallel = rate_players(small_events, replace(config, parallel=True))
        assert parallel.wicket.fit.params == pytest.approx(serial.wicket.fit.params)
        assert parallel.runs.fit.params == pytest.approx(serial.runs.fit.params)

    def test_lbfgsb_close_to_irls(self, small_events, config):
        irls = rate_players(small_events, config)
        lbfgsb = rate_players(
            small_events, replace(config, optimizer=OptimizerConfig(method=FitMethod.LBFGSB)),
        )
        assert lbfgsb.wicket.fit.params == pytest.approx(irls.wicket.fit.params, abs=1e-3)
        assert lbfgsb.runs.fit.params == pytest.approx(irls.runs.fit.params, abs=1e-3)


class TestNormalization:
    @pytest.mark.parametrize("scheme", [StratumScheme.NONE, StratumScheme.PHASE_BY_INNINGS])
    def test_side_means_are_zero(self, small_events, scheme):
        result = rate_players(small_events, RatingsConfig(stratum_scheme=scheme))
        for fitted in (result.wicket, result.runs):
            assert np.mean(list(fitted.normalized.batting().values())) == pytest.approx(0.0, abs=1e-10)
            assert np.mean(list(fitted.normalized.bowling().values())) == pytest.approx(0.0, abs=1e-10)

    def test_phase_scheme_uses_stratified_default_prior(self, small_events):
        config = RatingsConfig(stratum_scheme=StratumScheme.PHASE_BY_INNINGS)
        assert config.resolved_wicket_prior() == WicketPrior(2, 75)

        result = rate_players(small_events, config)
        assert set(result.wicket.normalized.auxiliary()) == {"nu[inn1_ov1-10]", "nu[inn2_ov1-10]"}
        norm = result.wicket.normalized
        log_odds = (
            norm.auxiliary()["nu[inn1_ov1-10]"]
            + norm.ability(Competitor("Batter_01", Role.BAT))
            - norm.ability(Competitor("Bowler_01", Role.BOWL))
        )
        assert result.wicket.survival_probability(
            "Batter_01", "Bowler_01", stratum="inn1_ov1-10",
        ) == pytest.approx(float(expit(log_odds)))


class TestRecovery:
    def test_recovers_simulated_wicket_abilities(self):
        events, truth = simulate_deliveries(
            n_batters=10, n_bowlers=6, balls_per_pair=80, spread=1.0, seed=5,
        )
        result = rate_players(events, RatingsConfig())

        fitted = {c.name: v for c, v in result.wicket.normalized.batting().items()}
        names = sorted(truth.batting)
        true_values = [truth.batting[n][0] for n in names]
        fitted_values = [fitted[n] for n in names]
        assert np.corrcoef(true_values, fitted_values)[0, 1] > 0.5

        fitted = {c.name: v for c, v in result.wicket.normalized.bowling().items()}
        names = sorted(truth.bowling)
        assert np.corrcoef(
            [truth.bowling[n][0] for n in names], [fitted[n] for n in names],
        )[0, 1] > 0.5


class TestExcludedRuns:
    def test_excluded_value_is_not_modelled(self):
        events = (
            repeat_balls(20, striker="A", bowler="B", runs=1)
            + repeat_balls(5, striker="A", bowler="B", runs=4)
        )
        result = rate_players(events, RatingsConfig(excluded_runs=frozenset({4, 5, 7})))

        probs = result.runs.category_probabilities("A", "B")
        assert set(probs) == {0, 1, 2, 3, 6}
        assert sum(probs.values()) == pytest.approx(1.0)
        assert "log_nu[4]" not in result.auxiliary()
        assert result.runs.table.excluded_balls == 5

    def test_value_neither_modelled_nor_excluded_is_rejected(self):
        events = repeat_balls(10, striker="A", bowler="B") + [make_ball("A", "B", runs=5)]
        with pytest.raises(DataShapeError, match="outside the modelled categories"):
            rate_players(events, RatingsConfig(excluded_runs=frozenset({7})))

    def test_reference_category_cannot_be_excluded(self, small_events):
        with pytest.raises(ValueError):
            rate_players(small_events, RatingsConfig(excluded_runs=frozenset({0, 5, 7})))


class TestQueries:
    def test_unknown_stratum_names_the_fitted_strata(self, small_events):
        result = rate_players(small_events, RatingsConfig(stratum_scheme=StratumScheme.PHASE_BY_INNINGS))
        with pytest.raises(DataShapeError, match="inn1_ov1-10"):
            result.wicket.survival_probability("Batter_01", "Bowler_01", stratum="inn3_ov1-10")
