"""Tests for the Composite Scorer."""

from __future__ import annotations

import math

import numpy as np
import pytest

from cricket_ratings.data.ball_event import Competitor, Role
from cricket_ratings.models.design import CompetitorIndex
from cricket_ratings.models.normalizer import NormalizedAbilities
from cricket_ratings.models.scorer import (
    CompositeScore,
    CompositeTable,
    baseline_order_effect,
    dismissal_probability,
    effective_average,
    expected_runs,
    score_competitors,
)

LOG_NU = np.log(np.array([19.0, 12.0, 2.0, 0.5, 3.5, 1.0]) / 19.0)
RUNS_AUX = ["log_nu[1]", "log_nu[2]", "log_nu[3]", "log_nu[4]", "log_nu[6]"]


def _abilities(index, values, aux, aux_names):
    return NormalizedAbilities(
        index=index,
        abilities=np.array(values, dtype=float),
        aux=np.array(aux, dtype=float),
        aux_names=aux_names,
        batting_mean=0.0,
        bowling_mean=0.0,
    )


@pytest.fixture
def index() -> CompetitorIndex:
    return CompetitorIndex([
        Competitor("Root", Role.BAT),
        Competitor("Tailender", Role.BAT),
        Competitor("Anderson", Role.BOWL),
        Competitor("Parttimer", Role.BOWL),
    ])


class TestComponents:
    def test_dismissal_probability_against_average(self):
        assert dismissal_probability(math.log(37), 0.0, Role.BAT) == pytest.approx(1 / 38)
        assert dismissal_probability(math.log(37), 0.0, Role.BOWL) == pytest.approx(1 / 38)

    def test_better_bowler_takes_more_wickets(self):
        assert dismissal_probability(3.0, 0.5, Role.BOWL) > dismissal_probability(3.0, -0.5, Role.BOWL)

    def test_better_batter_gets_out_less(self):
        assert dismissal_probability(3.0, 0.5, Role.BAT) < dismissal_probability(3.0, -0.5, Role.BAT)

    def test_expected_runs_at_zero_ability(self):
        weights = np.exp(LOG_NU)
        k = np.array([0, 1, 2, 3, 4, 6])
        assert expected_runs(LOG_NU, 0.0, Role.BAT) == pytest.approx(weights @ k / weights.sum())

    def test_expected_runs_monotone_in_ability(self):
        assert expected_runs(LOG_NU, 0.3, Role.BAT) > expected_runs(LOG_NU, 0.0, Role.BAT)
        assert expected_runs(LOG_NU, 0.3, Role.BOWL) < expected_runs(LOG_NU, 0.0, Role.BOWL)

    def test_effective_average(self):
        assert effective_average(0.8, 0.02) == pytest.approx(40.0)

    def test_zero_dismissal_probability_is_undefined(self):
        assert effective_average(0.8, 0.0) is None

    def test_baseline_weights_strata(self, index):
        wicket = _abilities(index, [0, 0, 0, 0], [3.0, 4.0], ["nu[a]", "nu[b]"])
        assert baseline_order_effect(wicket, np.array([0.25, 0.75])) == pytest.approx(3.75)

    def test_baseline_weight_count_must_match(self, index):
        wicket = _abilities(index, [0, 0, 0, 0], [3.0], ["nu[all]"])
        with pytest.raises(ValueError):
            baseline_order_effect(wicket, np.array([0.5, 0.5]))


class TestCompositeTable:
    def test_batting_descending_bowling_ascending(self, index):
        # Positions sorted by identity: Anderson Bowl, Parttimer Bowl, Root Bat, Tailender Bat
        wicket = _abilities(index, [0.6, -0.6, 0.5, -0.5], [math.log(37)], ["nu[all]"])
        runs = _abilities(index, [0.1, -0.1, 0.1, -0.1], LOG_NU[1:], RUNS_AUX)
        table = score_competitors(wicket, runs, np.array([1.0]))

        assert list(table.batting["player"]) == ["Root", "Tailender"]
        assert list(table.bowling["player"]) == ["Anderson", "Parttimer"]
        assert table.batting["effective_average"].is_monotonic_decreasing
        assert table.bowling["effective_average"].is_monotonic_increasing

    def test_undefined_average_sorts_last_and_is_flagged(self):
        scores = [
            CompositeScore(Competitor("Root", Role.BAT), 0.0, 0.0, 0.02, 0.8, 40.0),
            CompositeScore(Competitor("Wall", Role.BAT), 0.0, 0.0, 0.0, 0.5, None),
            CompositeScore(Competitor("Tailender", Role.BAT), 0.0, 0.0, 0.1, 0.5, 5.0),
        ]
        batting = CompositeTable(scores).batting

        assert list(batting["player"]) == ["Root", "Tailender", "Wall"]
        assert list(batting["average_defined"]) == [True, True, False]
        assert np.isnan(batting["effective_average"].iloc[-1])
        assert not scores[1].average_defined

    def test_scores_every_competitor(self, index):
        wicket = _abilities(index, [0, 0, 0, 0], [math.log(37)], ["nu[all]"])
        runs = _abilities(index, [0, 0, 0, 0], LOG_NU[1:], RUNS_AUX)
        table = score_competitors(wicket, runs, np.array([1.0]))
        assert len(table.scores) == 4
        assert all(s.average_defined for s in table.scores)
        assert all(s.dismissal_prob == pytest.approx(1 / 38) for s in table.scores)
