"""Shared test fixtures for ratings engine tests."""

from __future__ import annotations

import pytest

from cricket_ratings.config import RatingsConfig
from cricket_ratings.data.ball_event import BallEvent, WicketType
from cricket_ratings.data.synthetic import simulate_deliveries
from cricket_ratings.models.aggregator import aggregate_runs, aggregate_wickets
from cricket_ratings.models.design import (
    CompetitorIndex,
    build_runs_observations,
    build_wicket_observations,
)


def make_ball(
    striker: str = "Root",
    bowler: str = "Anderson",
    runs: int = 0,
    wicket: bool = False,
    innings: int = 1,
    over: int = 0,
    ball: int = 1,
    extras: int = 0,
    wicket_type: WicketType = WicketType.BOWLED,
    player_dismissed: str | None = None,
    venue: str = "Lord's",
) -> BallEvent:
    return BallEvent(
        match_id="test_001",
        innings=innings,
        over=over,
        ball=ball,
        striker=striker,
        bowler=bowler,
        runs_off_bat=runs,
        extras=extras,
        wicket_type=wicket_type if wicket else None,
        player_dismissed=(player_dismissed or striker) if wicket else None,
        venue=venue,
    )


def repeat_balls(n: int, **kwargs) -> list[BallEvent]:
    return [make_ball(ball=i % 6 + 1, over=i // 6, **kwargs) for i in range(n)]


@pytest.fixture
def config() -> RatingsConfig:
    return RatingsConfig()


@pytest.fixture
def small_events() -> list[BallEvent]:
    """Three batters against two bowlers, 40 balls per pairing."""
    events, _ = simulate_deliveries(n_batters=3, n_bowlers=2, balls_per_pair=40, seed=3)
    return events


@pytest.fixture
def wicket_obs(small_events):
    table = aggregate_wickets(small_events)
    return table, build_wicket_observations(table)


@pytest.fixture
def runs_obs(small_events):
    table = aggregate_runs(small_events)
    return table, build_runs_observations(table, CompetitorIndex.from_tables(table))
