"""
Synthetic delivery generator.

Draws deliveries from the wicket and runs models with known abilities, for
the demo mode and for recovery tests.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy.special import expit, softmax

from cricket_ratings.config import RUN_CATEGORIES
from cricket_ratings.data.ball_event import BallEvent, WicketType

# Survival log-odds and run-value weights of an average ball
BASE_SURVIVAL_LOG_ODDS = np.log(37.0)
BASE_LOG_NU = np.log(np.array([19.0, 12.0, 2.0, 0.5, 3.5, 1.0]))


@dataclass
class SimulatedPlayers:
    """True log-abilities used to generate the deliveries."""
    batting: dict[str, tuple[float, float]]  # name -> (wicket ability, runs ability)
    bowling: dict[str, tuple[float, float]]


def simulate_deliveries(
    n_batters: int = 12,
    n_bowlers: int = 8,
    balls_per_pair: int = 30,
    spread: float = 0.4,
    seed: int = 7,
) -> tuple[list[BallEvent], SimulatedPlayers]:
    """Every batter faces every bowler for balls_per_pair legal deliveries."""
    rng = np.random.default_rng(seed)
    k = np.array(RUN_CATEGORIES, dtype=float)

    batting = {
        f"Batter_{i + 1:02d}": (rng.normal(0, spread), rng.normal(0, spread / 4))
        for i in range(n_batters)
    }
    bowling = {
        f"Bowler_{j + 1:02d}": (rng.normal(0, spread), rng.normal(0, spread / 4))
        for j in range(n_bowlers)
    }

    events: list[BallEvent] = []
    match_no = 0
    for batter, (bat_w, bat_r) in batting.items():
        for bowler, (bowl_w, bowl_r) in bowling.items():
            match_no += 1
            p_survive = expit(BASE_SURVIVAL_LOG_ODDS + bat_w - bowl_w)
            run_probs = softmax(BASE_LOG_NU + k * (bat_r - bowl_r))
            for ball_no in range(balls_per_pair):
                out = rng.random() > p_survive
                runs = 0 if out else int(rng.choice(k, p=run_probs))
                events.append(BallEvent(
                    match_id=f"sim_{match_no:04d}",
                    innings=1 + ball_no % 2,
                    over=(ball_no // 6) % 50,
                    ball=ball_no % 6 + 1,
                    striker=batter,
                    bowler=bowler,
                    runs_off_bat=runs,
                    wicket_type=WicketType.BOWLED if out else None,
                    player_dismissed=batter if out else None,
                    venue="Sim Ground",
                ))

    return events, SimulatedPlayers(batting=batting, bowling=bowling)
