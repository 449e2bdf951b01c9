"""
Ability Normalizer.

Recenters batting and bowling log-abilities to zero mean and moves every
auxiliary parameter by the net shift so that no fitted probability changes.
With c = mean(batting) - mean(bowling):

    wicket model:  nu_k'     = nu_k + c
    runs model:    log nu_k' = log nu_k + k * c

The Average sentinel, fixed at 0 in the raw fit, sits at -mean(batting) and
-mean(bowling) afterwards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import numpy as np
import pandas as pd

from cricket_ratings.data.ball_event import Competitor, Role
from cricket_ratings.models.design import CompetitorIndex

logger = logging.getLogger(__name__)


class NormalizableModel(Protocol):
    index: CompetitorIndex
    aux_names: list[str]

    @property
    def aux_shift_weights(self) -> np.ndarray: ...

    def split(self, beta: np.ndarray) -> tuple[np.ndarray, np.ndarray]: ...


@dataclass
class NormalizedAbilities:
    """Recentered abilities and adjusted auxiliary parameters."""

    index: CompetitorIndex
    abilities: np.ndarray
    aux: np.ndarray
    aux_names: list[str]
    batting_mean: float
    bowling_mean: float

    @property
    def params(self) -> np.ndarray:
        """Parameter vector in the fitted model's layout."""
        return np.concatenate([self.abilities, self.aux])

    @property
    def reference(self) -> tuple[float, float]:
        """(Average Bat, Average Bowl) abilities in this parameterization."""
        return -self.batting_mean, -self.bowling_mean

    def ability(self, competitor: Competitor) -> float:
        if competitor.is_average:
            bat, bowl = self.reference
            return bat if competitor.role == Role.BAT else bowl
        return float(self.abilities[self.index.position(competitor)])

    def batting(self) -> dict[Competitor, float]:
        return {self.index.competitor(i): float(self.abilities[i]) for i in self.index.batting_positions}

    def bowling(self) -> dict[Competitor, float]:
        return {self.index.competitor(i): float(self.abilities[i]) for i in self.index.bowling_positions}

    def auxiliary(self) -> dict[str, float]:
        return dict(zip(self.aux_names, (float(v) for v in self.aux)))

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            "player": [c.name for c in self.index],
            "role": [c.role.value for c in self.index],
            "ability": self.abilities,
        })


def normalize(model: NormalizableModel, params: np.ndarray) -> NormalizedAbilities:
    """Recenter each side to zero mean without changing any prediction."""
    abilities, aux = model.split(np.asarray(params, dtype=float))
    abilities = abilities.copy()
    bat = model.index.batting_positions
    bowl = model.index.bowling_positions

    batting_mean = float(abilities[bat].mean()) if len(bat) else 0.0
    bowling_mean = float(abilities[bowl].mean()) if len(bowl) else 0.0

    abilities[bat] -= batting_mean
    abilities[bowl] -= bowling_mean
    shift = batting_mean - bowling_mean
    adjusted = aux + shift * model.aux_shift_weights

    logger.debug(
        "Recentered: batting mean %.4f, bowling mean %.4f, aux shift %.4f",
        batting_mean, bowling_mean, shift,
    )
    return NormalizedAbilities(
        index=model.index,
        abilities=abilities,
        aux=adjusted,
        aux_names=list(model.aux_names),
        batting_mean=batting_mean,
        bowling_mean=bowling_mean,
    )
