"""
Design Matrix Builder.

Maps competitors to stable column positions and turns aggregated tables into
observation sets: one tagged row per observation holding the batter column,
the bowler column, a stratum weight vector and the outcome counts.

Column layout of every parameter vector:
    [competitor log-abilities ..., auxiliary parameters ...]
The Average sentinel never gets a column; rows against it use REFERENCE.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

import numpy as np
from scipy import sparse

from cricket_ratings.data.ball_event import Competitor, Role
from cricket_ratings.errors import DataShapeError
from cricket_ratings.models.aggregator import RunsTable, WicketTable

logger = logging.getLogger(__name__)

REFERENCE = -1


class CompetitorIndex:
    """Stable mapping from competitor to integer column.

    Built once per run and passed by reference to every downstream stage.
    """

    def __init__(self, competitors: Iterable[Competitor]):
        unique = sorted({c for c in competitors if not c.is_average})
        self._competitors: list[Competitor] = unique
        self._positions: dict[Competitor, int] = {c: i for i, c in enumerate(unique)}
        self._roles = np.array([c.role == Role.BAT for c in unique], dtype=bool)

    @classmethod
    def from_tables(cls, *tables: WicketTable | RunsTable) -> "CompetitorIndex":
        """Index every batter and bowler that appears in a real observation."""
        competitors: set[Competitor] = set()
        for table in tables:
            competitors.update(Competitor(n, Role.BAT) for n in table.counts["batter"].unique())
            competitors.update(Competitor(n, Role.BOWL) for n in table.counts["bowler"].unique())
        index = cls(competitors)
        logger.info(
            "Competitor index: %d batters, %d bowlers",
            len(index.batting_positions), len(index.bowling_positions),
        )
        return index

    def __len__(self) -> int:
        return len(self._competitors)

    def __contains__(self, competitor: Competitor) -> bool:
        return competitor in self._positions

    def __iter__(self) -> Iterator[Competitor]:
        return iter(self._competitors)

    def position(self, competitor: Competitor) -> int:
        if competitor.is_average:
            return REFERENCE
        try:
            return self._positions[competitor]
        except KeyError:
            raise DataShapeError(f"{competitor} has no column in the competitor index") from None

    def positions(self, names: Iterable[str], role: Role) -> np.ndarray:
        return np.array([self.position(Competitor(n, role)) for n in names], dtype=np.int64)

    def competitor(self, position: int) -> Competitor:
        return self._competitors[position]

    @property
    def competitors(self) -> list[Competitor]:
        return list(self._competitors)

    @property
    def batting_positions(self) -> np.ndarray:
        return np.flatnonzero(self._roles)

    @property
    def bowling_positions(self) -> np.ndarray:
        return np.flatnonzero(~self._roles)


@dataclass(frozen=True)
class DesignRow:
    """One observation: batter column, bowler column, stratum weights, outcome."""
    batter: int
    bowler: int
    strata: np.ndarray
    outcome: np.ndarray
    synthetic: bool = False


@dataclass
class ObservationSet:
    """Column-stored observation rows sharing one CompetitorIndex.

    outcome is (wickets, survivals) per row for the wicket model and one
    count per run value for the runs model.
    """
    index: CompetitorIndex
    batter: np.ndarray
    bowler: np.ndarray
    strata: sparse.csr_matrix
    outcome: np.ndarray
    synthetic: np.ndarray
    stratum_names: list[str]

    def __len__(self) -> int:
        return len(self.batter)

    def __getitem__(self, i: int) -> DesignRow:
        return DesignRow(
            batter=int(self.batter[i]),
            bowler=int(self.bowler[i]),
            strata=self.strata[i].toarray().ravel(),
            outcome=self.outcome[i],
            synthetic=bool(self.synthetic[i]),
        )

    def rows(self) -> Iterator[DesignRow]:
        for i in range(len(self)):
            yield self[i]

    @property
    def n_strata(self) -> int:
        return self.strata.shape[1]

    @property
    def n_params(self) -> int:
        return len(self.index) + self.n_strata

    def append(self, other: "ObservationSet") -> "ObservationSet":
        if other.index is not self.index:
            raise DataShapeError("Observation sets built on different competitor indexes")
        if other.n_strata != self.n_strata:
            raise DataShapeError("Observation sets have different stratum layouts")
        if self.n_strata:
            strata = sparse.vstack([self.strata, other.strata], format="csr")
        else:
            strata = sparse.csr_matrix((len(self) + len(other), 0))
        return ObservationSet(
            index=self.index,
            batter=np.concatenate([self.batter, other.batter]),
            bowler=np.concatenate([self.bowler, other.bowler]),
            strata=strata,
            outcome=np.vstack([self.outcome, other.outcome]),
            synthetic=np.concatenate([self.synthetic, other.synthetic]),
            stratum_names=self.stratum_names,
        )

    def competitor_matrix(self) -> sparse.csr_matrix:
        """Sparse (rows x competitors) contrast: +1 batter, -1 bowler."""
        n = len(self)
        rows_bat = np.flatnonzero(self.batter != REFERENCE)
        rows_bowl = np.flatnonzero(self.bowler != REFERENCE)
        rows = np.concatenate([rows_bat, rows_bowl])
        cols = np.concatenate([self.batter[rows_bat], self.bowler[rows_bowl]])
        data = np.concatenate([np.ones(len(rows_bat)), -np.ones(len(rows_bowl))])
        return sparse.csr_matrix((data, (rows, cols)), shape=(n, len(self.index)))

    def reference_offset(self, batting: float, bowling: float) -> np.ndarray:
        """Per-row contribution of Average abilities when they are not 0."""
        return batting * (self.batter == REFERENCE) - bowling * (self.bowler == REFERENCE)

    def design_matrix(self) -> sparse.csr_matrix:
        """Full sparse design: competitor contrasts then stratum columns."""
        return sparse.hstack([self.competitor_matrix(), self.strata], format="csr")


def _indicator_strata(labels: np.ndarray, names: list[str]) -> sparse.csr_matrix:
    col = {name: j for j, name in enumerate(names)}
    cols = np.array([col[label] for label in labels], dtype=np.int64)
    n = len(labels)
    return sparse.csr_matrix(
        (np.ones(n), (np.arange(n), cols)), shape=(n, len(names)),
    )


def build_wicket_observations(
    table: WicketTable,
    index: Optional[CompetitorIndex] = None,
) -> ObservationSet:
    """Turn a wicket table into design rows, one indicator column per stratum."""
    if index is None:
        index = CompetitorIndex.from_tables(table)
    counts = table.counts
    obs = ObservationSet(
        index=index,
        batter=index.positions(counts["batter"], Role.BAT),
        bowler=index.positions(counts["bowler"], Role.BOWL),
        strata=_indicator_strata(counts["stratum"].to_numpy(), table.strata),
        outcome=counts[["wickets", "survivals"]].to_numpy(dtype=float),
        synthetic=np.zeros(len(counts), dtype=bool),
        stratum_names=list(table.strata),
    )
    logger.debug("Wicket design: %d rows x %d params", len(obs), obs.n_params)
    return obs


def build_runs_observations(
    table: RunsTable,
    index: Optional[CompetitorIndex] = None,
) -> ObservationSet:
    """Turn a runs table into design rows; the row itself is the pair stratum."""
    if index is None:
        index = CompetitorIndex.from_tables(table)
    counts = table.counts
    n = len(counts)
    obs = ObservationSet(
        index=index,
        batter=index.positions(counts["batter"], Role.BAT),
        bowler=index.positions(counts["bowler"], Role.BOWL),
        strata=sparse.csr_matrix((n, 0)),
        outcome=table.category_matrix(),
        synthetic=np.zeros(n, dtype=bool),
        stratum_names=[],
    )
    logger.debug("Runs design: %d pairs x %d competitors", len(obs), len(index))
    return obs
