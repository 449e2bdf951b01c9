"""
Observation Aggregator.

Reduces the filtered delivery stream into sufficient-statistics tables:
wickets/survivals per (bowler, batter[, stratum]) for the wicket model, and
run-value frequencies per (batter, bowler) pair for the runs model.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np
import pandas as pd

from cricket_ratings.config import RUN_CATEGORIES, StratumScheme
from cricket_ratings.data.ball_event import AVERAGE_NAME, BallEvent
from cricket_ratings.errors import DataShapeError

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("match_id", "innings", "over", "striker", "bowler", "runs_off_bat", "wicket")

EventsLike = Union[Sequence[BallEvent], pd.DataFrame]


@dataclass
class WicketTable:
    """Aggregated wicket observations.

    counts has columns bowler, batter, stratum, wickets, survivals.
    stratum_weights[i] is the share of real balls bowled in strata[i].
    """
    counts: pd.DataFrame
    strata: list[str]
    stratum_weights: np.ndarray

    @property
    def total_balls(self) -> int:
        return int((self.counts["wickets"] + self.counts["survivals"]).sum())


@dataclass
class RunsTable:
    """Aggregated run-value frequencies, one row per (batter, bowler) pair.

    counts has columns batter, bowler and one integer column per run value.
    """
    counts: pd.DataFrame
    categories: tuple[int, ...]
    excluded_balls: int = 0

    def category_matrix(self) -> np.ndarray:
        return self.counts[list(self.categories)].to_numpy(dtype=float)


def events_to_frame(events: EventsLike) -> pd.DataFrame:
    """Convert deliveries to a frame and check every required field is present."""
    if isinstance(events, pd.DataFrame):
        frame = events.copy()
        if "wicket" not in frame.columns and "wicket_type" in frame.columns:
            dismissed = frame.get("player_dismissed")
            has_wicket = frame["wicket_type"].notna() & (frame["wicket_type"].astype(str).str.strip() != "")
            if dismissed is not None:
                # Only dismissals of the striker count against this delivery
                blank = dismissed.isna() | (dismissed.astype(str).str.strip() == "")
                has_wicket &= blank | (dismissed == frame["striker"])
            frame["wicket"] = has_wicket
    else:
        frame = pd.DataFrame([
            {
                "match_id": e.match_id,
                "innings": e.innings,
                "over": e.over,
                "striker": e.striker,
                "bowler": e.bowler,
                "runs_off_bat": e.runs_off_bat,
                "wicket": e.striker_dismissed,
                "venue": e.venue,
                "date": e.date,
            }
            for e in events
        ], columns=list(REQUIRED_COLUMNS) + ["venue", "date"])

    missing = [c for c in REQUIRED_COLUMNS if c not in frame.columns]
    if missing:
        raise DataShapeError(f"Event records missing required fields: {missing}")

    for col in ("striker", "bowler"):
        blank = frame[col].isna() | (frame[col].astype(str).str.strip() == "")
        if blank.any():
            raise DataShapeError(f"{int(blank.sum())} records have a blank '{col}'")
        if (frame[col] == AVERAGE_NAME).any():
            raise DataShapeError(f"'{AVERAGE_NAME}' is reserved for the reference competitor")

    for col in ("innings", "over", "runs_off_bat"):
        if frame[col].isna().any():
            raise DataShapeError(f"{int(frame[col].isna().sum())} records have no '{col}'")
        frame[col] = frame[col].astype(int)

    if (frame["striker"] == frame["bowler"]).any():
        raise DataShapeError("A delivery cannot be faced and bowled by the same player")
    if (frame["runs_off_bat"] < 0).any() or (frame["over"] < 0).any():
        raise DataShapeError("Negative runs or over index in event records")

    frame["wicket"] = frame["wicket"].astype(bool)
    return frame


def assign_strata(
    frame: pd.DataFrame,
    scheme: StratumScheme,
    phase_length_overs: int = 10,
) -> tuple[pd.Series, list[str]]:
    """Label each delivery with its stratum.

    Returns:
        (per-row stratum labels, ordered list of distinct strata)
    """
    if scheme == StratumScheme.NONE:
        return pd.Series("all", index=frame.index), ["all"]

    if scheme == StratumScheme.VENUE:
        if "venue" not in frame.columns:
            raise DataShapeError("Venue strata requested but records have no 'venue'")
        venue = frame["venue"].fillna("").astype(str).str.strip()
        if (venue == "").any():
            raise DataShapeError(f"{int((venue == '').sum())} records have a blank 'venue'")
        return venue, sorted(venue.unique())

    bad_innings = ~frame["innings"].isin([1, 2])
    if bad_innings.any():
        raise DataShapeError(
            f"Phase strata need innings 1 or 2, found {sorted(frame.loc[bad_innings, 'innings'].unique())}"
        )
    phase = frame["over"] // phase_length_overs
    keys = sorted(set(zip(frame["innings"], phase)))
    names = {
        (inn, ph): f"inn{inn}_ov{ph * phase_length_overs + 1}-{(ph + 1) * phase_length_overs}"
        for inn, ph in keys
    }
    labels = pd.Series(
        [names[k] for k in zip(frame["innings"], phase)], index=frame.index,
    )
    return labels, [names[k] for k in keys]


def aggregate_wickets(
    events: EventsLike,
    scheme: StratumScheme = StratumScheme.NONE,
    phase_length_overs: int = 10,
) -> WicketTable:
    """Group deliveries by (bowler, batter[, stratum]) into wicket/survival counts."""
    frame = events_to_frame(events)
    if frame.empty:
        raise DataShapeError("No deliveries to aggregate")

    frame["stratum"], strata = assign_strata(frame, scheme, phase_length_overs)
    frame["batter"] = frame["striker"]

    counts = (
        frame.groupby(["bowler", "batter", "stratum"], sort=True)["wicket"]
        .agg(wickets="sum", balls="size")
        .reset_index()
    )
    counts["wickets"] = counts["wickets"].astype(int)
    counts["survivals"] = counts["balls"] - counts["wickets"]
    counts = counts.drop(columns="balls")

    balls_per_stratum = frame["stratum"].value_counts().reindex(strata).to_numpy(dtype=float)
    weights = balls_per_stratum / balls_per_stratum.sum()

    logger.info(
        "Aggregated %d deliveries into %d wicket observations across %d strata",
        len(frame), len(counts), len(strata),
    )
    return WicketTable(counts=counts, strata=strata, stratum_weights=weights)


def aggregate_runs(
    events: EventsLike,
    excluded_runs: frozenset[int] = frozenset({5, 7}),
    categories: tuple[int, ...] = RUN_CATEGORIES,
) -> RunsTable:
    """Count run values per (batter, bowler) pair, dropping excluded run values."""
    frame = events_to_frame(events)

    excluded = frame["runs_off_bat"].isin(excluded_runs)
    frame = frame.loc[~excluded]
    unknown = ~frame["runs_off_bat"].isin(categories)
    if unknown.any():
        raise DataShapeError(
            f"Run values outside the modelled categories: {sorted(frame.loc[unknown, 'runs_off_bat'].unique())}"
        )
    if frame.empty:
        raise DataShapeError("No deliveries to aggregate")

    counts = (
        pd.crosstab([frame["striker"], frame["bowler"]], frame["runs_off_bat"])
        .reindex(columns=list(categories), fill_value=0)
        .reset_index()
        .rename(columns={"striker": "batter"})
    )
    counts.columns.name = None

    logger.info(
        "Aggregated %d deliveries into %d batter-bowler pairs (%d balls excluded)",
        len(frame), len(counts), int(excluded.sum()),
    )
    return RunsTable(counts=counts, categories=tuple(categories), excluded_balls=int(excluded.sum()))
