"""
Cricsheet.org data loader.

Loads historical ball-by-ball match data from Cricsheet CSV files into
BallEvents for rating fits.

Data source: https://cricsheet.org/downloads/
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Optional

from cricket_ratings.data.ball_event import BallEvent, WicketType

logger = logging.getLogger(__name__)

WICKET_MAP = {
    "bowled": WicketType.BOWLED,
    "caught": WicketType.CAUGHT,
    "caught and bowled": WicketType.CAUGHT,
    "lbw": WicketType.LBW,
    "run out": WicketType.RUN_OUT,
    "stumped": WicketType.STUMPED,
    "hit wicket": WicketType.HIT_WICKET,
    "retired hurt": WicketType.RETIRED_HURT,
    "retired out": WicketType.RETIRED_OUT,
    "obstructing the field": WicketType.OBSTRUCTING,
    "timed out": WicketType.TIMED_OUT,
    "handled the ball": WicketType.HANDLED_BALL,
}


def load_match_from_csv(csv_path: Path) -> list[BallEvent]:
    """Load a single match from a Cricsheet CSV file.

    Cricsheet CSV format has columns:
    match_id, season, start_date, venue, innings, ball, batting_team,
    bowling_team, striker, non_striker, bowler, runs_off_bat, extras,
    wides, noballs, byes, legbyes, penalty, wicket_type, player_dismissed

    Returns:
        BallEvents in delivery order
    """
    with open(csv_path, "r", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))

    if not rows:
        raise ValueError(f"Empty CSV file: {csv_path}")

    events: list[BallEvent] = []
    for row in rows:
        ball_str = row["ball"]  # e.g. "5.3"
        if "." in ball_str:
            over_str, ball_num_str = ball_str.split(".", 1)
            over, ball_num = int(over_str), int(ball_num_str)
        else:
            over, ball_num = int(float(ball_str)), 0

        wicket_type_str = (row.get("wicket_type") or "").strip().lower()
        wicket_type = WICKET_MAP.get(wicket_type_str) if wicket_type_str else None
        if wicket_type_str and wicket_type is None:
            logger.debug("Unknown wicket type %r in %s", wicket_type_str, csv_path.name)

        events.append(BallEvent(
            match_id=str(row.get("match_id") or csv_path.stem),
            innings=int(row["innings"]),
            over=over,
            ball=ball_num,
            striker=row.get("striker", ""),
            bowler=row.get("bowler", ""),
            runs_off_bat=int(row.get("runs_off_bat") or 0),
            extras=int(row.get("extras") or 0),
            wicket_type=wicket_type,
            player_dismissed=(row.get("player_dismissed") or "").strip() or None,
            date=row.get("start_date", ""),
            venue=row.get("venue", ""),
            non_striker=row.get("non_striker", ""),
            batting_team=row.get("batting_team", ""),
            bowling_team=row.get("bowling_team", ""),
        ))

    logger.debug("Loaded match %s: %d deliveries", events[0].match_id, len(events))
    return events


def load_events_from_directory(
    directory: Path,
    match_format: Optional[str] = None,
    max_matches: Optional[int] = None,
) -> list[BallEvent]:
    """Load all deliveries from a directory of Cricsheet CSV files.

    Args:
        directory: Path to directory containing CSV files
        match_format: Filter by format (t20, odi, test)
        max_matches: Maximum number of matches to load

    Returns:
        BallEvents from every loaded match, file by file in sorted order
    """
    csv_files = sorted(p for p in directory.glob("*.csv") if not p.stem.endswith("_info"))
    if not csv_files:
        logger.warning("No CSV files found in %s", directory)
        return []

    events: list[BallEvent] = []
    loaded = 0
    for csv_file in csv_files:
        if max_matches and loaded >= max_matches:
            break
        try:
            match_events = load_match_from_csv(csv_file)
        except (OSError, ValueError, KeyError) as e:
            logger.warning("Failed to load %s: %s", csv_file.name, e)
            continue
        if match_format and infer_format(match_events) != match_format:
            continue
        events.extend(match_events)
        loaded += 1

    logger.info("Loaded %d matches (%d deliveries) from %s", loaded, len(events), directory)
    return events


def infer_format(events: list[BallEvent]) -> str:
    """Infer match format from ball-by-ball data."""
    max_over = max((e.over for e in events), default=0)
    innings_set = {e.innings for e in events}

    if len(innings_set) > 2:
        return "test"
    if max_over >= 20:
        return "odi"
    return "t20"
