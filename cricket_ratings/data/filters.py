"""
Upstream event filters.

The models only see legal, extras-free deliveries whose dismissals (if any)
are credited to the bowler, faced and bowled by players above the
eligibility thresholds.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Iterable

from cricket_ratings.config import FilterConfig
from cricket_ratings.data.ball_event import BallEvent

logger = logging.getLogger(__name__)


def is_clean_delivery(event: BallEvent) -> bool:
    """No extras, and any dismissal is the bowler's."""
    if event.extras != 0:
        return False
    if event.wicket_type is not None and not event.wicket_type.bowler_credited:
        return False
    return True


def apply_eligibility(
    events: list[BallEvent],
    min_balls_faced: int = 0,
    min_balls_bowled: int = 0,
) -> list[BallEvent]:
    """Drop deliveries involving a batter or bowler below the ball thresholds."""
    if min_balls_faced <= 0 and min_balls_bowled <= 0:
        return events

    faced = Counter(e.striker for e in events)
    bowled = Counter(e.bowler for e in events)
    kept = [
        e for e in events
        if faced[e.striker] >= min_balls_faced and bowled[e.bowler] >= min_balls_bowled
    ]
    logger.info(
        "Eligibility (faced>=%d, bowled>=%d): kept %d of %d deliveries",
        min_balls_faced, min_balls_bowled, len(kept), len(events),
    )
    return kept


def prepare_events(
    events: Iterable[BallEvent],
    filters: FilterConfig = FilterConfig(),
) -> list[BallEvent]:
    """Run every upstream filter in order."""
    events = list(events)
    clean = [e for e in events if is_clean_delivery(e)]
    logger.info("Clean deliveries: %d of %d", len(clean), len(events))
    return apply_eligibility(clean, filters.min_balls_faced, filters.min_balls_bowled)
