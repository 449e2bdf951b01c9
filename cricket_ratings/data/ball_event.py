"""
Ball-by-ball event data model.

Defines the canonical delivery record that flows from ingestion into the
aggregator, and the role-specific competitor identities the models fit.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class WicketType(Enum):
    BOWLED = "bowled"
    CAUGHT = "caught"
    LBW = "lbw"
    RUN_OUT = "run_out"
    STUMPED = "stumped"
    HIT_WICKET = "hit_wicket"
    RETIRED_HURT = "retired_hurt"
    RETIRED_OUT = "retired_out"
    OBSTRUCTING = "obstructing_the_field"
    TIMED_OUT = "timed_out"
    HANDLED_BALL = "handled_the_ball"

    @property
    def bowler_credited(self) -> bool:
        """Whether the dismissal is attributed to the bowler."""
        return self in BOWLER_CREDITED


BOWLER_CREDITED = frozenset({
    WicketType.BOWLED,
    WicketType.CAUGHT,
    WicketType.LBW,
    WicketType.STUMPED,
    WicketType.HIT_WICKET,
})


class Role(Enum):
    BAT = "Bat"
    BOWL = "Bowl"


AVERAGE_NAME = "Average"


@dataclass(frozen=True)
class Competitor:
    """A player in one role. The same person bats and bowls as two competitors."""

    name: str
    role: Role

    @property
    def identity(self) -> str:
        return f"{self.name} {self.role.value}"

    @property
    def is_average(self) -> bool:
        return self.name == AVERAGE_NAME

    def __lt__(self, other: "Competitor") -> bool:
        return self.identity < other.identity

    def __str__(self) -> str:
        return self.identity


AVERAGE_BAT = Competitor(AVERAGE_NAME, Role.BAT)
AVERAGE_BOWL = Competitor(AVERAGE_NAME, Role.BOWL)


@dataclass
class BallEvent:
    """A single delivery in a cricket match."""

    match_id: str
    innings: int  # 1 or 2
    over: int  # 0-indexed over number
    ball: int  # Ball within over
    striker: str
    bowler: str

    runs_off_bat: int = 0
    extras: int = 0

    wicket_type: Optional[WicketType] = None
    player_dismissed: Optional[str] = None

    date: str = ""
    venue: str = ""
    non_striker: str = ""
    batting_team: str = ""
    bowling_team: str = ""

    @property
    def is_wicket(self) -> bool:
        return self.wicket_type is not None

    @property
    def striker_dismissed(self) -> bool:
        """Whether this ball dismissed the batter facing it."""
        if self.wicket_type is None:
            return False
        return self.player_dismissed in (None, "", self.striker)
