"""Raw outcome codes mapped to canonical results, as data.

Each play family owns a table from the raw code the outcome table returns to
either an `OutcomeRule` (a fixed result with its field-position and possession
transforms) or a `Gain` (scrimmage yardage that still has to go through down
and distance). Codes that carry a number ("35 YARD PUNT", "TURNOVER +5 YARDS",
"12") are matched by pattern.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Union

from gridnum.contracts import ActualResult, PlayCall, PlayFamily


class Possession(str, Enum):
    KEEP = "keep"
    FLIP = "flip"


class Beneficiary(str, Enum):
    OFFENSE = "offense"
    DEFENSE = "defense"


@dataclass(frozen=True, slots=True)
class Fixed:
    spot: int

    def apply(self, ball_location: int) -> int:
        return self.spot


@dataclass(frozen=True, slots=True)
class Mirror:
    """Field position seen from the other goal line, plus a return bonus."""

    bonus: int = 0

    def apply(self, ball_location: int) -> int:
        return 100 - ball_location + self.bonus


@dataclass(frozen=True, slots=True)
class Advance:
    yards: int
    cap: int = 99

    def apply(self, ball_location: int) -> int:
        return min(ball_location + self.yards, self.cap)


@dataclass(frozen=True, slots=True)
class PuntedTo:
    distance: int

    def apply(self, ball_location: int) -> int:
        return 100 - (ball_location + self.distance)


@dataclass(frozen=True, slots=True)
class Unchanged:
    def apply(self, ball_location: int) -> int:
        return ball_location


Spot = Union[Fixed, Mirror, Advance, PuntedTo, Unchanged]


@dataclass(frozen=True, slots=True)
class OutcomeRule:
    result: ActualResult
    spot: Spot
    possession: Possession = Possession.KEEP
    reset_downs: bool = True


@dataclass(frozen=True, slots=True)
class Gain:
    yards: int
    incomplete: bool = False


Outcome = Union[OutcomeRule, Gain]

PAT_SPOT = 97
KICKOFF_SPOT = 35
TOUCHBACK_SPOT = 20
KICKOFF_TOUCHBACK_SPOT = 25

END_OF_HALF = "END OF HALF"

NORMAL_OUTCOMES: dict[str, Outcome] = {
    "TOUCHDOWN": OutcomeRule(ActualResult.TOUCHDOWN, Fixed(PAT_SPOT)),
    "TURNOVER": OutcomeRule(ActualResult.TURNOVER, Mirror(), Possession.FLIP),
    "TURNOVER TOUCHDOWN": OutcomeRule(ActualResult.TURNOVER_TOUCHDOWN, Fixed(PAT_SPOT), Possession.FLIP),
    "NO GAIN": Gain(0),
    "INCOMPLETE": Gain(0, incomplete=True),
    END_OF_HALF: OutcomeRule(ActualResult.END_OF_HALF, Unchanged(), reset_downs=False),
}

FIELD_GOAL_OUTCOMES: dict[str, Outcome] = {
    "GOOD": OutcomeRule(ActualResult.GOOD, Fixed(KICKOFF_SPOT)),
    "NO GOOD": OutcomeRule(ActualResult.NO_GOOD, Mirror(), Possession.FLIP),
    "BLOCKED FIELD GOAL": OutcomeRule(ActualResult.BLOCKED, Mirror(), Possession.FLIP),
    "KICK SIX": OutcomeRule(ActualResult.KICK_SIX, Fixed(PAT_SPOT), Possession.FLIP),
    END_OF_HALF: OutcomeRule(ActualResult.END_OF_HALF, Unchanged(), reset_downs=False),
}

PUNT_OUTCOMES: dict[str, Outcome] = {
    "TOUCHBACK": OutcomeRule(ActualResult.PUNT, Fixed(TOUCHBACK_SPOT), Possession.FLIP),
    "BLOCKED PUNT": OutcomeRule(ActualResult.BLOCKED, Mirror(), Possession.FLIP),
    "PUNT RETURN TOUCHDOWN": OutcomeRule(ActualResult.PUNT_RETURN_TOUCHDOWN, Fixed(PAT_SPOT), Possession.FLIP),
    "FUMBLE": OutcomeRule(ActualResult.MUFFED_PUNT, Advance(40)),
    "TOUCHDOWN": OutcomeRule(ActualResult.PUNT_TEAM_TOUCHDOWN, Fixed(PAT_SPOT)),
    END_OF_HALF: OutcomeRule(ActualResult.END_OF_HALF, Unchanged(), reset_downs=False),
}

KICKOFF_OUTCOMES: dict[str, Outcome] = {
    "TOUCHDOWN": OutcomeRule(ActualResult.KICKING_TEAM_TOUCHDOWN, Fixed(PAT_SPOT)),
    "FUMBLE": OutcomeRule(ActualResult.MUFFED_KICK, Fixed(75)),
    "TOUCHBACK": OutcomeRule(ActualResult.KICKOFF, Fixed(KICKOFF_TOUCHBACK_SPOT), Possession.FLIP),
    "RETURN TOUCHDOWN": OutcomeRule(ActualResult.RETURN_TOUCHDOWN, Fixed(PAT_SPOT), Possession.FLIP),
    "RECOVERED": OutcomeRule(ActualResult.SUCCESSFUL_ONSIDE, Fixed(45)),
    "FAILED ONSIDE": OutcomeRule(ActualResult.FAILED_ONSIDE, Fixed(55), Possession.FLIP),
}

POINT_AFTER_OUTCOMES: dict[str, Outcome] = {
    "GOOD": OutcomeRule(ActualResult.GOOD, Fixed(KICKOFF_SPOT)),
    "NO GOOD": OutcomeRule(ActualResult.NO_GOOD, Fixed(KICKOFF_SPOT)),
    "SUCCESS": OutcomeRule(ActualResult.SUCCESS, Fixed(KICKOFF_SPOT)),
    "FAILED": OutcomeRule(ActualResult.FAILED, Fixed(KICKOFF_SPOT)),
    "DEFENSE TWO POINT": OutcomeRule(ActualResult.DEFENSE_TWO_POINT, Fixed(KICKOFF_SPOT)),
}

_TURNOVER_YARDS = re.compile(r"^TURNOVER ([+-]\d+) YARDS$")
_GAIN = re.compile(r"^-?\d+$")
_PUNT = re.compile(r"^(\d+) YARD PUNT$")
_RETURN = re.compile(r"^(\d+) YARD RETURN$")

_PATTERNS: dict[PlayFamily, list[tuple[re.Pattern[str], Callable[[re.Match[str]], Outcome]]]] = {
    PlayFamily.NORMAL: [
        (_TURNOVER_YARDS, lambda m: OutcomeRule(ActualResult.TURNOVER, Mirror(int(m.group(1))), Possession.FLIP)),
        (_GAIN, lambda m: Gain(int(m.group(0)))),
    ],
    PlayFamily.PUNT: [
        (_PUNT, lambda m: OutcomeRule(ActualResult.PUNT, PuntedTo(int(m.group(1))), Possession.FLIP)),
    ],
    PlayFamily.KICKOFF: [
        (_RETURN, lambda m: OutcomeRule(ActualResult.KICKOFF, Fixed(int(m.group(1))), Possession.FLIP)),
    ],
}

_TABLES: dict[PlayFamily, dict[str, Outcome]] = {
    PlayFamily.NORMAL: NORMAL_OUTCOMES,
    PlayFamily.FIELD_GOAL: FIELD_GOAL_OUTCOMES,
    PlayFamily.PUNT: PUNT_OUTCOMES,
    PlayFamily.KICKOFF: KICKOFF_OUTCOMES,
    PlayFamily.POINT_AFTER: POINT_AFTER_OUTCOMES,
}


def map_outcome(family: PlayFamily, raw: str) -> Outcome | None:
    code = raw.strip().upper()
    table = _TABLES[family]
    if code in table:
        return table[code]
    for pattern, build in _PATTERNS.get(family, []):
        match = pattern.match(code)
        if match:
            return build(match)
    return None


_SCORING: dict[ActualResult, tuple[Beneficiary, int]] = {
    ActualResult.TOUCHDOWN: (Beneficiary.OFFENSE, 6),
    ActualResult.KICKING_TEAM_TOUCHDOWN: (Beneficiary.OFFENSE, 6),
    ActualResult.PUNT_TEAM_TOUCHDOWN: (Beneficiary.OFFENSE, 6),
    ActualResult.TURNOVER_TOUCHDOWN: (Beneficiary.DEFENSE, 6),
    ActualResult.RETURN_TOUCHDOWN: (Beneficiary.DEFENSE, 6),
    ActualResult.PUNT_RETURN_TOUCHDOWN: (Beneficiary.DEFENSE, 6),
    ActualResult.KICK_SIX: (Beneficiary.DEFENSE, 6),
    ActualResult.SUCCESS: (Beneficiary.OFFENSE, 2),
    ActualResult.DEFENSE_TWO_POINT: (Beneficiary.DEFENSE, 2),
    ActualResult.SAFETY: (Beneficiary.DEFENSE, 2),
}

TOUCHDOWN_RESULTS = frozenset(
    {
        ActualResult.TOUCHDOWN,
        ActualResult.KICKING_TEAM_TOUCHDOWN,
        ActualResult.PUNT_TEAM_TOUCHDOWN,
        ActualResult.TURNOVER_TOUCHDOWN,
        ActualResult.RETURN_TOUCHDOWN,
        ActualResult.PUNT_RETURN_TOUCHDOWN,
        ActualResult.KICK_SIX,
    }
)


def points_for(result: ActualResult, call: PlayCall | None) -> tuple[Beneficiary, int] | None:
    """Who scores on a play, relative to the pre-play possessor, and how much.

    Used forward when a play is resolved and in reverse on rollback.
    """
    if result is ActualResult.GOOD:
        if call is not None and call.family is PlayFamily.POINT_AFTER:
            return Beneficiary.OFFENSE, 1
        return Beneficiary.OFFENSE, 3
    return _SCORING.get(result)
