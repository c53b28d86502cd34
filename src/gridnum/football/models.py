from __future__ import annotations

from dataclasses import dataclass

from gridnum.contracts import ActualResult, Game, Play, PlayCall, RunoffType, TeamSide


@dataclass(slots=True)
class OffensiveSubmission:
    submitter: str
    number: int | None
    play_call: PlayCall
    runoff_type: RunoffType = RunoffType.NORMAL
    timeout_called: bool = False
    response_seconds: float | None = None


@dataclass(slots=True)
class TimeoutUsage:
    used: bool
    home_called: bool
    away_called: bool

    @property
    def charged_side(self) -> TeamSide | None:
        if not self.used:
            return None
        return TeamSide.HOME if self.home_called else TeamSide.AWAY


@dataclass(slots=True)
class FieldChange:
    result: ActualResult
    yards: int
    possession: TeamSide
    ball_location: int
    down: int
    yards_to_go: int


@dataclass(slots=True)
class PlayOutcome:
    """Everything one resolved play changes, before game-phase folding."""

    play: Play
    field: FieldChange
    home_score: int
    away_score: int
    quarter: int
    clock: int
    game_over: bool
    timeouts: TimeoutUsage


@dataclass(slots=True)
class Resolution:
    game: Game
    play: Play
