from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Protocol, Sequence


class TeamSide(str, Enum):
    HOME = "home"
    AWAY = "away"

    @property
    def opponent(self) -> TeamSide:
        return TeamSide.AWAY if self is TeamSide.HOME else TeamSide.HOME


class GameStatus(str, Enum):
    PREGAME = "pregame"
    OPENING_KICKOFF = "opening_kickoff"
    IN_PROGRESS = "in_progress"
    HALFTIME = "halftime"
    END_OF_REGULATION = "end_of_regulation"
    OVERTIME = "overtime"
    FINAL = "final"


class GameType(str, Enum):
    SCRIMMAGE = "scrimmage"
    OUT_OF_CONFERENCE = "out_of_conference"
    CONFERENCE_GAME = "conference_game"
    CONFERENCE_CHAMPIONSHIP = "conference_championship"
    PLAYOFFS = "playoffs"
    BOWL = "bowl"
    NATIONAL_CHAMPIONSHIP = "national_championship"


class PlayType(str, Enum):
    KICKOFF = "kickoff"
    NORMAL = "normal"
    PAT = "pat"


class PlayFamily(str, Enum):
    NORMAL = "normal"
    FIELD_GOAL = "field_goal"
    PUNT = "punt"
    KICKOFF = "kickoff"
    POINT_AFTER = "point_after"


class PlayCall(str, Enum):
    RUN = "run"
    PASS = "pass"
    SPIKE = "spike"
    KNEEL = "kneel"
    FIELD_GOAL = "field_goal"
    PUNT = "punt"
    KICKOFF_NORMAL = "kickoff_normal"
    KICKOFF_ONSIDE = "kickoff_onside"
    KICKOFF_SQUIB = "kickoff_squib"
    PAT = "pat"
    TWO_POINT = "two_point"

    @property
    def family(self) -> PlayFamily:
        return _CALL_FAMILY[self]

    @property
    def play_type(self) -> PlayType:
        """The game-level phase in which this call may be submitted."""
        if self.family is PlayFamily.KICKOFF:
            return PlayType.KICKOFF
        if self.family is PlayFamily.POINT_AFTER:
            return PlayType.PAT
        return PlayType.NORMAL

    @property
    def is_canned(self) -> bool:
        return self in (PlayCall.SPIKE, PlayCall.KNEEL)


_CALL_FAMILY = {
    PlayCall.RUN: PlayFamily.NORMAL,
    PlayCall.PASS: PlayFamily.NORMAL,
    PlayCall.SPIKE: PlayFamily.NORMAL,
    PlayCall.KNEEL: PlayFamily.NORMAL,
    PlayCall.FIELD_GOAL: PlayFamily.FIELD_GOAL,
    PlayCall.PUNT: PlayFamily.PUNT,
    PlayCall.KICKOFF_NORMAL: PlayFamily.KICKOFF,
    PlayCall.KICKOFF_ONSIDE: PlayFamily.KICKOFF,
    PlayCall.KICKOFF_SQUIB: PlayFamily.KICKOFF,
    PlayCall.PAT: PlayFamily.POINT_AFTER,
    PlayCall.TWO_POINT: PlayFamily.POINT_AFTER,
}


class RunoffType(str, Enum):
    HURRY = "hurry"
    NORMAL = "normal"
    FINAL = "final"
    CHEW = "chew"


class OffensivePlaybook(str, Enum):
    PRO = "pro"
    AIR_RAID = "air_raid"
    FLEXBONE = "flexbone"
    SPREAD = "spread"
    WEST_COAST = "west_coast"


class DefensivePlaybook(str, Enum):
    FOUR_THREE = "4-3"
    THREE_FOUR = "3-4"
    FIVE_TWO = "5-2"
    FOUR_FOUR = "4-4"
    THREE_THREE_FIVE = "3-3-5"


class CoinTossCall(str, Enum):
    HEADS = "heads"
    TAILS = "tails"


class CoinTossChoice(str, Enum):
    RECEIVE = "receive"
    DEFER = "defer"


class OvertimeCoinTossChoice(str, Enum):
    OFFENSE = "offense"
    DEFENSE = "defense"


class ActualResult(str, Enum):
    TOUCHDOWN = "touchdown"
    TURNOVER = "turnover"
    TURNOVER_TOUCHDOWN = "turnover_touchdown"
    FIRST_DOWN = "first_down"
    GAIN = "gain"
    NO_GAIN = "no_gain"
    LOSS = "loss"
    SAFETY = "safety"
    TURNOVER_ON_DOWNS = "turnover_on_downs"
    SPIKE = "spike"
    KNEEL = "kneel"
    END_OF_HALF = "end_of_half"
    GOOD = "good"
    NO_GOOD = "no_good"
    BLOCKED = "blocked"
    KICK_SIX = "kick_six"
    PUNT = "punt"
    PUNT_RETURN_TOUCHDOWN = "punt_return_touchdown"
    PUNT_TEAM_TOUCHDOWN = "punt_team_touchdown"
    MUFFED_PUNT = "muffed_punt"
    KICKOFF = "kickoff"
    KICKING_TEAM_TOUCHDOWN = "kicking_team_touchdown"
    RETURN_TOUCHDOWN = "return_touchdown"
    MUFFED_KICK = "muffed_kick"
    SUCCESSFUL_ONSIDE = "successful_onside"
    FAILED_ONSIDE = "failed_onside"
    SUCCESS = "success"
    FAILED = "failed"
    DEFENSE_TWO_POINT = "defense_two_point"
    DELAY_OF_GAME = "delay_of_game"


class RandomSource(Protocol):
    def rand(self) -> float: ...

    def randint(self, a: int, b: int) -> int: ...

    def choice(self, items: Sequence[Any]) -> Any: ...

    def spawn(self, substream_id: str) -> RandomSource: ...


@dataclass(slots=True)
class Game:
    game_id: str
    home_team: str
    away_team: str
    home_coach_id: str | None = None
    away_coach_id: str | None = None
    game_type: GameType = GameType.OUT_OF_CONFERENCE
    home_offensive_playbook: OffensivePlaybook = OffensivePlaybook.PRO
    away_offensive_playbook: OffensivePlaybook = OffensivePlaybook.PRO
    home_defensive_playbook: DefensivePlaybook = DefensivePlaybook.FOUR_THREE
    away_defensive_playbook: DefensivePlaybook = DefensivePlaybook.FOUR_THREE
    home_elo: float = 1500.0
    away_elo: float = 1500.0
    home_rank: int | None = None
    away_rank: int | None = None
    status: GameStatus = GameStatus.PREGAME
    quarter: int = 1
    clock: int = 420
    clock_stopped: bool = True
    possession: TeamSide = TeamSide.HOME
    waiting_on: TeamSide = TeamSide.AWAY
    ball_location: int = 35
    down: int = 1
    yards_to_go: int = 10
    home_score: int = 0
    away_score: int = 0
    home_timeouts: int = 3
    away_timeouts: int = 3
    current_play_type: PlayType = PlayType.KICKOFF
    current_play_id: str | None = None
    coin_toss_winner: TeamSide | None = None
    coin_toss_choice: CoinTossChoice | None = None
    overtime_coin_toss_winner: TeamSide | None = None
    overtime_coin_toss_choice: OvertimeCoinTossChoice | None = None
    overtime_half: int = 0
    num_plays: int = 0
    close_game: bool = False
    upset_alert: bool = False
    win_probability: float = 0.5
    last_action_at: datetime | None = None

    def score_of(self, side: TeamSide) -> int:
        return self.home_score if side is TeamSide.HOME else self.away_score

    def offensive_playbook_of(self, side: TeamSide) -> OffensivePlaybook:
        return self.home_offensive_playbook if side is TeamSide.HOME else self.away_offensive_playbook

    def defensive_playbook_of(self, side: TeamSide) -> DefensivePlaybook:
        return self.home_defensive_playbook if side is TeamSide.HOME else self.away_defensive_playbook

    def coach_of(self, side: TeamSide) -> str | None:
        return self.home_coach_id if side is TeamSide.HOME else self.away_coach_id


@dataclass(slots=True)
class Play:
    play_id: str
    game_id: str
    play_number: int
    # pre-play snapshot
    home_score: int
    away_score: int
    quarter: int
    clock: int
    ball_location: int
    possession: TeamSide
    down: int
    yards_to_go: int
    home_timeouts: int
    away_timeouts: int
    clock_stopped: bool
    status: GameStatus
    overtime_half: int
    play_type: PlayType
    # submissions
    defensive_number: str | None = None
    offensive_number: int | None = None
    defensive_submitter: str | None = None
    offensive_submitter: str | None = None
    play_call: PlayCall | None = None
    runoff_type: RunoffType | None = None
    defensive_timeout_called: bool = False
    offensive_timeout_called: bool = False
    defensive_response_seconds: float | None = None
    offensive_response_seconds: float | None = None
    # resolution
    result: str | None = None
    actual_result: ActualResult | None = None
    yards: int = 0
    play_time: int = 0
    runoff_time: int = 0
    difference: int | None = None
    timeout_used: bool = False
    penalized_side: TeamSide | None = None
    final_home_score: int | None = None
    final_away_score: int | None = None
    win_probability: float | None = None
    win_probability_added: float | None = None
    finished: bool = False


@dataclass(slots=True)
class Participant:
    participant_id: str
    name: str = ""
    delay_of_game_instances: int = 0


@dataclass(slots=True)
class OutcomeRow:
    result: str
    play_time: int


@dataclass(slots=True)
class NarrativeEvent:
    event_id: str
    time: datetime
    scope: str
    event_type: str
    actors: list[str]
    claims: list[str]
    evidence_handles: list[str] = field(default_factory=list)
    severity: str = "normal"


@dataclass(slots=True)
class ResourceManifest:
    resource_type: str
    schema_version: str
    resource_version: str
    generated_at: str


@dataclass(slots=True)
class ValidationIssue:
    code: str
    severity: str
    field_path: str
    entity_id: str
    message: str


class ValidationError(ValueError):
    def __init__(self, issues: list[ValidationIssue]) -> None:
        message = "; ".join(f"{i.code}:{i.entity_id}:{i.message}" for i in issues)
        super().__init__(message)
        self.issues = issues


@dataclass(slots=True)
class ForensicArtifact:
    artifact_id: str
    timestamp: datetime
    engine_scope: str
    error_code: str
    message: str
    state_snapshot: Mapping[str, Any]
    context: Mapping[str, Any]
    identifiers: Mapping[str, str]
    causal_fragment: Sequence[str]
