from __future__ import annotations

import logging
from dataclasses import replace

from gridnum.contracts import (
    ActualResult,
    Game,
    GameStatus,
    OffensivePlaybook,
    OutcomeRow,
    Play,
    PlayCall,
    PlayFamily,
    RunoffType,
    TeamSide,
)
from gridnum.core import (
    EngineIntegrityError,
    GameRules,
    PhaseViolationError,
    build_forensic_artifact,
    default_rules,
)
from gridnum.football.models import FieldChange, OffensiveSubmission, PlayOutcome, TimeoutUsage
from gridnum.football.outcome_table import OutcomeTable
from gridnum.football.outcomes import (
    END_OF_HALF,
    PAT_SPOT,
    TOUCHBACK_SPOT,
    TOUCHDOWN_RESULTS,
    Beneficiary,
    Gain,
    OutcomeRule,
    Possession,
    PuntedTo,
    map_outcome,
    points_for,
)

logger = logging.getLogger(__name__)

_CLOCKED_FAMILIES = (PlayFamily.NORMAL, PlayFamily.FIELD_GOAL, PlayFamily.PUNT)


def closeness(offensive_number: int, defensive_number: int, max_difference: int = 750) -> int:
    diff = abs(offensive_number - defensive_number)
    if diff > max_difference:
        diff = 2 * max_difference - diff
    return diff


class PlayResolver:
    """Turns a pending play plus the offense's submission into a sealed play.

    Pure: neither the game nor the pending play is mutated; the caller folds the
    returned `PlayOutcome` into game state and persists both.
    """

    def __init__(self, table: OutcomeTable, rules: GameRules | None = None) -> None:
        self._table = table
        self._rules = rules or default_rules()

    def resolve(self, game: Game, play: Play, submission: OffensiveSubmission, defensive_number: int | None) -> PlayOutcome:
        call = submission.play_call
        family = call.family
        if call.play_type is not game.current_play_type:
            raise PhaseViolationError.single(
                "WRONG_PLAY_FAMILY",
                game.game_id,
                f"{call.value} cannot be called during a {game.current_play_type.value} play",
                field_path="play_call",
            )

        timeouts = self.timeout_usage(play, submission.timeout_called)
        runoff = self.runoff(play, call, submission.runoff_type, timeouts.used, game.offensive_playbook_of(play.possession))

        difference: int | None = None
        if call.is_canned:
            raw = call.name
            play_time = 0 if call is PlayCall.SPIKE else 1
        else:
            if submission.number is None or defensive_number is None:
                raise PhaseViolationError.single("NUMBER_REQUIRED", game.game_id, f"{call.value} requires a number", field_path="number")
            difference = closeness(submission.number, defensive_number, self._rules.max_difference)
            row = self._lookup(game, play, call, difference)
            raw, play_time = row.result, row.play_time

        if family in _CLOCKED_FAMILIES and play.quarter in (2, 4) and play.clock - runoff < 0:
            raw = END_OF_HALF

        if call.is_canned and raw != END_OF_HALF:
            field = self._canned(play, call)
        else:
            field = self._map(game, play, family, raw, difference)

        home, away = self._score(play, field.result, call)
        is_td = field.result in TOUCHDOWN_RESULTS
        if family is PlayFamily.POINT_AFTER:
            quarter, clock, game_over = self._point_after_clock(play, home, away)
        else:
            quarter, clock, game_over = self._scrimmage_clock(play, runoff, play_time, is_td, home, away)

        sealed = replace(
            play,
            defensive_number=None if defensive_number is None else str(defensive_number),
            offensive_number=submission.number,
            offensive_submitter=submission.submitter,
            play_call=call,
            runoff_type=submission.runoff_type,
            offensive_timeout_called=submission.timeout_called,
            offensive_response_seconds=submission.response_seconds,
            result=raw,
            actual_result=field.result,
            yards=field.yards,
            play_time=play_time,
            runoff_time=runoff,
            difference=difference,
            timeout_used=timeouts.used,
            final_home_score=home,
            final_away_score=away,
            finished=True,
        )
        return PlayOutcome(
            play=sealed,
            field=field,
            home_score=home,
            away_score=away,
            quarter=quarter,
            clock=clock,
            game_over=game_over,
            timeouts=timeouts,
        )

    def timeout_usage(self, play: Play, offensive_timeout_called: bool) -> TimeoutUsage:
        offense = play.possession
        defense = offense.opponent
        remaining = {TeamSide.HOME: play.home_timeouts, TeamSide.AWAY: play.away_timeouts}
        calls = ((defense, play.defensive_timeout_called), (offense, offensive_timeout_called))
        for side, called in calls:
            if called and remaining[side] > 0 and not play.clock_stopped:
                return TimeoutUsage(used=True, home_called=side is TeamSide.HOME, away_called=side is TeamSide.AWAY)
        return TimeoutUsage(
            used=False,
            home_called=any(called and side is TeamSide.HOME for side, called in calls),
            away_called=any(called and side is TeamSide.AWAY for side, called in calls),
        )

    def runoff(self, play: Play, call: PlayCall, runoff_type: RunoffType, timeout_used: bool, playbook: OffensivePlaybook) -> int:
        rules = self._rules
        if call.family not in _CLOCKED_FAMILIES:
            return 0
        if play.clock_stopped or timeout_used:
            return rules.spike_stopped_runoff if call is PlayCall.SPIKE else 0
        if call is PlayCall.SPIKE:
            return rules.spike_runoff
        if call is PlayCall.KNEEL:
            return rules.kneel_runoff
        if runoff_type is RunoffType.HURRY:
            return rules.hurry_runoff
        if runoff_type is RunoffType.FINAL:
            if play.clock <= rules.final_runoff_floor:
                return play.clock
            if play.clock > rules.final_runoff_cap:
                return rules.final_runoff_cap
            return play.clock - 1
        if runoff_type is RunoffType.CHEW:
            return rules.chew_runoff
        return rules.playbook_runoff[playbook]

    def _lookup(self, game: Game, play: Play, call: PlayCall, difference: int) -> OutcomeRow:
        family = call.family
        if family is PlayFamily.NORMAL:
            row = self._table.lookup_normal(
                call,
                game.offensive_playbook_of(play.possession),
                game.defensive_playbook_of(play.possession.opponent),
                difference,
            )
        elif family is PlayFamily.FIELD_GOAL:
            row = self._table.lookup_field_goal(100 - play.ball_location + 17, difference)
        elif family is PlayFamily.PUNT:
            row = self._table.lookup_punt(play.ball_location, difference)
        else:
            row = self._table.lookup_non_normal(call, difference)
        if row is None:
            raise self._integrity_error(
                "OUTCOME_TABLE_MISS",
                "outcome table returned no row",
                game,
                play,
                {"play_call": call.value, "difference": difference},
            )
        return row

    def _map(self, game: Game, play: Play, family: PlayFamily, raw: str, difference: int | None) -> FieldChange:
        outcome = map_outcome(family, raw)
        if outcome is None:
            raise self._integrity_error(
                "UNMAPPED_OUTCOME",
                f"raw outcome '{raw}' has no {family.value} mapping",
                game,
                play,
                {"raw_outcome": raw, "family": family.value, "difference": difference},
            )
        if isinstance(outcome, Gain):
            return self._scrimmage(play, outcome.yards, outcome.incomplete)
        return self._apply_rule(play, family, outcome)

    def _apply_rule(self, play: Play, family: PlayFamily, rule: OutcomeRule) -> FieldChange:
        ball = play.ball_location
        possession = play.possession.opponent if rule.possession is Possession.FLIP else play.possession
        spot = rule.spot.apply(ball)
        result = rule.result
        yards = 0

        if family is PlayFamily.NORMAL and result is ActualResult.TURNOVER:
            if spot >= 100:
                result, spot = ActualResult.TURNOVER_TOUCHDOWN, PAT_SPOT
            elif spot <= 0:
                spot = TOUCHBACK_SPOT
        elif family is PlayFamily.NORMAL and result is ActualResult.TOUCHDOWN:
            yards = 100 - ball
        elif isinstance(rule.spot, PuntedTo) and spot <= 0:
            spot = TOUCHBACK_SPOT

        if rule.reset_downs:
            return FieldChange(result, yards, possession, spot, 1, 10)
        return FieldChange(result, yards, possession, spot, play.down, play.yards_to_go)

    def _scrimmage(self, play: Play, yards: int, incomplete: bool) -> FieldChange:
        ball = play.ball_location
        if incomplete:
            yards = 0
        new_ball = ball + yards
        if new_ball >= 100:
            return FieldChange(ActualResult.TOUCHDOWN, 100 - ball, play.possession, PAT_SPOT, 1, 10)
        if new_ball <= 0:
            return FieldChange(ActualResult.SAFETY, -ball, play.possession, TOUCHBACK_SPOT, 1, 10)
        if yards >= play.yards_to_go:
            return FieldChange(ActualResult.FIRST_DOWN, yards, play.possession, new_ball, 1, 10)
        if play.down + 1 > 4:
            return self._turnover_on_downs(play, yards, new_ball)
        if yards > 0:
            result = ActualResult.GAIN
        elif yards < 0:
            result = ActualResult.LOSS
        else:
            result = ActualResult.NO_GAIN
        return FieldChange(result, yards, play.possession, new_ball, play.down + 1, play.yards_to_go - yards)

    def _canned(self, play: Play, call: PlayCall) -> FieldChange:
        if call is PlayCall.SPIKE:
            if play.down + 1 > 4:
                return self._turnover_on_downs(play, 0, play.ball_location)
            return FieldChange(ActualResult.SPIKE, 0, play.possession, play.ball_location, play.down + 1, play.yards_to_go)
        ball = max(play.ball_location - 2, 1)
        if play.down + 1 > 4:
            return self._turnover_on_downs(play, -2, ball)
        return FieldChange(ActualResult.KNEEL, -2, play.possession, ball, play.down + 1, play.yards_to_go + 2)

    def _turnover_on_downs(self, play: Play, yards: int, ball: int) -> FieldChange:
        return FieldChange(ActualResult.TURNOVER_ON_DOWNS, yards, play.possession.opponent, 100 - ball, 1, 10)

    def _score(self, play: Play, result: ActualResult, call: PlayCall) -> tuple[int, int]:
        home, away = play.home_score, play.away_score
        scoring = points_for(result, call)
        if scoring is None:
            return home, away
        beneficiary, points = scoring
        side = play.possession if beneficiary is Beneficiary.OFFENSE else play.possession.opponent
        if side is TeamSide.HOME:
            return home + points, away
        return home, away + points

    def _scrimmage_clock(self, play: Play, runoff: int, play_time: int, is_td: bool, home: int, away: int) -> tuple[int, int, bool]:
        if play.status is GameStatus.OVERTIME or play.quarter >= 5:
            return play.quarter, 0, False
        clock = play.clock - runoff
        if clock <= 0 and not is_td:
            return self._expire_quarter(play.quarter, home, away, self._rules.quarter_seconds - play_time)
        if is_td and clock - play_time <= 0:
            return play.quarter, 0, play.quarter == 4 and abs(home - away) >= 2
        clock -= play_time
        if clock <= 0 and not is_td:
            return self._expire_quarter(play.quarter, home, away, self._rules.quarter_seconds)
        return play.quarter, clock, False

    def _point_after_clock(self, play: Play, home: int, away: int) -> tuple[int, int, bool]:
        if play.status is GameStatus.OVERTIME or play.quarter >= 5:
            return play.quarter, 0, False
        if play.clock <= 0:
            return self._expire_quarter(play.quarter, home, away, self._rules.quarter_seconds)
        return play.quarter, play.clock, False

    def _expire_quarter(self, quarter: int, home: int, away: int, restart_clock: int) -> tuple[int, int, bool]:
        if quarter < 4:
            quarter += 1
            if quarter == 3:
                return quarter, self._rules.quarter_seconds, False
            return quarter, restart_clock, False
        if home != away:
            return 4, 0, True
        return 5, 0, False

    def _integrity_error(self, code: str, message: str, game: Game, play: Play, context: dict[str, object]) -> EngineIntegrityError:
        logger.error("%s for game %s play %s: %s", code, game.game_id, play.play_id, message)
        return EngineIntegrityError(
            build_forensic_artifact(
                engine_scope="play_resolution",
                error_code=code,
                message=message,
                state_snapshot={
                    "game_id": game.game_id,
                    "play_id": play.play_id,
                    "quarter": play.quarter,
                    "clock": play.clock,
                    "ball_location": play.ball_location,
                    "down": play.down,
                    "yards_to_go": play.yards_to_go,
                    "possession": play.possession.value,
                },
                context=context,
                identifiers={"game_id": game.game_id, "play_id": play.play_id},
                causal_fragment=["outcome_lookup", "result_mapping"],
            )
        )
