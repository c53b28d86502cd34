from __future__ import annotations

from dataclasses import replace

import pytest

from gridnum.contracts import (
    ActualResult,
    CoinTossCall,
    CoinTossChoice,
    GameStatus,
    GameType,
    OvertimeCoinTossChoice,
    PlayCall,
    PlayType,
    TeamSide,
)
from gridnum.core import GameRules, PhaseViolationError, now_utc
from gridnum.football import GamePhaseController, OffensiveSubmission, PlayResolver
from tests.helpers import StubTable, make_game, make_pending


class FixedDraw:
    def __init__(self, value: int) -> None:
        self.value = value

    def rand(self):
        return float(self.value)

    def randint(self, a, b):
        return self.value

    def choice(self, items):
        return items[self.value]

    def spawn(self, substream_id):
        return self


def _play(game, table, call=PlayCall.RUN, number=100, rules=None):
    phase = GamePhaseController(rules)
    outcome = PlayResolver(table, rules).resolve(game, make_pending(game), OffensiveSubmission("off", number, call), 100)
    return phase.fold(game, outcome), outcome.play


def test_new_game_defaults():
    game = GamePhaseController().new_game("g1", "Home U", "Away State")

    assert (game.quarter, game.clock, game.ball_location) == (1, 420, 35)
    assert game.possession is TeamSide.HOME and game.waiting_on is TeamSide.AWAY
    assert (game.home_timeouts, game.away_timeouts) == (3, 3)
    assert game.current_play_type is PlayType.KICKOFF
    assert game.clock_stopped
    assert game.status is GameStatus.PREGAME


def test_overtime_only_game_starts_at_end_of_regulation():
    game = GamePhaseController().new_game("g1", "Home U", "Away State", overtime_only=True)

    assert (game.quarter, game.clock, game.ball_location) == (5, 0, 75)
    assert (game.home_timeouts, game.away_timeouts) == (1, 1)
    assert game.current_play_type is PlayType.NORMAL
    assert game.status is GameStatus.END_OF_REGULATION
    assert game.overtime_half == 1


def test_coin_toss_and_receive_choice():
    phase = GamePhaseController()
    game = phase.new_game("g1", "Home U", "Away State")

    tossed = phase.run_coin_toss(game, CoinTossCall.HEADS, FixedDraw(1))
    assert tossed.coin_toss_winner is TeamSide.AWAY
    assert game.coin_toss_winner is None

    chosen = phase.make_coin_toss_choice(tossed, CoinTossChoice.RECEIVE)
    assert chosen.status is GameStatus.OPENING_KICKOFF
    assert chosen.possession is TeamSide.HOME
    assert chosen.waiting_on is TeamSide.AWAY

    deferred = phase.make_coin_toss_choice(tossed, CoinTossChoice.DEFER)
    assert deferred.possession is TeamSide.AWAY


def test_coin_toss_misfires_are_phase_violations():
    phase = GamePhaseController()
    game = phase.new_game("g1", "Home U", "Away State")
    tossed = phase.run_coin_toss(game, CoinTossCall.TAILS, FixedDraw(1))
    assert tossed.coin_toss_winner is TeamSide.HOME

    with pytest.raises(PhaseViolationError) as again:
        phase.run_coin_toss(tossed, CoinTossCall.HEADS, FixedDraw(0))
    assert again.value.code == "COIN_TOSS_ALREADY_RUN"

    with pytest.raises(PhaseViolationError) as mid_game:
        phase.run_coin_toss(make_game(), CoinTossCall.HEADS, FixedDraw(0))
    assert mid_game.value.code == "COIN_TOSS_NOT_ALLOWED"

    with pytest.raises(PhaseViolationError):
        phase.make_coin_toss_choice(game, CoinTossChoice.RECEIVE)


def test_overtime_coin_toss_choice():
    phase = GamePhaseController()
    game = phase.new_game("g1", "Home U", "Away State", overtime_only=True)
    tossed = phase.run_coin_toss(game, CoinTossCall.HEADS, FixedDraw(0))
    assert tossed.overtime_coin_toss_winner is TeamSide.HOME

    chosen = phase.make_overtime_coin_toss_choice(tossed, OvertimeCoinTossChoice.DEFENSE)
    assert chosen.status is GameStatus.OVERTIME
    assert chosen.possession is TeamSide.AWAY
    assert chosen.waiting_on is TeamSide.HOME


def test_opening_kickoff_starts_the_game():
    game = make_game(status=GameStatus.OPENING_KICKOFF, current_play_type=PlayType.KICKOFF, ball_location=35, clock_stopped=True)
    after, play = _play(game, StubTable("TOUCHBACK", 5), call=PlayCall.KICKOFF_NORMAL)

    assert after.status is GameStatus.IN_PROGRESS
    assert after.possession is TeamSide.AWAY
    assert after.waiting_on is TeamSide.HOME
    assert after.ball_location == 25
    assert after.current_play_type is PlayType.NORMAL
    assert after.clock_stopped
    assert after.clock == 415
    assert after.num_plays == 1
    assert after.current_play_id == play.play_id


def test_next_play_type_after_scores():
    touchdown, _ = _play(make_game(ball_location=95), StubTable("TOUCHDOWN", 8))
    assert touchdown.current_play_type is PlayType.PAT
    assert touchdown.clock_stopped

    pat, _ = _play(replace(touchdown, ball_location=97), StubTable("GOOD", 0), call=PlayCall.PAT)
    assert pat.current_play_type is PlayType.KICKOFF
    assert pat.home_score == 7

    field_goal, _ = _play(make_game(ball_location=80), StubTable("GOOD", 5), call=PlayCall.FIELD_GOAL)
    assert field_goal.current_play_type is PlayType.KICKOFF
    assert field_goal.home_score == 3

    safety, _ = _play(make_game(ball_location=2), StubTable("-4", 5))
    assert safety.current_play_type is PlayType.KICKOFF
    assert safety.away_score == 2


def test_running_play_keeps_clock_running():
    after, _ = _play(make_game(), StubTable("4", 5))
    assert not after.clock_stopped
    assert after.clock == 400
    assert (after.down, after.yards_to_go) == (2, 6)


def test_halftime_hands_kickoff_to_second_half_kicker():
    game = make_game(
        quarter=2,
        clock=10,
        home_timeouts=0,
        coin_toss_winner=TeamSide.AWAY,
        coin_toss_choice=CoinTossChoice.RECEIVE,
    )
    after, play = _play(game, StubTable("12", 5))

    assert play.actual_result is ActualResult.END_OF_HALF
    assert after.status is GameStatus.HALFTIME
    assert (after.quarter, after.clock) == (3, 420)
    assert after.possession is TeamSide.AWAY
    assert after.waiting_on is TeamSide.HOME
    assert after.current_play_type is PlayType.KICKOFF
    assert after.ball_location == 35
    assert (after.home_timeouts, after.away_timeouts) == (3, 3)

    second_half, _ = _play(after, StubTable("TOUCHBACK", 5), call=PlayCall.KICKOFF_NORMAL)
    assert second_half.status is GameStatus.IN_PROGRESS
    assert second_half.possession is TeamSide.HOME


def test_tied_fourth_quarter_goes_to_overtime():
    game = make_game(quarter=4, clock=3, clock_stopped=True, home_score=14, away_score=14)
    after, _ = _play(game, StubTable("2", 5))

    assert after.status is GameStatus.END_OF_REGULATION
    assert (after.quarter, after.clock) == (5, 0)
    assert after.ball_location == 75
    assert after.overtime_half == 1
    assert (after.home_timeouts, after.away_timeouts) == (1, 1)


def test_fourth_quarter_expiry_with_lead_is_final():
    game = make_game(quarter=4, clock=3, clock_stopped=True, home_score=21, away_score=14)
    after, _ = _play(game, StubTable("2", 5))

    assert after.status is GameStatus.FINAL
    assert after.clock == 0


def _overtime_game(**overrides):
    values = dict(status=GameStatus.OVERTIME, quarter=5, clock=0, ball_location=75, clock_stopped=True, overtime_half=1)
    values.update(overrides)
    return make_game(**values)


def test_overtime_first_half_touchdown_then_try_hands_over():
    touchdown, _ = _play(_overtime_game(ball_location=90), StubTable("TOUCHDOWN", 8))
    assert touchdown.overtime_half == 1
    assert touchdown.current_play_type is PlayType.PAT

    tried, _ = _play(replace(touchdown, ball_location=97), StubTable("GOOD", 0), call=PlayCall.PAT)
    assert tried.overtime_half == 2
    assert tried.possession is TeamSide.AWAY
    assert tried.ball_location == 75
    assert tried.current_play_type is PlayType.NORMAL
    assert tried.status is GameStatus.OVERTIME


def test_overtime_second_half_stop_ends_the_game():
    game = _overtime_game(overtime_half=2, possession=TeamSide.AWAY, waiting_on=TeamSide.HOME, home_score=7)
    after, _ = _play(game, StubTable("TURNOVER", 6))

    assert after.status is GameStatus.FINAL


def test_overtime_tied_after_both_halves_starts_new_period():
    game = _overtime_game(overtime_half=2, possession=TeamSide.AWAY, waiting_on=TeamSide.HOME, home_timeouts=0)
    after, _ = _play(game, StubTable("TURNOVER", 6))

    assert after.status is GameStatus.OVERTIME
    assert after.quarter == 6
    assert after.overtime_half == 1
    assert after.possession is TeamSide.AWAY
    assert (after.home_timeouts, after.away_timeouts) == (1, 1)


def test_overtime_defensive_score_in_first_half_ends_it():
    after, _ = _play(_overtime_game(), StubTable("TURNOVER TOUCHDOWN", 8))
    assert after.status is GameStatus.FINAL
    assert after.away_score == 6


def test_close_game_flag_and_upset_alert_toggle():
    phase = GamePhaseController()
    game = make_game(quarter=4, clock=200, home_score=10, away_score=17, home_rank=5)
    phase.refresh_flags(game)
    assert game.close_game
    assert not game.upset_alert

    alerting = GamePhaseController(GameRules(upset_alert_enabled=True))
    alerting.refresh_flags(game)
    assert game.upset_alert

    early = make_game(quarter=3, clock=200, home_score=10, away_score=17, home_rank=5)
    alerting.refresh_flags(early)
    assert not early.close_game
    assert not early.upset_alert


def test_delay_of_game_awards_points_and_kickoff():
    phase = GamePhaseController()
    game = make_game(possession=TeamSide.AWAY, waiting_on=TeamSide.HOME, ball_location=40, down=3)
    play = make_pending(game)
    updated, sealed = phase.apply_delay_of_game(game, play, prior_penalties=0, now=now_utc())

    assert updated.away_score == 8
    assert updated.possession is TeamSide.AWAY
    assert updated.waiting_on is TeamSide.HOME
    assert updated.current_play_type is PlayType.KICKOFF
    assert (updated.ball_location, updated.down, updated.yards_to_go) == (35, 1, 10)
    assert updated.clock_stopped
    assert sealed.actual_result is ActualResult.DELAY_OF_GAME
    assert sealed.penalized_side is TeamSide.HOME
    assert sealed.result == "DELAY OF GAME ON HOME TEAM"
    assert sealed.finished


def test_delay_of_game_in_pregame_keeps_field():
    phase = GamePhaseController()
    game = phase.new_game("g1", "Home U", "Away State")
    updated, _ = phase.apply_delay_of_game(game, make_pending(game), prior_penalties=0, now=now_utc())

    assert updated.home_score == 8
    assert updated.status is GameStatus.PREGAME
    assert updated.possession is TeamSide.HOME
    assert updated.current_play_type is PlayType.KICKOFF


def test_third_delay_of_game_forfeits_the_lead():
    phase = GamePhaseController()
    game = make_game(home_score=0, away_score=20)
    updated, sealed = phase.apply_delay_of_game(game, make_pending(game), prior_penalties=2, now=now_utc())

    assert updated.status is GameStatus.FINAL
    assert updated.home_score == 24
    assert updated.away_score == 20
    assert phase.points_awarded(sealed) == [(TeamSide.HOME, 24)]

    restored = phase.rollback(updated, sealed)
    assert (restored.home_score, restored.away_score) == (0, 20)
    assert restored.status is GameStatus.IN_PROGRESS
    assert restored.waiting_on is TeamSide.AWAY


def test_elo_update_and_season_end():
    phase = GamePhaseController()
    final = make_game(status=GameStatus.FINAL, home_score=21, away_score=14)
    home, away = phase.elo_update(final)
    assert home == pytest.approx(1516.0)
    assert away == pytest.approx(1484.0)

    assert phase.elo_update(replace(final, game_type=GameType.SCRIMMAGE)) is None
    assert not phase.ends_season(final)
    assert phase.ends_season(replace(final, game_type=GameType.NATIONAL_CHAMPIONSHIP))


def test_pregame_delay_of_game_charges_the_coin_toss_winner():
    phase = GamePhaseController()
    game = phase.run_coin_toss(phase.new_game("g1", "Home U", "Away State"), CoinTossCall.HEADS, FixedDraw(0))
    assert game.coin_toss_winner is TeamSide.HOME
    assert game.waiting_on is TeamSide.AWAY

    assert phase.delay_of_game_side(game) is TeamSide.HOME
    updated, sealed = phase.apply_delay_of_game(game, make_pending(game), prior_penalties=0, now=now_utc())

    assert sealed.penalized_side is TeamSide.HOME
    assert (updated.home_score, updated.away_score) == (0, 8)
    assert updated.status is GameStatus.PREGAME


def test_close_game_is_judged_on_the_clock_before_the_snap():
    game = make_game(quarter=4, clock=215, home_score=14, away_score=10)
    first, play = _play(game, StubTable("5", 5))
    assert first.clock < 210
    assert not first.close_game

    second, _ = _play(first, StubTable("5", 5))
    assert second.close_game


_SPECIAL_TEAMS = [
    (PlayCall.FIELD_GOAL, PlayType.NORMAL, "GOOD", (3, 0, TeamSide.HOME, PlayType.KICKOFF)),
    (PlayCall.FIELD_GOAL, PlayType.NORMAL, "KICK SIX", (0, 6, TeamSide.AWAY, PlayType.PAT)),
    (PlayCall.PUNT, PlayType.NORMAL, "PUNT RETURN TOUCHDOWN", (0, 6, TeamSide.AWAY, PlayType.PAT)),
    (PlayCall.PUNT, PlayType.NORMAL, "TOUCHDOWN", (6, 0, TeamSide.HOME, PlayType.PAT)),
    (PlayCall.PUNT, PlayType.NORMAL, "FUMBLE", (0, 0, TeamSide.HOME, PlayType.NORMAL)),
    (PlayCall.KICKOFF_NORMAL, PlayType.KICKOFF, "TOUCHDOWN", (6, 0, TeamSide.HOME, PlayType.PAT)),
    (PlayCall.KICKOFF_NORMAL, PlayType.KICKOFF, "RETURN TOUCHDOWN", (0, 6, TeamSide.AWAY, PlayType.PAT)),
    (PlayCall.KICKOFF_SQUIB, PlayType.KICKOFF, "FUMBLE", (0, 0, TeamSide.HOME, PlayType.NORMAL)),
    (PlayCall.PAT, PlayType.PAT, "GOOD", (1, 0, TeamSide.HOME, PlayType.KICKOFF)),
    (PlayCall.PAT, PlayType.PAT, "DEFENSE TWO POINT", (0, 2, TeamSide.HOME, PlayType.KICKOFF)),
    (PlayCall.TWO_POINT, PlayType.PAT, "SUCCESS", (2, 0, TeamSide.HOME, PlayType.KICKOFF)),
    (PlayCall.TWO_POINT, PlayType.PAT, "DEFENSE TWO POINT", (0, 2, TeamSide.HOME, PlayType.KICKOFF)),
]


@pytest.mark.parametrize(("call", "play_type", "raw", "expected"), _SPECIAL_TEAMS)
def test_special_teams_and_tries_score_for_the_right_side(call, play_type, raw, expected):
    game = make_game(current_play_type=play_type)
    after, play = _play(game, StubTable(raw, 5), call=call)

    assert (after.home_score, after.away_score, after.possession, after.current_play_type) == expected
    restored = GamePhaseController().rollback(after, play)
    assert (restored.home_score, restored.away_score, restored.possession) == (0, 0, TeamSide.HOME)
