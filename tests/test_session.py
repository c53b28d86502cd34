from __future__ import annotations

import logging
from pathlib import Path

import pytest

from gridnum.contracts import (
    ActualResult,
    CoinTossCall,
    CoinTossChoice,
    GameStatus,
    GameType,
    PlayCall,
    PlayType,
    TeamSide,
)
from gridnum.core import EngineIntegrityError, GameNotFoundError, PhaseViolationError, PlayNotFoundError, SecrecyCodec
from tests.helpers import TEST_SEAL_KEY, FailingModel, StubTable, build_engine, seed_game


def _play_down(engine, game_id="g1", call=PlayCall.RUN, offense=510, defense=500):
    engine.submit_defensive_number(game_id, "def_coach", defense)
    return engine.submit_offensive_number(game_id, "off_coach", offense, call)


def test_start_game_persists_and_announces(tmp_path: Path):
    engine = build_engine(tmp_path)
    game = engine.start_game("Home U", "Away State", game_type=GameType.CONFERENCE_GAME, home_coach_id="coach_h")

    stored = engine.get_game(game.game_id)
    assert stored.status is GameStatus.PREGAME
    assert stored.game_type is GameType.CONFERENCE_GAME
    assert stored.home_coach_id == "coach_h"
    assert engine.events.emitted_count("game_started") == 1

    with pytest.raises(PhaseViolationError):
        engine.start_game("Home U", "Away State", game_id=game.game_id)


def test_unknown_game_is_not_found(tmp_path: Path):
    engine = build_engine(tmp_path)
    with pytest.raises(GameNotFoundError):
        engine.get_game("missing")
    with pytest.raises(GameNotFoundError):
        engine.submit_defensive_number("missing", "def_coach", 10)


def test_opening_sequence_through_first_kickoff(tmp_path: Path):
    engine = build_engine(tmp_path)
    game = engine.start_game("Home U", "Away State", game_id="g1")

    with pytest.raises(PhaseViolationError) as early:
        engine.submit_defensive_number("g1", "def_coach", 500)
    assert early.value.code == "COIN_TOSS_PENDING"

    tossed = engine.run_coin_toss("g1", CoinTossCall.HEADS)
    assert tossed.coin_toss_winner is not None
    chosen = engine.make_coin_toss_choice("g1", CoinTossChoice.RECEIVE)
    kicker = chosen.possession
    assert kicker is tossed.coin_toss_winner.opponent
    assert chosen.status is GameStatus.OPENING_KICKOFF

    resolution = _play_down(engine, call=PlayCall.KICKOFF_NORMAL, offense=510, defense=500)
    after = engine.get_game(game.game_id)

    assert resolution.play.actual_result is ActualResult.KICKOFF
    assert resolution.play.difference == 10
    assert after.status is GameStatus.IN_PROGRESS
    assert after.possession is kicker.opponent
    assert after.ball_location == 25
    assert after.current_play_type is PlayType.NORMAL
    assert after.win_probability == resolution.play.win_probability
    assert resolution.play.win_probability_added == pytest.approx(after.win_probability - 0.5)
    assert engine.events.emitted_count("coin_toss") == 1
    assert engine.events.emitted_count("play_sealed") == 1


def test_defensive_number_is_sealed_until_resolution(tmp_path: Path):
    engine = build_engine(tmp_path)
    seed_game(engine)
    pending = engine.submit_defensive_number("g1", "def_coach", 777, timeout_called=True)

    stored = engine.store.get_pending_play("g1")
    assert stored.play_id == pending.play_id
    assert stored.defensive_number != "777"
    assert stored.defensive_timeout_called

    game = engine.get_game("g1")
    assert game.waiting_on is TeamSide.HOME
    assert game.current_play_id == pending.play_id

    resolved = engine.submit_offensive_number("g1", "off_coach", 700, PlayCall.RUN)
    assert resolved.play.defensive_number == "777"
    assert resolved.play.finished


def test_only_one_pending_play(tmp_path: Path):
    engine = build_engine(tmp_path)
    seed_game(engine)
    engine.submit_defensive_number("g1", "def_coach", 100)

    with pytest.raises(PhaseViolationError) as exc:
        engine.submit_defensive_number("g1", "def_coach", 200)
    assert exc.value.code == "PLAY_ALREADY_PENDING"
    assert [p.finished for p in engine.store.list_plays("g1")] == [False]


def test_offense_needs_pending_play_and_valid_input(tmp_path: Path):
    engine = build_engine(tmp_path)
    seed_game(engine)

    with pytest.raises(PhaseViolationError) as no_pending:
        engine.submit_offensive_number("g1", "off_coach", 10, PlayCall.RUN)
    assert no_pending.value.code == "NO_PENDING_PLAY"

    with pytest.raises(PhaseViolationError) as out_of_range:
        engine.submit_defensive_number("g1", "def_coach", 1501)
    assert out_of_range.value.code == "NUMBER_OUT_OF_RANGE"

    engine.submit_defensive_number("g1", "def_coach", 100)
    with pytest.raises(PhaseViolationError) as missing:
        engine.submit_offensive_number("g1", "off_coach", None, PlayCall.PASS)
    assert missing.value.code == "NUMBER_REQUIRED"

    with pytest.raises(PhaseViolationError) as wrong_family:
        engine.submit_offensive_number("g1", "off_coach", 10, PlayCall.PAT)
    assert wrong_family.value.code == "WRONG_PLAY_FAMILY"

    kneel = engine.submit_offensive_number("g1", "off_coach", None, PlayCall.KNEEL)
    assert kneel.play.actual_result is ActualResult.KNEEL
    assert kneel.play.defensive_number == "100"
    assert kneel.play.offensive_number is None
    assert engine.store.get_play(kneel.play.play_id).defensive_number == "100"


def test_fourth_quarter_drive_end_to_end(tmp_path: Path):
    engine = build_engine(tmp_path, table=StubTable("6", 4))
    seed_game(engine, quarter=4, clock=5, down=3, yards_to_go=4, ball_location=60, clock_stopped=True)

    resolution = _play_down(engine)
    stored = engine.get_game("g1")
    play = engine.store.get_play(resolution.play.play_id)

    assert (stored.quarter, stored.clock) == (4, 1)
    assert (stored.down, stored.yards_to_go, stored.ball_location) == (1, 10, 66)
    assert stored.possession is TeamSide.HOME
    assert stored.waiting_on is TeamSide.AWAY
    assert stored.num_plays == 1
    assert play.actual_result is ActualResult.FIRST_DOWN
    assert play.finished


def test_table_miss_commits_nothing(tmp_path: Path):
    forensic_dir = tmp_path / "forensics"
    engine = build_engine(tmp_path, table=StubTable(missing=True), forensic_dir=forensic_dir)
    seed_game(engine)
    pending = engine.submit_defensive_number("g1", "def_coach", 100)
    before = engine.get_game("g1")

    with pytest.raises(EngineIntegrityError) as exc:
        engine.submit_offensive_number("g1", "off_coach", 200, PlayCall.RUN)

    assert exc.value.artifact.error_code == "OUTCOME_TABLE_MISS"
    assert engine.get_game("g1") == before
    still_pending = engine.store.get_pending_play("g1")
    assert still_pending.play_id == pending.play_id
    assert not still_pending.finished
    assert len(list(forensic_dir.glob("forensic_*.json"))) == 1


def test_predictor_failure_falls_back_to_neutral(tmp_path: Path, caplog):
    engine = build_engine(tmp_path, model=FailingModel())
    seed_game(engine, win_probability=0.7)

    with caplog.at_level(logging.WARNING, logger="gridnum.football.win_probability"):
        resolution = _play_down(engine)

    assert resolution.play.win_probability == 0.5
    assert resolution.play.win_probability_added == 0.0
    assert engine.get_game("g1").win_probability == 0.5
    assert resolution.play.actual_result is not None
    assert "win probability model failed" in caplog.text


def test_game_final_announces_once_and_blocks_play(tmp_path: Path):
    engine = build_engine(tmp_path, table=StubTable("2", 5))
    seed_game(engine, quarter=4, clock=3, clock_stopped=True, home_score=10, away_score=3)
    received = []
    engine.events.subscribe_narrative(received.append)

    _play_down(engine)

    assert engine.get_game("g1").status is GameStatus.FINAL
    finals = [e for e in received if e.event_type == "game_final"]
    assert len(finals) == 1
    assert any(claim.startswith("elo ") for claim in finals[0].claims)
    with pytest.raises(PhaseViolationError) as exc:
        engine.submit_defensive_number("g1", "def_coach", 10)
    assert exc.value.code == "GAME_FINAL"


def test_failing_side_effect_does_not_undo_the_play(tmp_path: Path, caplog):
    def broken_refresh(game_id):
        raise RuntimeError("analytics offline")

    engine = build_engine(tmp_path, stats_refresher=broken_refresh)
    seed_game(engine)

    with caplog.at_level(logging.ERROR, logger="gridnum.core.dispatch"):
        resolution = _play_down(engine)

    assert engine.store.get_play(resolution.play.play_id).finished
    assert "stats_refresh" in caplog.text


def test_rollback_restores_game_and_deletes_play(tmp_path: Path):
    engine = build_engine(tmp_path, table=StubTable("TOUCHDOWN", 8))
    seed_game(engine, ball_location=80, home_score=3, away_score=7)
    before = engine.get_game("g1")

    resolution = _play_down(engine)
    assert engine.get_game("g1").home_score == 9

    restored = engine.rollback_play("g1")
    stored = engine.get_game("g1")

    assert stored == restored
    for name in ("possession", "waiting_on", "quarter", "clock", "ball_location", "down", "yards_to_go", "home_score", "away_score"):
        assert getattr(stored, name) == getattr(before, name)
    assert stored.current_play_type is PlayType.NORMAL
    assert stored.current_play_id is None
    assert stored.num_plays == 0
    assert engine.store.get_play(resolution.play.play_id) is None
    assert engine.events.emitted_count("play_rolled_back") == 1


def test_rollback_without_finished_play_changes_nothing(tmp_path: Path):
    engine = build_engine(tmp_path)
    seed_game(engine)
    engine.submit_defensive_number("g1", "def_coach", 10)
    before = engine.get_game("g1")

    with pytest.raises(PlayNotFoundError):
        engine.rollback_play("g1")
    assert engine.get_game("g1") == before
    assert engine.store.get_pending_play("g1") is not None


def test_rollback_discards_pending_and_reverts_to_previous_play(tmp_path: Path):
    engine = build_engine(tmp_path, table=StubTable("3", 5))
    seed_game(engine)
    first = _play_down(engine)
    second = _play_down(engine)
    engine.submit_defensive_number("g1", "def_coach", 10)

    restored = engine.rollback_play("g1")

    remaining = engine.store.list_plays("g1")
    assert [p.play_id for p in remaining] == [first.play.play_id]
    assert restored.current_play_id == first.play.play_id
    assert restored.win_probability == first.play.win_probability
    assert (restored.down, restored.ball_location) == (second.play.down, second.play.ball_location)


def test_delay_of_game_counts_against_coach_and_rolls_back(tmp_path: Path):
    engine = build_engine(tmp_path)
    seed_game(engine, away_coach_id="coach_a", home_coach_id="coach_h")

    play = engine.apply_delay_of_game("g1")
    game = engine.get_game("g1")

    assert play.penalized_side is TeamSide.AWAY
    assert game.home_score == 8
    assert game.current_play_type is PlayType.KICKOFF
    assert engine.store.get_participant("coach_a").delay_of_game_instances == 1
    assert engine.store.get_participant("coach_h") is None

    engine.rollback_play("g1")
    assert engine.get_game("g1").home_score == 0
    assert engine.store.get_participant("coach_a").delay_of_game_instances == 0


def test_pregame_delay_of_game_counts_against_the_toss_winner(tmp_path: Path):
    engine = build_engine(tmp_path)
    engine.start_game("Home U", "Away State", game_id="g1", home_coach_id="coach_h", away_coach_id="coach_a")
    winner = engine.run_coin_toss("g1", CoinTossCall.HEADS).coin_toss_winner
    coaches = {TeamSide.HOME: "coach_h", TeamSide.AWAY: "coach_a"}

    play = engine.apply_delay_of_game("g1")
    game = engine.get_game("g1")

    assert play.penalized_side is winner
    assert game.status is GameStatus.PREGAME
    assert game.score_of(winner.opponent) == 8
    assert engine.store.get_participant(coaches[winner]).delay_of_game_instances == 1
    assert engine.store.get_participant(coaches[winner.opponent]) is None


def test_delay_of_game_seals_pending_play(tmp_path: Path):
    engine = build_engine(tmp_path)
    seed_game(engine, game_type=GameType.SCRIMMAGE, home_coach_id="coach_h")
    pending = engine.submit_defensive_number("g1", "def_coach", 10)

    play = engine.apply_delay_of_game("g1")

    assert play.play_id == pending.play_id
    assert play.penalized_side is TeamSide.HOME
    assert engine.store.get_pending_play("g1") is None
    assert engine.get_game("g1").away_score == 8
    assert engine.store.get_participant("coach_h") is None


def test_third_delay_of_game_ends_the_game(tmp_path: Path):
    engine = build_engine(tmp_path)
    seed_game(engine, away_score=14)

    for _ in range(3):
        engine.apply_delay_of_game("g1")

    final = engine.get_game("g1")
    assert final.status is GameStatus.FINAL
    assert final.home_score > final.away_score
    assert engine.store.count_delay_of_game("g1", TeamSide.AWAY) == 3
    assert engine.events.emitted_count("game_final") == 1


def test_sealed_number_requires_matching_key(tmp_path: Path):
    engine = build_engine(tmp_path)
    seed_game(engine)
    engine.submit_defensive_number("g1", "def_coach", 10)

    pending = engine.store.get_pending_play("g1")
    assert SecrecyCodec(TEST_SEAL_KEY).open(pending.defensive_number, pending.play_id) == 10
