from __future__ import annotations

from pathlib import Path

from gridnum.contracts import (
    Game,
    GameStatus,
    OutcomeRow,
    Play,
    PlayType,
    TeamSide,
)
from gridnum.core import SecrecyCodec, SideEffectDispatcher, seeded_random
from gridnum.football import GameSessionEngine, JsonOutcomeTable, WinProbabilityService, snapshot_play
from gridnum.persistence import GameStore

TEST_SEAL_KEY = "test-seal-key"


class StubTable:
    """Returns the same row for every lookup and records what was asked."""

    def __init__(self, result: str = "5", play_time: int = 5, missing: bool = False) -> None:
        self.row = None if missing else OutcomeRow(result=result, play_time=play_time)
        self.lookups: list[tuple] = []

    def lookup_normal(self, call, offensive_playbook, defensive_playbook, closeness):
        self.lookups.append(("normal", call, offensive_playbook, defensive_playbook, closeness))
        return self.row

    def lookup_field_goal(self, distance, closeness):
        self.lookups.append(("field_goal", distance, closeness))
        return self.row

    def lookup_punt(self, ball_location, closeness):
        self.lookups.append(("punt", ball_location, closeness))
        return self.row

    def lookup_non_normal(self, call, closeness):
        self.lookups.append(("non_normal", call, closeness))
        return self.row


class ConstantModel:
    def __init__(self, value: float = 0.6) -> None:
        self.value = value
        self.calls = 0

    def predict(self, features):
        self.calls += 1
        return self.value


class FailingModel:
    def predict(self, features):
        raise RuntimeError("model offline")


def make_game(**overrides) -> Game:
    values = dict(
        game_id="g1",
        home_team="Home U",
        away_team="Away State",
        status=GameStatus.IN_PROGRESS,
        quarter=1,
        clock=420,
        clock_stopped=False,
        possession=TeamSide.HOME,
        waiting_on=TeamSide.AWAY,
        ball_location=50,
        down=1,
        yards_to_go=10,
        current_play_type=PlayType.NORMAL,
    )
    values.update(overrides)
    return Game(**values)


def make_pending(game: Game, play_id: str = "p1", play_number: int = 1, **overrides) -> Play:
    play = snapshot_play(game, play_id, play_number)
    for name, value in overrides.items():
        setattr(play, name, value)
    return play


def build_engine(tmp_path: Path, table=None, model=None, **kwargs) -> GameSessionEngine:
    store = GameStore(tmp_path / "data" / "games.sqlite3")
    store.initialize_schema()
    return GameSessionEngine(
        store,
        table if table is not None else JsonOutcomeTable(),
        WinProbabilityService(model if model is not None else ConstantModel()),
        codec=SecrecyCodec(TEST_SEAL_KEY),
        rng=seeded_random(7),
        dispatcher=SideEffectDispatcher(inline=True),
        **kwargs,
    )


def seed_game(engine: GameSessionEngine, **overrides) -> Game:
    game = make_game(**overrides)
    engine.store.save_game(game)
    return game
