from __future__ import annotations

import sqlite3
from dataclasses import fields
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Mapping

from gridnum.contracts import (
    ActualResult,
    CoinTossChoice,
    DefensivePlaybook,
    Game,
    GameStatus,
    GameType,
    OffensivePlaybook,
    OvertimeCoinTossChoice,
    Participant,
    Play,
    PlayCall,
    PlayType,
    RunoffType,
    TeamSide,
)
from gridnum.persistence.migrations import MigrationRunner

_GAME_COLUMNS = [f.name for f in fields(Game)]
_PLAY_COLUMNS = [f.name for f in fields(Play)]

_ENUM_COLUMNS: dict[str, type[Enum]] = {
    "game_type": GameType,
    "home_offensive_playbook": OffensivePlaybook,
    "away_offensive_playbook": OffensivePlaybook,
    "home_defensive_playbook": DefensivePlaybook,
    "away_defensive_playbook": DefensivePlaybook,
    "status": GameStatus,
    "possession": TeamSide,
    "waiting_on": TeamSide,
    "current_play_type": PlayType,
    "play_type": PlayType,
    "coin_toss_winner": TeamSide,
    "coin_toss_choice": CoinTossChoice,
    "overtime_coin_toss_winner": TeamSide,
    "overtime_coin_toss_choice": OvertimeCoinTossChoice,
    "play_call": PlayCall,
    "runoff_type": RunoffType,
    "actual_result": ActualResult,
    "penalized_side": TeamSide,
}
_BOOL_COLUMNS = {
    "clock_stopped",
    "close_game",
    "upset_alert",
    "defensive_timeout_called",
    "offensive_timeout_called",
    "timeout_used",
    "finished",
}
_DATETIME_COLUMNS = {"last_action_at"}


def _encode(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _decode(column: str, value: Any) -> Any:
    if value is None:
        return None
    if column in _ENUM_COLUMNS:
        return _ENUM_COLUMNS[column](value)
    if column in _BOOL_COLUMNS:
        return bool(value)
    if column in _DATETIME_COLUMNS:
        return datetime.fromisoformat(value)
    return value


def _row_values(obj: Any, columns: list[str]) -> tuple[Any, ...]:
    return tuple(_encode(getattr(obj, c)) for c in columns)


def _game_from_row(row: sqlite3.Row) -> Game:
    return Game(**{c: _decode(c, row[c]) for c in _GAME_COLUMNS})


def _play_from_row(row: sqlite3.Row) -> Play:
    return Play(**{c: _decode(c, row[c]) for c in _PLAY_COLUMNS})


def _upsert_sql(table: str, columns: list[str], key: str) -> str:
    updates = ", ".join(f"{c} = excluded.{c}" for c in columns if c != key)
    placeholders = ", ".join("?" for _ in columns)
    return f"INSERT INTO {table}({', '.join(columns)}) VALUES ({placeholders}) ON CONFLICT({key}) DO UPDATE SET {updates}"


_UPSERT_GAME = _upsert_sql("games", _GAME_COLUMNS, "game_id")
_UPSERT_PLAY = _upsert_sql("plays", _PLAY_COLUMNS, "play_id")


class GameStore:
    """Authoritative sqlite record of games, plays and participants."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def initialize_schema(self) -> None:
        with self.connect() as conn:
            MigrationRunner(conn).apply()

    # games

    def get_game(self, game_id: str) -> Game | None:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM games WHERE game_id = ?", (game_id,)).fetchone()
        return _game_from_row(row) if row is not None else None

    def save_game(self, game: Game) -> None:
        self.commit(game)

    def list_games(self) -> list[Game]:
        with self.connect() as conn:
            rows = conn.execute("SELECT * FROM games ORDER BY game_id").fetchall()
        return [_game_from_row(r) for r in rows]

    # plays

    def get_play(self, play_id: str) -> Play | None:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM plays WHERE play_id = ?", (play_id,)).fetchone()
        return _play_from_row(row) if row is not None else None

    def get_pending_play(self, game_id: str) -> Play | None:
        return self._latest(game_id, "AND finished = 0")

    def get_previous_finished_play(self, game_id: str) -> Play | None:
        return self._latest(game_id, "AND finished = 1")

    def get_latest_play(self, game_id: str) -> Play | None:
        return self._latest(game_id, "")

    def list_plays(self, game_id: str) -> list[Play]:
        with self.connect() as conn:
            rows = conn.execute("SELECT * FROM plays WHERE game_id = ? ORDER BY play_number", (game_id,)).fetchall()
        return [_play_from_row(r) for r in rows]

    def next_play_number(self, game_id: str) -> int:
        with self.connect() as conn:
            row = conn.execute("SELECT COALESCE(MAX(play_number), 0) FROM plays WHERE game_id = ?", (game_id,)).fetchone()
        return int(row[0]) + 1

    def save_play(self, play: Play) -> None:
        with self.connect() as conn:
            conn.execute(_UPSERT_PLAY, _row_values(play, _PLAY_COLUMNS))

    def delete_play(self, play_id: str) -> None:
        with self.connect() as conn:
            conn.execute("DELETE FROM plays WHERE play_id = ?", (play_id,))

    def count_delay_of_game(self, game_id: str, side: TeamSide) -> int:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM plays WHERE game_id = ? AND actual_result = ? AND penalized_side = ?",
                (game_id, ActualResult.DELAY_OF_GAME.value, side.value),
            ).fetchone()
        return int(row[0])

    def _latest(self, game_id: str, clause: str) -> Play | None:
        with self.connect() as conn:
            row = conn.execute(
                f"SELECT * FROM plays WHERE game_id = ? {clause} ORDER BY play_number DESC LIMIT 1",
                (game_id,),
            ).fetchone()
        return _play_from_row(row) if row is not None else None

    # participants

    def get_participant(self, participant_id: str) -> Participant | None:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT participant_id, name, delay_of_game_instances FROM participants WHERE participant_id = ?",
                (participant_id,),
            ).fetchone()
        if row is None:
            return None
        return Participant(participant_id=row[0], name=row[1], delay_of_game_instances=int(row[2]))

    def save_participant(self, participant: Participant) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO participants(participant_id, name, delay_of_game_instances) VALUES (?, ?, ?)
                ON CONFLICT(participant_id) DO UPDATE SET name = excluded.name, delay_of_game_instances = excluded.delay_of_game_instances
                """,
                (participant.participant_id, participant.name, participant.delay_of_game_instances),
            )

    # atomic unit of work

    def commit(
        self,
        game: Game,
        plays: Iterable[Play] = (),
        deleted_play_ids: Iterable[str] = (),
        participant_deltas: Mapping[str, int] | None = None,
    ) -> None:
        """Write a game with its plays in one transaction; nothing lands if any statement fails."""
        with self.connect() as conn:
            conn.execute(_UPSERT_GAME, _row_values(game, _GAME_COLUMNS))
            for play_id in deleted_play_ids:
                conn.execute("DELETE FROM plays WHERE play_id = ?", (play_id,))
            for play in plays:
                conn.execute(_UPSERT_PLAY, _row_values(play, _PLAY_COLUMNS))
            for participant_id, delta in (participant_deltas or {}).items():
                conn.execute(
                    """
                    INSERT INTO participants(participant_id, delay_of_game_instances) VALUES (?, MAX(?, 0))
                    ON CONFLICT(participant_id) DO UPDATE
                    SET delay_of_game_instances = MAX(delay_of_game_instances + ?, 0)
                    """,
                    (participant_id, delta, delta),
                )
