from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any

import duckdb

from gridnum.contracts import ActualResult

_TURNOVER_RESULTS = (
    ActualResult.TURNOVER.value,
    ActualResult.TURNOVER_TOUCHDOWN.value,
    ActualResult.TURNOVER_ON_DOWNS.value,
    ActualResult.KICK_SIX.value,
    ActualResult.MUFFED_PUNT.value,
    ActualResult.MUFFED_KICK.value,
)
_TOUCHDOWN_RESULTS = (
    ActualResult.TOUCHDOWN.value,
    ActualResult.TURNOVER_TOUCHDOWN.value,
    ActualResult.KICK_SIX.value,
    ActualResult.PUNT_RETURN_TOUCHDOWN.value,
    ActualResult.PUNT_TEAM_TOUCHDOWN.value,
    ActualResult.KICKING_TEAM_TOUCHDOWN.value,
    ActualResult.RETURN_TOUCHDOWN.value,
)


class AnalyticsStore:
    """Derived per-game statistics, rebuilt from the authoritative sqlite store."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def connect(self) -> Any:
        return duckdb.connect(str(self.db_path))

    def initialize_schema(self) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS mart_play_events (
                    play_id VARCHAR PRIMARY KEY,
                    game_id VARCHAR,
                    play_number INTEGER,
                    quarter INTEGER,
                    possession VARCHAR,
                    play_call VARCHAR,
                    actual_result VARCHAR,
                    yards INTEGER,
                    play_time INTEGER,
                    runoff_time INTEGER,
                    difference INTEGER,
                    home_score INTEGER,
                    away_score INTEGER,
                    win_probability DOUBLE
                );

                CREATE TABLE IF NOT EXISTS mart_game_summaries (
                    game_id VARCHAR PRIMARY KEY,
                    home_team VARCHAR,
                    away_team VARCHAR,
                    status VARCHAR,
                    home_score INTEGER,
                    away_score INTEGER,
                    plays INTEGER,
                    home_yards INTEGER,
                    away_yards INTEGER,
                    turnovers INTEGER,
                    touchdowns INTEGER,
                    delay_of_game_penalties INTEGER,
                    average_difference DOUBLE
                );
                """
            )

    def refresh_game_from_sqlite(self, sqlite_path: Path, game_id: str) -> None:
        self.initialize_schema()
        with sqlite3.connect(sqlite_path) as sconn, self.connect() as dconn:
            game_row = sconn.execute(
                "SELECT game_id, home_team, away_team, status, home_score, away_score FROM games WHERE game_id = ?",
                (game_id,),
            ).fetchone()
            dconn.execute("DELETE FROM mart_play_events WHERE game_id = ?", [game_id])
            dconn.execute("DELETE FROM mart_game_summaries WHERE game_id = ?", [game_id])
            if game_row is None:
                return

            play_rows = sconn.execute(
                """
                SELECT play_id, game_id, play_number, quarter, possession, play_call, actual_result, yards,
                       play_time, runoff_time, difference, final_home_score, final_away_score, win_probability
                FROM plays
                WHERE game_id = ? AND finished = 1
                ORDER BY play_number
                """,
                (game_id,),
            ).fetchall()
            if play_rows:
                dconn.executemany("INSERT INTO mart_play_events VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)", play_rows)

            yards = {"home": 0, "away": 0}
            turnovers = touchdowns = penalties = 0
            differences: list[int] = []
            for row in play_rows:
                possession, actual_result, gained, difference = row[4], row[6], row[7], row[10]
                if actual_result == ActualResult.DELAY_OF_GAME.value:
                    penalties += 1
                    continue
                yards[possession] += int(gained or 0)
                turnovers += int(actual_result in _TURNOVER_RESULTS)
                touchdowns += int(actual_result in _TOUCHDOWN_RESULTS)
                if difference is not None:
                    differences.append(int(difference))
            average = sum(differences) / len(differences) if differences else None
            dconn.execute(
                "INSERT INTO mart_game_summaries VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [*game_row, len(play_rows), yards["home"], yards["away"], turnovers, touchdowns, penalties, average],
            )

    def game_summary(self, game_id: str) -> dict[str, Any] | None:
        self.initialize_schema()
        with self.connect() as conn:
            cursor = conn.execute("SELECT * FROM mart_game_summaries WHERE game_id = ?", [game_id])
            row = cursor.fetchone()
            if row is None:
                return None
            columns = [d[0] for d in cursor.description]
        return dict(zip(columns, row))
