from __future__ import annotations

import sqlite3

MIGRATIONS: list[tuple[int, str]] = [
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS participants (
            participant_id TEXT PRIMARY KEY,
            name TEXT NOT NULL DEFAULT '',
            delay_of_game_instances INTEGER NOT NULL DEFAULT 0
        );

        CREATE TABLE IF NOT EXISTS games (
            game_id TEXT PRIMARY KEY,
            home_team TEXT NOT NULL,
            away_team TEXT NOT NULL,
            home_coach_id TEXT,
            away_coach_id TEXT,
            game_type TEXT NOT NULL,
            home_offensive_playbook TEXT NOT NULL,
            away_offensive_playbook TEXT NOT NULL,
            home_defensive_playbook TEXT NOT NULL,
            away_defensive_playbook TEXT NOT NULL,
            home_elo REAL NOT NULL,
            away_elo REAL NOT NULL,
            home_rank INTEGER,
            away_rank INTEGER,
            status TEXT NOT NULL,
            quarter INTEGER NOT NULL,
            clock INTEGER NOT NULL,
            clock_stopped INTEGER NOT NULL,
            possession TEXT NOT NULL,
            waiting_on TEXT NOT NULL,
            ball_location INTEGER NOT NULL,
            down INTEGER NOT NULL,
            yards_to_go INTEGER NOT NULL,
            home_score INTEGER NOT NULL,
            away_score INTEGER NOT NULL,
            home_timeouts INTEGER NOT NULL,
            away_timeouts INTEGER NOT NULL,
            current_play_type TEXT NOT NULL,
            current_play_id TEXT,
            coin_toss_winner TEXT,
            coin_toss_choice TEXT,
            overtime_coin_toss_winner TEXT,
            overtime_coin_toss_choice TEXT,
            overtime_half INTEGER NOT NULL,
            num_plays INTEGER NOT NULL,
            close_game INTEGER NOT NULL,
            upset_alert INTEGER NOT NULL,
            win_probability REAL NOT NULL,
            last_action_at TEXT
        );

        CREATE TABLE IF NOT EXISTS plays (
            play_id TEXT PRIMARY KEY,
            game_id TEXT NOT NULL REFERENCES games(game_id) ON DELETE CASCADE,
            play_number INTEGER NOT NULL,
            home_score INTEGER NOT NULL,
            away_score INTEGER NOT NULL,
            quarter INTEGER NOT NULL,
            clock INTEGER NOT NULL,
            ball_location INTEGER NOT NULL,
            possession TEXT NOT NULL,
            down INTEGER NOT NULL,
            yards_to_go INTEGER NOT NULL,
            home_timeouts INTEGER NOT NULL,
            away_timeouts INTEGER NOT NULL,
            clock_stopped INTEGER NOT NULL,
            status TEXT NOT NULL,
            overtime_half INTEGER NOT NULL,
            play_type TEXT NOT NULL,
            defensive_number TEXT,
            offensive_number INTEGER,
            defensive_submitter TEXT,
            offensive_submitter TEXT,
            play_call TEXT,
            runoff_type TEXT,
            defensive_timeout_called INTEGER NOT NULL,
            offensive_timeout_called INTEGER NOT NULL,
            defensive_response_seconds REAL,
            offensive_response_seconds REAL,
            result TEXT,
            actual_result TEXT,
            yards INTEGER NOT NULL,
            play_time INTEGER NOT NULL,
            runoff_time INTEGER NOT NULL,
            difference INTEGER,
            timeout_used INTEGER NOT NULL,
            penalized_side TEXT,
            final_home_score INTEGER,
            final_away_score INTEGER,
            win_probability REAL,
            win_probability_added REAL,
            finished INTEGER NOT NULL
        );
        """,
    ),
    (
        2,
        """
        CREATE INDEX IF NOT EXISTS idx_plays_game_order ON plays(game_id, finished, play_number);
        CREATE UNIQUE INDEX IF NOT EXISTS idx_plays_one_pending ON plays(game_id) WHERE finished = 0;
        """,
    ),
]


class MigrationRunner:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def apply(self) -> None:
        self.conn.execute("CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER PRIMARY KEY, applied_at TEXT DEFAULT CURRENT_TIMESTAMP)")
        applied = {
            int(row[0])
            for row in self.conn.execute("SELECT version FROM schema_migrations").fetchall()
        }
        for version, sql in MIGRATIONS:
            if version in applied:
                continue
            self.conn.executescript(sql)
            self.conn.execute("INSERT INTO schema_migrations(version) VALUES (?)", (version,))
