from __future__ import annotations

from pathlib import Path

from gridnum.persistence.duckdb_store import AnalyticsStore


def run_game_stats_refresh(sqlite_path: Path, duckdb_path: Path, game_id: str) -> None:
    store = AnalyticsStore(duckdb_path)
    store.refresh_game_from_sqlite(sqlite_path, game_id)
