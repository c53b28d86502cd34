from .duckdb_store import AnalyticsStore
from .etl import run_game_stats_refresh
from .migrations import MigrationRunner
from .sqlite_store import GameStore

__all__ = [
    "AnalyticsStore",
    "GameStore",
    "MigrationRunner",
    "run_game_stats_refresh",
]
