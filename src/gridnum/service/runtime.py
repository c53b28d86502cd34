from __future__ import annotations

import logging
from functools import partial
from pathlib import Path
from typing import Any

from gridnum.core import (
    EventBus,
    GameRules,
    SecrecyCodec,
    SideEffectDispatcher,
    default_rules,
    gameplay_random,
    seeded_random,
)
from gridnum.football import GameSessionEngine, JsonOutcomeTable, LogisticWinProbabilityModel, WinProbabilityService
from gridnum.persistence import AnalyticsStore, GameStore, run_game_stats_refresh

logger = logging.getLogger(__name__)


class RuntimePaths:
    def __init__(self, root: Path) -> None:
        self.root = root

    @property
    def sqlite_path(self) -> Path:
        return self.root / "data" / "games.sqlite3"

    @property
    def duckdb_path(self) -> Path:
        return self.root / "data" / "analytics.duckdb"

    @property
    def forensic_dir(self) -> Path:
        return self.root / "forensics"


class GameRuntime:
    """Wires storage, outcome data, the predictor and the session engine under one root."""

    def __init__(
        self,
        root: Path,
        seed: int | None = None,
        rules: GameRules | None = None,
        codec: SecrecyCodec | None = None,
        inline_side_effects: bool = False,
        bundle_overrides: dict[str, dict[str, Any]] | None = None,
    ) -> None:
        self.paths = RuntimePaths(root)
        self.paths.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
        self.rules = rules or default_rules()
        self.rules.validate()
        self.seed = seed
        self.rand = seeded_random(seed) if seed is not None else gameplay_random()

        self.event_bus = EventBus()
        self.store = GameStore(self.paths.sqlite_path)
        self.store.initialize_schema()
        self.analytics = AnalyticsStore(self.paths.duckdb_path)
        self.table = JsonOutcomeTable(bundle_overrides=bundle_overrides, max_difference=self.rules.max_difference)
        self.win_probability = WinProbabilityService(LogisticWinProbabilityModel.from_bundle(bundle_overrides=bundle_overrides))
        self.session = GameSessionEngine(
            self.store,
            self.table,
            self.win_probability,
            rules=self.rules,
            codec=codec or SecrecyCodec.from_env(),
            events=self.event_bus,
            rng=self.rand.spawn("coin_toss"),
            dispatcher=SideEffectDispatcher(inline=inline_side_effects),
            stats_refresher=partial(run_game_stats_refresh, self.paths.sqlite_path, self.paths.duckdb_path),
            forensic_dir=self.paths.forensic_dir,
        )
        logger.debug("runtime ready at %s", root)

    def game_summary(self, game_id: str) -> dict[str, Any] | None:
        return self.analytics.game_summary(game_id)

    def close(self) -> None:
        self.session.close()
