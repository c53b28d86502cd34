from .errors import (
    EngineIntegrityError,
    GameNotFoundError,
    PhaseViolationError,
    PlayNotFoundError,
    build_forensic_artifact,
    persist_forensic_artifact,
)
from .dispatch import SideEffectDispatcher
from .events import EventBus, game_event
from .ids import new_event_id, new_game_id, new_play_id, now_utc
from .locks import GameLockRegistry
from .randomness import GameRandom, gameplay_random, seeded_random
from .rules import GameRules, default_rules
from .secrecy import SealError, SecrecyCodec

__all__ = [
    "EngineIntegrityError",
    "EventBus",
    "GameLockRegistry",
    "GameNotFoundError",
    "GameRules",
    "PhaseViolationError",
    "PlayNotFoundError",
    "GameRandom",
    "SealError",
    "SecrecyCodec",
    "SideEffectDispatcher",
    "build_forensic_artifact",
    "default_rules",
    "game_event",
    "gameplay_random",
    "new_event_id",
    "new_game_id",
    "new_play_id",
    "now_utc",
    "persist_forensic_artifact",
    "seeded_random",
]
