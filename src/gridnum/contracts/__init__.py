from .types import (
    ActualResult,
    CoinTossCall,
    CoinTossChoice,
    DefensivePlaybook,
    ForensicArtifact,
    Game,
    GameStatus,
    GameType,
    NarrativeEvent,
    OffensivePlaybook,
    OutcomeRow,
    OvertimeCoinTossChoice,
    Participant,
    Play,
    PlayCall,
    PlayFamily,
    PlayType,
    RandomSource,
    ResourceManifest,
    RunoffType,
    TeamSide,
    ValidationError,
    ValidationIssue,
)

__all__ = [
    "ActualResult",
    "CoinTossCall",
    "CoinTossChoice",
    "DefensivePlaybook",
    "ForensicArtifact",
    "Game",
    "GameStatus",
    "GameType",
    "NarrativeEvent",
    "OffensivePlaybook",
    "OutcomeRow",
    "OvertimeCoinTossChoice",
    "Participant",
    "Play",
    "PlayCall",
    "PlayFamily",
    "PlayType",
    "RandomSource",
    "ResourceManifest",
    "RunoffType",
    "TeamSide",
    "ValidationError",
    "ValidationIssue",
]
