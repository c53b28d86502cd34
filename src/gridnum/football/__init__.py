from .models import FieldChange, OffensiveSubmission, PlayOutcome, Resolution, TimeoutUsage
from .outcome_table import JsonOutcomeTable, OutcomeTable
from .outcomes import map_outcome, points_for
from .phase import GamePhaseController, snapshot_play
from .resolver import PlayResolver, closeness
from .resources import ResourceBundle, load_bundle
from .session import GameSessionEngine
from .win_probability import LogisticWinProbabilityModel, WinProbabilityModel, WinProbabilityService, build_features

__all__ = [
    "FieldChange",
    "GamePhaseController",
    "GameSessionEngine",
    "JsonOutcomeTable",
    "LogisticWinProbabilityModel",
    "OffensiveSubmission",
    "OutcomeTable",
    "PlayOutcome",
    "PlayResolver",
    "Resolution",
    "ResourceBundle",
    "TimeoutUsage",
    "WinProbabilityModel",
    "WinProbabilityService",
    "build_features",
    "closeness",
    "load_bundle",
    "map_outcome",
    "points_for",
    "snapshot_play",
]
