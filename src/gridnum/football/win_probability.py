from __future__ import annotations

import logging
import math
from dataclasses import astuple, dataclass
from typing import Any, Protocol, Sequence

from gridnum.contracts import CoinTossChoice, Game, GameStatus, PlayType, TeamSide
from gridnum.football.resources import load_bundle

logger = logging.getLogger(__name__)

FEATURE_NAMES = (
    "down",
    "distance",
    "position",
    "margin",
    "seconds_left_game",
    "seconds_left_half",
    "half",
    "had_first_possession",
    "elo_diff_time",
)
REGULATION_SECONDS = 1680
NEUTRAL_PROBABILITY = 0.5

# Outcome weights of the closeness range (751 equally likely differences).
PAT_WEIGHTS = (721.0 / 751.0, 27.0 / 751.0, 3.0 / 751.0)


class WinProbabilityModel(Protocol):
    def predict(self, features: Sequence[float]) -> float: ...


@dataclass(slots=True)
class GameFeatures:
    down: int
    distance: int
    position: int
    margin: int
    seconds_left_game: int
    seconds_left_half: int
    half: int
    had_first_possession: int
    elo_diff_time: float

    def as_vector(self) -> list[float]:
        return [float(v) for v in astuple(self)]


def seconds_left_game(quarter: int, clock: int) -> int:
    elapsed = 420 - clock
    if quarter == 1:
        return 1680 - elapsed
    if quarter == 2:
        return 1260 - elapsed
    if quarter == 3:
        return 840 - elapsed
    if quarter == 4:
        return clock
    return 0


def seconds_left_half(quarter: int, clock: int) -> int:
    if quarter in (1, 3):
        return 840 - (420 - clock)
    if quarter in (2, 4):
        return clock
    return 0


def elo_diff_time(offense_elo: float, defense_elo: float, seconds_left: int) -> float:
    return (offense_elo - defense_elo) * math.exp(-2 * (1 - seconds_left / REGULATION_SECONDS))


def had_first_possession(game: Game, side: TeamSide) -> int:
    winner, choice = game.coin_toss_winner, game.coin_toss_choice
    if winner is None or choice is None:
        return int(side is TeamSide.AWAY)
    opening_receiver = winner if choice is CoinTossChoice.RECEIVE else winner.opponent
    return int(side is opening_receiver)


def build_features(
    game: Game,
    side: TeamSide,
    *,
    down: int | None = None,
    distance: int | None = None,
    position: int | None = None,
    margin_adjustment: int = 0,
) -> GameFeatures:
    """Features from `side`'s point of view; keyword overrides describe a hypothetical next snap."""
    margin = game.score_of(side) - game.score_of(side.opponent) + margin_adjustment
    left_game = seconds_left_game(game.quarter, game.clock)
    own_elo = game.home_elo if side is TeamSide.HOME else game.away_elo
    other_elo = game.away_elo if side is TeamSide.HOME else game.home_elo
    return GameFeatures(
        down=game.down if down is None else down,
        distance=game.yards_to_go if distance is None else distance,
        position=100 - game.ball_location if position is None else position,
        margin=margin,
        seconds_left_game=left_game,
        seconds_left_half=seconds_left_half(game.quarter, game.clock),
        half=1 if game.quarter <= 2 else 2,
        had_first_possession=had_first_possession(game, side),
        elo_diff_time=elo_diff_time(own_elo, other_elo, left_game),
    )


class LogisticWinProbabilityModel:
    """Linear logit over the game features, coefficients from the model bundle."""

    def __init__(self, intercept: float, weights: dict[str, float]) -> None:
        missing = [name for name in FEATURE_NAMES if name not in weights]
        if missing:
            raise ValueError(f"model weights missing features: {missing}")
        self.intercept = intercept
        self.weights = [float(weights[name]) for name in FEATURE_NAMES]

    @classmethod
    def from_bundle(cls, model_id: str = "default", bundle_overrides: dict[str, dict[str, Any]] | None = None) -> LogisticWinProbabilityModel:
        bundle = load_bundle("win_probability_model.json", "win_probability_model", bundle_overrides)
        entry = bundle.resources_by_id.get(model_id)
        if entry is None:
            raise KeyError(f"unknown win probability model: {model_id}")
        return cls(float(entry["intercept"]), {k: float(v) for k, v in entry["weights"].items()})

    def predict(self, features: Sequence[float]) -> float:
        if len(features) != len(FEATURE_NAMES):
            raise ValueError(f"expected {len(FEATURE_NAMES)} features, got {len(features)}")
        z = self.intercept + sum(w * x for w, x in zip(self.weights, features))
        return 1.0 / (1.0 + math.exp(-z))


class WinProbabilityService:
    def __init__(self, model: WinProbabilityModel) -> None:
        self._model = model

    def home_probability(self, game: Game) -> float:
        if game.status is GameStatus.FINAL:
            if game.home_score == game.away_score:
                return NEUTRAL_PROBABILITY
            return 1.0 if game.home_score > game.away_score else 0.0
        side = game.possession
        if game.current_play_type is PlayType.PAT:
            probability = self._before_point_after(game, side)
        elif game.current_play_type is PlayType.KICKOFF:
            probability = 1.0 - self._predict(build_features(game, side.opponent, down=1, distance=10, position=75))
        else:
            probability = self._predict(build_features(game, side))
        return probability if side is TeamSide.HOME else 1.0 - probability

    def evaluate(self, game: Game) -> tuple[float, float]:
        """Home win probability after a play and its change; neutral on any model failure."""
        try:
            probability = self.home_probability(game)
        except Exception:
            logger.warning("win probability model failed for game %s; using neutral value", game.game_id, exc_info=True)
            return NEUTRAL_PROBABILITY, 0.0
        return probability, probability - game.win_probability

    def _before_point_after(self, game: Game, side: TeamSide) -> float:
        receiver = side.opponent
        success, fail, returned = PAT_WEIGHTS
        # the receiving side's outlook after the try, weighted by how the try goes
        if_good = self._predict(build_features(game, receiver, down=1, distance=10, position=75, margin_adjustment=-1))
        if_missed = self._predict(build_features(game, receiver, down=1, distance=10, position=75))
        if_returned = self._predict(build_features(game, receiver, down=1, distance=10, position=75, margin_adjustment=2))
        return 1.0 - (success * if_good + fail * if_missed + returned * if_returned)

    def _predict(self, features: GameFeatures) -> float:
        value = float(self._model.predict(features.as_vector()))
        if math.isnan(value) or not 0.0 <= value <= 1.0:
            raise ValueError(f"predictor returned out-of-range probability {value}")
        return value
