from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Callable

from gridnum.contracts import (
    CoinTossCall,
    CoinTossChoice,
    Game,
    GameStatus,
    GameType,
    NarrativeEvent,
    OvertimeCoinTossChoice,
    Play,
    PlayCall,
    RandomSource,
    RunoffType,
)
from gridnum.core import (
    EngineIntegrityError,
    EventBus,
    GameLockRegistry,
    GameNotFoundError,
    GameRules,
    PhaseViolationError,
    PlayNotFoundError,
    SealError,
    SecrecyCodec,
    SideEffectDispatcher,
    build_forensic_artifact,
    default_rules,
    game_event,
    gameplay_random,
    new_game_id,
    new_play_id,
    now_utc,
    persist_forensic_artifact,
)
from gridnum.football.models import OffensiveSubmission, Resolution
from gridnum.football.outcome_table import OutcomeTable
from gridnum.football.phase import GamePhaseController, snapshot_play
from gridnum.football.resolver import PlayResolver
from gridnum.football.win_probability import WinProbabilityService
from gridnum.persistence.sqlite_store import GameStore

logger = logging.getLogger(__name__)

StatsRefresher = Callable[[str], None]

_NO_SUBMISSIONS = (GameStatus.PREGAME, GameStatus.END_OF_REGULATION)


class GameSessionEngine:
    """Request surface for live games.

    Each mutating call holds the game's lock, loads state, runs the pure
    resolution/phase code, commits one transaction and only then hands
    notifications and stats work to the side-effect dispatcher.
    """

    def __init__(
        self,
        store: GameStore,
        table: OutcomeTable,
        win_probability: WinProbabilityService,
        rules: GameRules | None = None,
        codec: SecrecyCodec | None = None,
        events: EventBus | None = None,
        locks: GameLockRegistry | None = None,
        rng: RandomSource | None = None,
        dispatcher: SideEffectDispatcher | None = None,
        stats_refresher: StatsRefresher | None = None,
        forensic_dir: Path | None = None,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self.rules = rules or default_rules()
        self.store = store
        self.events = events or EventBus()
        self.phase = GamePhaseController(self.rules)
        self._resolver = PlayResolver(table, self.rules)
        self._win_probability = win_probability
        self._codec = codec or SecrecyCodec.from_env()
        self._locks = locks or GameLockRegistry()
        self._rng = rng or gameplay_random()
        self._dispatcher = dispatcher or SideEffectDispatcher()
        self._stats_refresher = stats_refresher
        self._forensic_dir = forensic_dir
        self._clock = clock

    def close(self) -> None:
        self._dispatcher.shutdown(wait=True)

    # -- games ------------------------------------------------------------------

    def start_game(self, home_team: str, away_team: str, overtime_only: bool = False, game_id: str | None = None, **details) -> Game:
        game = self.phase.new_game(game_id or new_game_id(home_team, away_team), home_team, away_team, overtime_only=overtime_only, **details)
        game.last_action_at = self._clock()
        with self._locks.hold(game.game_id):
            if self.store.get_game(game.game_id) is not None:
                raise PhaseViolationError.single("GAME_EXISTS", game.game_id, "a game with this id already exists")
            self.store.save_game(game)
        logger.info("started game %s: %s at %s", game.game_id, away_team, home_team)
        self._notify([game_event(game.game_id, "game_started", [home_team, away_team], [game.game_type.value])])
        return game

    def get_game(self, game_id: str) -> Game:
        game = self.store.get_game(game_id)
        if game is None:
            raise GameNotFoundError(game_id)
        return game

    # -- submissions --------------------------------------------------------------

    def submit_defensive_number(self, game_id: str, submitter: str, number: int, timeout_called: bool = False) -> Play:
        with self._locks.hold(game_id):
            game = self.get_game(game_id)
            self._require_playable(game)
            if game.status in _NO_SUBMISSIONS:
                raise PhaseViolationError.single("COIN_TOSS_PENDING", game_id, f"coin toss must be settled during {game.status.value}")
            if self.store.get_pending_play(game_id) is not None:
                raise PhaseViolationError.single("PLAY_ALREADY_PENDING", game_id, "a play is already waiting on the offense")
            self._check_number(game_id, number)

            now = self._clock()
            play_number = self.store.next_play_number(game_id)
            play_id = new_play_id(game_id, play_number)
            play = snapshot_play(game, play_id, play_number)
            play.defensive_number = self._codec.seal(number, play_id)
            play.defensive_submitter = submitter
            play.defensive_timeout_called = timeout_called
            play.defensive_response_seconds = _seconds_since(game.last_action_at, now)
            updated = replace(game, current_play_id=play_id, waiting_on=game.possession, last_action_at=now)
            self.store.commit(updated, plays=[play])
        logger.debug("defense submitted for game %s play %s", game_id, play_id)
        return play

    def submit_offensive_number(
        self,
        game_id: str,
        submitter: str,
        number: int | None,
        play_call: PlayCall,
        runoff_type: RunoffType = RunoffType.NORMAL,
        timeout_called: bool = False,
    ) -> Resolution:
        with self._locks.hold(game_id):
            game = self.get_game(game_id)
            self._require_playable(game)
            pending = self.store.get_pending_play(game_id)
            if pending is None:
                raise PhaseViolationError.single("NO_PENDING_PLAY", game_id, "the defense has not submitted yet")
            if number is not None:
                self._check_number(game_id, number)

            now = self._clock()
            submission = OffensiveSubmission(
                submitter=submitter,
                number=number,
                play_call=play_call,
                runoff_type=runoff_type,
                timeout_called=timeout_called,
                response_seconds=_seconds_since(game.last_action_at, now),
            )
            try:
                resolution = self.resolve_pending(game, pending, submission, now)
            except EngineIntegrityError as exc:
                self._record_forensics(exc)
                raise
            self.store.commit(resolution.game, plays=[resolution.play])

        play = resolution.play
        logger.info(
            "game %s play %d: %s %s (%s)",
            game_id,
            play.play_number,
            play_call.value,
            play.actual_result.value if play.actual_result else None,
            play.result,
        )
        self._after_play(game, resolution.game, play)
        return resolution

    def resolve_pending(self, game: Game, pending: Play, submission: OffensiveSubmission, now: datetime) -> Resolution:
        """Resolve and fold one play without touching storage."""
        call = submission.play_call
        if not call.is_canned and submission.number is None:
            raise PhaseViolationError.single("NUMBER_REQUIRED", game.game_id, f"{call.value} requires a number", field_path="number")
        defensive_number = self._open_defensive_number(game, pending)

        outcome = self._resolver.resolve(game, pending, submission, defensive_number)
        updated = self.phase.fold(game, outcome)
        probability, added = self._win_probability.evaluate(updated)
        updated.win_probability = probability
        updated.last_action_at = now
        play = replace(outcome.play, win_probability=probability, win_probability_added=added)
        return Resolution(game=updated, play=play)

    # -- rollback ------------------------------------------------------------------

    def rollback_play(self, game_id: str) -> Game:
        with self._locks.hold(game_id):
            game = self.get_game(game_id)
            last = self.store.get_previous_finished_play(game_id)
            if last is None:
                raise PlayNotFoundError(game_id, "no finished play to roll back")
            pending = self.store.get_pending_play(game_id)

            earlier = [p for p in self.store.list_plays(game_id) if p.finished and p.play_number < last.play_number]
            previous = earlier[-1] if earlier else None
            previous_probability = previous.win_probability if previous and previous.win_probability is not None else 0.5

            restored = self.phase.rollback(game, last, previous_probability)
            restored.current_play_id = previous.play_id if previous else None
            restored.last_action_at = self._clock()

            deltas: dict[str, int] = {}
            if last.penalized_side is not None and game.game_type is not GameType.SCRIMMAGE:
                coach = game.coach_of(last.penalized_side)
                if coach:
                    deltas[coach] = -1

            deleted = [last.play_id]
            if pending is not None:
                deleted.append(pending.play_id)
            self.store.commit(restored, deleted_play_ids=deleted, participant_deltas=deltas)

        logger.info("rolled back play %d of game %s", last.play_number, game_id)
        self._notify([game_event(game_id, "play_rolled_back", [], [last.play_id, f"play {last.play_number}"])])
        self._refresh_stats(game_id)
        return restored

    # -- coin tosses -------------------------------------------------------------------

    def run_coin_toss(self, game_id: str, call: CoinTossCall) -> Game:
        with self._locks.hold(game_id):
            game = self.get_game(game_id)
            updated = self.phase.run_coin_toss(game, call, self._rng)
            updated.last_action_at = self._clock()
            self.store.commit(updated)
        winner = updated.coin_toss_winner if game.status is GameStatus.PREGAME else updated.overtime_coin_toss_winner
        self._notify([game_event(game_id, "coin_toss", [], [f"{call.value} called", f"{winner.value} wins"])])
        return updated

    def make_coin_toss_choice(self, game_id: str, choice: CoinTossChoice) -> Game:
        with self._locks.hold(game_id):
            updated = self.phase.make_coin_toss_choice(self.get_game(game_id), choice)
            updated.last_action_at = self._clock()
            self.store.commit(updated)
        return updated

    def make_overtime_coin_toss_choice(self, game_id: str, choice: OvertimeCoinTossChoice) -> Game:
        with self._locks.hold(game_id):
            updated = self.phase.make_overtime_coin_toss_choice(self.get_game(game_id), choice)
            updated.last_action_at = self._clock()
            self.store.commit(updated)
        return updated

    # -- penalties ----------------------------------------------------------------------

    def apply_delay_of_game(self, game_id: str) -> Play:
        with self._locks.hold(game_id):
            game = self.get_game(game_id)
            self._require_playable(game)
            play = self.store.get_pending_play(game_id)
            if play is None:
                play_number = self.store.next_play_number(game_id)
                play = snapshot_play(game, new_play_id(game_id, play_number), play_number)
            penalized = self.phase.delay_of_game_side(game)
            prior = self.store.count_delay_of_game(game_id, penalized)
            updated, sealed = self.phase.apply_delay_of_game(game, play, prior, self._clock())

            deltas: dict[str, int] = {}
            coach = game.coach_of(penalized)
            if coach and game.game_type is not GameType.SCRIMMAGE:
                deltas[coach] = 1
            self.store.commit(updated, plays=[sealed], participant_deltas=deltas)

        logger.info("delay of game on %s in game %s (%d prior)", penalized.value, game_id, prior)
        self._after_play(game, updated, sealed)
        return sealed

    # -- internals --------------------------------------------------------------------------

    def _require_playable(self, game: Game) -> None:
        if game.status is GameStatus.FINAL:
            raise PhaseViolationError.single("GAME_FINAL", game.game_id, "game is over")

    def _check_number(self, game_id: str, number: int) -> None:
        if not 1 <= number <= self.rules.number_range:
            raise PhaseViolationError.single(
                "NUMBER_OUT_OF_RANGE",
                game_id,
                f"number must be between 1 and {self.rules.number_range}",
                field_path="number",
            )

    def _open_defensive_number(self, game: Game, play: Play) -> int:
        try:
            return self._codec.open(play.defensive_number or "", play.play_id)
        except SealError as exc:
            logger.error("sealed number for play %s could not be opened", play.play_id)
            raise EngineIntegrityError(
                build_forensic_artifact(
                    engine_scope="play_resolution",
                    error_code="SEAL_MISMATCH",
                    message=str(exc),
                    state_snapshot={"game_id": game.game_id, "play_id": play.play_id},
                    context={},
                    identifiers={"game_id": game.game_id, "play_id": play.play_id},
                    causal_fragment=["defensive_submission", "seal_open"],
                )
            ) from exc

    def _record_forensics(self, exc: EngineIntegrityError) -> None:
        if self._forensic_dir is None:
            return
        path = persist_forensic_artifact(exc.artifact, self._forensic_dir)
        logger.error("forensic artifact written to %s", path)

    def _after_play(self, before: Game, after: Game, play: Play) -> None:
        claims = [play.result or "", f"{after.home_score}-{after.away_score}"]
        events = [game_event(after.game_id, "play_sealed", _actors(play), claims)]
        if after.status is GameStatus.FINAL and before.status is not GameStatus.FINAL:
            events.extend(self._final_events(after))
        self._notify(events)
        self._refresh_stats(after.game_id)

    def _final_events(self, game: Game) -> list[NarrativeEvent]:
        claims = [f"{game.home_team} {game.home_score}", f"{game.away_team} {game.away_score}"]
        ratings = self.phase.elo_update(game)
        if ratings is not None:
            claims.append(f"elo {ratings[0]:.1f}/{ratings[1]:.1f}")
        events = [game_event(game.game_id, "game_final", [game.home_team, game.away_team], claims, severity="major")]
        if self.phase.ends_season(game):
            winner = game.home_team if game.home_score > game.away_score else game.away_team
            events.append(game_event(game.game_id, "season_ended", [winner], [f"{winner} national champion"], severity="major"))
        logger.info("game %s final: %s", game.game_id, ", ".join(claims))
        return events

    def _notify(self, events: list[NarrativeEvent]) -> None:
        for event in events:
            self._dispatcher.submit(event.event_type, self.events.publish_narrative, event)

    def _refresh_stats(self, game_id: str) -> None:
        if self._stats_refresher is not None:
            self._dispatcher.submit("stats_refresh", self._stats_refresher, game_id)


def _seconds_since(then: datetime | None, now: datetime) -> float | None:
    if then is None:
        return None
    return max((now - then).total_seconds(), 0.0)


def _actors(play: Play) -> list[str]:
    return [name for name in (play.offensive_submitter, play.defensive_submitter) if name]
