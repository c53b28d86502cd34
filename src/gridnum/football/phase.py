from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime

from gridnum.contracts import (
    ActualResult,
    CoinTossCall,
    CoinTossChoice,
    Game,
    GameStatus,
    GameType,
    OvertimeCoinTossChoice,
    Play,
    PlayCall,
    PlayFamily,
    PlayType,
    RandomSource,
    TeamSide,
)
from gridnum.core import GameRules, PhaseViolationError, default_rules
from gridnum.football.models import PlayOutcome
from gridnum.football.outcomes import TOUCHDOWN_RESULTS, Beneficiary, points_for

logger = logging.getLogger(__name__)

END_OF_OVERTIME_HALF = frozenset(
    {
        ActualResult.GOOD,
        ActualResult.NO_GOOD,
        ActualResult.BLOCKED,
        ActualResult.SUCCESS,
        ActualResult.FAILED,
        ActualResult.DEFENSE_TWO_POINT,
        ActualResult.TURNOVER_ON_DOWNS,
        ActualResult.TURNOVER,
        ActualResult.TOUCHDOWN,
        ActualResult.TURNOVER_TOUCHDOWN,
        ActualResult.KICK_SIX,
        ActualResult.PUNT,
        ActualResult.PUNT_RETURN_TOUCHDOWN,
        ActualResult.PUNT_TEAM_TOUCHDOWN,
        ActualResult.MUFFED_PUNT,
    }
)

_CLOCK_STOPPING_RESULTS = frozenset(
    {
        ActualResult.TURNOVER_ON_DOWNS,
        ActualResult.TURNOVER,
        ActualResult.SAFETY,
    }
)

_KICKING_FAMILIES = (PlayFamily.FIELD_GOAL, PlayFamily.POINT_AFTER, PlayFamily.KICKOFF, PlayFamily.PUNT)


def snapshot_play(game: Game, play_id: str, play_number: int) -> Play:
    return Play(
        play_id=play_id,
        game_id=game.game_id,
        play_number=play_number,
        home_score=game.home_score,
        away_score=game.away_score,
        quarter=game.quarter,
        clock=game.clock,
        ball_location=game.ball_location,
        possession=game.possession,
        down=game.down,
        yards_to_go=game.yards_to_go,
        home_timeouts=game.home_timeouts,
        away_timeouts=game.away_timeouts,
        clock_stopped=game.clock_stopped,
        status=game.status,
        overtime_half=game.overtime_half,
        play_type=game.current_play_type,
    )


def play_type_for_call(call: PlayCall | None, fallback: PlayType) -> PlayType:
    if call is None:
        return fallback
    return call.play_type


class GamePhaseController:
    """Game-level state that outlives a single play.

    Every public method takes a Game and returns a new one; inputs are never
    mutated.
    """

    def __init__(self, rules: GameRules | None = None) -> None:
        self._rules = rules or default_rules()

    @property
    def rules(self) -> GameRules:
        return self._rules

    def new_game(self, game_id: str, home_team: str, away_team: str, overtime_only: bool = False, **details) -> Game:
        game = Game(game_id=game_id, home_team=home_team, away_team=away_team, **details)
        rules = self._rules
        game.clock = rules.quarter_seconds
        game.ball_location = rules.kickoff_spot
        game.home_timeouts = game.away_timeouts = rules.regulation_timeouts
        if overtime_only:
            game.quarter = 5
            game.clock = 0
            game.ball_location = rules.overtime_spot
            game.home_timeouts = game.away_timeouts = rules.overtime_timeouts
            game.current_play_type = PlayType.NORMAL
            game.status = GameStatus.END_OF_REGULATION
            game.overtime_half = 1
        return game

    # -- per-play folding -------------------------------------------------

    def fold(self, game: Game, outcome: PlayOutcome) -> Game:
        play = outcome.play
        field = outcome.field
        updated = replace(
            game,
            possession=field.possession,
            waiting_on=field.possession.opponent,
            ball_location=field.ball_location,
            down=field.down,
            yards_to_go=field.yards_to_go,
            home_score=outcome.home_score,
            away_score=outcome.away_score,
            quarter=outcome.quarter,
            clock=outcome.clock,
            current_play_id=play.play_id,
            num_plays=game.num_plays + 1,
        )
        charged = outcome.timeouts.charged_side
        if charged is TeamSide.HOME:
            updated.home_timeouts -= 1
        elif charged is TeamSide.AWAY:
            updated.away_timeouts -= 1
        updated.current_play_type = self.next_play_type(game.status, play)
        updated.clock_stopped = self.clock_stopped_after(game.status, play, outcome.clock)

        if outcome.game_over:
            self._final(updated)
        elif game.status is GameStatus.OVERTIME:
            self._overtime(updated, game, play)
        elif game.status is GameStatus.OPENING_KICKOFF:
            updated.status = GameStatus.IN_PROGRESS
        elif updated.quarter == 3 and updated.clock == self._rules.quarter_seconds and game.status is not GameStatus.HALFTIME:
            self._halftime(updated)
        elif game.status is GameStatus.HALFTIME:
            updated.status = GameStatus.IN_PROGRESS
        elif updated.quarter >= 5 and game.status is GameStatus.IN_PROGRESS:
            self._end_of_regulation(updated)

        self.refresh_flags(updated, play.quarter, play.clock)
        return updated

    def next_play_type(self, status: GameStatus, play: Play) -> PlayType:
        result = play.actual_result
        if result in TOUCHDOWN_RESULTS:
            return PlayType.PAT
        call = play.play_call
        kicked_off_next = (
            result is ActualResult.SAFETY
            or (result is ActualResult.GOOD and call is PlayCall.FIELD_GOAL)
            or (call is not None and call.family is PlayFamily.POINT_AFTER)
        )
        if kicked_off_next:
            return PlayType.NORMAL if status is GameStatus.OVERTIME else PlayType.KICKOFF
        return PlayType.NORMAL

    def clock_stopped_after(self, status: GameStatus, play: Play, clock: int) -> bool:
        if clock == self._rules.quarter_seconds:
            return True
        if status in (GameStatus.OVERTIME, GameStatus.HALFTIME):
            return True
        call = play.play_call
        if call is PlayCall.SPIKE or (call is not None and call.family in _KICKING_FAMILIES):
            return True
        if play.result == "INCOMPLETE":
            return True
        return play.actual_result in _CLOCK_STOPPING_RESULTS or play.actual_result in TOUCHDOWN_RESULTS

    def refresh_flags(self, game: Game, quarter: int | None = None, clock: int | None = None) -> None:
        """Score from `game`, time from the snapshot of the play just run when given."""
        rules = self._rules
        quarter = game.quarter if quarter is None else quarter
        clock = game.clock if clock is None else clock
        margin = abs(game.home_score - game.away_score)
        game.close_game = margin <= rules.close_game_margin and quarter >= 4 and clock <= rules.close_game_clock
        game.upset_alert = rules.upset_alert_enabled and game.close_game and self._ranked_side_trailing(game)

    def _ranked_side_trailing(self, game: Game) -> bool:
        if game.home_score == game.away_score:
            return False
        trailing = TeamSide.HOME if game.home_score < game.away_score else TeamSide.AWAY
        trailing_rank = game.home_rank if trailing is TeamSide.HOME else game.away_rank
        leading_rank = game.away_rank if trailing is TeamSide.HOME else game.home_rank
        if trailing_rank is None:
            return False
        return leading_rank is None or leading_rank > trailing_rank

    def _final(self, game: Game) -> None:
        game.status = GameStatus.FINAL
        game.clock = 0
        game.clock_stopped = True

    def _halftime(self, game: Game) -> None:
        rules = self._rules
        kicker = self.second_half_kicker(game)
        game.status = GameStatus.HALFTIME
        game.home_timeouts = game.away_timeouts = rules.regulation_timeouts
        game.current_play_type = PlayType.KICKOFF
        game.possession = kicker
        game.waiting_on = kicker.opponent
        game.ball_location = rules.kickoff_spot
        game.quarter = 3
        game.clock = rules.quarter_seconds
        game.down, game.yards_to_go = 1, 10
        game.clock_stopped = True

    def second_half_kicker(self, game: Game) -> TeamSide:
        winner = game.coin_toss_winner
        if winner is None or game.coin_toss_choice is None:
            # home kicks a game that skipped the toss, so away kicks after the break
            return TeamSide.AWAY
        if game.coin_toss_choice is CoinTossChoice.RECEIVE:
            return winner
        return winner.opponent

    def _end_of_regulation(self, game: Game) -> None:
        rules = self._rules
        game.status = GameStatus.END_OF_REGULATION
        game.clock = 0
        game.current_play_type = PlayType.NORMAL
        game.ball_location = rules.overtime_spot
        game.down, game.yards_to_go = 1, 10
        game.overtime_half = 1
        game.home_timeouts = game.away_timeouts = rules.overtime_timeouts
        game.clock_stopped = True

    def _overtime(self, game: Game, before: Game, play: Play) -> None:
        game.clock = 0
        result = play.actual_result
        if result not in END_OF_OVERTIME_HALF:
            return
        if before.overtime_half == 1:
            if result is ActualResult.TOUCHDOWN:
                return
            if result in (ActualResult.TURNOVER_TOUCHDOWN, ActualResult.KICK_SIX):
                self._final(game)
                return
            self._start_overtime_possession(game, play.possession.opponent, half=2)
            return
        if game.home_score != game.away_score or game.current_play_type is PlayType.PAT:
            catchable = abs(game.home_score - game.away_score) <= 2
            if result in (ActualResult.TOUCHDOWN, ActualResult.TURNOVER_TOUCHDOWN, ActualResult.KICK_SIX) and catchable:
                return
            self._final(game)
            return
        game.quarter += 1
        game.home_timeouts = game.away_timeouts = self._rules.overtime_timeouts
        self._start_overtime_possession(game, play.possession, half=1)

    def _start_overtime_possession(self, game: Game, offense: TeamSide, half: int) -> None:
        game.overtime_half = half
        game.possession = offense
        game.waiting_on = offense.opponent
        game.ball_location = self._rules.overtime_spot
        game.down, game.yards_to_go = 1, 10
        game.current_play_type = PlayType.NORMAL

    # -- coin toss ----------------------------------------------------------

    def run_coin_toss(self, game: Game, call: CoinTossCall, rng: RandomSource) -> Game:
        if game.status is GameStatus.PREGAME:
            if game.coin_toss_winner is not None:
                raise PhaseViolationError.single("COIN_TOSS_ALREADY_RUN", game.game_id, "opening coin toss already decided")
        elif game.status is GameStatus.END_OF_REGULATION:
            if game.overtime_coin_toss_winner is not None:
                raise PhaseViolationError.single("COIN_TOSS_ALREADY_RUN", game.game_id, "overtime coin toss already decided")
        else:
            raise PhaseViolationError.single("COIN_TOSS_NOT_ALLOWED", game.game_id, f"no coin toss during {game.status.value}")

        draw = rng.randint(0, 1)
        away_wins = (draw == 1 and call is CoinTossCall.HEADS) or (draw == 0 and call is CoinTossCall.TAILS)
        winner = TeamSide.AWAY if away_wins else TeamSide.HOME
        if game.status is GameStatus.PREGAME:
            return replace(game, coin_toss_winner=winner)
        return replace(game, overtime_coin_toss_winner=winner)

    def make_coin_toss_choice(self, game: Game, choice: CoinTossChoice) -> Game:
        if game.status is not GameStatus.PREGAME or game.coin_toss_winner is None:
            raise PhaseViolationError.single("COIN_TOSS_CHOICE_NOT_ALLOWED", game.game_id, "opening coin toss has not been won yet")
        winner = game.coin_toss_winner
        kicker = winner.opponent if choice is CoinTossChoice.RECEIVE else winner
        return replace(
            game,
            coin_toss_choice=choice,
            possession=kicker,
            waiting_on=kicker.opponent,
            status=GameStatus.OPENING_KICKOFF,
        )

    def make_overtime_coin_toss_choice(self, game: Game, choice: OvertimeCoinTossChoice) -> Game:
        if game.status is not GameStatus.END_OF_REGULATION or game.overtime_coin_toss_winner is None:
            raise PhaseViolationError.single("COIN_TOSS_CHOICE_NOT_ALLOWED", game.game_id, "overtime coin toss has not been won yet")
        winner = game.overtime_coin_toss_winner
        offense = winner if choice is OvertimeCoinTossChoice.OFFENSE else winner.opponent
        return replace(
            game,
            overtime_coin_toss_choice=choice,
            possession=offense,
            waiting_on=offense.opponent,
            status=GameStatus.OVERTIME,
            current_play_type=PlayType.NORMAL,
            clock_stopped=True,
        )

    # -- rollback -------------------------------------------------------------

    def rollback(self, game: Game, play: Play, previous_win_probability: float = 0.5) -> Game:
        """Exact inverse of the fold that produced `play`."""
        home, away = game.home_score, game.away_score
        for side, points in self.points_awarded(play):
            if side is TeamSide.HOME:
                home -= points
            else:
                away -= points
        restored = replace(
            game,
            home_score=home,
            away_score=away,
            current_play_type=play_type_for_call(play.play_call, play.play_type),
            possession=play.possession,
            waiting_on=play.possession.opponent,
            quarter=play.quarter,
            clock=play.clock,
            ball_location=play.ball_location,
            down=play.down,
            yards_to_go=play.yards_to_go,
            home_timeouts=play.home_timeouts,
            away_timeouts=play.away_timeouts,
            clock_stopped=play.clock_stopped,
            status=play.status,
            overtime_half=play.overtime_half,
            num_plays=max(game.num_plays - 1, 0),
            win_probability=previous_win_probability,
        )
        self.refresh_flags(restored)
        return restored

    def points_awarded(self, play: Play) -> list[tuple[TeamSide, int]]:
        if play.actual_result is ActualResult.DELAY_OF_GAME and play.penalized_side is not None:
            beneficiary = play.penalized_side.opponent
            final = play.final_home_score if beneficiary is TeamSide.HOME else play.final_away_score
            before = play.home_score if beneficiary is TeamSide.HOME else play.away_score
            awarded = (final or before) - before
            return [(beneficiary, awarded)] if awarded else []
        if play.actual_result is None:
            return []
        scoring = points_for(play.actual_result, play.play_call)
        if scoring is None:
            return []
        beneficiary, points = scoring
        side = play.possession if beneficiary is Beneficiary.OFFENSE else play.possession.opponent
        return [(side, points)]

    # -- delay of game ----------------------------------------------------------

    def delay_of_game_side(self, game: Game) -> TeamSide:
        """A pregame coin-toss winner owes the choice; otherwise the side the game is waiting on."""
        if game.status is GameStatus.PREGAME and game.coin_toss_winner is not None:
            return game.coin_toss_winner
        return game.waiting_on

    def apply_delay_of_game(self, game: Game, play: Play, prior_penalties: int, now: datetime) -> tuple[Game, Play]:
        """`play` is the pending play or a fresh snapshot."""
        rules = self._rules
        penalized = self.delay_of_game_side(game)
        beneficiary = penalized.opponent
        updated = replace(game, current_play_id=play.play_id, num_plays=game.num_plays + 1, last_action_at=now)
        self._award(updated, beneficiary, rules.delay_of_game_points)

        if game.status is not GameStatus.PREGAME:
            updated.possession = beneficiary
            updated.waiting_on = penalized
            updated.current_play_type = PlayType.KICKOFF
            updated.ball_location = rules.kickoff_spot
            updated.down, updated.yards_to_go = 1, 10
            updated.clock_stopped = True

        if prior_penalties + 1 >= rules.delay_of_game_limit:
            logger.info("game %s ended on delay of game against %s", game.game_id, penalized.value)
            while updated.score_of(penalized) >= updated.score_of(beneficiary):
                self._award(updated, beneficiary, rules.delay_of_game_points)
            self._final(updated)

        sealed = replace(
            play,
            result=f"DELAY OF GAME ON {penalized.name} TEAM",
            actual_result=ActualResult.DELAY_OF_GAME,
            penalized_side=penalized,
            final_home_score=updated.home_score,
            final_away_score=updated.away_score,
            win_probability=game.win_probability,
            win_probability_added=0.0,
            finished=True,
        )
        self.refresh_flags(updated)
        return updated, sealed

    def _award(self, game: Game, side: TeamSide, points: int) -> None:
        if side is TeamSide.HOME:
            game.home_score += points
        else:
            game.away_score += points

    # -- game end -------------------------------------------------------------

    def elo_update(self, game: Game) -> tuple[float, float] | None:
        if game.game_type is GameType.SCRIMMAGE:
            return None
        expected_home = 1.0 / (1.0 + 10 ** ((game.away_elo - game.home_elo) / 400.0))
        if game.home_score > game.away_score:
            actual_home = 1.0
        elif game.home_score < game.away_score:
            actual_home = 0.0
        else:
            actual_home = 0.5
        delta = self._rules.elo_k_factor * (actual_home - expected_home)
        return game.home_elo + delta, game.away_elo - delta

    def ends_season(self, game: Game) -> bool:
        return game.status is GameStatus.FINAL and game.game_type is GameType.NATIONAL_CHAMPIONSHIP
