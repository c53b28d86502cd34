from __future__ import annotations

import argparse
import logging
from pathlib import Path

from gridnum.contracts import (
    CoinTossCall,
    CoinTossChoice,
    DefensivePlaybook,
    Game,
    GameStatus,
    GameType,
    OffensivePlaybook,
    OvertimeCoinTossChoice,
    PlayCall,
    RunoffType,
    ValidationError,
)
from gridnum.core import EngineIntegrityError
from gridnum.service import GameRuntime


def _describe(game: Game) -> str:
    if game.status is GameStatus.FINAL:
        return f"{game.game_id} FINAL {game.away_team} {game.away_score} @ {game.home_team} {game.home_score}"
    return (
        f"{game.game_id} [{game.status.value}] Q{game.quarter} {game.clock}s "
        f"{game.away_team} {game.away_score} @ {game.home_team} {game.home_score} | "
        f"{game.possession.value} ball at {game.ball_location}, {game.down}&{game.yards_to_go} "
        f"({game.current_play_type.value}, waiting on {game.waiting_on.value}) "
        f"home wp {game.win_probability:.3f}"
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="gridnum: number-guessing college football games")
    parser.add_argument("--root", type=Path, default=Path.cwd(), help="runtime root directory")
    parser.add_argument("--seed", type=int, default=None, help="seed for deterministic coin tosses")
    parser.add_argument("--log-level", default="WARNING", help="logging level (DEBUG, INFO, WARNING, ...)")
    sub = parser.add_subparsers(dest="command", required=True)

    new_game = sub.add_parser("new-game", help="create a game")
    new_game.add_argument("home")
    new_game.add_argument("away")
    new_game.add_argument("--game-id", default=None)
    new_game.add_argument("--home-coach", default=None)
    new_game.add_argument("--away-coach", default=None)
    new_game.add_argument("--game-type", type=GameType, choices=list(GameType), default=GameType.OUT_OF_CONFERENCE)
    new_game.add_argument("--home-offense", type=OffensivePlaybook, choices=list(OffensivePlaybook), default=OffensivePlaybook.PRO)
    new_game.add_argument("--away-offense", type=OffensivePlaybook, choices=list(OffensivePlaybook), default=OffensivePlaybook.PRO)
    new_game.add_argument("--home-defense", type=DefensivePlaybook, choices=list(DefensivePlaybook), default=DefensivePlaybook.FOUR_THREE)
    new_game.add_argument("--away-defense", type=DefensivePlaybook, choices=list(DefensivePlaybook), default=DefensivePlaybook.FOUR_THREE)
    new_game.add_argument("--overtime-only", action="store_true", help="start directly in overtime")

    toss = sub.add_parser("coin-toss", help="run the opening or overtime coin toss")
    toss.add_argument("game_id")
    toss.add_argument("call", type=CoinTossCall, choices=list(CoinTossCall))

    choose = sub.add_parser("choose", help="coin toss winner's choice")
    choose.add_argument("game_id")
    choose.add_argument("choice", choices=[c.value for c in CoinTossChoice] + [c.value for c in OvertimeCoinTossChoice])

    defense = sub.add_parser("defense", help="submit the defensive number")
    defense.add_argument("game_id")
    defense.add_argument("submitter")
    defense.add_argument("number", type=int)
    defense.add_argument("--timeout", action="store_true")

    offense = sub.add_parser("offense", help="submit the offensive number and call")
    offense.add_argument("game_id")
    offense.add_argument("submitter")
    offense.add_argument("play_call", type=PlayCall, choices=list(PlayCall))
    offense.add_argument("number", type=int, nargs="?", default=None)
    offense.add_argument("--runoff", type=RunoffType, choices=list(RunoffType), default=RunoffType.NORMAL)
    offense.add_argument("--timeout", action="store_true")

    rollback = sub.add_parser("rollback", help="undo the last finished play")
    rollback.add_argument("game_id")

    delay = sub.add_parser("delay-of-game", help="penalize the side the game is waiting on")
    delay.add_argument("game_id")

    show = sub.add_parser("show", help="print a game's state and stats")
    show.add_argument("game_id")
    return parser


def _dispatch(runtime: GameRuntime, args: argparse.Namespace) -> str:
    session = runtime.session
    if args.command == "new-game":
        game = session.start_game(
            args.home,
            args.away,
            overtime_only=args.overtime_only,
            game_id=args.game_id,
            home_coach_id=args.home_coach,
            away_coach_id=args.away_coach,
            game_type=args.game_type,
            home_offensive_playbook=args.home_offense,
            away_offensive_playbook=args.away_offense,
            home_defensive_playbook=args.home_defense,
            away_defensive_playbook=args.away_defense,
        )
        return _describe(game)
    if args.command == "coin-toss":
        game = session.run_coin_toss(args.game_id, args.call)
        winner = game.overtime_coin_toss_winner or game.coin_toss_winner
        return f"{args.call.value}: {winner.value} wins the toss"
    if args.command == "choose":
        if args.choice in {c.value for c in CoinTossChoice}:
            game = session.make_coin_toss_choice(args.game_id, CoinTossChoice(args.choice))
        else:
            game = session.make_overtime_coin_toss_choice(args.game_id, OvertimeCoinTossChoice(args.choice))
        return _describe(game)
    if args.command == "defense":
        play = session.submit_defensive_number(args.game_id, args.submitter, args.number, timeout_called=args.timeout)
        return f"play {play.play_number} waiting on offense"
    if args.command == "offense":
        resolution = session.submit_offensive_number(
            args.game_id,
            args.submitter,
            args.number,
            args.play_call,
            runoff_type=args.runoff,
            timeout_called=args.timeout,
        )
        play = resolution.play
        return f"{play.result} (difference {play.difference})\n{_describe(resolution.game)}"
    if args.command == "rollback":
        return _describe(session.rollback_play(args.game_id))
    if args.command == "delay-of-game":
        play = session.apply_delay_of_game(args.game_id)
        return f"{play.result}\n{_describe(session.get_game(args.game_id))}"
    if args.command == "show":
        lines = [_describe(session.get_game(args.game_id))]
        summary = runtime.game_summary(args.game_id)
        if summary:
            lines.append(
                f"plays {summary['plays']} | yards home {summary['home_yards']} away {summary['away_yards']} | "
                f"turnovers {summary['turnovers']} | touchdowns {summary['touchdowns']}"
            )
        return "\n".join(lines)
    raise ValueError(f"unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    runtime = GameRuntime(root=args.root, seed=args.seed, inline_side_effects=True)
    try:
        print(_dispatch(runtime, args))
    except (ValidationError, LookupError) as exc:
        print(f"rejected: {exc}")
        return 1
    except EngineIntegrityError as exc:
        print(f"integrity failure: {exc.artifact.error_code}")
        return 2
    finally:
        runtime.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
