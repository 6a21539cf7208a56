"""Command-line entry point: referee one Othello match between two player executables.

    referee [-tracking] [--history-out PATH] [--cpu-limit S] [--log-level LEVEL] <player1> <player2>

The final score (FIRST tiles - SECOND tiles, or +/-64 on forfeit) is printed to stdout
as a single integer and returned as the exit status. Logging goes to stderr.
"""
from __future__ import annotations

import argparse
import logging
import sys

from .config import SETTINGS
from .game import MatchConfig, MatchRunner
from .player_process import PlayerLaunchError


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="referee", description="Referee an Othello match between two player programs.")
    ap.add_argument("-tracking", action="store_true", help="Write a <player1>_vs_<player2> transcript of the match")
    ap.add_argument("--history-out", default=None, help="Optional path to write the structured match history JSON")
    ap.add_argument("--cpu-limit", type=int, default=None, help="Per-player CPU time limit in seconds (default from settings)")
    ap.add_argument("--log-level", default=None, help="Python logging level (e.g., INFO, DEBUG)")
    ap.add_argument("players", nargs="*", help="FIRST and SECOND player executables")
    return ap


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if len(args.players) < 2:
        return 0

    log_level = (args.log_level or SETTINGS.log_level).upper()
    logging.basicConfig(level=getattr(logging, log_level, logging.WARNING), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    log = logging.getLogger("referee.cli")

    first, second = args.players[0], args.players[1]
    cfg = MatchConfig(tracking=args.tracking, cpu_time_limit_s=args.cpu_limit, history_path=args.history_out)
    runner = MatchRunner(first, second, cfg=cfg)
    try:
        result = runner.play()
    except PlayerLaunchError as e:
        print(e, file=sys.stderr)
        log.debug("Launch failure details", exc_info=True)
        return 1

    print(result.score)
    sys.stdout.flush()
    return result.score


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":  # pragma: no cover - CLI invocation
    run()
