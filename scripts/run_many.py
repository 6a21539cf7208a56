"""
RUN_MANY.py — Round robin runner
- Plays every ordered pair of the given player executables, one match at a time.
- Writes per-match metrics to <out_dir>/results.jsonl and structured histories next to it.
- Prints a standings table (W/D/L, disc differential) and wall time.
Usage: python -u scripts/run_many.py --players ./bot_a ./bot_b ./bot_c --out-dir runs/rr1
"""
import argparse, datetime, logging, os, sys, time

from othello_referee.config import SETTINGS
from othello_referee.player_process import PlayerLaunchError
from othello_referee.tournament import run_round_robin, standings


def _parse_log_level(name: str | None) -> int:
    name = (name or "INFO").upper()
    return getattr(logging, name, logging.INFO)


def main():
    ap = argparse.ArgumentParser(description='Run a sequential round robin between Othello player executables.')
    ap.add_argument('--players', nargs='+', required=True, help='Player executables (at least two)')
    ap.add_argument('--out-dir', default=None, help='Output directory for results.jsonl and histories (default runs/run_YYYYMMDD-HHMMSS)')
    ap.add_argument('--tracking', action='store_true', help='Also write a tracking transcript per match')
    ap.add_argument('--cpu-limit', type=int, default=None, help='Per-player CPU time limit in seconds')
    ap.add_argument('--log-level', default=None, help='Python logging level (default from settings)')
    args = ap.parse_args()

    logging.basicConfig(level=_parse_log_level(args.log_level or SETTINGS.log_level),
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    log = logging.getLogger('run_many')

    if len(args.players) < 2:
        log.error('Need at least two players, got %d', len(args.players))
        sys.exit(1)

    ts = datetime.datetime.now().strftime('%Y%m%d-%H%M%S')
    out_dir = args.out_dir or os.path.join(os.getcwd(), 'runs', f'run_{ts}')
    t0 = time.time()
    try:
        metrics = run_round_robin(args.players, out_dir, tracking=args.tracking, cpu_time_limit_s=args.cpu_limit)
    except PlayerLaunchError as e:
        log.error('%s', e)
        sys.exit(1)

    table = standings(metrics)
    print('\nStandings:')
    ranked = sorted(table.items(), key=lambda kv: (kv[1]['wins'], kv[1]['discs']), reverse=True)
    for name, row in ranked:
        print(f"{name:30s} W={row['wins']} D={row['draws']} L={row['losses']} discs={row['discs']:+d}")
    print(f"Matches: {len(metrics)}")
    print(f"Wall time: {time.time()-t0:.1f}s")
    print(f"Outputs written under {out_dir}")


if __name__ == '__main__':
    main()
