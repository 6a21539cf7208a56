"""
Sequential round robin between several player executables.

- Plays every ordered pair (each pairing twice, once per colour), one match at a time.
- Appends each match's metrics to <out_dir>/results.jsonl.
- standings(): W/D/L and cumulative disc differential per player.
"""
from __future__ import annotations
import itertools
import json
import logging
import os
from typing import Dict, List

from .game import MatchConfig, MatchRunner

log = logging.getLogger("tournament")


def pairings(players: List[str]) -> List[tuple[str, str]]:
    return list(itertools.permutations(players, 2))


def run_round_robin(players: List[str], out_dir: str, tracking: bool = False, cpu_time_limit_s: int | None = None) -> List[Dict]:
    os.makedirs(out_dir, exist_ok=True)
    jsonl_path = os.path.join(out_dir, "results.jsonl")
    all_metrics = []
    with open(jsonl_path, "a", encoding="utf-8") as jsonl_f:
        for i, (first, second) in enumerate(pairings(players)):
            cfg = MatchConfig(
                tracking=tracking,
                transcript_dir=out_dir,
                cpu_time_limit_s=cpu_time_limit_s,
                history_path=os.path.join(out_dir, f"m{i+1:03d}_history.json"),
            )
            runner = MatchRunner(first, second, cfg=cfg)
            res = runner.play()
            m = runner.metrics()
            m["match_index"] = i
            all_metrics.append(m)
            log.info("[Match %d] %s vs %s score=%d reason=%s", i + 1, first, second, res.score, res.termination_reason)
            jsonl_f.write(json.dumps(m) + "\n")
            jsonl_f.flush()
    return all_metrics


def standings(metrics: List[Dict]) -> Dict[str, Dict[str, int]]:
    table: Dict[str, Dict[str, int]] = {}

    def row(name: str) -> Dict[str, int]:
        return table.setdefault(name, {"wins": 0, "draws": 0, "losses": 0, "discs": 0})

    for m in metrics:
        first, second, score = m["first"], m["second"], m["score"]
        row(first)["discs"] += score
        row(second)["discs"] -= score
        if m["winner"] == "FIRST":
            row(first)["wins"] += 1
            row(second)["losses"] += 1
        elif m["winner"] == "SECOND":
            row(second)["wins"] += 1
            row(first)["losses"] += 1
        else:
            row(first)["draws"] += 1
            row(second)["draws"] += 1
    return table
