"""
Single-match runner and config.

- MatchConfig: knobs for tracking transcript, CPU limit, and structured history output.
- MatchRunner: orchestrates one Othello match between two player executables.
  - Spawns both players (PlayerProcess), reads the mover's token, validates it against the
    Referee's board, relays it to the opponent, applies it, and advances the turn.
  - Classifies the ending: normal_game_end, illegal_move, or player_crashed.
  - Always tears down both processes and their pipes, whatever the ending.
  - Exposes metrics() and export_structured_history() for reporting.

"""
from __future__ import annotations
import json
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Optional

from .board import EMPTY, FIRST, SECOND, ROLE_NAMES, opponent
from .config import SETTINGS
from .move_validator import MoveFormatError, legal_tokens, validate_move
from .player_process import PlayerLaunchError, PlayerProcess, check_executable, cpu_limit_or_raise
from .referee import Referee, transcript_filename

NORMAL_END = "normal_game_end"
ILLEGAL_MOVE = "illegal_move"
PLAYER_CRASHED = "player_crashed"


@dataclass
class MatchConfig:
    tracking: bool = False
    # Directory for the <p1>_vs_<p2> transcript; defaults to SETTINGS.log_dir
    transcript_dir: str | None = None
    cpu_time_limit_s: int | None = None  # None -> SETTINGS.cpu_time_limit_s
    history_path: str | None = None  # optional JSON dump of the structured history


@dataclass
class MatchResult:
    score: int
    termination_reason: str
    winner: Optional[str]  # "FIRST" | "SECOND" | None (draw)
    offender: Optional[str] = None
    first_tiles: int = 0
    second_tiles: int = 0
    plies: int = 0
    detail: Optional[str] = None
    moves: list[dict] = field(default_factory=list)


class MatchRunner:
    def __init__(self, first_path: str, second_path: str, cfg: MatchConfig | None = None):
        self.log = logging.getLogger("MatchRunner")
        self.first_path = first_path
        self.second_path = second_path
        self.cfg = cfg or MatchConfig()
        self.ref: Referee | None = None
        self.players: dict[int, PlayerProcess] = {}
        self.records: list[dict] = []
        self.result: MatchResult | None = None
        self.transcript_path: str | None = None
        self.initial_rows: list[str] = []
        self.start_ts = time.time()
        self.end_ts: float | None = None

    # ---------------- Setup / Teardown -----------------
    def _open_transcript(self):
        if not self.cfg.tracking:
            return None
        directory = self.cfg.transcript_dir or SETTINGS.log_dir
        path = transcript_filename(self.first_path, self.second_path, directory)
        try:
            os.makedirs(directory, exist_ok=True)
            transcript = open(path, "w", encoding="utf-8")
        except OSError as e:
            raise PlayerLaunchError(f"Cannot open tracking file {path}: {e}") from e
        self.transcript_path = path
        self.log.info("Tracking match to %s", path)
        return transcript

    def _spawn_players(self):
        limit = self.cfg.cpu_time_limit_s
        self.players[FIRST] = PlayerProcess(self.first_path, "FIRST", cpu_time_limit_s=limit)
        try:
            self.players[SECOND] = PlayerProcess(self.second_path, "SECOND", cpu_time_limit_s=limit)
        except Exception:
            self.players.pop(FIRST).close()
            raise

    def _teardown(self):
        try:
            if FIRST in self.players:
                self.players[FIRST].close()
        finally:
            if SECOND in self.players:
                self.players[SECOND].close()
        self.players = {}

    # ---------------- Match -----------------
    def play(self) -> MatchResult:
        """Run the match to completion and return its MatchResult.

        Raises PlayerLaunchError if either executable is missing or cannot be started,
        or the tracking file cannot be opened; in that case no match is scored.
        Player misbehaviour never raises.
        """
        check_executable(self.first_path)
        check_executable(self.second_path)
        limit = self.cfg.cpu_time_limit_s
        cpu_limit_or_raise(limit if limit is not None else SETTINGS.cpu_time_limit_s)
        self.start_ts = time.time()
        transcript = self._open_transcript()
        try:
            self._spawn_players()
            try:
                self.ref = Referee(self.first_path, self.second_path, transcript)
                self.ref.start_game()
                self.initial_rows = self.ref.board.rows()
                self.result = self._run_loop()
            finally:
                self._teardown()
        finally:
            if transcript is not None:
                transcript.close()
        self.end_ts = time.time()
        self.log.info(
            "Match finished score=%d reason=%s plies=%d",
            self.result.score, self.result.termination_reason, self.result.plies,
        )
        if self.cfg.history_path:
            self.dump_structured_history_json(self.cfg.history_path)
        return self.result

    def _run_loop(self) -> MatchResult:
        board = self.ref.board
        while True:
            mover = board.current_player
            player = self.players[mover]
            token = player.read_move()
            if token is None:
                return self._forfeit(crashed=True, detail="output_closed")
            ply = self.ref.record_move(token)
            try:
                check = validate_move(token, board)
            except MoveFormatError as e:
                self.log.warning("%s player sent a malformed move: %s", ROLE_NAMES[mover], e)
                self._record(ply, mover, token, legal=False)
                return self._forfeit(crashed=True, detail="malformed_token")
            if not check["ok"]:
                self.log.warning(
                    "%s player played illegal move %s (%s); legal were %s",
                    ROLE_NAMES[mover], token, check["reason"], " ".join(legal_tokens(board)),
                )
                self._record(ply, mover, token, legal=False)
                return self._forfeit(crashed=False, detail=check["reason"])
            # Relay before applying; the opponent only ever sees validated moves
            self.players[opponent(mover)].send_move(token)
            flipped, nxt = self.ref.apply(check["row"], check["col"])
            self._record(ply, mover, token, legal=True, flipped=flipped)
            self.log.debug("Ply %d %s %s flipped=%d", ply, ROLE_NAMES[mover], token, flipped)
            if nxt is None:
                return self._normal_end()
            if nxt == mover:
                self.log.info("%s player has no legal move and passes", ROLE_NAMES[opponent(mover)])

    def _record(self, ply: int, mover: int, token: str, legal: bool, flipped: int = 0):
        self.records.append({
            "ply": ply,
            "role": ROLE_NAMES[mover],
            "token": token,
            "legal": legal,
            "flipped": flipped,
            "board": self.ref.board.rows(),
        })

    def _tile_counts(self) -> tuple[int, int]:
        return self.ref.board.count_tiles(FIRST), self.ref.board.count_tiles(SECOND)

    def _normal_end(self) -> MatchResult:
        score, winner = self.ref.end_game()
        first, second = self._tile_counts()
        if not self.ref.board.is_full():
            self.log.info("Neither player can move; %d cells left empty", self.ref.board.count_tiles(EMPTY))
        return MatchResult(
            score=score,
            termination_reason=NORMAL_END,
            winner=ROLE_NAMES[winner] if winner else None,
            first_tiles=first,
            second_tiles=second,
            plies=len(self.records),
            moves=list(self.records),
        )

    def _forfeit(self, crashed: bool, detail: str) -> MatchResult:
        offender = self.ref.board.current_player
        score, winner = self.ref.end_game_bad(crashed)
        first, second = self._tile_counts()
        if crashed:
            self.log.error("%s player crashed (%s)", ROLE_NAMES[offender], detail)
        else:
            self.log.error("%s player made a bad move (%s)", ROLE_NAMES[offender], detail)
        return MatchResult(
            score=score,
            termination_reason=PLAYER_CRASHED if crashed else ILLEGAL_MOVE,
            winner=ROLE_NAMES[winner],
            offender=ROLE_NAMES[offender],
            first_tiles=first,
            second_tiles=second,
            plies=len([r for r in self.records if r["legal"]]),
            detail=detail,
            moves=list(self.records),
        )

    # --------------- Structured history export ---------------
    def export_structured_history(self) -> dict:
        """Return a structured representation of the match suitable for visualization.
        Includes players, initial board, per-ply entries, result, and a terminal event.
        """
        res = self.result
        data = {
            "players": {"FIRST": self.first_path, "SECOND": self.second_path},
            "initial_board": self.initial_rows,
            "moves": [dict(r) for r in self.records],
            "result": res.score if res else None,
            "winner": res.winner if res else None,
            "termination_reason": res.termination_reason if res else None,
        }
        if res:
            evt = {
                "event": "termination",
                "ply": len(self.records),
                "score": res.score,
                "reason": res.termination_reason,
            }
            if res.offender:
                evt["offender"] = res.offender
                evt["detail"] = res.detail
            data["moves"].append(evt)
        return data

    def dump_structured_history_json(self, path: str):
        try:
            dir_path = os.path.dirname(path)
            if dir_path:
                os.makedirs(dir_path, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(self.export_structured_history(), f, ensure_ascii=False, indent=2)
            self.log.info("Wrote structured history to %s", path)
        except OSError:
            self.log.exception("Failed writing structured history")

    # ---------------- Metrics -----------------
    def metrics(self) -> dict:
        legal = [r for r in self.records if r["legal"]]
        res = self.result
        end = self.end_ts or time.time()
        return {
            "first": self.first_path,
            "second": self.second_path,
            "plies_total": len(legal),
            "plies_first": sum(1 for r in legal if r["role"] == "FIRST"),
            "plies_second": sum(1 for r in legal if r["role"] == "SECOND"),
            "tiles_flipped": sum(r["flipped"] for r in legal),
            "score": res.score if res else None,
            "winner": res.winner if res else None,
            "termination_reason": res.termination_reason if res else None,
            "offender": res.offender if res else None,
            "first_tiles": res.first_tiles if res else None,
            "second_tiles": res.second_tiles if res else None,
            "duration_s": round(end - self.start_ts, 2),
            "transcript_path": self.transcript_path,
        }
