"""
Referee: centralized board state, tracking transcript, and end-of-match scoring.

- Owns a Board and applies moves the runner has already validated.
- Writes the optional human-readable tracking transcript (initial board, moves, snapshots, result block).
- end_game() scores a finished match; end_game_bad() scores a forfeit (illegal move or crashed player).

Used by MatchRunner to track state and record outcomes.

"""
from __future__ import annotations
import logging
import os
from typing import Optional, TextIO

from .board import (
    Board, FIRST, SECOND, MAX_SCORE, MIN_SCORE, ROLE_NAMES, SYMBOLS,
)

COLUMN_HEADER = "   A B C D E F G H\n"


def transcript_filename(player1: str, player2: str, directory: str = ".") -> str:
    """<player1>_vs_<player2>, using executable basenames so the file lands in `directory`."""
    name = f"{os.path.basename(player1)}_vs_{os.path.basename(player2)}"
    return os.path.join(directory, name)


class Referee:
    """Plain Othello referee around Board with an optional transcript sink."""
    def __init__(self, first_name: str = "?", second_name: str = "?", transcript: Optional[TextIO] = None):
        self.log = logging.getLogger("referee")
        self.transcript = transcript
        self.board = Board(sink=transcript)
        self.first_name = first_name
        self.second_name = second_name
        self._move_count = 0

    def _write(self, text: str) -> None:
        if self.transcript is not None:
            self.transcript.write(text)

    def _state_header(self, title: str) -> None:
        self._write(f"\n{title}:\n")
        self._write(f"FIRST = {SYMBOLS[FIRST]}, SECOND = {SYMBOLS[SECOND]}\n\n")
        self._write(COLUMN_HEADER)

    # ---------------- Transcript -----------------
    def start_game(self) -> None:
        self._state_header("Initial game state")
        self._write(self.board.render())
        self._write("\n")

    def record_move(self, token: str) -> int:
        """Log the move by the side to move (before it is validated). Returns its 1-based number."""
        self._move_count += 1
        role = ROLE_NAMES[self.board.current_player]
        self._write(f"Move #{self._move_count} (by {role} player): {token}\n")
        return self._move_count

    # ---------------- Move Application -----------------
    def apply(self, row: int, col: int) -> tuple[int, Optional[int]]:
        """Apply a validated move and advance the turn. Returns (flipped, next player or None)."""
        flipped = self.board.apply_move(row, col)
        self._state_header("Current game state")
        nxt = self.board.advance_turn()
        return flipped, nxt

    # ---------------- Scoring -----------------
    def score(self) -> int:
        return self.board.count_tiles(FIRST) - self.board.count_tiles(SECOND)

    def _result_block(self, winner: Optional[int], score: int) -> None:
        self._write(f"FIRST ({self.first_name}) vs SECOND ({self.second_name})\n")
        if winner == FIRST:
            self._write(f"Winner FIRST {self.first_name}\n")
        elif winner == SECOND:
            self._write(f"Winner SECOND {self.second_name}\n")
        else:
            self._write("Winner (draw)\n")
        self._write(f"Score {score}\n")

    def end_game(self) -> tuple[int, Optional[int]]:
        """Score a match that ended normally. Returns (score, winner or None for a draw)."""
        score = self.score()
        winner = FIRST if score > 0 else SECOND if score < 0 else None
        self._result_block(winner, score)
        self.log.info("Match over: score %d", score)
        return score, winner

    def end_game_bad(self, crashed: bool) -> tuple[int, int]:
        """Forfeit by the side to move. Returns (sentinel score, winner)."""
        offender = self.board.current_player
        if offender == FIRST:
            score, winner = MIN_SCORE, SECOND
        else:
            score, winner = MAX_SCORE, FIRST
        self._result_block(winner, score)
        self._write("Player crashed\n" if crashed else "Bad move\n")
        self.log.info("%s player forfeits (%s), score %d", ROLE_NAMES[offender], "crash" if crashed else "bad move", score)
        return score, winner
