"""
Othello board state machine.

- Owns the 8x8 grid (grid[row][column]) and whose turn it is.
- is_move_legal()/apply_move() implement the bracket-and-flip rule over the 8 compass rays.
- advance_turn() hands the turn to the opponent, handles passes, and detects the terminal position.
- Optionally writes a board snapshot to an append-only text sink on every advance_turn().

The board has no notion of processes or pipes; the match runner owns it.
"""
from __future__ import annotations

from typing import Iterator, Optional, Sequence, TextIO

SIZE = 8

# Cell values
EMPTY = 0
FIRST = 1   # PlayerA, moves first
SECOND = 2  # PlayerB

# Forfeit scores (FIRST tiles - SECOND tiles can never exceed these)
MAX_SCORE = SIZE * SIZE
MIN_SCORE = -MAX_SCORE

SYMBOLS = {EMPTY: ".", FIRST: "x", SECOND: "o"}
ROLE_NAMES = {FIRST: "FIRST", SECOND: "SECOND"}

# N, NE, E, SE, S, SW, W, NW as (d_row, d_col)
DIRECTIONS = (
    (-1, 0), (-1, 1), (0, 1), (1, 1),
    (1, 0), (1, -1), (0, -1), (-1, -1),
)


def opponent(player: int) -> int:
    if player == FIRST:
        return SECOND
    if player == SECOND:
        return FIRST
    raise ValueError(f"Invalid player: {player!r}")


def in_bounds(row: int, col: int) -> bool:
    return 0 <= row < SIZE and 0 <= col < SIZE


class Board:
    """8x8 Othello board plus the side to move."""

    def __init__(self, sink: Optional[TextIO] = None):
        self.grid: list[list[int]] = [[EMPTY] * SIZE for _ in range(SIZE)]
        self._player = FIRST
        self.sink = sink
        # Center four, diagonal arrangement
        self.grid[3][3] = SECOND
        self.grid[4][4] = SECOND
        self.grid[3][4] = FIRST
        self.grid[4][3] = FIRST

    @classmethod
    def from_rows(cls, rows: Sequence[str], current_player: int = FIRST, sink: Optional[TextIO] = None) -> "Board":
        """Build a board from 8 strings of '.', 'x', 'o' (row 0 first). Mostly for tests."""
        if len(rows) != SIZE or any(len(r) != SIZE for r in rows):
            raise ValueError("Board must be 8x8")
        lookup = {sym: val for val, sym in SYMBOLS.items()}
        board = cls(sink=sink)
        for r, line in enumerate(rows):
            for c, ch in enumerate(line):
                if ch not in lookup:
                    raise ValueError(f"Invalid cell {ch!r} at row {r}, column {c}")
                board.grid[r][c] = lookup[ch]
        board._player = current_player
        return board

    # ---------------- Queries -----------------
    @property
    def current_player(self) -> int:
        return self._player

    def cell(self, row: int, col: int) -> int:
        return self.grid[row][col]

    def symbol(self, row: int, col: int) -> str:
        return SYMBOLS[self.grid[row][col]]

    def count_tiles(self, player: int) -> int:
        return sum(cell == player for line in self.grid for cell in line)

    def is_full(self) -> bool:
        return self.count_tiles(EMPTY) == 0

    def _bracketed_run(self, row: int, col: int, d_row: int, d_col: int, player: int) -> list[tuple[int, int]]:
        # Opponent tiles between (row, col) and the first tile of `player` along one ray,
        # or [] if the ray does not end on a tile of `player`.
        other = opponent(player)
        run: list[tuple[int, int]] = []
        r, c = row + d_row, col + d_col
        while in_bounds(r, c) and self.grid[r][c] == other:
            run.append((r, c))
            r, c = r + d_row, c + d_col
        if run and in_bounds(r, c) and self.grid[r][c] == player:
            return run
        return []

    def is_move_legal(self, row: int, col: int, player: Optional[int] = None) -> bool:
        player = self._player if player is None else player
        if not in_bounds(row, col) or self.grid[row][col] != EMPTY:
            return False
        return any(self._bracketed_run(row, col, dr, dc, player) for dr, dc in DIRECTIONS)

    def legal_moves(self, player: Optional[int] = None) -> list[tuple[int, int]]:
        """All (row, col) the given player (default: side to move) may play, row-major order."""
        return [(r, c) for r, c in self._cells() if self.is_move_legal(r, c, player)]

    def has_legal_move(self, player: int) -> bool:
        return any(self.is_move_legal(r, c, player) for r, c in self._cells())

    @staticmethod
    def _cells() -> Iterator[tuple[int, int]]:
        for r in range(SIZE):
            for c in range(SIZE):
                yield r, c

    # ---------------- Mutation -----------------
    def apply_move(self, row: int, col: int) -> int:
        """Place the mover's tile at (row, col) and flip every bracketed run.

        The caller must have checked is_move_legal(); the move is not re-validated.
        Returns the number of tiles flipped.
        """
        player = self._player
        runs = [self._bracketed_run(row, col, dr, dc, player) for dr, dc in DIRECTIONS]
        self.grid[row][col] = player
        flipped = 0
        for run in runs:
            for r, c in run:
                self.grid[r][c] = player
            flipped += len(run)
        return flipped

    def advance_turn(self) -> Optional[int]:
        """Pass the turn to the opponent, or back to the mover if the opponent must pass.

        Returns the player now due to move, or None when neither side can move.
        Emits one board snapshot to the sink (if any) per call.
        """
        if self.sink is not None:
            self.sink.write(self.render())
            self.sink.write("\n")
        mover = self._player
        self._player = opponent(mover)
        if self.has_legal_move(self._player):
            return self._player
        self._player = mover
        if self.has_legal_move(mover):
            return mover
        return None

    # ---------------- Rendering -----------------
    def rows(self) -> list[str]:
        return ["".join(SYMBOLS[cell] for cell in line) for line in self.grid]

    def render(self) -> str:
        """Row-indexed diagram, one line per row: '3  . . . o x . . .'."""
        lines = []
        for r in range(SIZE):
            lines.append(f"{r} " + "".join(f" {self.symbol(r, c)}" for c in range(SIZE)))
        return "\n".join(lines) + "\n"


__all__ = [
    "Board",
    "SIZE",
    "EMPTY",
    "FIRST",
    "SECOND",
    "MAX_SCORE",
    "MIN_SCORE",
    "SYMBOLS",
    "ROLE_NAMES",
    "DIRECTIONS",
    "opponent",
    "in_bounds",
]
