"""
Move token parsing/validation for the player wire protocol.

A move on the wire is a whitespace-delimited ASCII token <Letter><Digit>:
the letter is the column (A..H -> 0..7), the digit the row (0..7).

- parse_token(): shape check only ("<letter><integer>"); raises MoveFormatError otherwise.
  Shape-valid tokens that land off the board (e.g. "d3", "J2", "A9") still parse;
  the board then rejects them as illegal moves.
- validate_move(): parse + board legality, returning a ParsedMove with a reason on failure.
- format_move(): inverse of parse_token for on-board coordinates.
"""
from __future__ import annotations

import re
from typing import TypedDict

from .board import EMPTY, Board, in_bounds

TOKEN_RE = re.compile(r"^([A-Za-z])(-?\d+)$")
COLUMNS = "ABCDEFGH"


class MoveFormatError(ValueError):
    """Raised when a player emits something that is not a move token at all."""


class ParsedMove(TypedDict, total=False):
    ok: bool
    token: str
    row: int
    col: int
    reason: str


def parse_token(token: str) -> tuple[int, int]:
    """Return (row, col) for a token; coordinates may be off-board."""
    m = TOKEN_RE.fullmatch(token.strip())
    if not m:
        raise MoveFormatError(f"Malformed move token {token!r}")
    letter, digits = m.groups()
    return int(digits), ord(letter) - ord("A")


def format_move(row: int, col: int) -> str:
    if not in_bounds(row, col):
        raise ValueError(f"Coordinates out of range: row={row} col={col}")
    return f"{COLUMNS[col]}{row}"


def validate_move(token: str, board: Board) -> ParsedMove:
    """Parse a token and check it against the board for the side to move."""
    row, col = parse_token(token)
    if not in_bounds(row, col):
        return {"ok": False, "token": token, "row": row, "col": col, "reason": "off_board"}
    if board.cell(row, col) != EMPTY:
        return {"ok": False, "token": token, "row": row, "col": col, "reason": "occupied"}
    if not board.is_move_legal(row, col):
        return {"ok": False, "token": token, "row": row, "col": col, "reason": "no_bracket"}
    return {"ok": True, "token": token, "row": row, "col": col}


def legal_tokens(board: Board) -> list[str]:
    """Legal moves for the side to move, as wire tokens."""
    return [format_move(r, c) for r, c in board.legal_moves()]


__all__ = [
    "MoveFormatError",
    "ParsedMove",
    "parse_token",
    "format_move",
    "validate_move",
    "legal_tokens",
]
