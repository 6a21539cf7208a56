"""
Othello referee package.

Components:
- board: 8x8 board state machine (legality, flips, passes, scoring)
- move_validator: wire token parsing and validation
- player_process: spawning and talking to an external player executable
- referee/game: transcript + scoring, and the single-match runner
- cli: `referee [-tracking] p1 p2`
"""
# Package exports are intentionally minimal; import modules directly as needed.
