import json
import os
import subprocess
import sys
import tempfile
import unittest
from unittest.mock import MagicMock, patch

from othello_referee.board import Board
from othello_referee.game import (
    ILLEGAL_MOVE, NORMAL_END, PLAYER_CRASHED, MatchConfig, MatchRunner,
)
from othello_referee.move_validator import parse_token
from othello_referee.player_process import PlayerLaunchError, PlayerProcess

import player_scripts

FIRST_MOVES = ["E5", "E2", "G4", "E6", "C4"]
SECOND_MOVES = ["F3", "F5", "D5", "F4"]


@unittest.skipUnless(sys.platform.startswith(("linux", "darwin")), "needs POSIX pipes and RLIMIT_CPU")
class MatchRunnerTestBase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = self._tmp.name

    def tearDown(self):
        self._tmp.cleanup()

    def run_match(self, first, second, tracking=True, **kw):
        cfg = MatchConfig(tracking=tracking, transcript_dir=self.dir, **kw)
        runner = MatchRunner(first, second, cfg=cfg)
        result = runner.play()
        return runner, result

    def transcript(self, runner):
        with open(runner.transcript_path, encoding="utf-8") as f:
            return f.read()


class NormalEndTests(MatchRunnerTestBase):
    def test_shortest_game_ends_before_board_is_full(self):
        first = player_scripts.scripted_player(self.dir, "alpha", FIRST_MOVES)
        second = player_scripts.scripted_player(self.dir, "beta", SECOND_MOVES)
        runner, result = self.run_match(first, second)

        self.assertEqual(result.termination_reason, NORMAL_END)
        self.assertEqual(result.score, 13)
        self.assertEqual(result.winner, "FIRST")
        self.assertIsNone(result.offender)
        self.assertEqual((result.first_tiles, result.second_tiles), (13, 0))
        self.assertEqual(result.plies, 9)
        self.assertEqual([m["token"] for m in result.moves], ["E5", "F3", "E2", "F5", "G4", "D5", "E6", "F4", "C4"])

        text = self.transcript(runner)
        self.assertEqual(os.path.basename(runner.transcript_path), "alpha_vs_beta")
        self.assertIn("Initial game state:", text)
        self.assertIn("Move #9 (by FIRST player): C4\n", text)
        self.assertTrue(text.endswith(f"FIRST ({first}) vs SECOND ({second})\nWinner FIRST {first}\nScore 13\n"))
        self.assertNotIn("Bad move", text)
        self.assertNotIn("Player crashed", text)

    def test_both_processes_are_reaped(self):
        first = player_scripts.scripted_player(self.dir, "alpha", FIRST_MOVES)
        second = player_scripts.scripted_player(self.dir, "beta", SECOND_MOVES)
        runner = MatchRunner(first, second, cfg=MatchConfig())
        real_close = PlayerProcess.close
        with patch.object(PlayerProcess, "close", autospec=True, side_effect=real_close) as close:
            runner.play()
        self.assertEqual(close.call_count, 2)
        for call in close.call_args_list:
            proc = call.args[0].proc
            self.assertIsNotNone(proc.returncode)
            self.assertTrue(proc.stdin.closed)
            self.assertTrue(proc.stdout.closed)
        self.assertEqual(runner.players, {})

    def test_greedy_players_play_to_completion(self):
        first = player_scripts.greedy_player(self.dir, "greedy1")
        second = player_scripts.greedy_player(self.dir, "greedy2")
        runner, result = self.run_match(first, second, tracking=False)

        self.assertEqual(result.termination_reason, NORMAL_END)
        self.assertEqual(result.score, result.first_tiles - result.second_tiles)
        # replaying the recorded moves reproduces the final position
        board = Board()
        for move in result.moves:
            self.assertEqual(move["role"], "FIRST" if board.current_player == 1 else "SECOND")
            row, col = parse_token(move["token"])
            board.apply_move(row, col)
            board.advance_turn()
        self.assertEqual(board.rows(), result.moves[-1]["board"])
        self.assertEqual(board.count_tiles(1) - board.count_tiles(2), result.score)

    def test_greedy_match_is_deterministic(self):
        first = player_scripts.greedy_player(self.dir, "greedy1")
        second = player_scripts.greedy_player(self.dir, "greedy2")
        _, a = self.run_match(first, second, tracking=False)
        _, b = self.run_match(first, second, tracking=False)
        self.assertEqual(a.score, b.score)
        self.assertEqual([m["token"] for m in a.moves], [m["token"] for m in b.moves])

    def test_opponent_receives_relayed_move(self):
        record = os.path.join(self.dir, "relayed.txt")
        first = player_scripts.scripted_player(self.dir, "alpha", ["E5"])
        second = player_scripts.echo_player(self.dir, "echo", record, "E5")
        _, result = self.run_match(first, second, tracking=False)
        # SECOND only answers after reading FIRST's move; its "E5" is then occupied
        self.assertEqual(result.termination_reason, ILLEGAL_MOVE)
        with open(record, encoding="utf-8") as f:
            self.assertEqual(f.read(), "E5\n")


class ForfeitTests(MatchRunnerTestBase):
    def test_first_crashes_immediately(self):
        first = player_scripts.quitting_player(self.dir, "quitter")
        second = player_scripts.scripted_player(self.dir, "beta", SECOND_MOVES)
        runner, result = self.run_match(first, second)
        self.assertEqual(result.termination_reason, PLAYER_CRASHED)
        self.assertEqual(result.score, -64)
        self.assertEqual(result.winner, "SECOND")
        self.assertEqual(result.offender, "FIRST")
        self.assertTrue(self.transcript(runner).endswith("Score -64\nPlayer crashed\n"))

    def test_second_output_closes_mid_match(self):
        first = player_scripts.scripted_player(self.dir, "alpha", FIRST_MOVES)
        second = player_scripts.quitting_player(self.dir, "quitter", ["F3"])
        runner, result = self.run_match(first, second)
        self.assertEqual(result.termination_reason, PLAYER_CRASHED)
        self.assertEqual(result.score, 64)
        self.assertEqual(result.winner, "FIRST")
        self.assertEqual(result.offender, "SECOND")
        self.assertEqual(result.plies, 3)
        text = self.transcript(runner)
        self.assertIn("Winner FIRST", text)
        self.assertIn("Player crashed", text)

    def test_first_plays_occupied_cell(self):
        first = player_scripts.scripted_player(self.dir, "alpha", ["D3"])
        second = player_scripts.scripted_player(self.dir, "beta", SECOND_MOVES)
        with self.assertLogs("MatchRunner", level="WARNING") as logs:
            runner, result = self.run_match(first, second)
        self.assertTrue(any("legal were D2 C3 F4 E5" in line for line in logs.output))
        self.assertEqual(result.termination_reason, ILLEGAL_MOVE)
        self.assertEqual(result.score, -64)
        self.assertEqual(result.detail, "occupied")
        text = self.transcript(runner)
        self.assertIn("Move #1 (by FIRST player): D3\n", text)
        self.assertTrue(text.endswith("Winner SECOND " + second + "\nScore -64\nBad move\n"))

    def test_second_plays_occupied_cell(self):
        first = player_scripts.scripted_player(self.dir, "alpha", ["E5"])
        second = player_scripts.scripted_player(self.dir, "beta", ["E5"])
        runner, result = self.run_match(first, second)
        self.assertEqual(result.termination_reason, ILLEGAL_MOVE)
        self.assertEqual(result.score, 64)
        self.assertEqual(result.offender, "SECOND")
        self.assertIn("Bad move", self.transcript(runner))

    def test_off_board_move_is_illegal_not_a_crash(self):
        first = player_scripts.scripted_player(self.dir, "alpha", ["Z9"])
        second = player_scripts.scripted_player(self.dir, "beta", SECOND_MOVES)
        _, result = self.run_match(first, second, tracking=False)
        self.assertEqual(result.termination_reason, ILLEGAL_MOVE)
        self.assertEqual(result.detail, "off_board")

    def test_malformed_token_is_a_fault(self):
        first = player_scripts.scripted_player(self.dir, "alpha", ["hello"])
        second = player_scripts.scripted_player(self.dir, "beta", SECOND_MOVES)
        runner, result = self.run_match(first, second)
        self.assertEqual(result.termination_reason, PLAYER_CRASHED)
        self.assertEqual(result.detail, "malformed_token")
        self.assertEqual(result.score, -64)
        self.assertIn("Player crashed", self.transcript(runner))

    def test_cpu_limit_kills_spinning_player(self):
        first = player_scripts.spinning_player(self.dir, "spinner")
        second = player_scripts.scripted_player(self.dir, "beta", SECOND_MOVES)
        _, result = self.run_match(first, second, tracking=False, cpu_time_limit_s=1)
        self.assertEqual(result.termination_reason, PLAYER_CRASHED)
        self.assertEqual(result.score, -64)


class LaunchFailureTests(MatchRunnerTestBase):
    def test_missing_executable(self):
        second = player_scripts.scripted_player(self.dir, "beta", SECOND_MOVES)
        runner = MatchRunner(os.path.join(self.dir, "nope"), second, cfg=MatchConfig(tracking=True, transcript_dir=self.dir))
        with self.assertRaises(PlayerLaunchError):
            runner.play()
        self.assertIsNone(runner.result)
        self.assertFalse(os.path.exists(os.path.join(self.dir, "nope_vs_beta")))

    def test_non_executable_file(self):
        first = player_scripts.scripted_player(self.dir, "alpha", FIRST_MOVES)
        second = player_scripts.plain_file(self.dir, "notes.txt")
        with self.assertRaises(PlayerLaunchError):
            MatchRunner(first, second).play()

    def test_second_spawn_failure_kills_first(self):
        first_proc = MagicMock()
        with patch("othello_referee.game.check_executable"), \
                patch("othello_referee.game.PlayerProcess", side_effect=[first_proc, PlayerLaunchError("boom")]):
            runner = MatchRunner("a", "b")
            with self.assertRaises(PlayerLaunchError):
                runner.play()
        first_proc.close.assert_called_once_with()
        self.assertEqual(runner.players, {})

    def test_negative_cpu_limit_is_rejected_before_anything_starts(self):
        first = player_scripts.scripted_player(self.dir, "alpha", FIRST_MOVES)
        second = player_scripts.scripted_player(self.dir, "beta", SECOND_MOVES)
        runner = MatchRunner(first, second, cfg=MatchConfig(tracking=True, transcript_dir=self.dir, cpu_time_limit_s=-5))
        with patch("othello_referee.game.PlayerProcess") as spawn:
            with self.assertRaises(PlayerLaunchError):
                runner.play()
        spawn.assert_not_called()
        self.assertFalse(os.path.exists(os.path.join(self.dir, "alpha_vs_beta")))

    def test_cpu_limit_above_hard_limit_is_rejected(self):
        first = player_scripts.scripted_player(self.dir, "alpha", FIRST_MOVES)
        second = player_scripts.scripted_player(self.dir, "beta", SECOND_MOVES)
        with patch("othello_referee.player_process.resource.getrlimit", return_value=(100000, 100000)):
            with self.assertRaises(PlayerLaunchError) as ctx:
                MatchRunner(first, second, cfg=MatchConfig(cpu_time_limit_s=200000)).play()
        self.assertIn("hard limit", str(ctx.exception))

    def test_child_setup_failure_is_a_launch_error(self):
        first = player_scripts.scripted_player(self.dir, "alpha", FIRST_MOVES)
        err = subprocess.SubprocessError("Exception occurred in preexec_fn.")
        with patch("othello_referee.player_process.subprocess.Popen", side_effect=err):
            with self.assertRaises(PlayerLaunchError):
                PlayerProcess(first, "FIRST", cpu_time_limit_s=5)

    def test_unopenable_tracking_file_is_a_launch_error(self):
        first = player_scripts.scripted_player(self.dir, "alpha", FIRST_MOVES)
        second = player_scripts.scripted_player(self.dir, "beta", SECOND_MOVES)
        not_a_dir = player_scripts.plain_file(self.dir, "notes.txt")
        runner = MatchRunner(first, second, cfg=MatchConfig(tracking=True, transcript_dir=not_a_dir))
        with patch("othello_referee.game.PlayerProcess") as spawn:
            with self.assertRaises(PlayerLaunchError) as ctx:
                runner.play()
        spawn.assert_not_called()
        self.assertIn("Cannot open tracking file", str(ctx.exception))
        self.assertEqual(runner.players, {})


class HistoryExportTests(MatchRunnerTestBase):
    def test_structured_history_written(self):
        first = player_scripts.scripted_player(self.dir, "alpha", ["E5"])
        second = player_scripts.scripted_player(self.dir, "beta", ["D3"])
        path = os.path.join(self.dir, "out", "history.json")
        runner, result = self.run_match(first, second, tracking=False, history_path=path)
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        self.assertEqual(data["result"], 64)
        self.assertEqual(data["termination_reason"], ILLEGAL_MOVE)
        self.assertEqual(len(data["initial_board"]), 8)
        self.assertEqual([m.get("token") for m in data["moves"][:2]], ["E5", "D3"])
        self.assertEqual(data["moves"][0]["flipped"], 1)
        self.assertFalse(data["moves"][1]["legal"])
        evt = data["moves"][-1]
        self.assertEqual(evt["event"], "termination")
        self.assertEqual(evt["offender"], "SECOND")

    def test_metrics(self):
        first = player_scripts.scripted_player(self.dir, "alpha", FIRST_MOVES)
        second = player_scripts.scripted_player(self.dir, "beta", SECOND_MOVES)
        runner, _ = self.run_match(first, second, tracking=False)
        m = runner.metrics()
        self.assertEqual(m["plies_total"], 9)
        self.assertEqual(m["plies_first"], 5)
        self.assertEqual(m["plies_second"], 4)
        self.assertEqual(m["tiles_flipped"], 16)
        self.assertEqual(m["score"], 13)
        self.assertEqual(m["termination_reason"], NORMAL_END)
        self.assertIsNone(m["transcript_path"])


if __name__ == "__main__":
    unittest.main()
