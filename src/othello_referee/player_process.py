"""
External player process.

- Resolves and checks the executable (must exist and be executable).
- Spawns it with its role (FIRST/SECOND) as the sole argument, stdin/stdout on pipes,
  and RLIMIT_CPU applied in the child before exec.
- read_move(): blocking read of the next whitespace-delimited token (None on EOF).
- send_move(): relays an opponent move, unbuffered, newline-terminated.
- close(): closes the parent's pipe ends and kills/reaps the process.

"""
from __future__ import annotations
import collections
import logging
import os
import resource
import subprocess
from typing import Deque, Optional

from .config import SETTINGS

log = logging.getLogger("player_process")


class PlayerLaunchError(RuntimeError):
    """Player executable missing, not executable, or failed to start."""


def check_executable(path: str) -> str:
    """Return an absolute path for `path` or raise PlayerLaunchError."""
    if not os.path.isfile(path) or not os.access(path, os.X_OK):
        raise PlayerLaunchError(f"File {path} does not exist or is not executable")
    return os.path.abspath(path)


def cpu_limit_or_raise(seconds: int) -> int:
    """Reject a CPU limit the child could not apply: negative, or above our own hard RLIMIT_CPU."""
    if seconds < 0:
        raise PlayerLaunchError(f"CPU time limit must be >= 0 seconds, got {seconds}")
    hard = resource.getrlimit(resource.RLIMIT_CPU)[1]
    if hard != resource.RLIM_INFINITY and seconds > hard:
        raise PlayerLaunchError(f"CPU time limit {seconds}s exceeds the hard limit of {hard}s")
    return seconds


def _cpu_limiter(seconds: int):
    def _apply():
        resource.setrlimit(resource.RLIMIT_CPU, (seconds, seconds))
    return _apply


class PlayerProcess:
    def __init__(self, path: str, role: str, cpu_time_limit_s: Optional[int] = None):
        """Launch the player.

        role is passed verbatim as argv[1] ("FIRST" or "SECOND").
        cpu_time_limit_s defaults to SETTINGS.cpu_time_limit_s.
        Raises PlayerLaunchError if the executable cannot be started.
        """
        self.name = path
        self.role = role
        self.executable = check_executable(path)
        limit = cpu_time_limit_s if cpu_time_limit_s is not None else SETTINGS.cpu_time_limit_s
        self.cpu_time_limit_s = cpu_limit_or_raise(limit)
        self._pending: Deque[str] = collections.deque()
        self._input_open = True
        try:
            # bufsize=0: writes hit the pipe immediately, nothing lingers in a userspace buffer
            self.proc = subprocess.Popen(
                [self.executable, role],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                bufsize=0,
                close_fds=True,
                preexec_fn=_cpu_limiter(self.cpu_time_limit_s),
            )
        except (OSError, subprocess.SubprocessError) as e:
            # SubprocessError: the child failed in preexec_fn before exec
            raise PlayerLaunchError(f"Failed launching player '{self.executable}': {e}") from e
        log.info("Started %s player %s (pid=%d, cpu limit %ds)", role, self.executable, self.proc.pid, self.cpu_time_limit_s)

    def read_move(self) -> Optional[str]:
        """Block until the player emits its next token; None once its output is closed."""
        while not self._pending:
            line = self.proc.stdout.readline()
            if not line:
                log.info("%s player output closed (pid=%d)", self.role, self.proc.pid)
                return None
            self._pending.extend(line.decode("ascii", errors="replace").split())
        return self._pending.popleft()

    def send_move(self, token: str) -> bool:
        """Write the opponent's move to this player. Returns False if its input is gone."""
        if not self._input_open:
            return False
        try:
            self.proc.stdin.write(f"{token}\n".encode("ascii"))
            self.proc.stdin.flush()
        except BrokenPipeError:
            log.warning("%s player stopped reading input (pid=%d); move %s not delivered", self.role, self.proc.pid, token)
            self._input_open = False
            return False
        return True

    def close(self):
        """Close our pipe ends and kill the player, whether or not it already exited."""
        for stream in (self.proc.stdin, self.proc.stdout):
            if stream is not None and not stream.closed:
                stream.close()
        self.proc.kill()
        rc = self.proc.wait()
        log.info("%s player %s reaped (returncode=%s)", self.role, self.executable, rc)
