"""
tmux transport for scheduled commands.

Sends text to panes and inspects the session/window/pane topology by
running the tmux binary.
"""

import logging
import subprocess
import time
from typing import List, Optional

logger = logging.getLogger(__name__)

# Pause between typing the text and pressing Enter, so TUIs running in the
# pane register the input before submission
ENTER_DELAY = 0.5


class TransportError(Exception):
    """Raised when a tmux command fails."""
    pass


class TmuxTransport:
    """Runs tmux commands on the local machine."""

    def __init__(self, binary: str = "tmux", timeout: Optional[float] = 10.0):
        """
        Initialize tmux transport.

        Args:
            binary: tmux executable
            timeout: Timeout in seconds for each tmux invocation
        """
        self.binary = binary
        self.timeout = timeout

    def _run(self, *args: str) -> subprocess.CompletedProcess:
        """Run a tmux command, raising TransportError on failure."""
        cmd = [self.binary, *args]
        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired as e:
            raise TransportError(f"tmux {args[0]} timed out after {self.timeout}s") from e
        except OSError as e:
            raise TransportError(f"failed to run {self.binary}: {e}") from e
        except ValueError as e:
            # Null bytes in arguments, or output that is not valid UTF-8
            raise TransportError(f"tmux {args[0]} failed: {e}") from e

        if result.returncode != 0:
            stderr = result.stderr.strip()
            raise TransportError(
                f"tmux {args[0]} failed with exit code {result.returncode}"
                + (f": {stderr}" if stderr else "")
            )
        return result

    def _succeeds(self, *args: str) -> bool:
        try:
            self._run(*args)
        except TransportError:
            return False
        return True

    def send(self, target: str, text: str):
        """Type text into a pane and press Enter."""
        logger.debug(f"Sending to {target}: {text}")
        self._run("send-keys", "-t", target, text)
        time.sleep(ENTER_DELAY)
        self._run("send-keys", "-t", target, "Enter")

    def session_exists(self, name: str) -> bool:
        """Check whether a session exists."""
        return self._succeeds("has-session", "-t", name)

    def target_exists(self, target: str) -> bool:
        """Check whether a fully-qualified target resolves to a pane."""
        return self._succeeds("display-message", "-t", target, "-p", "#{pane_id}")

    def _lines(self, *args: str) -> List[str]:
        output = self._run(*args).stdout
        return [line for line in output.strip().split("\n") if line]

    def list_targets(self) -> List[str]:
        """
        Return every pane target as session:window.pane.

        No running server yields an empty list. Sessions or windows that
        cannot be queried are skipped.
        """
        try:
            sessions = self._lines("list-sessions", "-F", "#{session_name}")
        except TransportError:
            return []

        targets = []
        for session in sessions:
            try:
                windows = self._lines("list-windows", "-t", session, "-F", "#{window_index}")
            except TransportError as e:
                logger.debug(f"Skipping session {session}: {e}")
                continue

            for window in windows:
                window_target = f"{session}:{window}"
                try:
                    panes = self._lines("list-panes", "-t", window_target, "-F", "#{pane_index}")
                except TransportError as e:
                    logger.debug(f"Skipping window {window_target}: {e}")
                    continue
                targets.extend(f"{window_target}.{pane}" for pane in panes)

        return targets
