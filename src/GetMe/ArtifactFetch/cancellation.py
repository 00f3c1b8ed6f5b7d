# === NAVMAP v1 ===
# {
#   "module": "GetMe.ArtifactFetch.cancellation",
#   "purpose": "Provide the cooperative cancellation token observed by the build poll loops",
#   "sections": [
#     {"id": "token", "name": "CancellationToken", "anchor": "TOK", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Cooperative cancellation for the blocking poll loops of the build fallback.

The queue and build polls block the calling thread.  A caller that wants to
abandon a run (a signal handler, a supervising thread, a test) hands a
:class:`CancellationToken` to the orchestrator and cancels it from outside;
the poll loop checks the token between status checks and its sleep wakes up
as soon as the token is cancelled.
"""

from __future__ import annotations

import threading


class CancellationToken:
    """Thread-safe cancellation token for cooperative task cancellation.

    Examples:
        >>> token = CancellationToken()
        >>> token.is_cancelled()
        False
        >>> token.cancel()
        >>> token.is_cancelled()
        True
    """

    def __init__(self) -> None:
        self._is_cancelled = threading.Event()
        self._lock = threading.Lock()

    def cancel(self) -> None:
        """Signal that cancellation has been requested."""
        with self._lock:
            self._is_cancelled.set()

    def is_cancelled(self) -> bool:
        """Check if cancellation has been requested."""
        return self._is_cancelled.is_set()

    def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds`` or until the token is cancelled, whichever comes first."""
        self._is_cancelled.wait(max(0.0, seconds))

    def reset(self) -> None:
        """Reset the token to its initial state.

        This should only be used for testing or when reusing tokens
        in controlled scenarios.
        """
        with self._lock:
            self._is_cancelled.clear()
