"""In-memory registry of per-session view controllers.

Sessions live in a plain dict (one process, no persistence).  Dropping a
session disposes its controller so any fetch still in flight for it is
discarded when it completes.  Sessions idle for longer than
``idle_seconds`` are dropped on the next lookup, and the oldest idle
session makes room when ``max_sessions`` is reached.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

from recon_console.core.config import settings
from recon_console.core.logging import get_logger
from recon_console.services.view_state.controller import ReconciliationViewController

logger = get_logger(__name__)

ControllerFactory = Callable[[], ReconciliationViewController]


class SessionRegistry:
    def __init__(
        self,
        idle_seconds: Optional[float] = None,
        max_sessions: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.idle_seconds = settings.session_idle_seconds if idle_seconds is None else idle_seconds
        self.max_sessions = settings.max_sessions if max_sessions is None else max_sessions
        self._clock = clock
        self._sessions: dict[str, ReconciliationViewController] = {}
        self._last_used: dict[str, float] = {}

    def get(self, session_id: str, factory: ControllerFactory) -> ReconciliationViewController:
        """Return the session's controller, creating it with ``factory``."""
        now = self._clock()
        self._expire(now)
        controller = self._sessions.get(session_id)
        if controller is None:
            if len(self._sessions) >= self.max_sessions:
                oldest = min(self._last_used, key=self._last_used.__getitem__)
                logger.warning("Session limit %d reached, dropping %s", self.max_sessions, oldest)
                self.drop(oldest)
            controller = factory()
            self._sessions[session_id] = controller
            logger.info("Created console session %s", session_id)
        self._last_used[session_id] = now
        return controller

    def _expire(self, now: float) -> None:
        idle = [
            sid for sid, used in self._last_used.items() if now - used > self.idle_seconds
        ]
        for session_id in idle:
            logger.info("Console session %s expired", session_id)
            self.drop(session_id)

    def drop(self, session_id: str) -> bool:
        controller = self._sessions.pop(session_id, None)
        self._last_used.pop(session_id, None)
        if controller is None:
            return False
        controller.dispose()
        logger.info("Dropped console session %s", session_id)
        return True

    def clear(self) -> None:
        for controller in self._sessions.values():
            controller.dispose()
        self._sessions.clear()
        self._last_used.clear()

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
