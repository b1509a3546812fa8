"""
Process-wide registry of active voice sessions.

The registry exclusively owns every ``Session`` and the ``SessionStateMachine``
attached to it. Sessions are created when a transport connects and destroyed
when it disconnects, when their machine closes, or when the background sweep
finds them idle for longer than the configured threshold.

The session map is the only structure shared between connection tasks. A lock
serializes create/destroy/sweep, and is held for the map update only: closing a
machine happens after the lock is released.
"""

import asyncio
import logging
import threading
import time
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from voice_session.config.constants import (
    DEFAULT_SESSION_IDLE_TIMEOUT,
    DEFAULT_SESSION_SWEEP_INTERVAL,
    LOGGER_NAME,
)
from voice_session.models.session import Session
from voice_session.services.errors import DuplicateSessionError, SessionNotFoundError

if TYPE_CHECKING:
    from voice_session.bot.session_state_machine import SessionStateMachine

logger = logging.getLogger(LOGGER_NAME)

# (session, on_closed) -> SessionStateMachine
MachineFactory = Callable[[Session, Callable[[str], None]], "SessionStateMachine"]


class SessionRegistry:
    """
    Map from session id to its live session and state machine.

    Duplicate connects are rejected: an id already present raises
    ``DuplicateSessionError`` and the existing session is left untouched.
    """

    def __init__(
        self,
        machine_factory: MachineFactory,
        idle_timeout: float = DEFAULT_SESSION_IDLE_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.machine_factory = machine_factory
        self.idle_timeout = idle_timeout
        self.clock = clock
        self._sessions: Dict[str, Session] = {}
        self._machines: Dict[str, "SessionStateMachine"] = {}
        self._lock = threading.Lock()

    def create(self, session_id: str, agent_id: int) -> Session:
        """
        Register a new session and build its state machine.

        Raises:
            DuplicateSessionError: If ``session_id`` is already active
        """
        session = Session(session_id=session_id, agent_id=agent_id, clock=self.clock)
        with self._lock:
            if session_id in self._sessions:
                raise DuplicateSessionError(session_id)
            self._sessions[session_id] = session

        try:
            machine = self.machine_factory(session, self._on_machine_closed)
        except Exception:
            with self._lock:
                self._sessions.pop(session_id, None)
            raise

        with self._lock:
            self._machines[session_id] = machine
        logger.info(f"Created session {session_id} for agent {agent_id} ({len(self)} active)")
        return session

    def get(self, session_id: str) -> Session:
        """
        Raises:
            SessionNotFoundError: If no session is active under ``session_id``
        """
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def get_machine(self, session_id: str):
        with self._lock:
            machine = self._machines.get(session_id)
        if machine is None:
            raise SessionNotFoundError(session_id)
        return machine

    def destroy(self, session_id: str, reason: str = "disconnected") -> bool:
        """
        Remove a session and close its machine. Idempotent.

        Returns:
            True if a session was removed, False if it was already gone
        """
        with self._lock:
            session = self._sessions.pop(session_id, None)
            machine = self._machines.pop(session_id, None)

        if session is None:
            return False

        if machine is not None:
            machine.close(reason)
        logger.info(f"Destroyed session {session_id} ({reason}, {len(self)} active)")
        return True

    def _on_machine_closed(self, session_id: str) -> None:
        self.destroy(session_id, reason="machine closed")

    def sweep(self, now: Optional[float] = None) -> List[str]:
        """
        Destroy every session idle for longer than the threshold.

        Returns:
            The ids of the destroyed sessions
        """
        now = self.clock() if now is None else now
        with self._lock:
            idle = [
                session_id
                for session_id, session in self._sessions.items()
                if session.idle_for(now) > self.idle_timeout
            ]

        swept = [sid for sid in idle if self.destroy(sid, reason="idle timeout")]
        if swept:
            logger.info(f"Swept {len(swept)} idle sessions: {swept}")
        return swept

    async def run_sweeper(self, interval: float = DEFAULT_SESSION_SWEEP_INTERVAL) -> None:
        """Sweep idle sessions every ``interval`` seconds until cancelled."""
        logger.info(
            f"Idle session sweeper started (interval {interval:g}s, "
            f"threshold {self.idle_timeout:g}s)"
        )
        while True:
            await asyncio.sleep(interval)
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"Idle session sweep failed: {e}", exc_info=True)

    def close_all(self, reason: str = "shutdown") -> None:
        for session_id in self.session_ids():
            self.destroy(session_id, reason=reason)

    def session_ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
