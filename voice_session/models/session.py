"""
Session state for one live voice conversation.

A ``Session`` is owned by the ``SessionRegistry`` and mutated only by the
``SessionStateMachine`` attached to it. ``history`` holds user and assistant
turns in chronological order; the system message is rendered fresh for every
completion request and never stored here.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Optional


class SessionState(str, Enum):
    """Lifecycle states of a voice session."""

    GREETING = "Greeting"
    AWAITING_AUDIO = "AwaitingAudio"
    TRANSCRIBING = "Transcribing"
    COMPLETING = "Completing"
    SYNTHESIZING = "Synthesizing"
    ERROR = "Error"
    CLOSED = "Closed"


# Every state may move to CLOSED on disconnect; CLOSED is absorbing.
ALLOWED_TRANSITIONS: Dict[SessionState, FrozenSet[SessionState]] = {
    SessionState.GREETING: frozenset(
        {SessionState.AWAITING_AUDIO, SessionState.ERROR, SessionState.CLOSED}
    ),
    SessionState.AWAITING_AUDIO: frozenset(
        {SessionState.TRANSCRIBING, SessionState.CLOSED}
    ),
    SessionState.TRANSCRIBING: frozenset(
        {
            SessionState.COMPLETING,
            SessionState.AWAITING_AUDIO,
            SessionState.ERROR,
            SessionState.CLOSED,
        }
    ),
    SessionState.COMPLETING: frozenset(
        {SessionState.SYNTHESIZING, SessionState.ERROR, SessionState.CLOSED}
    ),
    SessionState.SYNTHESIZING: frozenset(
        {SessionState.AWAITING_AUDIO, SessionState.CLOSED}
    ),
    SessionState.ERROR: frozenset({SessionState.AWAITING_AUDIO, SessionState.CLOSED}),
    SessionState.CLOSED: frozenset(),
}

ROLE_SYSTEM = "system"
ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
HISTORY_ROLES = frozenset({ROLE_USER, ROLE_ASSISTANT})


@dataclass(frozen=True)
class Message:
    """One chat message sent to the completion provider."""

    role: str
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class Session:
    """One active voice conversation."""

    session_id: str
    agent_id: int
    history: List[Message] = field(default_factory=list)
    state: SessionState = SessionState.GREETING
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    last_activity_at: float = field(default=0.0)

    def __post_init__(self):
        if not self.last_activity_at:
            self.last_activity_at = self.clock()

    def touch(self) -> None:
        """Record activity for idle-timeout accounting."""
        self.last_activity_at = self.clock()

    def idle_for(self, now: Optional[float] = None) -> float:
        """Seconds since the last recorded activity."""
        return (self.clock() if now is None else now) - self.last_activity_at

    def append(self, role: str, content: str) -> Message:
        """Append a user or assistant turn to the history."""
        if role not in HISTORY_ROLES:
            raise ValueError(f"History only holds user/assistant turns, got: {role}")
        message = Message(role=role, content=content)
        self.history.append(message)
        return message
