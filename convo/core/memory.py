from __future__ import annotations

import logging
from dataclasses import dataclass, field
from threading import Lock
from typing import Dict, List, Optional, Tuple

from convo.core.settings import DEFAULT_MAX_HISTORY_LENGTH
from convo.core.trimming import trim_history
from convo.core.validation import MessageValidationError, validate_message
from convo.models.schemas import AddResult, Message, Role, SkippedMessage

logger = logging.getLogger(__name__)


@dataclass
class _SessionBuffer:
    lock: Lock = field(default_factory=Lock)
    # Replaced, never mutated in place, so handed-out snapshots stay stable.
    messages: Tuple[Message, ...] = ()
    started: bool = False
    anchor: Optional[Message] = None


class ConversationStore:
    """
    In-memory session conversation store.

    Validates every inbound message, appends the admitted ones to the session
    buffer and trims the buffer to max_history_length (<= 0 means unbounded).
    If the first message ever admitted to a session is a system message it is
    kept as the session anchor and survives every trim.

    Each session has its own lock; the store-wide lock only guards the
    session map, so unrelated sessions do not serialize on each other.
    """

    def __init__(self, max_history_length: int = DEFAULT_MAX_HISTORY_LENGTH):
        self._max_history_length = max_history_length
        self._sessions: Dict[str, _SessionBuffer] = {}
        self._lock = Lock()

    @property
    def max_history_length(self) -> int:
        return self._max_history_length

    def _session(self, session_id: str, create: bool = False) -> Optional[_SessionBuffer]:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None and create:
                session = _SessionBuffer()
                self._sessions[session_id] = session
            return session

    def add(self, session_id: str, *messages: Optional[Message]) -> AddResult:
        """
        Admits messages to a session in the given order. Invalid messages are
        logged and reported in the result; they never abort the batch.
        """
        result = AddResult()
        admitted: List[Message] = []

        for index, msg in enumerate(messages):
            try:
                validate_message(msg)
            except MessageValidationError as e:
                role = msg.role if msg is not None else None
                logger.warning(
                    f"Invalid message skipped: session='{session_id}' index={index} "
                    f"role='{role}' reason={e.reason.value} "
                    f"tool_call_index={e.tool_call_index}: {e.detail}"
                )
                result.skipped.append(
                    SkippedMessage(
                        index=index,
                        role=role,
                        reason=e.reason,
                        detail=e.detail,
                        tool_call_index=e.tool_call_index,
                    )
                )
                continue
            admitted.append(msg.model_copy(deep=True))

        result.admitted = len(admitted)
        if not admitted:
            return result

        session = self._session(session_id, create=True)
        with session.lock:
            if not session.started:
                session.started = True
                if admitted[0].role == Role.SYSTEM.value:
                    session.anchor = admitted[0]
                    logger.debug(f"Session '{session_id}' anchored on its system message.")

            combined = session.messages + tuple(admitted)
            retained = trim_history(
                combined,
                self._max_history_length,
                keep_anchor=session.anchor is not None,
            )
            if len(retained) < len(combined):
                logger.debug(
                    f"Trimmed session '{session_id}' from {len(combined)} to {len(retained)} messages "
                    f"(max_history_length={self._max_history_length})."
                )
            session.messages = tuple(retained)

        return result

    def get(self, session_id: str) -> List[Message]:
        """
        Returns a snapshot of the session history, or [] for an unknown session.
        Messages are deep copies; editing their content does not reach the store.
        """
        session = self._session(session_id)
        if session is None:
            return []
        with session.lock:
            messages = session.messages
        return [m.model_copy(deep=True) for m in messages]

    def has_anchor(self, session_id: str) -> bool:
        session = self._session(session_id)
        if session is None:
            return False
        with session.lock:
            return session.anchor is not None

    def session_ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions)
