"""In-memory registry of live sessions for the HTTP surface."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from typing import Optional

from .config import SessionConfig
from .session import Session, SessionBuilder
from .tools import ToolProvider

logger = logging.getLogger(__name__)

_sessions: dict[str, Session] = {}


def create_session(
    config: SessionConfig,
    toolkits: Iterable[ToolProvider],
    builder: Optional[SessionBuilder] = None,
) -> tuple[str, Session]:
    """Build and register a new session. Returns (session_id, Session).

    Raises ConfigurationError when the session cannot be built.
    """
    builder = (builder or SessionBuilder()).with_config(config)
    for toolkit in toolkits:
        builder.with_toolkit(toolkit)
    session = builder.build()
    session_id = str(uuid.uuid4())
    _sessions[session_id] = session
    logger.info("Created session %s (model=%s)", session_id, config.model)
    return session_id, session


def get_session(session_id: str) -> Session | None:
    """Return the live session, or None if it does not exist."""
    return _sessions.get(session_id)


def delete_session(session_id: str) -> Session | None:
    """Forget a session and return it so the caller can close it."""
    session = _sessions.pop(session_id, None)
    if session is not None:
        logger.info("Deleted session %s", session_id)
    return session


def clear_sessions() -> None:
    _sessions.clear()
