"""Chat router: one conversational turn per request against an in-memory session."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from src.session_orchestrator import session_store
from src.session_orchestrator.config import SessionConfig
from src.session_orchestrator.errors import AssistantError, ConfigurationError, SessionClosed
from src.session_orchestrator.session import Session, SessionBuilder
from src.session_orchestrator.tools import ToolProvider
from src.toolkits import default_toolkits

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


class ChatRequest(BaseModel):
    """Request body for POST /chat."""

    message: str = Field(..., description="User message")
    session_id: str | None = Field(None, description="Optional session id to continue")
    model: str | None = Field(
        None,
        description=(
            "LLM model in 'provider:model' format (e.g. 'anthropic:claude-3-5-haiku-20241022', "
            "'openai:gpt-4o-mini'). If no ':' is present, the value is treated as an Ollama "
            "model name. Only used when a new session is created."
        ),
    )


class ChatResponse(BaseModel):
    """Response for POST /chat."""

    session_id: str
    reply: str
    status: str
    events: list[dict[str, Any]] = Field(default_factory=list)
    message_count: int = 0


class ResetResponse(BaseModel):
    session_id: str
    message_count: int


def get_session_config() -> SessionConfig:
    return SessionConfig.from_env()


def get_toolkits(config: SessionConfig = Depends(get_session_config)) -> list[ToolProvider]:
    return default_toolkits(config)


def get_session_builder() -> SessionBuilder:
    return SessionBuilder()


def _require_session(session_id: str) -> Session:
    session = session_store.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
    return session


@router.post("", response_model=ChatResponse)
async def chat(
    request: ChatRequest,
    config: SessionConfig = Depends(get_session_config),
    toolkits: list[ToolProvider] = Depends(get_toolkits),
    builder: SessionBuilder = Depends(get_session_builder),
) -> ChatResponse:
    """Run one turn and return the reply plus every event the turn produced."""
    if request.session_id:
        session_id = request.session_id
        session = _require_session(session_id)
    else:
        if request.model:
            config = config.model_copy(update={"model": request.model})
        try:
            session_id, session = session_store.create_session(config, toolkits, builder)
        except ConfigurationError as e:
            raise HTTPException(status_code=400, detail=e.message) from e

    try:
        outcome = await session.submit(request.message)
    except SessionClosed as e:
        raise HTTPException(status_code=409, detail=e.message) from e
    except AssistantError as e:
        logger.error("Chat turn failed: %s", e)
        raise HTTPException(status_code=500, detail=e.message) from e
    except Exception as e:
        logger.exception("Chat turn failed")
        raise HTTPException(status_code=500, detail=str(e)) from e
    finally:
        # Undelivered events belong to this turn only; a full channel must not outlive it.
        events = [event.to_dict() for event in session.events.drain()]

    return ChatResponse(
        session_id=session_id,
        reply=outcome.text,
        status=outcome.status,
        events=events,
        message_count=len(session.conversation),
    )


@router.post("/{session_id}/reset", response_model=ResetResponse)
async def reset_chat(session_id: str) -> ResetResponse:
    session = _require_session(session_id)
    await session.reset()
    session.events.drain()
    return ResetResponse(session_id=session_id, message_count=len(session.conversation))


@router.delete("/{session_id}", status_code=204)
async def delete_chat(session_id: str) -> None:
    session = session_store.delete_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
    await session.close()
