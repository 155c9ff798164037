"""Orchestrator configuration: defaults, env loading and logging setup."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

BASE_DIR = Path(__file__).resolve().parents[2]
PROMPTS_DIR = BASE_DIR / "prompts"
DEFAULT_SYSTEM_PROMPT_PATH = PROMPTS_DIR / "dm_assistant_system_prompt.md"

DEFAULT_MODEL = "anthropic:claude-3-5-haiku-20241022"
DEFAULT_MAX_TOKENS = 8192
DEFAULT_REQUEST_TIMEOUT = 120.0
DEFAULT_TOOL_TIMEOUT = 30.0
DEFAULT_MAX_COMPACTION_ATTEMPTS = 3
DEFAULT_COMPACTION_RETRY_DELAY = 0.5
DEFAULT_EVENT_CAPACITY = 64

ENV_PREFIX = "DMCLI_"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class SessionConfig(BaseModel):
    """Everything needed to build a Session. Validated again by SessionBuilder.build()."""

    model: str = DEFAULT_MODEL
    api_key: str | None = Field(None, description="Endpoint credentials; falls back to the provider's own env var")
    max_tokens: int = DEFAULT_MAX_TOKENS
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    tool_timeout: float = DEFAULT_TOOL_TIMEOUT
    max_compaction_attempts: int = DEFAULT_MAX_COMPACTION_ATTEMPTS
    compaction_retry_delay: float = DEFAULT_COMPACTION_RETRY_DELAY
    event_capacity: int = DEFAULT_EVENT_CAPACITY
    notes_vault: Path | None = None
    system_prompt_path: Path | None = None

    @classmethod
    def from_env(cls, env_file: str | os.PathLike[str] | None = None, **overrides) -> SessionConfig:
        """Build a config from ``DMCLI_*`` variables (``.env`` is loaded first).

        Keyword overrides that are not None win over the environment.
        """
        load_dotenv(env_file)
        values: dict[str, object] = {}
        for name in cls.model_fields:
            raw = os.getenv(f"{ENV_PREFIX}{name.upper()}")
            if raw not in (None, ""):
                values[name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def configure_logging(level: str | int = "INFO", log_file: str | os.PathLike[str] | None = None) -> None:
    """Configure root logging once for the CLI and the HTTP app."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    handlers: list[logging.Handler] = []
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    else:
        handlers.append(logging.StreamHandler())
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
    # SDK clients are chatty at INFO.
    for noisy in ("httpx", "httpcore", "anthropic", "openai"):
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))
