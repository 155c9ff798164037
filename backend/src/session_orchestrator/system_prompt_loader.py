"""Utilities for loading the default system prompt from disk."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .config import DEFAULT_SYSTEM_PROMPT_PATH

logger = logging.getLogger(__name__)

BUILTIN_SYSTEM_PROMPT = """\
You are a dungeon master's assistant for tabletop role-playing games.
Help the DM run the session: describe scenes, voice non-player characters,
track initiative and keep rulings consistent.
Use the roll_dice tool for any roll instead of inventing numbers, and consult
the DM's notes with the notes tools before answering questions about the
campaign. Keep answers short enough to read aloud at the table."""

_cached_prompts: dict[Path, str] = {}


def _read_file(path: Path) -> str:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return ""
    except OSError as e:
        logger.warning("Could not read system prompt %s: %s", path, e)
        return ""
    return text.strip()


def get_default_system_prompt(path: Optional[Path] = None) -> str:
    """Return the system prompt text, cached per path after first read.

    Falls back to the built-in DM assistant persona when the prompt file does
    not exist, cannot be read or is empty.
    """
    path = Path(path) if path is not None else DEFAULT_SYSTEM_PROMPT_PATH
    if path not in _cached_prompts:
        _cached_prompts[path] = _read_file(path)
    return _cached_prompts[path] or BUILTIN_SYSTEM_PROMPT
