"""Tool providers registered with DM assistant sessions."""

from __future__ import annotations

from src.session_orchestrator.config import SessionConfig
from src.session_orchestrator.tools import ToolProvider

from .dice import DiceError, DiceRoll, DiceToolkit, RollDiceTool, roll
from .notes import InvalidVaultPath, NotesToolkit, Vault


def default_toolkits(config: SessionConfig) -> list[ToolProvider]:
    """Dice always; the notes tools only when a vault is configured."""
    toolkits: list[ToolProvider] = [DiceToolkit()]
    if config.notes_vault is not None:
        toolkits.append(NotesToolkit(config.notes_vault))
    return toolkits


__all__ = [
    "DiceError",
    "DiceRoll",
    "DiceToolkit",
    "InvalidVaultPath",
    "NotesToolkit",
    "RollDiceTool",
    "Vault",
    "default_toolkits",
    "roll",
]
