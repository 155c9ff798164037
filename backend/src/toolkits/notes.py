"""Read-only tools over a markdown notes vault (campaign notes, NPCs, locations)."""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path, PureWindowsPath
from typing import Any

from src.session_orchestrator.models import ToolOutput
from src.session_orchestrator.tools import BaseTool, Toolkit

logger = logging.getLogger(__name__)

NOTE_SUFFIXES = (".md", ".markdown", ".txt")
DEFAULT_CONTEXT_LINES = 2
MAX_SEARCH_MATCHES = 50


class InvalidVaultPath(ValueError):
    def __init__(self, path: str):
        super().__init__(
            f"Invalid vault path '{path}': paths must be relative to the vault root, not absolute"
        )
        self.path = path


class Vault:
    """Filesystem access confined to one directory. All methods are blocking."""

    def __init__(self, root: str | Path):
        self.root = Path(root).expanduser().resolve()

    def resolve(self, path: str) -> Path:
        """Join a vault-relative path onto the root; absolute or escaping paths are rejected."""
        if Path(path).is_absolute() or path.startswith(("/", "\\")) or PureWindowsPath(path).drive:
            raise InvalidVaultPath(path)
        resolved = (self.root / path).resolve()
        if not resolved.is_relative_to(self.root):
            raise InvalidVaultPath(path)
        return resolved

    def relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    def list_notes(self, folder_path: str | None = None) -> list[str]:
        base = self.resolve(folder_path) if folder_path else self.root
        if not base.is_dir():
            raise FileNotFoundError(f"Folder not found: {folder_path}")
        notes = []
        for path in base.rglob("*"):
            if not path.is_file() or path.suffix.lower() not in NOTE_SUFFIXES:
                continue
            rel = self.relative(path)
            if any(part.startswith(".") for part in rel.split("/")):
                continue
            notes.append(rel)
        return sorted(notes)

    def read_note(self, filename: str) -> str:
        path = self.resolve(filename)
        if not path.is_file():
            raise FileNotFoundError(f"Note not found: {filename}")
        return path.read_text(encoding="utf-8")

    def search(
        self,
        query: str,
        context_lines: int = DEFAULT_CONTEXT_LINES,
        case_sensitive: bool = False,
        regex: bool = False,
    ) -> list[str]:
        """One text block per matching line: ``file:line`` followed by the surrounding lines."""
        flags = 0 if case_sensitive else re.IGNORECASE
        try:
            pattern = re.compile(query if regex else re.escape(query), flags)
        except re.error as e:
            raise ValueError(f"Invalid regex pattern: {e}") from e

        blocks: list[str] = []
        for rel in self.list_notes():
            try:
                lines = (self.root / rel).read_text(encoding="utf-8").splitlines()
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("Skipping unreadable note %s: %s", rel, e)
                continue
            for index, line in enumerate(lines):
                if not pattern.search(line):
                    continue
                start = max(0, index - context_lines)
                end = min(len(lines), index + context_lines + 1)
                snippet = "\n".join(lines[start:end])
                blocks.append(f"{rel}:{index + 1}\n{snippet}")
                if len(blocks) >= MAX_SEARCH_MATCHES:
                    return blocks
        return blocks


class _VaultTool(BaseTool):
    def __init__(self, vault: Vault):
        self._vault = vault


class ListNotesTool(_VaultTool):
    @property
    def name(self) -> str:
        return "list_notes"

    @property
    def description(self) -> str:
        return (
            "List the notes in the DM's vault, one path per line. If folder_path is provided, "
            "it must be relative to the vault root, NOT an absolute path."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "folder_path": {
                    "type": "string",
                    "description": "Optional folder relative to the vault root (e.g. 'npcs/villains')",
                },
            },
            "required": [],
        }

    async def execute(self, params: dict[str, Any]) -> ToolOutput:
        try:
            notes = await asyncio.to_thread(self._vault.list_notes, params.get("folder_path"))
        except (ValueError, OSError) as e:
            return ToolOutput(success=False, error=str(e))
        if not notes:
            return ToolOutput(success=True, content="No notes found")
        return ToolOutput(success=True, content="\n".join(notes), metadata={"count": len(notes)})


class ReadNoteTool(_VaultTool):
    @property
    def name(self) -> str:
        return "read_note"

    @property
    def description(self) -> str:
        return (
            "Read a note from the vault. filename is relative to the vault root "
            "(e.g. 'npcs/mira.md'); only read notes that exist, do not guess filenames."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "filename": {"type": "string", "description": "Note path relative to the vault root"},
            },
            "required": ["filename"],
        }

    async def execute(self, params: dict[str, Any]) -> ToolOutput:
        filename = params.get("filename")
        if not isinstance(filename, str) or not filename.strip():
            return ToolOutput(success=False, error="filename is required")
        try:
            text = await asyncio.to_thread(self._vault.read_note, filename)
        except (ValueError, OSError) as e:
            return ToolOutput(success=False, error=str(e))
        return ToolOutput(success=True, content=text)


class SearchNotesTool(_VaultTool):
    @property
    def name(self) -> str:
        return "search_notes"

    @property
    def description(self) -> str:
        return "Search every note for a text (or regex) pattern and return matching lines with context."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search query pattern"},
                "context_lines": {
                    "type": "integer",
                    "description": "Lines of context before and after each match (default: 2)",
                    "default": DEFAULT_CONTEXT_LINES,
                },
                "case_sensitive": {
                    "type": "boolean",
                    "description": "Whether the search is case sensitive (default: false)",
                    "default": False,
                },
                "regex": {
                    "type": "boolean",
                    "description": "Treat the query as a regular expression (default: false)",
                    "default": False,
                },
            },
            "required": ["query"],
        }

    async def execute(self, params: dict[str, Any]) -> ToolOutput:
        query = params.get("query")
        if not isinstance(query, str) or not query:
            return ToolOutput(success=False, error="query is required")
        context_lines = params.get("context_lines", DEFAULT_CONTEXT_LINES)
        if not isinstance(context_lines, int) or context_lines < 0:
            context_lines = DEFAULT_CONTEXT_LINES
        try:
            blocks = await asyncio.to_thread(
                self._vault.search,
                query,
                context_lines,
                params.get("case_sensitive") is True,
                params.get("regex") is True,
            )
        except (ValueError, OSError) as e:
            return ToolOutput(success=False, error=str(e))
        if not blocks:
            return ToolOutput(success=True, content=f"No matches for '{query}'")
        return ToolOutput(success=True, content=blocks, metadata={"matches": len(blocks)})


class NotesToolkit(Toolkit):
    def __init__(self, vault: str | Path | Vault):
        self.vault = vault if isinstance(vault, Vault) else Vault(vault)
        super().__init__(
            [ListNotesTool(self.vault), ReadNoteTool(self.vault), SearchNotesTool(self.vault)]
        )
