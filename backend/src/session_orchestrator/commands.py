"""Slash commands typed at the prompt instead of a chat message."""

from __future__ import annotations

import random
import shlex
from dataclasses import dataclass
from typing import Optional, Union

from src.llm_core.errors import AssistantError


class CommandError(AssistantError):
    code = "COMMAND_ERROR"


@dataclass(frozen=True)
class ExitCommand:
    name = "exit"


@dataclass(frozen=True)
class ResetCommand:
    name = "reset"


@dataclass(frozen=True)
class RollCommand:
    expressions: tuple[str, ...]

    name = "roll"

    def run(self, rng: Optional[random.Random] = None) -> str:
        """Render one markdown line per expression, e.g. `` `1d20` = **14** ``."""
        # Imported here: toolkits depend on this package.
        from src.toolkits.dice import DiceError, roll

        lines = []
        for expression in self.expressions:
            try:
                result = roll(expression, rng)
            except DiceError as e:
                raise CommandError(str(e)) from e
            lines.append(f"`{expression}` = **{result.total}**")
        return "\n".join(lines)


Command = Union[ExitCommand, ResetCommand, RollCommand]


def parse_command(line: str) -> Optional[Command]:
    """Parse ``/exit``, ``/reset`` or ``/roll <expr>...``; None when the line is a chat message."""
    text = line.strip()
    if not text.startswith("/"):
        return None
    try:
        parts = shlex.split(text[1:])
    except ValueError as e:
        raise CommandError(f"Could not parse command: {e}") from e
    if not parts:
        raise CommandError("Empty command")

    name, args = parts[0].lower(), parts[1:]
    if name in ("exit", "quit"):
        return ExitCommand()
    if name == "reset":
        return ResetCommand()
    if name == "roll":
        if not args:
            raise CommandError("Usage: /roll <expression> [<expression> ...]")
        return RollCommand(tuple(args))
    raise CommandError(f"Unknown command: /{name}")
