"""Dice roller: ``roll_dice`` tool and the helper shared with the /roll command."""

from __future__ import annotations

import random
import re
from dataclasses import dataclass
from typing import Any

from src.session_orchestrator.models import ToolOutput
from src.session_orchestrator.tools import BaseTool, Toolkit

MAX_DICE = 1000
MAX_SIDES = 1000
MAX_DIGITS = 6

_EXPRESSION = re.compile(r"[+-]?(\d*d\d+|\d+)([+-](\d*d\d+|\d+))*")
_TERM = re.compile(r"([+-]?)(\d*d\d+|\d+)")


class DiceError(ValueError):
    """The expression is not valid dice notation."""


def _number(text: str, term: str) -> int:
    if len(text) > MAX_DIGITS:
        raise DiceError(f"Number too large in dice term: {term[:MAX_DIGITS]}...")
    return int(text)


@dataclass(frozen=True)
class DiceRoll:
    expression: str
    total: int
    rolls: tuple[tuple[str, tuple[int, ...]], ...] = ()

    @property
    def detail(self) -> str:
        """Individual dice, e.g. ``2d6 [3, 5] + 1d4 [2]``."""
        return " ".join(f"{term} {list(values)}" for term, values in self.rolls)


def roll(expression: str, rng: random.Random | None = None) -> DiceRoll:
    """Evaluate ``NdM`` / ``dM`` / constant terms joined by ``+`` and ``-``."""
    rng = rng or random.Random()
    compact = re.sub(r"\s+", "", expression).lower()
    if not compact or not _EXPRESSION.fullmatch(compact):
        raise DiceError(f"Invalid dice expression: {expression!r}")

    total = 0
    rolls: list[tuple[str, tuple[int, ...]]] = []
    for sign, term in _TERM.findall(compact):
        factor = -1 if sign == "-" else 1
        if "d" not in term:
            total += factor * _number(term, term)
            continue
        count_text, sides_text = term.split("d")
        count = _number(count_text, term) if count_text else 1
        sides = _number(sides_text, term)
        if not 1 <= count <= MAX_DICE:
            raise DiceError(f"Number of dice must be between 1 and {MAX_DICE}: {term}")
        if not 1 <= sides <= MAX_SIDES:
            raise DiceError(f"Number of sides must be between 1 and {MAX_SIDES}: {term}")
        values = tuple(rng.randint(1, sides) for _ in range(count))
        rolls.append((f"{sign}{term}", values))
        total += factor * sum(values)
    return DiceRoll(expression=expression.strip(), total=total, rolls=tuple(rolls))


class RollDiceTool(BaseTool):
    """Rolls dice in standard notation and returns the total."""

    def __init__(self, rng: random.Random | None = None):
        self._rng = rng

    @property
    def name(self) -> str:
        return "roll_dice"

    @property
    def description(self) -> str:
        return (
            "Roll dice using standard notation and return the total. "
            "Supports NdM, dM and constants joined by + or - (e.g. '1d20', '2d6+1d4-1')."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "expr": {"type": "string", "description": "Dice expression, e.g. '1d20+5'"},
            },
            "required": ["expr"],
        }

    async def execute(self, params: dict[str, Any]) -> ToolOutput:
        expr = params.get("expr")
        if not isinstance(expr, str) or not expr.strip():
            return ToolOutput(success=False, error="expr is required")
        try:
            result = roll(expr, self._rng)
        except DiceError as e:
            return ToolOutput(success=False, error=str(e))
        return ToolOutput(success=True, content=str(result.total), metadata={"rolls": result.detail})


class DiceToolkit(Toolkit):
    def __init__(self, rng: random.Random | None = None):
        super().__init__([RollDiceTool(rng)])
