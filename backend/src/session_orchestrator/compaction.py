"""Context-overflow recovery: trim the oldest history and retry, a bounded number of times."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from .config import DEFAULT_COMPACTION_RETRY_DELAY, DEFAULT_MAX_COMPACTION_ATTEMPTS
from .conversation import Conversation

logger = logging.getLogger(__name__)

MAX_ATTEMPTS_REASON = "Max retry attempts reached ({n}) after removing oldest messages"
CANNOT_REMOVE_REASON = "Cannot remove any more messages without losing context"


@dataclass
class RetryState:
    """Compaction attempts spent on the current logical turn."""

    max_attempts: int
    attempt: int = 0

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts


@dataclass(frozen=True)
class CompactionDecision:
    retry: bool
    removed_index: int | None = None
    reason: str | None = None


class CompactionPolicy:
    """Decides, after an overflow, whether to drop a message and retry or give up.

    The system prompt at index 0 and the newest user message are never removed.
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_COMPACTION_ATTEMPTS,
        retry_delay: float = DEFAULT_COMPACTION_RETRY_DELAY,
        min_retained: int = 2,
    ):
        if max_attempts < 0:
            raise ValueError("max_attempts must be >= 0")
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.min_retained = min_retained

    def new_retry_state(self) -> RetryState:
        return RetryState(max_attempts=self.max_attempts)

    def compact(self, conversation: Conversation, retry: RetryState) -> CompactionDecision:
        if retry.exhausted:
            reason = MAX_ATTEMPTS_REASON.format(n=retry.max_attempts)
            logger.error(reason)
            return CompactionDecision(retry=False, reason=reason)

        candidates = conversation.removable_indices()
        if not candidates or len(conversation) - 1 < self.min_retained:
            logger.error(CANNOT_REMOVE_REASON)
            return CompactionDecision(retry=False, reason=CANNOT_REMOVE_REASON)

        index = candidates[0]
        removed = conversation.remove(index)
        retry.attempt += 1
        logger.info(
            "Context overflow: removed %s at index %d (attempt %d/%d)",
            removed.role,
            index,
            retry.attempt,
            retry.max_attempts,
        )
        return CompactionDecision(retry=True, removed_index=index)

    async def wait(self) -> None:
        if self.retry_delay > 0:
            await asyncio.sleep(self.retry_delay)
