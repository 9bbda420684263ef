"""
Prompt window construction from recent conversation history.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from wechat_bridge.infrastructure.repository import Query, Repository, eq, exists, gt
from wechat_bridge.utils.time import utcnow

logger = logging.getLogger(__name__)


class PromptWindowBuilder:
    """
    Builds the message list sent to the completion API.

    Recent turns are walked newest to oldest and included until either the
    token budget would be exceeded or the silence between two turns is longer
    than `max_gap`, which is taken as the start of an unrelated conversation.
    """

    def __init__(
        self,
        messages: Repository,
        max_token: int,
        limit: int = 50,
        lookback: timedelta = timedelta(hours=1),
        max_gap: timedelta = timedelta(minutes=5),
    ):
        self.messages = messages
        self.max_token = max_token
        self.limit = limit
        self.lookback = lookback
        self.max_gap = max_gap

    async def _recent_history(self, session_id: str, now: datetime) -> list:
        query = (
            Query()
            .where(
                eq("session_id", session_id),
                exists("deleted_at", False),
                gt("created_at", now - self.lookback),
            )
            .sort("created_at", descending=True)
            .take(self.limit)
        )
        return await self.messages.find(query)

    async def build(
        self,
        session_id: str,
        question: str,
        now: Optional[datetime] = None
    ) -> List[dict]:
        """
        Build the prompt for a new question.

        Args:
            session_id: Conversation partner
            question: The new user question
            now: Reference time (defaults to current UTC time)

        Returns:
            Oldest-first user/assistant pairs followed by the new question
        """
        if now is None:
            now = utcnow()

        prompt = []
        last_message_time = now
        token_size = 0
        for record in await self._recent_history(session_id, now):
            if token_size + record.token > self.max_token:
                break
            if last_message_time - record.created_at > self.max_gap:
                break

            prompt.insert(0, {"role": "assistant", "content": record.answer})
            prompt.insert(0, {"role": "user", "content": record.question})
            token_size += record.token
            last_message_time = record.created_at

        logger.debug(
            f"Prompt window for {session_id}: {len(prompt) // 2} turns, {token_size} tokens"
        )
        prompt.append({"role": "user", "content": question})
        return prompt
