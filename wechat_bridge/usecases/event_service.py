"""
Duplicate delivery handling.

WeChat redelivers a callback when the reply takes too long. A redelivery is
recorded once in the event log and then waits briefly for the original
request to persist its answer instead of calling the completion API again.
"""

import logging
from typing import Optional

from tenacity import AsyncRetrying, retry_if_result, stop_after_attempt, wait_fixed

from wechat_bridge.domain.inbound_message import InboundMessage
from wechat_bridge.infrastructure.repository import DuplicateRecordError, Query, Repository, eq

logger = logging.getLogger(__name__)


class EventService:
    """Event log checks and answer reconciliation for redelivered events."""

    def __init__(
        self,
        events: Repository,
        messages: Repository,
        attempts: int = 10,
        interval: float = 0.5,
    ):
        self.events = events
        self.messages = messages
        self.attempts = attempts
        self.interval = interval

    async def is_duplicate(self, message: InboundMessage) -> bool:
        """
        Check whether this delivery was seen before, recording it if not.

        Args:
            message: Decoded inbound message

        Returns:
            True if the event ID is already in the log
        """
        event_id = message.event_id
        if await self.events.count(Query().where(eq("event_id", event_id))) != 0:
            return True

        try:
            await self.events.insert({"event_id": event_id, "message": message.payload()})
        except DuplicateRecordError:
            # A concurrent delivery of the same event inserted first
            logger.info(f"Event {event_id} recorded concurrently")
            return True
        return False

    async def _latest_answer(self, msgid: str) -> Optional[str]:
        record = await self.messages.find_one(
            Query().where(eq("msgid", msgid)).sort("created_at", descending=True)
        )
        return record.answer if record else None

    async def wait_for_answer(self, msgid: str) -> Optional[str]:
        """
        Poll for the answer persisted by the original delivery.

        Args:
            msgid: Upstream message ID

        Returns:
            The stored answer, or None once all attempts are used
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_fixed(self.interval),
            retry=retry_if_result(lambda answer: answer is None),
            retry_error_callback=lambda retry_state: None,
        )
        answer = await retrying(self._latest_answer, msgid)
        if answer is None:
            logger.warning(f"No answer for {msgid} after {self.attempts} attempts")
        return answer
