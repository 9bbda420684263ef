"""
Webhook handler orchestrating one WeChat message delivery.
"""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from wechat_bridge.ai.completion_client import CompletionClient
from wechat_bridge.config.settings import Settings
from wechat_bridge.domain.event import EventRecord
from wechat_bridge.domain.inbound_message import InboundMessage
from wechat_bridge.domain.message import MessageRecord
from wechat_bridge.infrastructure.repository import SQLAlchemyRepository
from wechat_bridge.infrastructure.wechat import render_text_reply
from wechat_bridge.usecases.chat_service import ChatService
from wechat_bridge.usecases.event_service import EventService
from wechat_bridge.usecases.prompt_window import PromptWindowBuilder

logger = logging.getLogger(__name__)

UNSUPPORTED_MESSAGE_TYPES = {
    "image": "暂不支持图片消息",
    "voice": "暂不支持语音消息",
    "video": "暂不支持视频消息",
    "music": "暂不支持音乐消息",
    "news": "暂不支持图文消息",
}


class WebhookHandler:
    """Turns a decoded inbound message into a reply envelope."""

    def __init__(self, event_service: EventService, chat_service: ChatService):
        self.event_service = event_service
        self.chat_service = chat_service

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        session_factory: async_sessionmaker,
        completion_client: Optional[CompletionClient] = None,
    ) -> "WebhookHandler":
        """Wire repositories, the completion client and services from settings."""
        messages = SQLAlchemyRepository(session_factory, MessageRecord)
        events = SQLAlchemyRepository(session_factory, EventRecord)

        if completion_client is None:
            completion_client = CompletionClient(
                api_key=settings.openai_api_key,
                model=settings.openai_model,
                max_tokens=settings.openai_max_token,
                timeout=settings.openai_timeout,
                base_url=settings.openai_base_url,
            )

        prompt_builder = PromptWindowBuilder(
            messages,
            max_token=settings.openai_max_token,
            limit=settings.history_limit,
            lookback=timedelta(minutes=settings.history_lookback_minutes),
            max_gap=timedelta(minutes=settings.history_max_gap_minutes),
        )
        return cls(
            event_service=EventService(
                events,
                messages,
                attempts=settings.duplicate_poll_attempts,
                interval=settings.duplicate_poll_interval,
            ),
            chat_service=ChatService(messages, completion_client, prompt_builder),
        )

    async def handle(self, message: InboundMessage) -> Optional[str]:
        """
        Handle one delivery.

        Args:
            message: Decoded inbound message

        Returns:
            Reply XML, or None when the message needs no reply
        """
        if await self.event_service.is_duplicate(message):
            logger.info(f"Duplicate event {message.event_id} from {message.from_user}")
            if message.msg_id:
                answer = await self.event_service.wait_for_answer(message.msg_id)
                if answer is not None:
                    return render_text_reply(message, answer)

        if message.msg_type == "text":
            content = await self.chat_service.reply(
                session_id=message.from_user,
                msgid=message.msg_id,
                content=message.content,
            )
            return render_text_reply(message, content)

        if message.msg_type in UNSUPPORTED_MESSAGE_TYPES:
            return render_text_reply(message, UNSUPPORTED_MESSAGE_TYPES[message.msg_type])

        logger.info(f"Ignoring {message.msg_type} message from {message.from_user}")
        return None
