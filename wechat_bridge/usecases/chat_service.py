"""
Chat service: slash commands and completion-backed replies.
"""

import logging
import re
from typing import Optional

from wechat_bridge.ai.completion_client import CompletionClient, CompletionError, RateLimitedError
from wechat_bridge.infrastructure.repository import Query, Repository, eq, exists
from wechat_bridge.usecases.prompt_window import PromptWindowBuilder
from wechat_bridge.utils.time import utcnow

logger = logging.getLogger(__name__)

COMMAND_PREFIX = "/"
CLEAR_COMMAND = "/clear"
HELP_COMMAND = "/help"

CLEAR_MESSAGE = "✅ 记忆已清除"
HELP_MESSAGE = """ChatGPT 指令使用指南

Usage:
    /clear    清除上下文
    /help     获取更多帮助
"""

TOO_MANY_QUESTIONS_MESSAGE = "问题太多了，我有点眩晕，请稍后再试"
COMPLETION_ERROR_MESSAGE = "问题太难了 出错了. (uДu〃)."

_BLANK_LINES = re.compile(r"\n{2,}")


def clean_answer(answer: str) -> str:
    """Collapse blank lines in a generated answer."""
    return _BLANK_LINES.sub("\n", answer).strip()


class ChatService:
    """Service class for answering text messages of a session."""

    def __init__(
        self,
        messages: Repository,
        completion_client: CompletionClient,
        prompt_builder: PromptWindowBuilder,
    ):
        self.messages = messages
        self.completion_client = completion_client
        self.prompt_builder = prompt_builder

    async def reply(self, session_id: str, msgid: Optional[str], content: str) -> str:
        """
        Answer a text message.

        Args:
            session_id: Conversation partner
            msgid: Upstream message ID, stored with the turn
            content: Raw message text

        Returns:
            Reply text. Completion failures return an apology instead of raising.
        """
        question = (content or "").strip()

        if question.startswith(COMMAND_PREFIX):
            return await self.process_command(session_id, question)

        prompt = await self.prompt_builder.build(session_id, question)
        try:
            answer = await self.completion_client.complete(prompt)
        except RateLimitedError as e:
            logger.error(f"sessionId: {session_id}; question: {question}; rate limited: {e}")
            return TOO_MANY_QUESTIONS_MESSAGE
        except CompletionError as e:
            logger.error(f"sessionId: {session_id}; question: {question}; error: {e}")
            return COMPLETION_ERROR_MESSAGE

        answer = clean_answer(answer)
        logger.debug(f"sessionId: {session_id}; question: {question}; answer: {answer}")

        await self.messages.insert({
            "session_id": session_id,
            "msgid": msgid,
            "question": question,
            "answer": answer,
            "token": len(question) + len(answer),
        })
        return answer

    async def process_command(self, session_id: str, question: str) -> str:
        """
        Handle a slash command. Unknown commands get the help text.

        Args:
            session_id: Conversation partner
            question: Command text

        Returns:
            Command reply
        """
        command = question.strip()

        if command == CLEAR_COMMAND:
            cleared = await self.messages.update(
                Query().where(eq("session_id", session_id), exists("deleted_at", False)),
                {"deleted_at": utcnow()},
            )
            logger.info(f"Cleared {cleared} messages for session {session_id}")
            return CLEAR_MESSAGE

        if command != HELP_COMMAND:
            logger.info(f"Unknown command {command!r} from {session_id}")
        return HELP_MESSAGE
