"""
WeChat Official Account transport helpers: callback signature check,
XML envelope decoding and text reply rendering.
"""

import logging
import time
from xml.parsers.expat import ExpatError

import xmltodict
from pydantic import ValidationError
from wechatpy.exceptions import InvalidSignatureException
from wechatpy.replies import TextReply
from wechatpy.utils import check_signature

from wechat_bridge.domain.inbound_message import InboundMessage

logger = logging.getLogger(__name__)


class MessageDecodeError(Exception):
    """Raised when a callback body is not a usable WeChat XML envelope."""


def verify_signature(token: str, signature: str, timestamp: str, nonce: str) -> bool:
    """
    Validate a WeChat callback signature.

    WeChat signs sha1(sorted([token, timestamp, nonce]).join("")).

    Args:
        token: Shared secret configured on the Official Account
        signature: Signature supplied by WeChat
        timestamp: Timestamp query parameter
        nonce: Nonce query parameter

    Returns:
        True if the signature matches
    """
    try:
        check_signature(token, signature, timestamp, nonce)
    except InvalidSignatureException:
        return False
    return True


def decode_message(body) -> InboundMessage:
    """
    Decode a callback body into an InboundMessage.

    Args:
        body: Raw XML request body (bytes or str)

    Returns:
        Decoded message

    Raises:
        MessageDecodeError: If the body is malformed or misses required fields
    """
    try:
        envelope = xmltodict.parse(body)["xml"]
        return InboundMessage.model_validate(envelope)
    except (ExpatError, KeyError, TypeError, ValidationError) as e:
        raise MessageDecodeError(f"Invalid WeChat message: {e}") from e


def render_text_reply(message: InboundMessage, content: str) -> str:
    """
    Render a passive text reply for an inbound message.

    Sender and recipient are swapped from the inbound envelope.

    Args:
        message: The message being answered
        content: Reply text

    Returns:
        Reply XML
    """
    reply = TextReply(
        source=message.to_user,
        target=message.from_user,
        time=int(time.time()),
        content=escape_cdata(content),
    )
    return reply.render()


def escape_cdata(text: str) -> str:
    """Split every "]]>" so the text stays inside wechatpy's CDATA section."""
    return text.replace("]]>", "]]]]><![CDATA[>")
