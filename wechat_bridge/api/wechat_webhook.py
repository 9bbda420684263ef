"""
WeChat webhook endpoints for receiving Official Account callbacks.
"""

import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse, Response

from wechat_bridge.config.settings import Settings
from wechat_bridge.infrastructure.wechat import MessageDecodeError, decode_message, verify_signature
from wechat_bridge.usecases.webhook_handler import WebhookHandler

logger = logging.getLogger(__name__)
router = APIRouter()

NO_REPLY = "success"


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_webhook_handler(request: Request) -> WebhookHandler:
    return request.app.state.webhook_handler


@router.get("/webhook/wechat")
async def verify_webhook(
    signature: str = Query(default=""),
    timestamp: str = Query(default=""),
    nonce: str = Query(default=""),
    echostr: str = Query(default=""),
    settings: Settings = Depends(get_app_settings),
):
    """
    Answer the WeChat server verification challenge.

    The echostr is returned unchanged when the signature matches.
    """
    if not verify_signature(settings.wechat_token, signature, timestamp, nonce):
        logger.warning(f"Invalid WeChat signature (timestamp={timestamp}, nonce={nonce})")
        return PlainTextResponse("Forbidden", status_code=403)

    return PlainTextResponse(echostr)


@router.post("/webhook/wechat")
async def wechat_webhook(
    request: Request,
    handler: WebhookHandler = Depends(get_webhook_handler),
):
    """
    Handle an incoming WeChat message delivery.

    Text messages are answered with a passive text reply. Deliveries that need
    no reply are acknowledged with "success" so WeChat stops retrying.
    """
    body = await request.body()

    try:
        message = decode_message(body)
    except MessageDecodeError as e:
        logger.error(f"Parse xml error: {e}")
        return PlainTextResponse(NO_REPLY)

    logger.info(
        f"Received {message.msg_type} message from {message.from_user}, event: {message.event_id}"
    )

    reply = await handler.handle(message)
    if reply is None:
        return PlainTextResponse(NO_REPLY)

    return Response(content=reply, media_type="application/xml")


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "wechat-bridge"}
