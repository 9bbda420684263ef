"""
Inbound WeChat message schema.
"""

from typing import Optional

from pydantic import BaseModel, Field


class InboundMessage(BaseModel):
    """Schema for a decoded WeChat callback envelope."""

    to_user: str = Field(..., alias="ToUserName")
    from_user: str = Field(..., alias="FromUserName")
    create_time: Optional[int] = Field(None, alias="CreateTime")
    msg_type: str = Field(..., alias="MsgType")
    content: Optional[str] = Field(None, alias="Content")
    msg_id: Optional[str] = Field(None, alias="MsgId")
    event: Optional[str] = Field(None, alias="Event")

    class Config:
        populate_by_name = True
        extra = "allow"

    @property
    def event_id(self) -> str:
        """
        Stable identifier of this delivery.

        Push events (subscribe, menu clicks...) carry no MsgId, so they are
        keyed by sender and creation time instead.
        """
        if self.msg_id:
            return self.msg_id
        return f"{self.from_user}{self.create_time}"

    def payload(self) -> dict:
        """The message as received, with WeChat field names."""
        return self.model_dump(by_alias=True, exclude_none=True)
