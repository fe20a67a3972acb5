import json
import time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from chat_relay.constants import JSON_SEPARATORS, MessageType


def _dumps(obj: Any) -> str:
    return json.dumps(obj, separators=JSON_SEPARATORS, ensure_ascii=False)


def now_millis() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


class ChatMessage(BaseModel):
    """
    One chat message as broadcast to every participant.

    `sender` is a snapshot of the nickname at send time and goes out on the
    wire as `from`. `reply_to` is omitted from the wire form when None.
    """

    sender: str
    message: str
    time: int = Field(default_factory=now_millis)
    reply_to: Any = None

    def to_wire(self) -> str:
        payload: dict[str, Any] = {
            "from": self.sender,
            "message": self.message,
            "time": self.time,
        }
        if self.reply_to is not None:
            payload["reply_to"] = self.reply_to
        return _dumps(payload)


class OutboundEnvelope(BaseModel):
    """
    Outer structure of every frame the relay broadcasts.

    Attributes:
        message_type: USERS for roster updates, MESSAGE for chat.
        data: JSON-encoded ChatMessage (chat envelopes only).
        data_array: Nicknames in join order (roster envelopes only).
    """

    model_config = ConfigDict(populate_by_name=True)

    message_type: MessageType = Field(alias="messageType")
    data: str | None = None
    data_array: list[str] | None = Field(default=None, alias="dataArray")

    @classmethod
    def users(cls, nicknames: list[str]) -> "OutboundEnvelope":
        return cls(message_type=MessageType.USERS, data_array=nicknames)

    @classmethod
    def chat(cls, message: ChatMessage) -> "OutboundEnvelope":
        return cls(message_type=MessageType.MESSAGE, data=message.to_wire())

    def to_wire(self) -> str:
        return _dumps(
            self.model_dump(mode="json", by_alias=True, exclude_none=True)
        )
