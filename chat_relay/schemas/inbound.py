"""
Inbound frame models.

The wire format nests JSON inside JSON: a chat frame's `data` is a
JSON-encoded string, and inside it `reply_to` is JSON-encoded once more.
These models decode every layer at the boundary so handlers only ever see
typed values.
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError

from chat_relay.constants import DiscardReason
from chat_relay.exceptions import FrameDiscarded


class InboundEnvelope(BaseModel):
    """
    Outer `{messageType, data}` structure of every inbound frame.

    Attributes:
        message_type: Routing key, matched against MessageType values.
        data: Untyped payload, interpreted by the handler for message_type.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    message_type: StrictStr = Field(alias="messageType")
    data: Any = None

    @classmethod
    def from_wire(cls, raw: str | bytes) -> "InboundEnvelope":
        """
        Decode a raw text frame.

        Raises:
            FrameDiscarded: If the frame is not a JSON object with a string
                `messageType`.
        """
        try:
            return cls.model_validate_json(raw)
        except ValidationError as ex:
            raise FrameDiscarded(
                DiscardReason.MALFORMED_ENVELOPE,
                f"Invalid envelope: {ex.errors()[0]['msg']}",
            )


class RegisterFrame(BaseModel):
    nickname: StrictStr

    @classmethod
    def from_envelope(cls, envelope: InboundEnvelope) -> "RegisterFrame":
        if not isinstance(envelope.data, str):
            raise FrameDiscarded(
                DiscardReason.INVALID_NICKNAME,
                f"Nickname must be a string, got {type(envelope.data).__name__}",
            )
        return cls(nickname=envelope.data)


class _ChatPayload(BaseModel):
    """Inner `{text, reply_to}` object as it appears on the wire."""

    model_config = ConfigDict(extra="ignore")

    text: StrictStr
    reply_to: StrictStr | None = None


class ChatFrame(BaseModel):
    """
    Fully decoded chat frame.

    Attributes:
        text: Message body.
        reply_to: Decoded reply reference, echoed back verbatim. None when
            the client sent no (or an empty) reply_to.
    """

    text: str
    reply_to: Any = None

    @classmethod
    def from_envelope(cls, envelope: InboundEnvelope) -> "ChatFrame":
        """
        Decode the nested payload of a chat frame.

        Raises:
            FrameDiscarded: MALFORMED_PAYLOAD if `data` is not a JSON string
                holding `{"text": str}`, MALFORMED_REPLY if `reply_to` is
                present but not valid JSON.
        """
        if not isinstance(envelope.data, str):
            raise FrameDiscarded(
                DiscardReason.MALFORMED_PAYLOAD,
                "Chat payload must be a JSON-encoded string",
            )

        try:
            payload = _ChatPayload.model_validate_json(envelope.data)
        except ValidationError as ex:
            raise FrameDiscarded(
                DiscardReason.MALFORMED_PAYLOAD,
                f"Invalid chat payload: {ex.errors()[0]['msg']}",
            )

        reply_to = None
        if payload.reply_to:
            try:
                reply_to = json.loads(payload.reply_to)
            except json.JSONDecodeError as ex:
                raise FrameDiscarded(
                    DiscardReason.MALFORMED_REPLY,
                    f"Invalid reply_to payload: {ex}",
                )

        return cls(text=payload.text, reply_to=reply_to)
