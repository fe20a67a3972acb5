from chat_relay.schemas.inbound import ChatFrame, InboundEnvelope, RegisterFrame
from chat_relay.schemas.outbound import ChatMessage, OutboundEnvelope

__all__ = [
    "ChatFrame",
    "ChatMessage",
    "InboundEnvelope",
    "OutboundEnvelope",
    "RegisterFrame",
]
