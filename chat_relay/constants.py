"""
Application-level constants for the relay protocol.

These values describe the wire protocol and internal timing and are not
meant to be changed via environment variables. For configurable values
(port, sweep interval, queue sizes), see chat_relay/settings.py.
"""

from enum import StrEnum


class MessageType(StrEnum):
    """
    Values of the `messageType` field of the outer envelope.

    Attributes:
        REGISTER: Inbound, client announces its nickname.
        MESSAGE: Inbound chat text, and the outbound chat broadcast.
        USERS: Outbound roster broadcast.
    """

    REGISTER = "register"
    MESSAGE = "message"
    USERS = "users"


class DiscardReason(StrEnum):
    """
    Reasons an inbound frame is dropped without any reply to the client.

    Every silent drop in the router maps to exactly one of these, so the
    policy can be logged, counted and asserted on in tests.
    """

    MALFORMED_ENVELOPE = "malformed_envelope"
    UNKNOWN_MESSAGE_TYPE = "unknown_message_type"
    INVALID_NICKNAME = "invalid_nickname"
    UNREGISTERED_SENDER = "unregistered_sender"
    MALFORMED_PAYLOAD = "malformed_payload"
    MALFORMED_REPLY = "malformed_reply"


# ============================================================================
# Background Task Behavior
# ============================================================================

# Backoff delay (seconds) when a sweep tick fails unexpectedly
TASK_ERROR_BACKOFF_SECONDS = 1


# ============================================================================
# WebSocket Protocol Constants
# ============================================================================

# Timeout (seconds) when closing WebSocket connections during shutdown
WS_CLOSE_TIMEOUT_SECONDS = 5

# Separators matching compact JSON as produced by browser clients
JSON_SEPARATORS = (",", ":")
