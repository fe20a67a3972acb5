"""
Custom exception classes for the relay.

None of these ever reach a client: the relay's policy for bad input is to
drop the frame and keep the connection open. The exceptions exist so the
drop sites are explicit and carry a DiscardReason.
"""

from chat_relay.constants import DiscardReason


class AppException(Exception):
    """
    Base exception class for all relay exceptions.

    Attributes:
        message: Human-readable error message.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class FrameDiscarded(AppException):
    """
    Inbound frame must be dropped.

    Raised by the frame decoders and handlers; the router converts it into
    a discarded RouteOutcome.

    Attributes:
        reason: Why the frame was dropped.
    """

    def __init__(self, reason: DiscardReason, message: str):
        self.reason = reason
        super().__init__(message)
