from chat_relay.constants import DiscardReason, MessageType
from chat_relay.exceptions import FrameDiscarded
from chat_relay.hub import RelayHub
from chat_relay.logging import logger
from chat_relay.managers.websocket_connection_manager import ClientConnection
from chat_relay.routing import frame_router
from chat_relay.schemas.inbound import ChatFrame, InboundEnvelope
from chat_relay.schemas.outbound import ChatMessage


@frame_router.register(MessageType.MESSAGE)
async def chat_handler(
    hub: RelayHub, connection: ClientConnection, envelope: InboundEnvelope
) -> None:
    """
    Fan out a chat message from a registered participant.

    The sender is resolved before the payload is decoded, so an
    unregistered connection is dropped even when its payload is malformed.
    `reply_to` is passed through as decoded, without checking that the
    referenced message ever existed.

    Raises:
        FrameDiscarded: If the sender never registered or the payload
            cannot be decoded.
    """
    sender = hub.registry.find_by_session(connection)
    if sender is None:
        raise FrameDiscarded(
            DiscardReason.UNREGISTERED_SENDER,
            "Chat message from a connection that has not registered",
        )

    frame = ChatFrame.from_envelope(envelope)

    message = ChatMessage(
        sender=sender.nickname, message=frame.text, reply_to=frame.reply_to
    )
    recipients = hub.broadcast_chat(message)
    logger.debug(
        f'Message from "{sender.nickname}" broadcast to {recipients} connections'
    )
