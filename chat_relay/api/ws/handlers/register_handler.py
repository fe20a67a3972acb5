from chat_relay.constants import MessageType
from chat_relay.hub import RelayHub
from chat_relay.logging import logger, set_log_context
from chat_relay.managers.websocket_connection_manager import ClientConnection
from chat_relay.routing import frame_router
from chat_relay.schemas.inbound import InboundEnvelope, RegisterFrame


@frame_router.register(MessageType.REGISTER)
async def register_handler(
    hub: RelayHub, connection: ClientConnection, envelope: InboundEnvelope
) -> None:
    """
    Register the sender under the nickname in `data` and broadcast the
    updated roster to everyone, the new participant included.

    No uniqueness or format checks are made on the nickname; a connection
    that registers twice appears twice in the roster.
    """
    frame = RegisterFrame.from_envelope(envelope)

    hub.registry.register(connection, frame.nickname)
    set_log_context(nickname=frame.nickname)
    logger.info(f'Participant "{frame.nickname}" joined')

    hub.broadcast_roster()
