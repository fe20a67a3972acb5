"""Relay hub: the one owner of the participant registry and open connections."""

from chat_relay.constants import MessageType
from chat_relay.logging import logger
from chat_relay.managers.participant_registry import ParticipantRegistry
from chat_relay.managers.websocket_connection_manager import ConnectionManager
from chat_relay.schemas.outbound import ChatMessage, OutboundEnvelope
from chat_relay.utils.metrics import ws_broadcasts_total


class RelayHub:
    """
    Shared state of one relay process.

    A single instance is created by the application factory, stored on
    `app.state.relay` and handed to frame handlers and the liveness
    sweeper.

    Attributes:
        registry: Registered participants in join order.
        connections: The transport's open WebSocket sessions.
    """

    def __init__(
        self,
        registry: ParticipantRegistry | None = None,
        connections: ConnectionManager | None = None,
    ) -> None:
        self.registry = registry if registry is not None else ParticipantRegistry()
        self.connections = (
            connections if connections is not None else ConnectionManager()
        )

    def broadcast_roster(self) -> int:
        """
        Broadcast the current roster to every open connection.

        Returns:
            Number of connections the roster was queued on.
        """
        nicknames = self.registry.nicknames()
        frame = OutboundEnvelope.users(nicknames).to_wire()
        recipients = self.connections.broadcast(frame)
        ws_broadcasts_total.labels(message_type=MessageType.USERS.value).inc()
        logger.debug(
            f"Roster of {len(nicknames)} broadcast to {recipients} connections"
        )
        return recipients

    def broadcast_chat(self, message: ChatMessage) -> int:
        """
        Broadcast a chat message wrapped in its envelope.

        Returns:
            Number of connections the message was queued on.
        """
        frame = OutboundEnvelope.chat(message).to_wire()
        recipients = self.connections.broadcast(frame)
        ws_broadcasts_total.labels(message_type=MessageType.MESSAGE.value).inc()
        return recipients
