from collections.abc import Iterable
from dataclasses import dataclass

from chat_relay.logging import logger
from chat_relay.managers.websocket_connection_manager import ClientConnection
from chat_relay.utils.metrics import relay_participants


@dataclass(eq=False)
class Participant:
    """
    A registered nickname bound to one connection.

    Attributes:
        connection: Non-owning reference to the connection's handle.
        nickname: Display name as sent by the client, never validated.
        alive: Liveness flag; False once the sweeper has seen the
            connection gone.
    """

    connection: ClientConnection
    nickname: str
    alive: bool = True


class ParticipantRegistry:
    """
    Ordered registry of participants, the single source of truth for who
    is online.

    Order is registration order and is what the roster broadcast shows.
    Nicknames are not unique and a connection may register more than once;
    each registration frame appends one participant.

    None of the methods await, so on the event loop every call runs to
    completion before any other frame or sweep touches the registry.
    """

    def __init__(self) -> None:
        self.participants: list[Participant] = []

    def __len__(self) -> int:
        return len(self.participants)

    def register(self, connection: ClientConnection, nickname: str) -> Participant:
        participant = Participant(connection=connection, nickname=nickname)
        self.participants.append(participant)
        relay_participants.set(len(self.participants))
        logger.debug(
            f'Registered "{nickname}" on connection {connection.connection_id}'
        )
        return participant

    def find_by_session(self, connection: ClientConnection) -> Participant | None:
        """
        Returns the first participant registered on `connection`, if any.
        """
        for participant in self.participants:
            if participant.connection is connection:
                return participant
        return None

    def reconcile(self, live_connections: Iterable[ClientConnection]) -> bool:
        """
        Drop participants whose connection is no longer live.

        Args:
            live_connections: Connections the transport currently holds open.

        Returns:
            True if at least one participant was removed.
        """
        live = set(live_connections)
        kept: list[Participant] = []
        for participant in self.participants:
            if participant.connection in live:
                kept.append(participant)
            else:
                participant.alive = False

        changed = len(kept) != len(self.participants)
        if changed:
            logger.debug(
                f"Reconciled registry: {len(self.participants)} -> {len(kept)} participants"
            )
            self.participants = kept
            relay_participants.set(len(kept))
        return changed

    def nicknames(self) -> list[str]:
        """Roster in registration order."""
        return [participant.nickname for participant in self.participants]
