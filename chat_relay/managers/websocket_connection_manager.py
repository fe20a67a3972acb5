import asyncio
import uuid

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect, WebSocketState

from chat_relay.constants import WS_CLOSE_TIMEOUT_SECONDS
from chat_relay.logging import logger
from chat_relay.settings import app_settings
from chat_relay.utils.metrics import (
    ws_connections_active,
    ws_connections_total,
    ws_frames_dropped_total,
)


class ClientConnection:
    """
    One open WebSocket session.

    Outbound frames are put on a bounded queue and written by a dedicated
    writer task, so enqueueing never suspends and a stalled peer only
    backs up its own queue.

    Attributes:
        websocket: The underlying Starlette WebSocket.
        connection_id: Short random id used in logs.
        queue: Pending outbound text frames.
        dropping: True while frames are being dropped on a full queue.
    """

    def __init__(self, websocket: WebSocket, queue_size: int) -> None:
        self.websocket = websocket
        self.connection_id = uuid.uuid4().hex[:8]
        self.queue: asyncio.Queue[str] = asyncio.Queue(maxsize=queue_size)
        self.dropping = False
        self._writer: asyncio.Task[None] | None = None

    def __repr__(self) -> str:
        return f"ClientConnection({self.connection_id})"

    @property
    def is_ready(self) -> bool:
        """True while both sides of the WebSocket are in the CONNECTED state."""
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    def start_writer(self) -> None:
        self._writer = asyncio.create_task(
            self._write_loop(), name=f"ws_writer_{self.connection_id}"
        )

    async def stop_writer(self) -> None:
        if self._writer is None:
            return
        self._writer.cancel()
        await asyncio.gather(self._writer, return_exceptions=True)
        self._writer = None

    def enqueue(self, frame: str) -> bool:
        """
        Queue a frame for delivery without waiting.

        Only the first drop of a backlog is logged; later drops are
        counted in `ws_frames_dropped_total`.

        Returns:
            False if the peer's queue is full and the frame was dropped.
        """
        try:
            self.queue.put_nowait(frame)
        except asyncio.QueueFull:
            ws_frames_dropped_total.labels(cause="queue_full").inc()
            if not self.dropping:
                self.dropping = True
                logger.warning(
                    f"Outbound queue full for connection {self.connection_id}, "
                    f"dropping frames"
                )
            return False
        self.dropping = False
        return True

    async def _write_loop(self) -> None:
        while True:
            frame = await self.queue.get()
            if not self.is_ready:
                continue
            try:
                await self.websocket.send_text(frame)
            except (WebSocketDisconnect, ConnectionError, RuntimeError) as e:
                # WebSocketDisconnect: Client disconnected
                # ConnectionError: Network errors
                # RuntimeError: WebSocket in invalid state
                ws_frames_dropped_total.labels(cause="send_failed").inc()
                logger.warning(
                    f"Failed to send to connection {self.connection_id}: {e}"
                )
                return


class ConnectionManager:
    """
    The transport layer's set of open WebSocket connections.

    A connection is added when its handshake is accepted and removed when
    the socket closes. The participant registry is reconciled against
    `open_connections()`; it is never updated from here directly.
    """

    def __init__(self, queue_size: int | None = None) -> None:
        self.queue_size = (
            queue_size
            if queue_size is not None
            else app_settings.OUTBOUND_QUEUE_SIZE
        )
        self.connections: dict[int, ClientConnection] = {}

    def __len__(self) -> int:
        return len(self.connections)

    def connect(self, websocket: WebSocket) -> ClientConnection:
        """
        Adds an accepted WebSocket and starts its writer task.

        Args:
            websocket: The WebSocket connection to be added.

        Returns:
            The ClientConnection handle for this session.
        """
        connection = ClientConnection(websocket, self.queue_size)
        connection.start_writer()
        self.connections[id(websocket)] = connection
        ws_connections_total.inc()
        ws_connections_active.set(len(self.connections))
        logger.debug(
            f"Connection {connection.connection_id} added to open connections"
        )
        return connection

    async def disconnect(self, websocket: WebSocket) -> None:
        """
        Removes a WebSocket and stops its writer task.

        Args:
            websocket: The WebSocket connection to remove.
        """
        connection = self.connections.pop(id(websocket), None)
        if connection is None:
            return

        ws_connections_active.set(len(self.connections))
        await connection.stop_writer()
        logger.debug(
            f"Connection {connection.connection_id} removed from open connections"
        )

    def open_connections(self) -> set[ClientConnection]:
        """Snapshot of the connections the transport currently holds open."""
        return set(self.connections.values())

    def broadcast(self, frame: str) -> int:
        """
        Queues a text frame on every connection in a ready state.

        Connections that are closing, closed or still connecting are
        skipped. A full queue on one peer drops the frame for that peer
        only.

        Args:
            frame: The serialized frame to deliver.

        Returns:
            Number of connections the frame was queued on.
        """
        delivered = 0
        for connection in list(self.connections.values()):
            if not connection.is_ready:
                continue
            if connection.enqueue(frame):
                delivered += 1
        return delivered

    async def close_all(self) -> None:
        """Close every open connection, used on shutdown."""
        for connection in list(self.connections.values()):
            try:
                await asyncio.wait_for(
                    connection.websocket.close(),
                    timeout=WS_CLOSE_TIMEOUT_SECONDS,
                )
            except (asyncio.TimeoutError, RuntimeError) as e:
                logger.warning(
                    f"Failed to close connection {connection.connection_id} "
                    f"on shutdown: {e}"
                )
            await self.disconnect(connection.websocket)
