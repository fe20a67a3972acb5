from typing import Any

from starlette import status
from starlette.endpoints import WebSocketEndpoint
from starlette.websockets import WebSocket

from chat_relay.hub import RelayHub
from chat_relay.logging import clear_log_context, logger, set_log_context


class RelayWebSocketEndpoint(WebSocketEndpoint):  # type: ignore[misc]
    """
    WebSocket endpoint bound to the application's RelayHub.

    Manages the connection lifecycle: the accepted socket joins the hub's
    open connection set on connect and leaves it on disconnect. The
    participant registry is not touched on disconnect; the
    liveness sweeper reconciles it.
    """

    encoding = None  # Accept text and binary frames, never close on type

    @property
    def hub(self) -> RelayHub:
        return self.scope["app"].state.relay

    async def dispatch(self) -> None:
        """
        Run the receive loop for one WebSocket session.

        Unlike the Starlette default, a frame that fails to decode never
        ends the session: decoding is left to the frame router, which drops
        bad frames and keeps reading.
        """
        websocket = WebSocket(self.scope, receive=self.receive, send=self.send)
        await self.on_connect(websocket)

        close_code = status.WS_1000_NORMAL_CLOSURE

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.receive":
                    data = await self.decode(websocket, message)
                    await self.on_receive(websocket, data)
                elif message["type"] == "websocket.disconnect":
                    close_code = int(
                        message.get("code") or status.WS_1000_NORMAL_CLOSURE
                    )
                    break
        except Exception as exc:
            close_code = status.WS_1011_INTERNAL_ERROR
            raise exc
        finally:
            await self.on_disconnect(websocket, close_code)

    async def decode(
        self, websocket: WebSocket, message: dict[str, Any]
    ) -> str | bytes:
        """
        Return the raw frame payload, text or bytes, without parsing it.
        """
        if message.get("text") is not None:
            return message["text"]
        return message.get("bytes") or b""

    async def on_connect(self, websocket: WebSocket) -> None:
        await super().on_connect(websocket)

        self.connection = self.hub.connections.connect(websocket)
        set_log_context(connection_id=self.connection.connection_id)

        client = websocket.client
        logger.info(
            f"WebSocket connection established with "
            f"{client.host if client else 'unknown'}:{client.port if client else '-'}"
        )

    async def on_disconnect(self, websocket: WebSocket, close_code: int) -> None:
        await super().on_disconnect(websocket, close_code)
        await self.hub.connections.disconnect(websocket)
        logger.info(f"Connection closed with code {close_code}")
        clear_log_context()
