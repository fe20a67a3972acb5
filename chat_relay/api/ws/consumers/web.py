from fastapi import APIRouter
from starlette.websockets import WebSocket

from chat_relay.api.ws.handlers import load_handlers
from chat_relay.api.ws.websocket import RelayWebSocketEndpoint
from chat_relay.logging import logger
from chat_relay.routing import frame_router
from chat_relay.settings import app_settings

load_handlers()

router = APIRouter()


class Web(RelayWebSocketEndpoint):
    """
    The relay's WebSocket endpoint.

    Every received frame is handed to `frame_router`. Whatever happens to
    the frame, the session stays open and nothing is sent back to the
    sender directly; all output is broadcast.
    """

    async def on_receive(self, websocket: WebSocket, data: str | bytes) -> None:
        try:
            await frame_router.handle_frame(self.hub, self.connection, data)
        except Exception as ex:  # noqa: BLE001
            # A bug in one handler must not take the session down
            logger.error(
                f"Unexpected error while handling frame: {ex}", exc_info=True
            )


router.add_websocket_route(app_settings.WS_PATH, Web)
