import os
import pkgutil
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from importlib import import_module
from typing import TYPE_CHECKING

from fastapi import APIRouter

from chat_relay.constants import DiscardReason, MessageType
from chat_relay.exceptions import FrameDiscarded
from chat_relay.logging import logger
from chat_relay.managers.websocket_connection_manager import ClientConnection
from chat_relay.schemas.inbound import InboundEnvelope
from chat_relay.utils.metrics import (
    ws_frame_routing_duration_seconds,
    ws_frames_discarded_total,
    ws_frames_received_total,
)

if TYPE_CHECKING:
    from chat_relay.hub import RelayHub

HandlerCallableType = Callable[
    ["RelayHub", ClientConnection, InboundEnvelope], Awaitable[None]
]


@dataclass(frozen=True)
class RouteOutcome:
    """
    Result of routing one inbound frame.

    Attributes:
        message_type: The envelope's messageType, None if the envelope
            itself could not be decoded.
        discard_reason: Set when the frame was dropped, None when its
            handler ran to completion.
    """

    message_type: str | None
    discard_reason: DiscardReason | None = None

    @property
    def dispatched(self) -> bool:
        return self.discard_reason is None


class FrameRouter:
    """
    Router for inbound WebSocket frames.

    Dispatches each frame to the handler registered for its `messageType`.
    Frames that cannot be decoded, that have no handler, or that a handler
    rejects are dropped: nothing is sent back and the connection stays open.
    """

    def __init__(self) -> None:
        self.handlers_registry: dict[MessageType, HandlerCallableType] = {}

    def register(self, *message_types: MessageType):
        """
        Decorator registering a handler for one or more message types.

        Args:
            *message_types: Envelope `messageType` values the handler serves.

        Returns:
            A decorator function that can be used to register a handler function.
        """

        def decorator(func: HandlerCallableType):
            for message_type in message_types:
                # Idempotent for module reloads
                if message_type in self.handlers_registry:
                    if self.handlers_registry[message_type] != func:
                        raise ValueError(
                            f"Different handler already registered for messageType {message_type}"
                        )
                    continue

                self.handlers_registry[message_type] = func
                logger.info(
                    f"Register {func.__module__}.{func.__name__} for messageType: {message_type}"
                )

            return func

        return decorator

    def _has_handler(self, message_type: str) -> bool:
        return message_type in self.handlers_registry

    async def handle_frame(
        self, hub: "RelayHub", connection: ClientConnection, raw: str | bytes
    ) -> RouteOutcome:
        """
        Decode, dispatch and account for one inbound frame.

        Args:
            hub: Relay state the handler operates on.
            connection: Connection the frame arrived on.
            raw: The frame's text.

        Returns:
            RouteOutcome describing whether the frame was handled or why it
            was dropped.
        """
        ws_frames_received_total.inc()
        start_time = time.perf_counter()
        message_type: str | None = None

        try:
            envelope = InboundEnvelope.from_wire(raw)
            message_type = envelope.message_type

            if not self._has_handler(message_type):
                raise FrameDiscarded(
                    DiscardReason.UNKNOWN_MESSAGE_TYPE,
                    f"No handler found for messageType {message_type!r}",
                )

            handler = self.handlers_registry[MessageType(message_type)]
            await handler(hub, connection, envelope)
        except FrameDiscarded as ex:
            ws_frames_discarded_total.labels(reason=ex.reason.value).inc()
            logger.info(
                f"Discarded frame from connection {connection.connection_id} "
                f"({ex.reason}): {ex.message}"
            )
            return RouteOutcome(message_type, ex.reason)

        ws_frame_routing_duration_seconds.labels(
            message_type=message_type
        ).observe(time.perf_counter() - start_time)
        return RouteOutcome(message_type)


frame_router = FrameRouter()


# Track registered modules to prevent duplicate logging
_registered_http_modules: set[str] = set()
_registered_ws_modules: set[str] = set()


def collect_subrouters() -> APIRouter:
    """
    Collects the HTTP and WebSocket routers of the application.

    Every module in `api/http` and `api/ws/consumers` is imported and its
    module-level `router` included in the returned APIRouter.
    """
    main_router: APIRouter = APIRouter()

    app_dir = os.path.dirname(__file__)
    app_name = os.path.basename(app_dir)

    for _, module, _ in pkgutil.iter_modules([f"{app_dir}/api/http"]):
        api = import_module(f".{module}", package=f"{app_name}.api.http")
        main_router.include_router(api.router)

        # Only log on first registration
        if module not in _registered_http_modules:
            logger.info(f'Register "{module}" api')
            _registered_http_modules.add(module)

    for _, module, _ in pkgutil.iter_modules([f"{app_dir}/api/ws/consumers"]):
        ws_consumer = import_module(
            f".{module}", package=f"{app_name}.api.ws.consumers"
        )
        main_router.include_router(ws_consumer.router)

        if module not in _registered_ws_modules:
            logger.info(f'Register "{module}" websocket consumer')
            _registered_ws_modules.add(module)

    return main_router
