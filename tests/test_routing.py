"""
Frame routing and handler tests.

This module tests dispatch by messageType, the register and chat handlers,
and that every silently dropped frame is reported with its DiscardReason.
"""

import asyncio
import json
import time
from unittest.mock import AsyncMock

import pytest

import chat_relay.api.ws.handlers  # noqa: F401  registers handlers
from chat_relay.constants import DiscardReason, MessageType
from chat_relay.exceptions import FrameDiscarded
from chat_relay.routing import FrameRouter, frame_router
from tests.mocks.websocket_mocks import (
    create_mock_websocket,
    flush_writers,
    sent_frames,
)


def connect(hub):
    """Open a connection on the hub, returning (websocket, connection)."""
    ws = create_mock_websocket()
    return ws, hub.connections.connect(ws)


class TestFrameRouterRegistration:
    """Tests for the FrameRouter.register decorator."""

    def test_handlers_registered_for_inbound_types(self):
        assert MessageType.REGISTER in frame_router.handlers_registry
        assert MessageType.MESSAGE in frame_router.handlers_registry
        assert MessageType.USERS not in frame_router.handlers_registry

    def test_register_is_idempotent_for_same_handler(self):
        router = FrameRouter()

        async def handler(hub, connection, envelope):
            pass

        router.register(MessageType.REGISTER)(handler)
        router.register(MessageType.REGISTER)(handler)

        assert router.handlers_registry[MessageType.REGISTER] is handler

    def test_register_rejects_conflicting_handler(self):
        router = FrameRouter()

        async def first(hub, connection, envelope):
            pass

        async def second(hub, connection, envelope):
            pass

        router.register(MessageType.REGISTER)(first)

        with pytest.raises(ValueError):
            router.register(MessageType.REGISTER)(second)

    @pytest.mark.asyncio
    async def test_dispatches_envelope_to_handler(self, hub):
        router = FrameRouter()
        handler = AsyncMock()
        handler.__name__ = "mock_handler"
        router.register(MessageType.MESSAGE)(handler)
        _, connection = connect(hub)

        outcome = await router.handle_frame(
            hub, connection, '{"messageType":"message","data":"x"}'
        )

        assert outcome.dispatched
        assert outcome.message_type == "message"
        handler.assert_awaited_once()
        called_hub, called_connection, envelope = handler.await_args.args
        assert called_hub is hub
        assert called_connection is connection
        assert envelope.data == "x"

    @pytest.mark.asyncio
    async def test_handler_discard_becomes_outcome(self, hub):
        router = FrameRouter()

        async def reject(hub, connection, envelope):
            raise FrameDiscarded(DiscardReason.MALFORMED_PAYLOAD, "nope")

        router.register(MessageType.MESSAGE)(reject)
        _, connection = connect(hub)

        outcome = await router.handle_frame(
            hub, connection, '{"messageType":"message"}'
        )

        assert not outcome.dispatched
        assert outcome.discard_reason == DiscardReason.MALFORMED_PAYLOAD


class TestRegisterHandler:
    """Tests for register frames."""

    @pytest.mark.asyncio
    async def test_register_broadcasts_roster(self, hub, register_frame):
        ws, connection = connect(hub)

        outcome = await frame_router.handle_frame(
            hub, connection, register_frame("alice")
        )
        await flush_writers()

        assert outcome.dispatched
        assert hub.registry.nicknames() == ["alice"]
        assert sent_frames(ws) == [
            {"messageType": "users", "dataArray": ["alice"]}
        ]

    @pytest.mark.asyncio
    async def test_roster_reaches_unregistered_connections(
        self, hub, register_frame
    ):
        _, alice = connect(hub)
        observer_ws, _ = connect(hub)

        await frame_router.handle_frame(hub, alice, register_frame("alice"))
        await flush_writers()

        assert sent_frames(observer_ws) == [
            {"messageType": "users", "dataArray": ["alice"]}
        ]

    @pytest.mark.asyncio
    async def test_roster_in_arrival_order(self, hub, register_frame):
        ws, alice = connect(hub)
        _, bob = connect(hub)
        _, carol = connect(hub)

        await frame_router.handle_frame(hub, bob, register_frame("bob"))
        await frame_router.handle_frame(hub, alice, register_frame("alice"))
        await frame_router.handle_frame(hub, carol, register_frame("carol"))
        await flush_writers()

        rosters = [frame["dataArray"] for frame in sent_frames(ws)]
        assert rosters == [
            ["bob"],
            ["bob", "alice"],
            ["bob", "alice", "carol"],
        ]
        assert rosters[-1].count("alice") == 1

    @pytest.mark.asyncio
    async def test_duplicate_nickname_accepted(self, hub, register_frame):
        ws, first = connect(hub)
        _, second = connect(hub)

        await frame_router.handle_frame(hub, first, register_frame("alice"))
        await frame_router.handle_frame(hub, second, register_frame("alice"))
        await flush_writers()

        assert sent_frames(ws)[-1]["dataArray"] == ["alice", "alice"]

    @pytest.mark.asyncio
    async def test_non_string_nickname_discarded(self, hub):
        ws, connection = connect(hub)

        outcome = await frame_router.handle_frame(
            hub, connection, '{"messageType":"register","data":42}'
        )
        await flush_writers()

        assert outcome.discard_reason == DiscardReason.INVALID_NICKNAME
        assert len(hub.registry) == 0
        ws.send_text.assert_not_called()

    @pytest.mark.asyncio
    async def test_concurrent_registrations_are_not_lost(
        self, hub, register_frame
    ):
        connections = [connect(hub)[1] for _ in range(10)]

        await asyncio.gather(
            *[
                frame_router.handle_frame(hub, connection, register_frame(f"user-{n}"))
                for n, connection in enumerate(connections)
            ]
        )

        assert sorted(hub.registry.nicknames()) == sorted(
            f"user-{n}" for n in range(10)
        )


class TestChatHandler:
    """Tests for chat message frames."""

    @pytest.mark.asyncio
    async def test_unregistered_sender_produces_no_output(
        self, hub, chat_frame
    ):
        ws, connection = connect(hub)
        other_ws, _ = connect(hub)

        outcome = await frame_router.handle_frame(
            hub, connection, chat_frame("hi")
        )
        await flush_writers()

        assert outcome.discard_reason == DiscardReason.UNREGISTERED_SENDER
        ws.send_text.assert_not_called()
        other_ws.send_text.assert_not_called()

    @pytest.mark.asyncio
    async def test_unregistered_sender_checked_before_payload(self, hub):
        _, connection = connect(hub)

        outcome = await frame_router.handle_frame(
            hub, connection, '{"messageType":"message","data":"{broken"}'
        )

        assert outcome.discard_reason == DiscardReason.UNREGISTERED_SENDER

    @pytest.mark.asyncio
    async def test_message_broadcast_to_everyone(
        self, hub, register_frame, chat_frame
    ):
        alice_ws, alice = connect(hub)
        bob_ws, bob = connect(hub)
        await frame_router.handle_frame(hub, alice, register_frame("alice"))
        await frame_router.handle_frame(hub, bob, register_frame("bob"))
        await flush_writers()
        alice_ws.send_text.reset_mock()
        bob_ws.send_text.reset_mock()

        before = time.time_ns() // 1_000_000
        outcome = await frame_router.handle_frame(hub, alice, chat_frame("hi"))
        after = time.time_ns() // 1_000_000
        await flush_writers()

        assert outcome.dispatched
        for ws in (alice_ws, bob_ws):
            (envelope,) = sent_frames(ws)
            assert envelope["messageType"] == "message"
            assert set(envelope) == {"messageType", "data"}
            payload = json.loads(envelope["data"])
            assert payload["from"] == "alice"
            assert payload["message"] == "hi"
            assert before <= payload["time"] <= after
            assert "reply_to" not in payload

    @pytest.mark.asyncio
    async def test_reply_to_echoed_unmodified(
        self, hub, register_frame, chat_frame
    ):
        ws, alice = connect(hub)
        await frame_router.handle_frame(hub, alice, register_frame("alice"))
        reply = {"id": 7, "from": "ghost", "message": "never sent", "x": [1, None]}

        await frame_router.handle_frame(
            hub, alice, chat_frame("answer", reply_to=reply)
        )
        await flush_writers()

        payload = json.loads(sent_frames(ws)[-1]["data"])
        assert payload["reply_to"] == reply

    @pytest.mark.asyncio
    async def test_sender_nickname_is_snapshot(
        self, hub, register_frame, chat_frame
    ):
        ws, alice = connect(hub)
        await frame_router.handle_frame(hub, alice, register_frame("alice"))
        await frame_router.handle_frame(hub, alice, chat_frame("one"))

        hub.registry.find_by_session(alice).nickname = "renamed"
        await frame_router.handle_frame(hub, alice, chat_frame("two"))
        await flush_writers()

        senders = [
            json.loads(frame["data"])["from"]
            for frame in sent_frames(ws)
            if frame["messageType"] == "message"
        ]
        assert senders == ["alice", "renamed"]

    @pytest.mark.asyncio
    async def test_messages_delivered_in_processing_order(
        self, hub, register_frame, chat_frame
    ):
        ws, alice = connect(hub)
        _, bob = connect(hub)
        await frame_router.handle_frame(hub, alice, register_frame("alice"))
        await frame_router.handle_frame(hub, bob, register_frame("bob"))

        for n in range(5):
            sender = alice if n % 2 == 0 else bob
            await frame_router.handle_frame(hub, sender, chat_frame(f"m{n}"))
        await flush_writers()

        texts = [
            json.loads(frame["data"])["message"]
            for frame in sent_frames(ws)
            if frame["messageType"] == "message"
        ]
        assert texts == ["m0", "m1", "m2", "m3", "m4"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("data", "reason"),
        [
            ('"not json"', DiscardReason.MALFORMED_PAYLOAD),
            ('"{\\"text\\": 1}"', DiscardReason.MALFORMED_PAYLOAD),
            ("null", DiscardReason.MALFORMED_PAYLOAD),
            (
                json.dumps(json.dumps({"text": "hi", "reply_to": "{bad"})),
                DiscardReason.MALFORMED_REPLY,
            ),
        ],
    )
    async def test_malformed_chat_payload_discarded(
        self, hub, register_frame, data, reason
    ):
        ws, alice = connect(hub)
        await frame_router.handle_frame(hub, alice, register_frame("alice"))
        await flush_writers()
        ws.send_text.reset_mock()

        outcome = await frame_router.handle_frame(
            hub, alice, f'{{"messageType":"message","data":{data}}}'
        )
        await flush_writers()

        assert outcome.discard_reason == reason
        ws.send_text.assert_not_called()


class TestDiscardedFrames:
    """Tests for frames dropped before reaching a handler."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw", ["", "{", "[1,2]", b"\x00\xff", '{"data":"x"}'])
    async def test_malformed_envelope(self, hub, raw):
        ws, connection = connect(hub)

        outcome = await frame_router.handle_frame(hub, connection, raw)

        assert outcome.discard_reason == DiscardReason.MALFORMED_ENVELOPE
        assert outcome.message_type is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message_type", ["users", "ping", "REGISTER", ""])
    async def test_unknown_message_type_ignored(self, hub, message_type):
        ws, connection = connect(hub)

        outcome = await frame_router.handle_frame(
            hub,
            connection,
            json.dumps({"messageType": message_type, "data": "alice"}),
        )
        await flush_writers()

        assert outcome.discard_reason == DiscardReason.UNKNOWN_MESSAGE_TYPE
        assert outcome.message_type == message_type
        assert len(hub.registry) == 0
        ws.send_text.assert_not_called()

    @pytest.mark.asyncio
    async def test_frame_after_malformed_one_is_processed(
        self, hub, register_frame
    ):
        ws, connection = connect(hub)

        await frame_router.handle_frame(hub, connection, "}{")
        outcome = await frame_router.handle_frame(
            hub, connection, register_frame("alice")
        )
        await flush_writers()

        assert outcome.dispatched
        assert sent_frames(ws) == [
            {"messageType": "users", "dataArray": ["alice"]}
        ]
        ws.close.assert_not_called()
