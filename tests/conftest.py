"""
Pytest configuration and fixtures for testing.

This module provides shared fixtures for relay state, connections and the
FastAPI application.
"""

import json

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from chat_relay import application
from chat_relay.hub import RelayHub
from chat_relay.managers.participant_registry import ParticipantRegistry
from chat_relay.managers.websocket_connection_manager import ConnectionManager


@pytest_asyncio.fixture
async def hub():
    """
    Provides an empty RelayHub and closes its connections afterwards, so
    no writer task outlives the test.

    Yields:
        RelayHub: Relay with an empty registry and no connections
    """
    relay = RelayHub(ParticipantRegistry(), ConnectionManager(queue_size=16))
    yield relay
    await relay.connections.close_all()


@pytest.fixture
def register_frame():
    """
    Builds a raw register frame.

    Returns:
        Callable[[str], str]: nickname -> frame text
    """

    def build(nickname):
        return json.dumps({"messageType": "register", "data": nickname})

    return build


@pytest.fixture
def chat_frame():
    """
    Builds a raw chat frame with the nested JSON-in-JSON payload.

    Returns:
        Callable[..., str]: (text, reply_to=None) -> frame text
    """

    def build(text, reply_to=None):
        payload = {"text": text}
        if reply_to is not None:
            payload["reply_to"] = json.dumps(reply_to)
        return json.dumps({"messageType": "message", "data": json.dumps(payload)})

    return build


@pytest.fixture
def app():
    """
    Create the full relay application with its own RelayHub.

    Returns:
        FastAPI: FastAPI application instance.
    """
    return application()


@pytest.fixture
def client(app):
    """
    Create a test client with the application lifespan running.

    Yields:
        TestClient: FastAPI test client instance.
    """
    with TestClient(app) as test_client:
        yield test_client
