"""
Prometheus metrics definitions.

All metrics are re-exported here so callers can import them directly:

    from chat_relay.utils.metrics import ws_connections_active
"""

from chat_relay.utils.metrics.websocket import (
    relay_participants,
    relay_sweeper_evictions_total,
    ws_broadcasts_total,
    ws_connections_active,
    ws_connections_total,
    ws_frame_routing_duration_seconds,
    ws_frames_discarded_total,
    ws_frames_dropped_total,
    ws_frames_received_total,
)

__all__ = [
    "relay_participants",
    "relay_sweeper_evictions_total",
    "ws_broadcasts_total",
    "ws_connections_active",
    "ws_connections_total",
    "ws_frame_routing_duration_seconds",
    "ws_frames_discarded_total",
    "ws_frames_dropped_total",
    "ws_frames_received_total",
]
