"""
Prometheus metrics for WebSocket connections and relay traffic.

This module defines metrics for tracking connections, inbound frames and
why they were dropped, broadcasts, per-peer delivery drops and the
liveness sweeper.
"""

from chat_relay.utils.metrics._helpers import (
    _get_or_create_counter,
    _get_or_create_gauge,
    _get_or_create_histogram,
)

# WebSocket Connection Metrics
ws_connections_active = _get_or_create_gauge(
    "ws_connections_active", "Number of open WebSocket connections"
)

ws_connections_total = _get_or_create_counter(
    "ws_connections_total", "Total accepted WebSocket connections"
)

# Inbound frames
ws_frames_received_total = _get_or_create_counter(
    "ws_frames_received_total", "Total inbound WebSocket frames"
)

ws_frames_discarded_total = _get_or_create_counter(
    "ws_frames_discarded_total",
    "Inbound frames dropped without reply",
    ["reason"],
)

ws_frame_routing_duration_seconds = _get_or_create_histogram(
    "ws_frame_routing_duration_seconds",
    "Time spent decoding and dispatching one inbound frame",
    ["message_type"],
    buckets=(0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1),
)

# Outbound traffic
ws_broadcasts_total = _get_or_create_counter(
    "ws_broadcasts_total",
    "Total broadcasts fanned out",
    ["message_type"],
)

ws_frames_dropped_total = _get_or_create_counter(
    "ws_frames_dropped_total",
    "Outbound frames not delivered to a peer",
    ["cause"],  # queue_full, send_failed
)

# Registry and sweeper
relay_participants = _get_or_create_gauge(
    "relay_participants", "Number of registered participants"
)

relay_sweeper_evictions_total = _get_or_create_counter(
    "relay_sweeper_evictions_total",
    "Participants evicted by the liveness sweeper",
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
