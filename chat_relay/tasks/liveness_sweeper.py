"""
Liveness sweeper task.

Disconnects are never reported to the participant registry directly.
Instead this task periodically compares the registry against the set of
connections the transport still holds open, evicts participants whose
connection is gone and, if anything changed, broadcasts the new roster.
A departed participant therefore stays on the roster for at most one
sweep interval.
"""

import asyncio

from chat_relay.constants import TASK_ERROR_BACKOFF_SECONDS
from chat_relay.hub import RelayHub
from chat_relay.logging import logger
from chat_relay.settings import app_settings
from chat_relay.utils.metrics import relay_sweeper_evictions_total


def sweep(hub: RelayHub) -> bool:
    """
    Run one reconciliation pass.

    Args:
        hub: Relay whose registry is reconciled.

    Returns:
        True if participants were evicted and a roster was broadcast.
    """
    before = len(hub.registry)
    changed = hub.registry.reconcile(hub.connections.open_connections())
    if not changed:
        return False

    evicted = before - len(hub.registry)
    relay_sweeper_evictions_total.inc(evicted)
    logger.info(f"Liveness sweep evicted {evicted} participant(s)")
    hub.broadcast_roster()
    return True


async def liveness_sweeper_task(
    hub: RelayHub, interval: float | None = None
) -> None:
    """
    Sweep `hub` every `interval` seconds until cancelled.

    Args:
        hub: Relay to keep reconciled.
        interval: Seconds between sweeps, defaults to SWEEP_INTERVAL_SECONDS.
    """
    interval = interval if interval is not None else app_settings.SWEEP_INTERVAL_SECONDS
    logger.info(f"Starting liveness sweeper (interval {interval}s)")

    while True:
        try:
            await asyncio.sleep(interval)
            sweep(hub)

        except asyncio.CancelledError:
            logger.info("Liveness sweeper task cancelled!")
            break

        except Exception as ex:  # noqa: BLE001
            logger.error(f"Liveness sweeper error occurred with: {ex}", exc_info=True)
            await asyncio.sleep(TASK_ERROR_BACKOFF_SECONDS)
