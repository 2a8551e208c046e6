"""
backend/groombook/services/events.py

Event emitter: pushes appointment events to a Redis list consumed by the
notification service (SMS/email delivery and its retries live there).

Queue:
- events:p2p: instant delivery (confirmation to the booking customer)
"""

import json
import time
import logging

from ..redis_client import redis_client

logger = logging.getLogger(__name__)

P2P_QUEUE = "events:p2p"


def emit_event(event_type: str, payload: dict) -> None:
    """
    Emit a p2p event (instant delivery).

    Fire-and-forget: a Redis failure is logged and swallowed so it can
    never undo the write that triggered it.
    """
    event = {
        "type": event_type,
        **payload,
        "ts": int(time.time()),
    }
    try:
        redis_client.rpush(P2P_QUEUE, json.dumps(event, default=str))
        logger.info(f"Event emitted: {event_type} → {P2P_QUEUE}")
    except Exception as e:
        logger.error(f"Failed to emit event {event_type}: {e}")
