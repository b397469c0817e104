from __future__ import annotations

import redis.asyncio as redis
from .settings import REDIS_URL, QUEUE_NAME

r = redis.from_url(REDIS_URL, decode_responses=True)

def lease_lock_key(event_id: str) -> str:
    return f"hookci:lease_lock:{event_id}"

async def enqueue_event(event_id: str) -> None:
    await r.rpush(QUEUE_NAME, event_id)  # FIFO: push right

async def dequeue_event(timeout_s: int = 5) -> str | None:
    item = await r.blpop(QUEUE_NAME, timeout=timeout_s)  # FIFO: pop left
    if not item:
        return None
    _q, event_id = item
    return event_id

async def requeue_event(event_id: str) -> None:
    # back of the queue so a still-leased event does not block the ones behind it
    await r.rpush(QUEUE_NAME, event_id)
