from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Body, FastAPI, Header, HTTPException, Response

from ..errors import ValidationError
from ..events import event_from_github
from .db import SessionLocal, engine
from .models import Base, EventRecord, Lease, TERMINAL_STATUSES
from .redisq import enqueue_event, dequeue_event, requeue_event, r, lease_lock_key
from .schemas import (
    ClaimRequest,
    ClaimedEvent,
    CompleteRequest,
    CreateEventRequest,
    CreateEventResponse,
    EventResponse,
)
from .settings import LEASE_SECONDS

app = FastAPI(title="hookci event gateway")

# skip this many still-leased or finished entries before giving up on a claim
MAX_CLAIM_ATTEMPTS = 10

# -------------------- Startup --------------------

@app.on_event("startup")
async def startup() -> None:
    # Creates tables if they don't exist. (You still need the uuid-ossp extension.)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

def now_utc() -> datetime:
    return datetime.now(timezone.utc)

async def _store_and_enqueue(req: CreateEventRequest) -> CreateEventResponse:
    async with SessionLocal() as s:
        async with s.begin():
            record = EventRecord(
                event_type=req.event_type,
                build_id=req.build_id,
                ref=req.ref,
                commit=req.commit,
                payload_json=req.payload_json,
                status="queued",
            )
            s.add(record)
            await s.flush()
            event_id = str(record.id)

    # push to Redis after DB commit
    await enqueue_event(event_id)
    return CreateEventResponse(event_id=event_id, event_type=req.event_type)

# -------------------- Endpoints --------------------

@app.post("/events", response_model=CreateEventResponse)
async def create_event(req: CreateEventRequest):
    return await _store_and_enqueue(req)

@app.post("/webhooks/github", response_model=CreateEventResponse)
async def github_webhook(
    payload: dict[str, Any] = Body(...),
    x_github_event: str = Header(...),
    x_github_delivery: str | None = Header(default=None),
):
    try:
        event = event_from_github(x_github_event, payload, x_github_delivery)
        req = CreateEventRequest(
            event_type=event.type,
            payload_json=payload,
            build_id=event.build_id or None,
            ref=event.revision.ref,
            commit=event.revision.commit,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ValueError as e:
        # unrouted GitHub events (ping, pull_request, ...) are rejected by the schema
        raise HTTPException(status_code=422, detail=str(e))
    return await _store_and_enqueue(req)

@app.post("/leases/claim", response_model=ClaimedEvent)
async def claim(req: ClaimRequest):
    requeued: set[str] = set()
    for _ in range(MAX_CLAIM_ATTEMPTS):
        event_id = await dequeue_event(timeout_s=5)
        if not event_id:
            return Response(status_code=204)
        if event_id in requeued:
            # went round the whole queue; everything left is still leased
            await requeue_event(event_id)
            return Response(status_code=204)

        # Lock in Redis to reduce duplicate leasing during retries
        lock_key = lease_lock_key(event_id)
        got_lock = await r.set(lock_key, req.agent_id, nx=True, ex=LEASE_SECONDS)
        if not got_lock:
            continue

        expires_at = now_utc() + timedelta(seconds=LEASE_SECONDS)

        async with SessionLocal() as s:
            async with s.begin():
                record = await s.get(EventRecord, uuid.UUID(event_id))
                if not record or record.status in TERMINAL_STATUSES:
                    await r.delete(lock_key)
                    continue

                lease = await s.get(Lease, uuid.UUID(event_id))
                if lease and lease.expires_at > now_utc():
                    await r.delete(lock_key)
                    await requeue_event(event_id)
                    requeued.add(event_id)
                    continue

                if lease:
                    lease.agent_id = req.agent_id
                    lease.leased_at = now_utc()
                    lease.expires_at = expires_at
                else:
                    s.add(Lease(event_id=uuid.UUID(event_id), agent_id=req.agent_id, leased_at=now_utc(), expires_at=expires_at))

                record.status = "leased"

                return ClaimedEvent(
                    event_id=event_id,
                    event_type=record.event_type,
                    payload_json=record.payload_json,
                    build_id=record.build_id or event_id,
                    ref=record.ref,
                    commit=record.commit,
                    lease_expires_at=expires_at.isoformat(),
                )

    return Response(status_code=204)

@app.post("/leases/{event_id}/complete")
async def complete(event_id: str, req: CompleteRequest):
    async with SessionLocal() as s:
        async with s.begin():
            record = await s.get(EventRecord, uuid.UUID(event_id))
            if not record:
                raise HTTPException(status_code=404, detail="Event not found")

            lease = await s.get(Lease, uuid.UUID(event_id))
            if not lease:
                raise HTTPException(status_code=409, detail="No lease for event")
            if lease.agent_id != req.agent_id:
                raise HTTPException(status_code=403, detail="Lease owned by different agent")

            logs = req.details.get("logs", "")
            record.logs = logs if logs else None
            record.verdict_json = req.details.get("verdict")
            record.status = req.status
            await s.delete(lease)

    await r.delete(lease_lock_key(event_id))
    return {"ok": True}

@app.get("/events/{event_id}", response_model=EventResponse)
async def get_event(event_id: str):
    """Get an event with its verdict and logs."""
    async with SessionLocal() as s:
        record = await s.get(EventRecord, uuid.UUID(event_id))
        if not record:
            raise HTTPException(status_code=404, detail="Event not found")

        return EventResponse(
            id=str(record.id),
            event_type=record.event_type,
            build_id=record.build_id,
            ref=record.ref,
            commit=record.commit,
            status=record.status,
            verdict=record.verdict_json,
            logs=record.logs,
            created_at=record.created_at,
        )
