from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from datetime import datetime

TERMINAL_STATUSES = ("ok", "failed", "noop")

class Base(DeclarativeBase):
    pass

class EventRecord(Base):
    __tablename__ = "events"
    id: Mapped[str] = mapped_column(UUID(as_uuid=True), primary_key=True, server_default=sa.text("uuid_generate_v4()"))
    event_type: Mapped[str] = mapped_column(sa.Text, nullable=False)
    build_id: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    ref: Mapped[str] = mapped_column(sa.Text, nullable=False, server_default="")
    commit: Mapped[str] = mapped_column(sa.Text, nullable=False, server_default="")
    payload_json: Mapped[dict] = mapped_column(JSONB, nullable=False, server_default=sa.text("'{}'::jsonb"))
    status: Mapped[str] = mapped_column(sa.Text, nullable=False)
    verdict_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    logs: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False)

class Lease(Base):
    __tablename__ = "leases"
    event_id: Mapped[str] = mapped_column(UUID(as_uuid=True), sa.ForeignKey("events.id", ondelete="CASCADE"), primary_key=True)
    agent_id: Mapped[str] = mapped_column(sa.Text, nullable=False)
    leased_at: Mapped[datetime] = mapped_column(sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(sa.TIMESTAMP(timezone=True), nullable=False)
