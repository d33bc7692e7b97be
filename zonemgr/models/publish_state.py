from __future__ import annotations

from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from zonemgr.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PendingZone(Base):
    """A zone whose rendered file differs from what the servers currently hold."""

    __tablename__ = "pending_zones"

    zone_id: Mapped[int] = mapped_column(
        sa.Integer(), sa.ForeignKey("zones.id", ondelete="CASCADE"), primary_key=True
    )
    queued_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), default=_utcnow)


class PublishState(Base):
    """Single row; full_rebuild forces the next publish to cover every zone."""

    __tablename__ = "publish_state"

    id: Mapped[int] = mapped_column(sa.Integer(), primary_key=True)
    full_rebuild: Mapped[bool] = mapped_column(sa.Boolean(), default=False, nullable=False)
    last_publish_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True
    )
    last_publish_status: Mapped[str | None] = mapped_column(sa.String(10), nullable=True)
