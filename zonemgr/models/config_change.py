from __future__ import annotations

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from zonemgr.db.base import Base

# JSONB on PostgreSQL, plain JSON on SQLite
JSONVariant = sa.JSON().with_variant(JSONB, "postgresql")


class ConfigChange(Base):
    """One mutation of a zone, record or server with its before/after snapshot."""

    __tablename__ = "config_changes"
    __table_args__ = (sa.Index("ix_config_changes_entity", "entity_type", "entity_id"),)

    id: Mapped[int] = mapped_column(sa.Integer(), primary_key=True)

    entity_type: Mapped[str] = mapped_column(sa.String(20))
    entity_id: Mapped[int | None] = mapped_column(sa.Integer(), nullable=True)

    # create, update, delete
    action: Mapped[str] = mapped_column(sa.String(20))
    actor: Mapped[str | None] = mapped_column(sa.String(100), nullable=True)

    before_data: Mapped[dict[str, Any] | None] = mapped_column(JSONVariant, nullable=True)
    after_data: Mapped[dict[str, Any] | None] = mapped_column(JSONVariant, nullable=True)

    comment: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.text("NOW()"), index=True
    )

    def changed_fields(self) -> list[str]:
        """Keys whose value differs between the two snapshots."""
        before = self.before_data or {}
        after = self.after_data or {}
        return sorted(k for k in set(before) | set(after) if before.get(k) != after.get(k))
