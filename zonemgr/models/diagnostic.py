from __future__ import annotations

from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from zonemgr.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Diagnostic(Base):
    __tablename__ = "diagnostics"
    __table_args__ = (
        sa.UniqueConstraint(
            "target_type", "target_id", "check_type", "server_id", name="uq_diagnostics_target"
        ),
    )

    id: Mapped[int] = mapped_column(sa.Integer(), primary_key=True)
    target_type: Mapped[str] = mapped_column(sa.String(20), nullable=False)
    target_id: Mapped[int] = mapped_column(sa.Integer(), nullable=False, index=True)
    server_id: Mapped[int | None] = mapped_column(
        sa.Integer(), sa.ForeignKey("servers.id", ondelete="CASCADE"), nullable=True
    )
    check_type: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    status: Mapped[str] = mapped_column(sa.String(10), nullable=False)
    message: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    notified: Mapped[bool] = mapped_column(sa.Boolean(), default=False, nullable=False)
    last_check: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )


class DiagnosticLog(Base):
    __tablename__ = "diagnostic_log"

    id: Mapped[int] = mapped_column(sa.Integer(), primary_key=True)
    target_type: Mapped[str] = mapped_column(sa.String(20), nullable=False)
    target_id: Mapped[int] = mapped_column(sa.Integer(), nullable=False)
    server_id: Mapped[int | None] = mapped_column(sa.Integer(), nullable=True)
    check_type: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    old_status: Mapped[str] = mapped_column(sa.String(10), nullable=False)
    new_status: Mapped[str] = mapped_column(sa.String(10), nullable=False)
    message: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    changed_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, index=True
    )
