from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from zonemgr.db.base import Base
from zonemgr.models import server as _server  # noqa: F401

if TYPE_CHECKING:
    from zonemgr.models.server import Server
    from zonemgr.models.zone import Zone


class Record(Base):
    __tablename__ = "records"

    id: Mapped[int] = mapped_column(sa.Integer(), primary_key=True)
    zone_id: Mapped[int] = mapped_column(
        sa.Integer(), sa.ForeignKey("zones.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    type: Mapped[str] = mapped_column(sa.String(10), nullable=False)
    content: Mapped[str] = mapped_column(sa.Text(), nullable=False)
    ttl: Mapped[int | None] = mapped_column(sa.Integer(), nullable=True)

    # Set only on NS/glue rows generated from the zone's server assignment
    server_id: Mapped[int | None] = mapped_column(
        sa.Integer(), sa.ForeignKey("servers.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.text("NOW()")
    )

    zone: Mapped[Zone] = relationship("Zone", back_populates="records")
    server: Mapped[Server | None] = relationship("Server")
