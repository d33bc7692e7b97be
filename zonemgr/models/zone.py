from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from zonemgr.db.base import Base

# Registers the related mappers whenever zones are loaded.
from zonemgr.models import publish_state as _publish_state  # noqa: F401
from zonemgr.models import record as _record  # noqa: F401
from zonemgr.models import zone_server as _zone_server  # noqa: F401

if TYPE_CHECKING:
    from zonemgr.models.publish_state import PendingZone
    from zonemgr.models.record import Record
    from zonemgr.models.server import Server
    from zonemgr.models.zone_server import ZoneServer


class Zone(Base):
    __tablename__ = "zones"

    id: Mapped[int] = mapped_column(sa.Integer(), primary_key=True)
    name: Mapped[str] = mapped_column(sa.String(255), unique=True, nullable=False)
    type: Mapped[str] = mapped_column(sa.String(10), default="forward", nullable=False)
    ttl: Mapped[int] = mapped_column(sa.Integer(), default=86400, nullable=False)
    prefix_length: Mapped[int | None] = mapped_column(sa.Integer(), nullable=True)
    description: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)

    soa_ns: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    soa_mail: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    soa_serial: Mapped[int] = mapped_column(sa.BigInteger(), nullable=False)
    soa_refresh: Mapped[int] = mapped_column(sa.Integer(), default=3600, nullable=False)
    soa_retry: Mapped[int] = mapped_column(sa.Integer(), default=900, nullable=False)
    soa_expire: Mapped[int] = mapped_column(sa.Integer(), default=1209600, nullable=False)
    soa_minimum: Mapped[int] = mapped_column(sa.Integer(), default=86400, nullable=False)

    allow_dyndns: Mapped[bool] = mapped_column(sa.Boolean(), default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.text("NOW()")
    )

    records: Mapped[list[Record]] = relationship(
        "Record", back_populates="zone", cascade="all, delete-orphan"
    )
    assignments: Mapped[list[ZoneServer]] = relationship(
        "ZoneServer", back_populates="zone", cascade="all, delete-orphan"
    )
    pending: Mapped[PendingZone | None] = relationship(
        "PendingZone", uselist=False, cascade="all, delete-orphan"
    )

    @property
    def changed(self) -> bool:
        return self.pending is not None

    @property
    def is_reverse(self) -> bool:
        return self.type == "reverse"

    @property
    def servers(self) -> list[Server]:
        return [a.server for a in self.assignments]

    @property
    def master(self) -> Server | None:
        for a in self.assignments:
            if a.is_master:
                return a.server
        return None
