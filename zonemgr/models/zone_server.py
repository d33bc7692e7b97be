from __future__ import annotations

from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from zonemgr.db.base import Base
from zonemgr.models import server as _server  # noqa: F401

if TYPE_CHECKING:
    from zonemgr.models.server import Server
    from zonemgr.models.zone import Zone


class ZoneServer(Base):
    __tablename__ = "zone_servers"

    zone_id: Mapped[int] = mapped_column(
        sa.Integer(), sa.ForeignKey("zones.id", ondelete="CASCADE"), primary_key=True
    )
    server_id: Mapped[int] = mapped_column(
        sa.Integer(), sa.ForeignKey("servers.id", ondelete="CASCADE"), primary_key=True
    )
    is_master: Mapped[bool] = mapped_column(sa.Boolean(), default=False, nullable=False)

    zone: Mapped[Zone] = relationship("Zone", back_populates="assignments")
    server: Mapped[Server] = relationship("Server", back_populates="assignments")
