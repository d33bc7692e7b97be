from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from zonemgr.db.base import Base

if TYPE_CHECKING:
    from zonemgr.models.zone_server import ZoneServer


class Server(Base):
    __tablename__ = "servers"

    id: Mapped[int] = mapped_column(sa.Integer(), primary_key=True)
    name: Mapped[str] = mapped_column(sa.String(255), unique=True, nullable=False)
    dns_ip4: Mapped[str | None] = mapped_column(sa.String(45), nullable=True)
    dns_ip6: Mapped[str | None] = mapped_column(sa.String(45), nullable=True)

    api_ip: Mapped[str] = mapped_column(sa.String(45), default="127.0.0.1", nullable=False)
    api_token: Mapped[str | None] = mapped_column(sa.String(128), nullable=True)

    is_local: Mapped[bool] = mapped_column(sa.Boolean(), default=False, nullable=False)
    active: Mapped[bool] = mapped_column(sa.Boolean(), default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.text("NOW()")
    )

    assignments: Mapped[list[ZoneServer]] = relationship(
        "ZoneServer", back_populates="server", cascade="all, delete-orphan"
    )
