from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from zonemgr.db.base import Base

if TYPE_CHECKING:
    from zonemgr.models.zone import Zone


class DynDnsAccount(Base):
    __tablename__ = "dyndns_accounts"

    id: Mapped[int] = mapped_column(sa.Integer(), primary_key=True)
    username: Mapped[str] = mapped_column(sa.String(100), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(sa.String(255), nullable=False)

    zone_id: Mapped[int] = mapped_column(
        sa.Integer(), sa.ForeignKey("zones.id", ondelete="CASCADE"), nullable=False
    )
    hostname: Mapped[str] = mapped_column(sa.String(255), nullable=False)

    current_ipv4: Mapped[str | None] = mapped_column(sa.String(45), nullable=True)
    current_ipv6: Mapped[str | None] = mapped_column(sa.String(45), nullable=True)
    last_update: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)

    zone: Mapped[Zone] = relationship("Zone")
