from __future__ import annotations

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from zonemgr.db.base import Base


class SystemSetting(Base):
    __tablename__ = "settings"

    id: Mapped[int] = mapped_column(sa.Integer(), primary_key=True)
    key: Mapped[str] = mapped_column(sa.String(64), unique=True, nullable=False)
    value: Mapped[str] = mapped_column(sa.Text(), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True), onupdate=sa.text("NOW()"), nullable=True
    )


DEFAULTS = {
    "diagnostic_log_retention": "30D",
    "monitoring_check_zones": "true",
}


def get_setting(db, key: str) -> str:
    row = db.query(SystemSetting).filter(SystemSetting.key == key).one_or_none()
    if row:
        return row.value
    return DEFAULTS.get(key, "")


def set_setting(db, key: str, value: str) -> None:
    row = db.query(SystemSetting).filter(SystemSetting.key == key).one_or_none()
    if row:
        row.value = value
    else:
        row = SystemSetting(key=key, value=value)
        db.add(row)
    db.commit()


def get_diagnostic_log_retention(db) -> str:
    return get_setting(db, "diagnostic_log_retention") or "30D"


def monitoring_checks_zones(db) -> bool:
    return get_setting(db, "monitoring_check_zones").lower() == "true"
