from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from zonemgr.models.config_change import ConfigChange


def record_change(
    db: Session,
    *,
    entity_type: str,
    entity_id: int | None,
    action: str,
    actor: str | None = None,
    before_data: dict[str, Any] | None = None,
    after_data: dict[str, Any] | None = None,
    comment: str | None = None,
) -> ConfigChange:
    change = ConfigChange(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        actor=actor,
        before_data=before_data,
        after_data=after_data,
        comment=comment,
    )
    db.add(change)
    return change


def get_entity_history(
    db: Session,
    entity_type: str,
    entity_id: int | None = None,
    limit: int = 50,
) -> list[ConfigChange]:
    query = db.query(ConfigChange).filter(ConfigChange.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(ConfigChange.entity_id == entity_id)
    return query.order_by(ConfigChange.id.desc()).limit(limit).all()


def model_to_dict(obj: Any, exclude: set[str] | None = None) -> dict[str, Any]:
    """Column values of a mapped object, JSON-safe; secrets go in ``exclude``."""
    exclude = exclude or set()
    result = {}
    for attr in inspect(obj).mapper.column_attrs:
        if attr.key in exclude:
            continue
        val = getattr(obj, attr.key)
        if isinstance(val, (datetime, date)):
            val = val.isoformat()
        result[attr.key] = val
    return result
