from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable

from fastapi.encoders import jsonable_encoder

from app.core.logging import get_audit_logger


def serialize_for_audit(value: Any) -> Any:
    return jsonable_encoder(
        value,
        custom_encoder={
            Decimal: lambda v: str(v),
            datetime: lambda v: v.isoformat(),
            date: lambda v: v.isoformat(),
        },
    )


def model_snapshot(model: Any, *, include: Iterable[str] | None = None) -> dict[str, Any]:
    if model is None:
        return {}
    wanted = set(include or [])
    data: dict[str, Any] = {}
    for column in model.__table__.columns:
        attr = column.key
        if wanted and attr not in wanted:
            continue
        data[attr] = getattr(model, attr)
    return serialize_for_audit(data)


def diff_values(old: Any, new: Any, prefix: str = "") -> dict[str, dict[str, Any]]:
    changes: dict[str, dict[str, Any]] = {}
    if isinstance(old, dict) and isinstance(new, dict):
        for key in set(old.keys()) | set(new.keys()):
            path = f"{prefix}.{key}" if prefix else str(key)
            changes.update(diff_values(old.get(key), new.get(key), path))
        return changes
    if old != new:
        changes[prefix or "value"] = {"from": old, "to": new}
    return changes


def _build_summary(action: str, changes: dict[str, dict[str, Any]] | None) -> str:
    if not changes:
        return action
    keys = sorted(changes.keys())
    snippet = ", ".join(keys[:3])
    suffix = "..." if len(keys) > 3 else ""
    return f"{action}: {snippet}{suffix}"


def record_audit_event(
    *,
    actor: str | None,
    action: str,
    resource_type: str,
    resource_id: str,
    old_value: Any | None = None,
    new_value: Any | None = None,
    team: str | None = None,
) -> dict[str, Any]:
    """Write one structured line to the ``app.audit`` stream and return it."""
    serialized_old = serialize_for_audit(old_value) if old_value is not None else None
    serialized_new = serialize_for_audit(new_value) if new_value is not None else None
    changes = None
    if serialized_old is not None or serialized_new is not None:
        changes = diff_values(serialized_old or {}, serialized_new or {}) or None
    entry = {
        "audit_actor": actor,
        "audit_team": team,
        "audit_action": action,
        "resource_type": resource_type,
        "resource_id": resource_id,
        "changes": changes,
    }
    get_audit_logger().info(_build_summary(action, changes), extra=entry)
    return entry
