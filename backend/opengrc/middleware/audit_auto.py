"""
Automatic audit logging for SQLAlchemy model changes.

Hooks into SQLAlchemy ORM events to capture INSERT, UPDATE and DELETE
operations and persist them as AuditLog entries without manual calls in
every router. Bulk ``delete()`` statements bypass the ORM and are not
recorded.

Usage:
    from opengrc.middleware.audit_auto import install_audit_listeners, set_audit_context

    install_audit_listeners()          # once, at startup
    set_audit_context(user_id="alice", ip_address=request.client.host)
"""
from __future__ import annotations

import contextvars
import json
import logging
from datetime import date, datetime
from typing import Any

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from opengrc.models.audit import AuditLog
from opengrc.models.base import Base

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Context variables – set per-request so event listeners can read them.
# ---------------------------------------------------------------------------
_ctx_user_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "_ctx_user_id", default=None
)
_ctx_ip_address: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "_ctx_ip_address", default=None
)

_installed = False


def set_audit_context(
    *,
    user_id: str | None = None,
    ip_address: str | None = None,
) -> None:
    """Store the current request's user and IP so audit listeners can use them."""
    _ctx_user_id.set(user_id)
    _ctx_ip_address.set(ip_address)


def current_user_id() -> str | None:
    return _ctx_user_id.get()


_EXCLUDED_TABLES: set[str] = {"audit_log", "alembic_version"}

# Child tables are logged under their parent's module.
_TABLE_MODULE_MAP: dict[str, str] = {
    "vendors": "vendors",
    "vendor_assessments": "vendors",
    "controls": "controls",
    "control_requirement_mappings": "controls",
    "frameworks": "frameworks",
    "framework_requirements": "frameworks",
    "assets": "assets",
    "asset_controls": "assets",
    "risks": "risks",
    "risk_controls": "risks",
    "policies": "policies",
    "policy_versions": "policies",
    "policy_acknowledgments": "policies",
    "tasks": "tasks",
    "task_comments": "tasks",
    "evidence": "evidence",
    "evidence_controls": "evidence",
    "audits": "audits",
    "audit_requests": "audits",
    "audit_findings": "audits",
    "integrations": "integrations",
}


def _resolve_module(table_name: str) -> str:
    if table_name in _TABLE_MODULE_MAP:
        return _TABLE_MODULE_MAP[table_name]
    if table_name.startswith("aws_"):
        return "integrations"
    return table_name


def _get_entity_id(obj: Any) -> int:
    mapper = inspect(type(obj))
    pk_cols = mapper.primary_key
    if pk_cols:
        val = getattr(obj, pk_cols[0].name, None)
        return val if val is not None else 0
    return 0


def _stringify(value: Any) -> str | None:
    """Text form stored in old_value/new_value; JSON columns keep valid JSON."""
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str, sort_keys=True)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _audited(obj: Any) -> bool:
    return isinstance(obj, Base) and obj.__class__.__tablename__ not in _EXCLUDED_TABLES


# ---------------------------------------------------------------------------
# Event listeners
# ---------------------------------------------------------------------------

def _before_flush(session: Session, flush_context: Any, instances: Any) -> None:
    """Collect pending entries while ``session.dirty`` still carries attribute history."""
    if session.info.get("_flushing_audit"):
        return

    pending: list[dict[str, Any]] = []

    for obj in session.dirty:
        if not _audited(obj) or not session.is_modified(obj, include_collections=False):
            continue
        insp = inspect(obj)
        table_name = obj.__class__.__tablename__
        column_keys = {c.key for c in insp.mapper.column_attrs}
        for attr in insp.attrs:
            if attr.key not in column_keys or attr.key == "updated_at":
                continue
            hist = attr.history
            if not hist.has_changes():
                continue
            old_val = hist.deleted[0] if hist.deleted else None
            new_val = hist.added[0] if hist.added else None
            pending.append({
                "module": _resolve_module(table_name),
                "action": "update",
                "entity_type": table_name,
                "entity_id": _get_entity_id(obj),
                "field_name": attr.key,
                "old_value": _stringify(old_val),
                "new_value": _stringify(new_val),
            })

    for obj in session.new:
        if not _audited(obj):
            continue
        pending.append({
            "module": _resolve_module(obj.__class__.__tablename__),
            "action": "create",
            "entity_type": obj.__class__.__tablename__,
            "entity_id": None,  # resolved after flush assigns PK
            "_obj_ref": obj,
        })

    for obj in session.deleted:
        if not _audited(obj):
            continue
        pending.append({
            "module": _resolve_module(obj.__class__.__tablename__),
            "action": "delete",
            "entity_type": obj.__class__.__tablename__,
            "entity_id": _get_entity_id(obj),
        })

    session.info["_audit_pending"] = pending


def _after_flush(session: Session, flush_context: Any) -> None:
    """Create AuditLog rows from the entries collected before flush."""
    if session.info.get("_flushing_audit"):
        return

    pending: list[dict[str, Any]] = session.info.pop("_audit_pending", [])
    if not pending:
        return

    user_id = _ctx_user_id.get()
    ip_address = _ctx_ip_address.get()
    now = datetime.utcnow()

    session.info["_flushing_audit"] = True
    try:
        for entry in pending:
            entity_id = entry["entity_id"]
            if entity_id is None:
                entity_id = _get_entity_id(entry["_obj_ref"])
            session.add(AuditLog(
                user_id=user_id,
                module=entry["module"],
                action=entry["action"],
                entity_type=entry["entity_type"],
                entity_id=entity_id,
                field_name=entry.get("field_name"),
                old_value=entry.get("old_value"),
                new_value=entry.get("new_value"),
                ip_address=ip_address,
                created_at=now,
            ))
    except Exception:
        logger.exception("Failed to create automatic audit log entries")
    finally:
        session.info["_flushing_audit"] = False


def install_audit_listeners() -> None:
    """Register the ORM listeners. Safe to call more than once."""
    global _installed
    if _installed:
        return
    event.listen(Session, "before_flush", _before_flush)
    event.listen(Session, "after_flush", _after_flush)
    _installed = True
    logger.info("Automatic audit logging listeners installed")
