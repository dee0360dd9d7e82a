"""
Fire-and-forget audit notifications for auth events.

The sink is pluggable (app.extensions["audit_sink"]); a failing sink is
logged and never aborts the request that triggered it.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict

from flask import current_app, request

audit_logger = logging.getLogger("washco.audit")
logger = logging.getLogger(__name__)

AuditSink = Callable[[Dict[str, Any]], None]


def log_sink(event: Dict[str, Any]) -> None:
    audit_logger.info("%(action)s user=%(user_id)s tenant=%(tenant_id)s ip=%(ip_address)s", event)


def client_ip() -> str | None:
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.remote_addr


def record(action: str, user_id: str | None, tenant_id: str | None = None, **details) -> None:
    event = {
        "action": action,
        "user_id": user_id,
        "tenant_id": tenant_id,
        "ip_address": client_ip(),
        "details": details,
    }
    sink: AuditSink = current_app.extensions.get("audit_sink", log_sink)
    try:
        sink(event)
    except Exception:
        logger.exception("Audit sink failed for %s", action)
