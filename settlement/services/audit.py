from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from settlement.utils.correlation import get_correlation_id
from settlement.utils.time import utc_now

audit_logger = logging.getLogger("settlement.audit")


def log_audit(
    *,
    actor: str,
    action: str,
    target_type: str,
    target_id: Optional[str] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "actor": actor,
        "action": action,
        "target_type": target_type,
        "target_id": target_id,
        "meta": meta or {},
        "created_at": utc_now().isoformat(),
        "correlation_id": get_correlation_id() or None,
    }
    audit_logger.info("%s %s %s", action, target_type, target_id, extra={"extra": entry})
    return entry
