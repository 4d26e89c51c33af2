"""AI usage audit trail.

One JSON document per line on the `reframe.audit` logger. No-op unless
AI_AUDIT_ENABLED is set.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any

from reframe.config import get_settings
from reframe.utils.logging import AUDIT_LOGGER

audit_logger = logging.getLogger(AUDIT_LOGGER)
logger = logging.getLogger(__name__)


def audit_ai_usage(
    feature: str,
    success: bool,
    user_id: str | None = None,
    latency_ms: int | None = None,
    error: str | None = None,
    metadata: dict[str, Any] | None = None,
    enabled: bool | None = None,
) -> None:
    """Emit an audit record for one AI call. Never raises."""
    if enabled is None:
        enabled = get_settings().ai_audit_enabled
    if not enabled:
        return

    payload: dict[str, Any] = {
        "type": "ai_usage",
        "ts": datetime.now(timezone.utc).isoformat(),
        "feature": feature,
        "user_id": user_id,
        "latency_ms": latency_ms,
        "success": success,
        "error": error,
    }
    if metadata:
        payload.update(metadata)

    try:
        audit_logger.info(json.dumps(payload, default=str))
    except (TypeError, ValueError) as e:
        logger.warning(f"Could not serialize audit record for {feature}: {e}")
