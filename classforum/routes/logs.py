"""
Sink for errors reported by browser clients.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from classforum.schemas import ClientErrorReport, LogErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["logs"])


@router.post("/log-error", response_model=LogErrorResponse)
def log_client_error(report: ClientErrorReport):
    now = datetime.now(timezone.utc).isoformat()
    logger.error(
        "[Client Error - %s] %s (timestamp=%s, user_agent=%s, url=%s)",
        report.context or "unknown",
        report.error,
        report.timestamp or now,
        report.user_agent or "Unknown",
        report.url or "Unknown",
    )
    return LogErrorResponse(logged=True, timestamp=now)
