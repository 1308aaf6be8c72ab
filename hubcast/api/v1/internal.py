"""Internal API endpoints: protected by shared secret.

Called by operators or an external cron, not by end users. Requests must
carry the configured secret in the X-Cron-Secret header.
"""

import logging
from typing import Any

from fastapi import APIRouter, Header, HTTPException, status

from hubcast.config.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal", tags=["internal"])


def _verify_cron_secret(x_cron_secret: str = Header(...)) -> None:
    """Validate the X-Cron-Secret header against the configured secret."""
    if not settings.cron_secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cron secret not configured",
        )
    if x_cron_secret != settings.cron_secret:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid cron secret",
        )


@router.post("/poll")
async def trigger_poll(x_cron_secret: str = Header(...)) -> dict[str, Any]:
    """
    Run one poll cycle over all feeds right now.

    Returns the poll report. 409 if a cycle is already running (nothing is
    polled twice at once) or the cycle failed before producing a report.
    """
    _verify_cron_secret(x_cron_secret)

    from hubcast.services.scheduler import scheduler

    if scheduler.poller is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Poller not configured",
        )

    report = await scheduler.trigger_now()
    if report is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Poll cycle already running or failed, see logs",
        )
    return report
