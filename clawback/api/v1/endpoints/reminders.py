"""
Scheduler-invoked reminder batch endpoint.
"""
import time
from fastapi import APIRouter, Depends, HTTPException, status, Query, Request
from sqlalchemy.orm import Session
from clawback.api.deps import get_db, get_settings, require_cron_secret
from clawback.config import Settings
from clawback.models.schemas.base import ResponseBase
from clawback.services.reminder_batch import run_reminder_batch
from clawback.utils import get_logger, log_performance
from clawback.utils.observability import current_request_id
from clawback.utils.time import local_now

router = APIRouter()
logger = get_logger(__name__)

@router.get(
    "",
    response_model=ResponseBase,
    summary="Run reminder batch",
    description="Compute today's reminders; dryRun=1 (default) returns them, anything else appends them to the notification log"
)
async def run_reminders(
    request: Request,
    dry_run_flag: str = Query("1", alias="dryRun"),
    _authorized: None = Depends(require_cron_secret),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db)
) -> ResponseBase:
    """Evaluate every saved card credit against today's date and fan out reminders."""
    start_time = time.time()
    request_id = current_request_id(request)
    dry_run = dry_run_flag == "1"

    logger.info(
        "Reminder batch requested",
        dry_run=dry_run,
        timezone=settings.reminder_timezone,
        request_id=request_id
    )

    try:
        now = local_now(settings.reminder_timezone)
        result = run_reminder_batch(db, dry_run=dry_run, now=now, request_id=request_id)
    except Exception as e:
        logger.error(
            "Reminder batch failed",
            error=str(e),
            dry_run=dry_run,
            request_id=request_id,
            exc_info=True
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e) or "Unknown error"
        )

    log_performance(
        operation="reminders_endpoint",
        duration_ms=(time.time() - start_time) * 1000,
        additional_data={"count": result.count, "dry_run": dry_run}
    )

    return ResponseBase(
        success=True,
        message="Dry run complete" if dry_run else "Reminders logged",
        data=result.model_dump(mode="json", exclude_none=True)
    )
