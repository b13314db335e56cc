# erps/routers/scheduler.py
"""Manual scheduler invocation (ops / testing). A trigger while the job is running is skipped."""

from fastapi import APIRouter, Depends
from erps.dependencies import get_scheduler
from erps.services.scheduler import (
    JOB_ACTIVATION_REMINDERS, JOB_GRACE_PERIOD, JOB_REMINDERS, JOB_TOKEN_CLEANUP, LifecycleScheduler,
)
from erps.schemas.admin import JobTriggerOut
from erps.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


async def _trigger(scheduler: LifecycleScheduler, job: str) -> dict:
    logger.info(f"[SCHEDULER] Manual trigger: {job}")
    result = await scheduler.trigger_job(job)
    if result is None:
        return {"job": job, "status": "skipped", "result": None}
    return {"job": job, "status": "completed", "result": result}


@router.post("/reminders/trigger", response_model=JobTriggerOut, summary="Run the inspection reminder sweep now")
async def trigger_reminders(scheduler: LifecycleScheduler = Depends(get_scheduler)):
    return await _trigger(scheduler, JOB_REMINDERS)


@router.post("/grace-period/trigger", response_model=JobTriggerOut, summary="Run the grace-period sweep now")
async def trigger_grace_period(scheduler: LifecycleScheduler = Depends(get_scheduler)):
    return await _trigger(scheduler, JOB_GRACE_PERIOD)


@router.post("/activation-reminders/trigger", response_model=JobTriggerOut,
             summary="Run the customer activation reminder sweep now")
async def trigger_activation_reminders(scheduler: LifecycleScheduler = Depends(get_scheduler)):
    return await _trigger(scheduler, JOB_ACTIVATION_REMINDERS)


@router.post("/token-cleanup/trigger", response_model=JobTriggerOut, summary="Deactivate expired tokens now")
async def trigger_token_cleanup(scheduler: LifecycleScheduler = Depends(get_scheduler)):
    return await _trigger(scheduler, JOB_TOKEN_CLEANUP)
