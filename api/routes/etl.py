"""
Manual ETL trigger endpoints and scheduler status
"""
from datetime import date, datetime
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from api.dependencies import get_scheduler
from core.exceptions import ETLException, PlatformDisabledError, PlatformNotFoundError
from ingestion.scheduler import MultiPlatformScheduler
from schemas.api import CycleResponse, TriggerResponse
from schemas.etl import ApiCheckResult, EtlResult, OrderCount, SchedulerStatistics
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/etl", tags=["ETL"])


def _trigger_response(result: EtlResult):
    body = TriggerResponse(
        success=result.success,
        message=result.summary(),
        result=result,
    )
    if not result.success:
        return JSONResponse(status_code=500, content=body.model_dump(mode="json"))
    return body


@router.post("/trigger-all", response_model=CycleResponse)
async def trigger_all(request: Request, scheduler: MultiPlatformScheduler = Depends(get_scheduler)):
    """
    Run one cycle over every enabled platform.

    - 409 when a cycle is already running
    - 500 with the cycle result when any platform failed
    """
    logger.info(f"[{request.state.request_id}] POST /api/etl/trigger-all")

    cycle = await scheduler.trigger_all_platforms()
    if cycle is None:
        raise HTTPException(status_code=409, detail="An ETL cycle is already running")

    body = CycleResponse.from_cycle(cycle)
    if not body.success:
        return JSONResponse(status_code=500, content=body.model_dump(mode="json"))
    return body


@router.post("/{platform}/trigger", response_model=TriggerResponse)
async def trigger_platform(
    platform: str,
    request: Request,
    scheduler: MultiPlatformScheduler = Depends(get_scheduler)
):
    """Pull updated orders for one platform (404 unknown, 400 disabled)."""
    logger.info(f"[{request.state.request_id}] POST /api/etl/{platform}/trigger")

    try:
        result = await scheduler.run_platform(platform)
    except PlatformNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except PlatformDisabledError as e:
        raise HTTPException(status_code=400, detail=e.message)

    return _trigger_response(result)


@router.post("/{platform}/process-date", response_model=TriggerResponse)
async def process_date(
    platform: str,
    request: Request,
    day: date = Query(..., alias="date", description="Date to pull, YYYY-MM-DD"),
    scheduler: MultiPlatformScheduler = Depends(get_scheduler)
):
    """Backfill orders updated on one date; the watermark is not moved."""
    logger.info(f"[{request.state.request_id}] POST /api/etl/{platform}/process-date date={day}")

    try:
        result = await scheduler.process_date(platform, day)
    except PlatformNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except PlatformDisabledError as e:
        raise HTTPException(status_code=400, detail=e.message)

    return _trigger_response(result)


@router.get("/status", response_model=SchedulerStatistics)
async def etl_status(scheduler: MultiPlatformScheduler = Depends(get_scheduler)):
    """Scheduler counters and per-platform health"""
    return scheduler.get_scheduler_statistics()


@router.get("/{platform}/api-test", response_model=ApiCheckResult)
async def api_test(
    platform: str,
    request: Request,
    scheduler: MultiPlatformScheduler = Depends(get_scheduler)
):
    """Fetch a single order to check the platform API credentials and reachability."""
    logger.info(f"[{request.state.request_id}] GET /api/etl/{platform}/api-test")

    try:
        return await scheduler.check_platform_api(platform)
    except PlatformNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except PlatformDisabledError as e:
        raise HTTPException(status_code=400, detail=e.message)


@router.get("/{platform}/order-count", response_model=OrderCount)
async def order_count(
    platform: str,
    request: Request,
    day: Optional[date] = Query(None, alias="date", description="Date to count, YYYY-MM-DD (default today)"),
    scheduler: MultiPlatformScheduler = Depends(get_scheduler)
):
    """Number of orders the platform reports as updated on one date."""
    day = day or datetime.utcnow().date()
    logger.info(f"[{request.state.request_id}] GET /api/etl/{platform}/order-count date={day}")

    try:
        count = await scheduler.count_platform_orders(platform, day)
    except PlatformNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except PlatformDisabledError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except ETLException as e:
        logger.error(f"[{request.state.request_id}] order count failed: {e.message}")
        raise HTTPException(status_code=500, detail=e.message)

    return OrderCount(platform=platform.upper(), report_date=day, order_count=count)


@router.post("/scheduler/enable", response_model=SchedulerStatistics)
async def enable_scheduler(request: Request, scheduler: MultiPlatformScheduler = Depends(get_scheduler)):
    """Turn the interval job on"""
    logger.info(f"[{request.state.request_id}] POST /api/etl/scheduler/enable")
    scheduler.enable_scheduler()
    return scheduler.get_scheduler_statistics()


@router.post("/scheduler/disable", response_model=SchedulerStatistics)
async def disable_scheduler(request: Request, scheduler: MultiPlatformScheduler = Depends(get_scheduler)):
    """Pause the interval job; manual triggers still run"""
    logger.info(f"[{request.state.request_id}] POST /api/etl/scheduler/disable")
    scheduler.disable_scheduler()
    return scheduler.get_scheduler_statistics()


@router.post("/statistics/reset", response_model=SchedulerStatistics)
async def reset_statistics(request: Request, scheduler: MultiPlatformScheduler = Depends(get_scheduler)):
    """Zero the counters and per-platform health windows"""
    logger.info(f"[{request.state.request_id}] POST /api/etl/statistics/reset")
    await scheduler.reset_statistics()
    return scheduler.get_scheduler_statistics()
