"""
Multi-platform scheduler: runs every enabled platform pipeline on an interval.
"""

import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple, Type

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import PLATFORMS, Settings, settings as default_settings
from core.database import async_session_maker
from core.exceptions import PlatformDisabledError, PlatformNotFoundError
from ingestion.base import PlatformAdapter
from ingestion.extractors.api_client import PlatformAPIClient
from ingestion.extractors.facebook import FacebookAdapter
from ingestion.extractors.shopee import ShopeeAdapter
from ingestion.extractors.tiktok import TikTokAdapter
from ingestion.health import PlatformHealth
from ingestion.loaders.postgres_loader import PostgresEntityStore
from ingestion.runner import PlatformPipeline
from schemas.etl import ApiCheckResult, CycleResult, EtlResult, SchedulerStatistics

logger = logging.getLogger(__name__)

JOB_ID = "multi_platform_etl"

ADAPTERS: Dict[str, Type[PlatformAdapter]] = {
    "SHOPEE": ShopeeAdapter,
    "TIKTOK": TikTokAdapter,
    "FACEBOOK": FacebookAdapter,
}


class MultiPlatformScheduler:
    """
    Runs platform pipelines on a fixed interval and on demand.

    - At most one multi-platform cycle runs at a time; an overlapping
      trigger returns None immediately
    - One platform's failure never affects another's
    - Per-platform counters and sliding-window health
    """

    def __init__(self, pipelines: Dict[str, PlatformPipeline], settings: Settings = default_settings):
        self.settings = settings
        self.pipelines = {name.upper(): pipeline for name, pipeline in pipelines.items()}
        self.health: Dict[str, PlatformHealth] = {
            name: PlatformHealth(
                enabled=pipeline.enabled,
                window_size=settings.HEALTH_WINDOW_SIZE,
                failure_threshold=settings.HEALTH_FAILURE_THRESHOLD,
            )
            for name, pipeline in self.pipelines.items()
        }

        self._cycle_lock = asyncio.Lock()
        self._stats_lock = asyncio.Lock()

        self.total_executions = 0
        self.last_success_time: Optional[datetime] = None
        self.last_failure_time: Optional[datetime] = None

        self.enabled = settings.SCHEDULER_ENABLED
        self.scheduler: Optional[AsyncIOScheduler] = None

    @property
    def is_executing(self) -> bool:
        return self._cycle_lock.locked()

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    async def trigger_all_platforms(self) -> Optional[CycleResult]:
        """
        Run every enabled platform once.

        Returns None without waiting when a cycle is already running.
        """
        # Test-and-set: nothing awaits between the check and the acquire
        if self._cycle_lock.locked():
            logger.info("ETL cycle already in progress, skipping trigger")
            return None
        await self._cycle_lock.acquire()

        try:
            cycle = CycleResult()
            enabled = [name for name, pipeline in self.pipelines.items() if pipeline.enabled]
            logger.info(f"Starting ETL cycle for {enabled}")

            deadline = asyncio.get_running_loop().time() + self.settings.SCHEDULER_CYCLE_TIMEOUT_SECONDS

            if self.settings.SCHEDULER_PARALLEL_EXECUTION:
                outcomes = await asyncio.gather(
                    *(self._execute(name, self._updated_orders(name), deadline) for name in enabled)
                )
            else:
                outcomes = []
                for name in enabled:
                    outcomes.append(await self._execute(name, self._updated_orders(name), deadline))

            cycle.results = dict(outcomes)
            cycle.completed_at = datetime.utcnow()

            async with self._stats_lock:
                self.total_executions += 1
                if cycle.success:
                    self.last_success_time = cycle.completed_at
                else:
                    self.last_failure_time = cycle.completed_at

            logger.info(
                f"ETL cycle finished: success={cycle.success}, "
                f"processed={cycle.total_processed}, failed={cycle.total_failed}"
            )
            return cycle
        finally:
            self._cycle_lock.release()

    def _updated_orders(self, name: str) -> Callable:
        return self.pipelines[name].process_updated_orders

    async def _execute(
        self,
        name: str,
        run: Callable,
        deadline: Optional[float] = None
    ) -> Tuple[str, EtlResult]:
        """Run one pipeline call and record its outcome. Never raises."""
        pipeline = self.pipelines[name]
        try:
            if deadline is None:
                result = await run()
            else:
                remaining = max(deadline - asyncio.get_running_loop().time(), 0.0)
                result = await asyncio.wait_for(run(), timeout=remaining)

        except asyncio.TimeoutError:
            logger.error(f"{name} pipeline timed out")
            await self._reset(name, pipeline)
            result = EtlResult(platform=name).finish(
                success=False,
                error_message=f"Timed out after {self.settings.SCHEDULER_CYCLE_TIMEOUT_SECONDS}s"
            )

        except Exception as e:
            logger.exception(f"{name} pipeline raised")
            await self._reset(name, pipeline)
            result = EtlResult(platform=name).finish(
                success=False,
                error_message=f"{type(e).__name__}: {e}"
            )

        async with self._stats_lock:
            self.health[name].record(result.success, result.error_message)

        return name, result

    async def _reset(self, name: str, pipeline: PlatformPipeline) -> None:
        """Roll back whatever the interrupted run left open on the session."""
        try:
            await pipeline.reset()
        except Exception as e:
            logger.error(f"{name}: rollback after failed run failed: {type(e).__name__}: {e}")

    # ------------------------------------------------------------------
    # Single platform
    # ------------------------------------------------------------------

    def _pipeline(self, name: str) -> PlatformPipeline:
        key = (name or "").upper()
        pipeline = self.pipelines.get(key)
        if pipeline is None:
            raise PlatformNotFoundError(
                f"Unknown platform: {name}",
                context={"platform": name, "known": sorted(self.pipelines)}
            )
        if not pipeline.enabled:
            raise PlatformDisabledError(f"Platform {key} is disabled", context={"platform": key})
        return pipeline

    async def run_platform(self, name: str) -> EtlResult:
        """
        Run one platform's updated-orders pull outside the cycle flag.

        Raises:
            PlatformNotFoundError / PlatformDisabledError
        """
        pipeline = self._pipeline(name)
        _, result = await self._execute(pipeline.platform, pipeline.process_updated_orders)
        return result

    async def trigger_platform(self, name: str) -> bool:
        """Run one platform; False for unknown or disabled names."""
        try:
            result = await self.run_platform(name)
        except (PlatformNotFoundError, PlatformDisabledError) as e:
            logger.warning(f"Trigger rejected: {e.message}")
            return False
        return result.success

    async def process_date(self, name: str, day: date) -> EtlResult:
        """Backfill one date for one platform."""
        pipeline = self._pipeline(name)
        _, result = await self._execute(pipeline.platform, lambda: pipeline.process_orders_for_date(day))
        return result

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    async def check_platform_api(self, name: str, day: Optional[date] = None) -> ApiCheckResult:
        """Fetch one order from a platform to see whether its API answers."""
        return await self._pipeline(name).check_api(day)

    async def count_platform_orders(self, name: str, day: date) -> Optional[int]:
        """
        Raises:
            PlatformNotFoundError / PlatformDisabledError
            APIExtractionError: the platform could not be reached
        """
        return await self._pipeline(name).count_orders(day)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_scheduler_statistics(self) -> SchedulerStatistics:
        return SchedulerStatistics(
            scheduler_enabled=self.enabled,
            is_currently_executing=self.is_executing,
            total_executions=self.total_executions,
            parallel_execution=self.settings.SCHEDULER_PARALLEL_EXECUTION,
            last_success_time=self.last_success_time,
            last_failure_time=self.last_failure_time,
            platforms={name: health.snapshot() for name, health in self.health.items()},
        )

    async def reset_statistics(self) -> None:
        """Zero the execution counters and forget every platform's health window."""
        async with self._stats_lock:
            self.total_executions = 0
            self.last_success_time = None
            self.last_failure_time = None
            self.health = {
                name: PlatformHealth(
                    enabled=pipeline.enabled,
                    window_size=self.settings.HEALTH_WINDOW_SIZE,
                    failure_threshold=self.settings.HEALTH_FAILURE_THRESHOLD,
                )
                for name, pipeline in self.pipelines.items()
            }
        logger.info("ETL scheduler statistics reset")

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the interval timer (requires a running event loop)"""
        if not self.enabled:
            logger.info("ETL scheduler disabled, no job registered")
            return

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.trigger_all_platforms,
            trigger=IntervalTrigger(seconds=self.settings.SCHEDULER_INTERVAL_SECONDS),
            id=JOB_ID,
            next_run_time=datetime.now() + timedelta(seconds=self.settings.SCHEDULER_INITIAL_DELAY_SECONDS),
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self.scheduler.start()
        logger.info(
            f"ETL scheduler started: every {self.settings.SCHEDULER_INTERVAL_SECONDS}s, "
            f"platforms={self.settings.enabled_platforms()}"
        )

    def enable_scheduler(self) -> None:
        """Turn the interval job on, registering it if it never started."""
        self.enabled = True
        if self.scheduler is None:
            self.start()
        else:
            self.scheduler.resume_job(JOB_ID)
            logger.info("ETL scheduler resumed")

    def disable_scheduler(self) -> None:
        """Pause the interval job; manual triggers keep working."""
        self.enabled = False
        if self.scheduler is not None:
            self.scheduler.pause_job(JOB_ID)
            logger.info("ETL scheduler paused")

    def stop(self) -> None:
        if self.scheduler is not None and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("ETL scheduler stopped")
        self.scheduler = None

    async def close(self) -> None:
        self.stop()
        for pipeline in self.pipelines.values():
            await pipeline.close()


def build_pipelines(
    session_maker: Callable[[], AsyncSession] = async_session_maker,
    settings: Settings = default_settings,
    platforms: Optional[List[str]] = None
) -> Dict[str, PlatformPipeline]:
    """One pipeline per platform, each with its own session and HTTP client."""
    pipelines: Dict[str, PlatformPipeline] = {}
    for name in platforms or list(PLATFORMS):
        client = PlatformAPIClient(settings.platform(name))
        adapter = ADAPTERS[name](client)
        store = PostgresEntityStore(session_maker())
        pipelines[name] = PlatformPipeline(adapter, store, settings=settings)
    return pipelines


def build_scheduler(
    session_maker: Callable[[], AsyncSession] = async_session_maker,
    settings: Settings = default_settings
) -> MultiPlatformScheduler:
    return MultiPlatformScheduler(build_pipelines(session_maker, settings), settings=settings)
