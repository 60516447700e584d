"""
Pydantic schemas for ETL run results and scheduler statistics
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import date, datetime


class FailedOrder(BaseModel):
    """One order that could not be processed in a run"""
    order_id: str
    error_message: str
    error_type: str = "Exception"
    platform: Optional[str] = None
    failure_time: datetime = Field(default_factory=datetime.utcnow)


class EtlResult(BaseModel):
    """
    Outcome of one platform pipeline run.

    ``success`` is False only when the run hit a batch-level error (a fetch
    failure or an unexpected pipeline error). Per-order failures are reported
    in ``orders_failed`` / ``failed_orders`` and leave ``success`` True.
    """
    platform: str
    success: bool = True
    total_orders: int = 0
    orders_processed: int = 0
    orders_failed: int = 0
    orders_skipped: int = 0
    failed_orders: List[FailedOrder] = Field(default_factory=list)
    error_message: Optional[str] = None

    start_time: datetime = Field(default_factory=datetime.utcnow)
    end_time: Optional[datetime] = None
    duration_ms: int = 0

    pages_fetched: int = 0
    truncated: bool = False

    @property
    def success_rate(self) -> float:
        """Percentage of attempted orders that did not fail"""
        attempted = self.orders_processed + self.orders_failed
        if attempted == 0:
            return 100.0
        return round(self.orders_processed * 100.0 / attempted, 2)

    @property
    def formatted_duration(self) -> str:
        if self.duration_ms < 1000:
            return f"{self.duration_ms}ms"
        seconds = self.duration_ms / 1000
        if seconds < 60:
            return f"{seconds:.1f}s"
        return f"{int(seconds // 60)}m {int(seconds % 60)}s"

    def record_failure(self, order_id: str, error: Exception) -> None:
        self.orders_failed += 1
        self.failed_orders.append(FailedOrder(
            order_id=order_id,
            error_message=str(error),
            error_type=type(error).__name__,
            platform=self.platform,
        ))

    def finish(self, success: bool = True, error_message: Optional[str] = None) -> "EtlResult":
        self.success = success
        if error_message:
            self.error_message = error_message
        self.end_time = datetime.utcnow()
        self.duration_ms = int((self.end_time - self.start_time).total_seconds() * 1000)
        return self

    def summary(self) -> str:
        state = "SUCCESS" if self.success else "FAILED"
        text = (
            f"{self.platform} {state}: total={self.total_orders}, "
            f"processed={self.orders_processed}, failed={self.orders_failed}, "
            f"skipped={self.orders_skipped}, duration={self.formatted_duration}"
        )
        if self.error_message:
            text += f", error={self.error_message}"
        return text


class PlatformStatistics(BaseModel):
    """Snapshot of one platform's scheduler counters"""
    enabled: bool
    success_count: int = 0
    failure_count: int = 0
    consecutive_failures: int = 0
    last_run_at: Optional[datetime] = None
    last_error_message: Optional[str] = None
    is_healthy: bool = True


class SchedulerStatistics(BaseModel):
    """Read-only snapshot of the scheduler state"""
    scheduler_enabled: bool
    is_currently_executing: bool
    total_executions: int
    parallel_execution: bool
    last_success_time: Optional[datetime] = None
    last_failure_time: Optional[datetime] = None
    platforms: Dict[str, PlatformStatistics] = Field(default_factory=dict)


class CycleResult(BaseModel):
    """Aggregated outcome of one multi-platform cycle"""
    started_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
    results: Dict[str, EtlResult] = Field(default_factory=dict)

    @property
    def success(self) -> bool:
        return all(result.success for result in self.results.values())

    @property
    def total_processed(self) -> int:
        return sum(result.orders_processed for result in self.results.values())

    @property
    def total_failed(self) -> int:
        return sum(result.orders_failed for result in self.results.values())


class ApiCheckResult(BaseModel):
    """Outcome of a single-order request against a platform API"""
    platform: str
    healthy: bool
    message: str
    report_date: date
    order_count: Optional[int] = None
    checked_at: datetime = Field(default_factory=datetime.utcnow)


class OrderCount(BaseModel):
    """Orders the platform reports as updated on one date"""
    platform: str
    report_date: date
    order_count: Optional[int] = None
