"""
Sliding-window health tracking for platform pipelines
"""

from collections import deque
from datetime import datetime
from typing import Deque, Optional
from schemas.etl import PlatformStatistics


class PlatformHealth:
    """
    Counters and recent outcomes for one platform.

    A platform is unhealthy when the last ``window_size`` runs hold at least
    ``failure_threshold`` failures, or when the last ``failure_threshold``
    runs all failed. Health is reported only; it never disables a platform.
    """

    def __init__(self, enabled: bool, window_size: int = 10, failure_threshold: int = 3):
        self.enabled = enabled
        self.failure_threshold = max(1, failure_threshold)
        self.window: Deque[bool] = deque(maxlen=max(1, window_size))

        self.success_count = 0
        self.failure_count = 0
        self.consecutive_failures = 0
        self.last_run_at: Optional[datetime] = None
        self.last_error_message: Optional[str] = None

    def record(self, success: bool, error_message: Optional[str] = None) -> None:
        self.window.append(success)
        self.last_run_at = datetime.utcnow()

        if success:
            self.success_count += 1
            self.consecutive_failures = 0
        else:
            self.failure_count += 1
            self.consecutive_failures += 1
            self.last_error_message = error_message

    @property
    def is_healthy(self) -> bool:
        failures = sum(1 for ok in self.window if not ok)
        if failures >= self.failure_threshold:
            return False
        return self.consecutive_failures < self.failure_threshold

    def snapshot(self) -> PlatformStatistics:
        return PlatformStatistics(
            enabled=self.enabled,
            success_count=self.success_count,
            failure_count=self.failure_count,
            consecutive_failures=self.consecutive_failures,
            last_run_at=self.last_run_at,
            last_error_message=self.last_error_message,
            is_healthy=self.is_healthy,
        )
