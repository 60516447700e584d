"""
Pydantic schemas for data validation and serialization.

Schemas:
    normalized: Canonical order entities produced by platform adapters
    etl: Run results, failed orders, scheduler statistics and API checks
    api: API endpoint response models

Usage:
    from schemas.normalized import CanonicalOrder
    from schemas.etl import EtlResult
"""

__all__ = [
    "CanonicalOrder",
    "EtlResult",
    "FailedOrder",
    "CycleResult",
    "SchedulerStatistics",
    "ApiCheckResult",
    "OrderCount",
    "HealthCheckResponse",
    "TriggerResponse",
]
