"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict
from datetime import datetime
from models.base import Platform, ETLStatus
from schemas.etl import CycleResult, EtlResult

# ============================================================================
# Health Check Schemas
# ============================================================================

class ETLCheckpointInfo(BaseModel):
    """Watermark and run counters for one platform"""
    platform: Platform
    status: ETLStatus
    last_run_at: Optional[datetime]
    last_success_at: Optional[datetime]
    last_failure_at: Optional[datetime]
    checkpoint_value: Optional[str]
    total_records_processed: int
    last_records_processed: int
    error_message: Optional[str] = None

    class Config:
        from_attributes = True
        use_enum_values = True


class HealthCheckResponse(BaseModel):
    """Health check response model"""
    database_connected: bool
    etl_checkpoints: List[ETLCheckpointInfo] = Field(default_factory=list)
    total_platforms: int = 0
    successful_platforms: int = 0
    failed_platforms: int = 0
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    status: str = Field("healthy", description="Overall system status: healthy, degraded, unhealthy")

    @validator("status", pre=True, always=True)
    def determine_status(cls, v, values):
        """Determine overall health status"""
        if not values.get("database_connected", False):
            return "unhealthy"

        failed = values.get("failed_platforms", 0)
        total = values.get("total_platforms", 0)

        if total == 0 or failed == 0:
            return "healthy"
        elif failed < total:
            return "degraded"
        else:
            return "unhealthy"

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": "2025-01-15T10:30:00Z",
                "database_connected": True,
                "total_platforms": 3,
                "successful_platforms": 3,
                "failed_platforms": 0,
                "etl_checkpoints": [
                    {
                        "platform": "SHOPEE",
                        "status": "success",
                        "last_run_at": "2025-01-15T10:00:00Z",
                        "last_success_at": "2025-01-15T10:00:00Z",
                        "checkpoint_value": "2025-01-15T10:00:00",
                        "total_records_processed": 1500,
                        "last_records_processed": 25
                    }
                ]
            }
        }

# ============================================================================
# ETL Trigger Schemas
# ============================================================================

class TriggerResponse(BaseModel):
    """Outcome of a single-platform trigger"""
    success: bool
    message: str
    result: Optional[EtlResult] = None


class CycleResponse(BaseModel):
    """Outcome of a multi-platform cycle"""
    success: bool
    message: str
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    total_processed: int = 0
    total_failed: int = 0
    results: Dict[str, EtlResult] = Field(default_factory=dict)

    @classmethod
    def from_cycle(cls, cycle: CycleResult) -> "CycleResponse":
        return cls(
            success=cycle.success,
            message="All platforms succeeded" if cycle.success else "One or more platforms failed",
            started_at=cycle.started_at,
            completed_at=cycle.completed_at,
            total_processed=cycle.total_processed,
            total_failed=cycle.total_failed,
            results=cycle.results,
        )
