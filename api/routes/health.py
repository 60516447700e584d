"""
Health check endpoint with database and ETL status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from api.dependencies import get_db
from schemas.api import HealthCheckResponse, ETLCheckpointInfo
from models.base import ETLStatus
from models.checkpoint import ETLCheckpoint
from datetime import datetime
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Watermark and last run status for every platform
    """

    db_connected = False

    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {str(e)}")

    etl_checkpoints = []
    successful_platforms = 0
    failed_platforms = 0

    if db_connected:
        try:
            result = await db.execute(select(ETLCheckpoint).order_by(ETLCheckpoint.platform))
            for checkpoint in result.scalars().all():
                if checkpoint.status == ETLStatus.FAILED:
                    failed_platforms += 1
                elif checkpoint.status in (ETLStatus.SUCCESS, ETLStatus.PARTIAL):
                    successful_platforms += 1

                etl_checkpoints.append(ETLCheckpointInfo.model_validate(checkpoint))
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch ETL checkpoints: {str(e)}")

    return HealthCheckResponse(
        timestamp=datetime.utcnow(),
        database_connected=db_connected,
        etl_checkpoints=etl_checkpoints,
        total_platforms=len(etl_checkpoints),
        successful_platforms=successful_platforms,
        failed_platforms=failed_platforms
    )
