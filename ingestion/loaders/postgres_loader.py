"""
Load canonical order entities into PostgreSQL with upsert logic (idempotency)
"""

from typing import Any, Dict, List, Optional
from datetime import datetime
import uuid
import logging

from sqlalchemy import and_, delete, desc, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import CheckpointError, DatabaseError, UpsertError
from ingestion.loaders.base import EntityStore, entity_definition, natural_key_of
from models.base import ETLStatus, Platform
from models.checkpoint import ETLCheckpoint
from models.customer import Customer, customer_key_seq
from models.dimensions import (
    GeographyInfo, PaymentInfo, ProcessingDateInfo, ShippingInfo,
    geography_key_seq, payment_key_seq, shipping_key_seq,
)
from models.etl_run import ETLRun
from models.order import Order, OrderItem, Product
from models.status import OrderStatus, OrderStatusDetail, Status, status_key_seq
from schemas.etl import EtlResult

logger = logging.getLogger(__name__)


MODELS = {
    "customer": Customer,
    "order": Order,
    "order_item": OrderItem,
    "product": Product,
    "status": Status,
    "order_status": OrderStatus,
    "order_status_detail": OrderStatusDetail,
    "payment": PaymentInfo,
    "shipping": ShippingInfo,
    "geography": GeographyInfo,
    "processing_date": ProcessingDateInfo,
}

SEQUENCES = {
    "customer": customer_key_seq,
    "status": status_key_seq,
    "payment": payment_key_seq,
    "shipping": shipping_key_seq,
    "geography": geography_key_seq,
}


def _row_to_dict(row) -> Dict[str, Any]:
    return {column.name: getattr(row, column.name) for column in row.__table__.columns}


class PostgresEntityStore(EntityStore):
    """
    EntityStore backed by one AsyncSession.

    Ensures:
    - No duplicate rows on repeated runs (INSERT ... ON CONFLICT)
    - Surrogate keys come from database sequences and survive updates
    - Concurrent allocate-or-fetch resolves to a single row
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    @staticmethod
    def _model(entity: str):
        entity_definition(entity)
        return MODELS[entity]

    @staticmethod
    def _where(model, key: Dict[str, Any]):
        return and_(*[getattr(model, field) == value for field, value in key.items()])

    async def find_by_key(self, entity: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        model = self._model(entity)
        result = await self.db.execute(
            select(model)
            .where(self._where(model, key))
            .execution_options(populate_existing=True)
        )
        row = result.scalars().first()
        return _row_to_dict(row) if row is not None else None

    async def exists_by_natural_key(self, entity: str, key: Dict[str, Any]) -> bool:
        return await self.find_by_key(entity, key) is not None

    async def upsert(self, entity: str, values: Dict[str, Any]) -> None:
        definition = entity_definition(entity)
        model = self._model(entity)

        stmt = insert(model).values(**values)
        update_columns = {
            column: stmt.excluded[column]
            for column in values
            if column not in definition.natural_key and column != definition.surrogate_key
        }
        if "updated_at" in model.__table__.columns and "updated_at" not in update_columns:
            update_columns["updated_at"] = datetime.utcnow()

        if update_columns:
            stmt = stmt.on_conflict_do_update(
                index_elements=list(definition.natural_key),
                set_=update_columns
            )
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=list(definition.natural_key))

        try:
            await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise UpsertError(
                f"Upsert failed for {entity}",
                context={
                    "entity": entity,
                    "natural_key": {k: values.get(k) for k in definition.natural_key},
                },
                original_exception=e
            )

    async def insert_if_absent(self, entity: str, values: Dict[str, Any]) -> Dict[str, Any]:
        definition = entity_definition(entity)
        model = self._model(entity)

        # Concurrent inserts of the same natural key serialize on the unique index
        stmt = insert(model).values(**values).on_conflict_do_nothing(
            index_elements=list(definition.natural_key)
        )
        try:
            await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise UpsertError(
                f"Insert-if-absent failed for {entity}",
                context={"entity": entity, "natural_key": natural_key_of(entity, values)},
                original_exception=e
            )

        row = await self.find_by_key(entity, natural_key_of(entity, values))
        if row is None:
            raise DatabaseError(
                f"{entity} row vanished after insert",
                context={"entity": entity, "operation": "INSERT", "natural_key": natural_key_of(entity, values)}
            )
        return row

    async def next_surrogate_key(self, entity: str) -> int:
        sequence = SEQUENCES.get(entity)
        if sequence is None:
            raise DatabaseError(
                f"{entity} has no surrogate key sequence",
                context={"entity": entity, "operation": "NEXTVAL"}
            )
        try:
            result = await self.db.execute(select(sequence.next_value()))
        except SQLAlchemyError as e:
            raise DatabaseError(
                f"Could not allocate {entity} key",
                context={"entity": entity, "operation": "NEXTVAL"},
                original_exception=e
            )
        return int(result.scalar_one())

    async def replace_children(
        self,
        entity: str,
        parent_key: Dict[str, Any],
        rows: List[Dict[str, Any]]
    ) -> int:
        model = self._model(entity)
        try:
            await self.db.execute(delete(model).where(self._where(model, parent_key)))
            if rows:
                await self.db.execute(
                    insert(model),
                    [{**row, **parent_key} for row in rows]
                )
        except SQLAlchemyError as e:
            raise UpsertError(
                f"Replacing {entity} rows failed",
                context={"entity": entity, "parent_key": parent_key, "rows": len(rows)},
                original_exception=e
            )
        return len(rows)

    async def find_latest(
        self,
        entity: str,
        key: Dict[str, Any],
        order_by: str
    ) -> Optional[Dict[str, Any]]:
        model = self._model(entity)
        result = await self.db.execute(
            select(model)
            .where(self._where(model, key))
            .order_by(desc(getattr(model, order_by)))
            .limit(1)
        )
        row = result.scalars().first()
        return _row_to_dict(row) if row is not None else None

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()

    async def close(self) -> None:
        await self.db.close()

    # ------------------------------------------------------------------
    # Watermark and run audit
    # ------------------------------------------------------------------

    async def _checkpoint_row(self, platform: str) -> Optional[ETLCheckpoint]:
        result = await self.db.execute(
            select(ETLCheckpoint).where(ETLCheckpoint.platform == Platform(platform))
        )
        return result.scalar_one_or_none()

    async def get_checkpoint(self, platform: str) -> Optional[str]:
        try:
            checkpoint = await self._checkpoint_row(platform)
        except SQLAlchemyError as e:
            raise CheckpointError(
                "Failed to read watermark",
                context={"platform": platform, "operation": "read"},
                original_exception=e
            )
        return checkpoint.checkpoint_value if checkpoint else None

    async def save_checkpoint(
        self,
        platform: str,
        checkpoint_value: Optional[str],
        status: ETLStatus,
        records_processed: int = 0,
        error_message: Optional[str] = None
    ) -> None:
        now = datetime.utcnow()
        try:
            checkpoint = await self._checkpoint_row(platform)

            if checkpoint is None:
                checkpoint = ETLCheckpoint(
                    platform=Platform(platform),
                    checkpoint_type="timestamp",
                    total_runs=0,
                    total_records_processed=0,
                )
                self.db.add(checkpoint)

            # A failed run keeps the previous watermark
            if checkpoint_value is not None:
                checkpoint.checkpoint_value = checkpoint_value
            checkpoint.status = status
            checkpoint.last_run_at = now
            checkpoint.total_runs = (checkpoint.total_runs or 0) + 1
            checkpoint.total_records_processed = (checkpoint.total_records_processed or 0) + records_processed
            checkpoint.last_records_processed = records_processed
            checkpoint.error_message = error_message
            checkpoint.updated_at = now

            if status in (ETLStatus.SUCCESS, ETLStatus.PARTIAL):
                checkpoint.last_success_at = now
            elif status == ETLStatus.FAILED:
                checkpoint.last_failure_at = now

            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise CheckpointError(
                "Failed to save watermark",
                context={"platform": platform, "checkpoint_value": checkpoint_value, "operation": "write"},
                original_exception=e
            )

    async def start_run(
        self,
        platform: str,
        window_start: str,
        window_end: str,
        checkpoint_before: Optional[str] = None
    ) -> Any:
        etl_run = ETLRun(
            run_id=uuid.uuid4(),
            platform=Platform(platform),
            status=ETLStatus.RUNNING,
            started_at=datetime.utcnow(),
            window_start=window_start,
            window_end=window_end,
            checkpoint_before=checkpoint_before
        )
        try:
            self.db.add(etl_run)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DatabaseError(
                "Failed to open ETL run audit row",
                context={"platform": platform, "operation": "INSERT", "table": "etl_runs"},
                original_exception=e
            )
        return etl_run.run_id

    async def complete_run(
        self,
        run_id: Any,
        status: ETLStatus,
        result: EtlResult,
        checkpoint_after: Optional[str] = None
    ) -> None:
        try:
            query = await self.db.execute(select(ETLRun).where(ETLRun.run_id == run_id))
            etl_run = query.scalar_one_or_none()
            if etl_run is None:
                logger.warning(f"ETL run {run_id} not found; audit row not completed")
                return

            etl_run.status = status
            etl_run.completed_at = datetime.utcnow()
            etl_run.duration_seconds = (etl_run.completed_at - etl_run.started_at).total_seconds()
            etl_run.pages_fetched = result.pages_fetched
            etl_run.records_extracted = result.total_orders
            etl_run.records_loaded = result.orders_processed
            etl_run.records_failed = result.orders_failed
            etl_run.records_skipped = result.orders_skipped
            etl_run.checkpoint_after = checkpoint_after
            etl_run.error_message = result.error_message
            if result.failed_orders:
                etl_run.error_details = [
                    failed.model_dump(mode="json") for failed in result.failed_orders
                ]

            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DatabaseError(
                "Failed to complete ETL run audit row",
                context={"run_id": str(run_id), "operation": "UPDATE", "table": "etl_runs"},
                original_exception=e
            )
