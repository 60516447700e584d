"""
Unit tests for the PostgreSQL entity store (mocked session)
"""

import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.exc import SQLAlchemyError
from core.exceptions import CheckpointError, DatabaseError, UpsertError
from ingestion.loaders.base import entity_definition, natural_key_of
from ingestion.loaders.postgres_loader import PostgresEntityStore
from models.base import ETLStatus, Platform
from models.checkpoint import ETLCheckpoint
from schemas.etl import EtlResult


def compiled(statement) -> str:
    from sqlalchemy.dialects import postgresql
    return str(statement.compile(dialect=postgresql.dialect()))


class TestEntityRegistry:

    def test_natural_keys(self):
        assert entity_definition("status").natural_key == ("platform", "platform_status_code")
        assert entity_definition("order_status").natural_key == ("status_key", "order_id", "transition_timestamp")
        assert entity_definition("customer").surrogate_key == "customer_key"

    def test_unknown_entity(self):
        with pytest.raises(KeyError):
            entity_definition("invoice")

    def test_natural_key_of_requires_every_field(self):
        assert natural_key_of("product", {"sku": "A", "platform_product_id": "1", "price": 3}) == {
            "sku": "A", "platform_product_id": "1"
        }
        with pytest.raises(KeyError):
            natural_key_of("product", {"sku": "A"})


class TestUpsert:

    @pytest.mark.asyncio
    async def test_upsert_uses_on_conflict_update(self):
        mock_session = AsyncMock()
        store = PostgresEntityStore(mock_session)

        await store.upsert("order", {
            "order_id": "SHOPEE_1",
            "platform": Platform.SHOPEE,
            "platform_order_id": "1",
            "customer_id": "SHOPEE_abc",
            "gross_revenue": 10.0,
            "source_hash": "f" * 64,
        })

        mock_session.execute.assert_called_once()
        sql = compiled(mock_session.execute.call_args[0][0])
        assert "ON CONFLICT (order_id) DO UPDATE" in sql
        assert "gross_revenue = excluded.gross_revenue" in sql

    @pytest.mark.asyncio
    async def test_upsert_never_overwrites_surrogate_key(self):
        mock_session = AsyncMock()
        store = PostgresEntityStore(mock_session)

        await store.upsert("customer", {
            "customer_id": "SHOPEE_abc",
            "customer_key": 99,
            "platform": Platform.SHOPEE,
            "total_orders": 1,
        })

        sql = compiled(mock_session.execute.call_args[0][0])
        set_clause = sql.split("DO UPDATE SET", 1)[1]
        assert "customer_key" not in set_clause
        assert "total_orders = excluded.total_orders" in set_clause

    @pytest.mark.asyncio
    async def test_upsert_wraps_database_errors(self):
        mock_session = AsyncMock()
        mock_session.execute.side_effect = SQLAlchemyError("constraint violated")
        store = PostgresEntityStore(mock_session)

        with pytest.raises(UpsertError) as exc_info:
            await store.upsert("product", {"sku": "A", "platform_product_id": "1", "platform": Platform.TIKTOK})
        assert exc_info.value.context["entity"] == "product"


class TestInsertIfAbsent:

    @pytest.mark.asyncio
    async def test_insert_then_reread(self):
        mock_session = AsyncMock()
        persisted = MagicMock()
        persisted.__table__ = MagicMock()
        column = MagicMock()
        column.name = "date_key"
        persisted.__table__.columns = [column]
        persisted.date_key = 20250310

        reread = MagicMock()
        reread.scalars.return_value.first.return_value = persisted
        mock_session.execute.side_effect = [MagicMock(), reread]
        store = PostgresEntityStore(mock_session)

        row = await store.insert_if_absent("processing_date", {"date_key": 20250310})

        assert row == {"date_key": 20250310}
        insert_sql = compiled(mock_session.execute.call_args_list[0][0][0])
        assert "ON CONFLICT (date_key) DO NOTHING" in insert_sql

    @pytest.mark.asyncio
    async def test_missing_row_after_insert(self):
        mock_session = AsyncMock()
        reread = MagicMock()
        reread.scalars.return_value.first.return_value = None
        mock_session.execute.side_effect = [MagicMock(), reread]
        store = PostgresEntityStore(mock_session)

        with pytest.raises(DatabaseError):
            await store.insert_if_absent("processing_date", {"date_key": 20250310})


class TestSequencesAndCheckpoints:

    @pytest.mark.asyncio
    async def test_next_surrogate_key(self):
        mock_session = AsyncMock()
        result = MagicMock()
        result.scalar_one.return_value = 42
        mock_session.execute.return_value = result
        store = PostgresEntityStore(mock_session)

        assert await store.next_surrogate_key("status") == 42
        assert "nextval" in compiled(mock_session.execute.call_args[0][0])

    @pytest.mark.asyncio
    async def test_entity_without_sequence(self):
        store = PostgresEntityStore(AsyncMock())
        with pytest.raises(DatabaseError):
            await store.next_surrogate_key("order")

    @pytest.mark.asyncio
    async def test_save_checkpoint_creates_row(self):
        mock_session = AsyncMock()
        mock_session.add = MagicMock()
        lookup = MagicMock()
        lookup.scalar_one_or_none.return_value = None
        mock_session.execute.return_value = lookup
        store = PostgresEntityStore(mock_session)

        await store.save_checkpoint("SHOPEE", "2025-03-10T09:00:00", ETLStatus.SUCCESS, records_processed=4)

        checkpoint = mock_session.add.call_args[0][0]
        assert isinstance(checkpoint, ETLCheckpoint)
        assert checkpoint.checkpoint_value == "2025-03-10T09:00:00"
        assert checkpoint.total_runs == 1
        assert checkpoint.last_records_processed == 4
        assert checkpoint.last_success_at is not None
        mock_session.commit.assert_called_once()

    @pytest.mark.asyncio
    async def test_failed_run_keeps_watermark(self):
        mock_session = AsyncMock()
        existing = ETLCheckpoint(
            platform=Platform.SHOPEE,
            checkpoint_value="2025-03-01T00:00:00",
            total_runs=3,
            total_records_processed=10,
        )
        lookup = MagicMock()
        lookup.scalar_one_or_none.return_value = existing
        mock_session.execute.return_value = lookup
        store = PostgresEntityStore(mock_session)

        await store.save_checkpoint("SHOPEE", None, ETLStatus.FAILED, error_message="timeout")

        assert existing.checkpoint_value == "2025-03-01T00:00:00"
        assert existing.status == ETLStatus.FAILED
        assert existing.total_runs == 4
        assert existing.last_failure_at is not None
        assert existing.error_message == "timeout"

    @pytest.mark.asyncio
    async def test_checkpoint_errors_are_wrapped(self):
        mock_session = AsyncMock()
        mock_session.execute.side_effect = SQLAlchemyError("connection lost")
        store = PostgresEntityStore(mock_session)

        with pytest.raises(CheckpointError):
            await store.get_checkpoint("TIKTOK")
        with pytest.raises(CheckpointError):
            await store.save_checkpoint("TIKTOK", None, ETLStatus.FAILED)
        mock_session.rollback.assert_called_once()


class TestRunAudit:

    @pytest.mark.asyncio
    async def test_start_run_adds_running_row(self):
        mock_session = AsyncMock()
        mock_session.add = MagicMock()
        store = PostgresEntityStore(mock_session)

        run_id = await store.start_run("SHOPEE", "2025-03-09", "2025-03-10", checkpoint_before=None)

        etl_run = mock_session.add.call_args[0][0]
        assert etl_run.run_id == run_id
        assert etl_run.status == ETLStatus.RUNNING
        assert etl_run.platform == Platform.SHOPEE
        mock_session.commit.assert_called_once()

    @pytest.mark.asyncio
    async def test_start_run_errors_are_wrapped(self):
        mock_session = AsyncMock()
        mock_session.add = MagicMock()
        mock_session.commit.side_effect = SQLAlchemyError("connection lost")
        store = PostgresEntityStore(mock_session)

        with pytest.raises(DatabaseError) as exc_info:
            await store.start_run("SHOPEE", "2025-03-10", "2025-03-10")

        assert exc_info.value.context["table"] == "etl_runs"
        mock_session.rollback.assert_called_once()

    @pytest.mark.asyncio
    async def test_complete_run_errors_are_wrapped(self):
        mock_session = AsyncMock()
        mock_session.execute.side_effect = SQLAlchemyError("connection lost")
        store = PostgresEntityStore(mock_session)

        with pytest.raises(DatabaseError) as exc_info:
            await store.complete_run("run-1", ETLStatus.SUCCESS, EtlResult(platform="SHOPEE"))

        assert exc_info.value.context["operation"] == "UPDATE"
        mock_session.rollback.assert_called_once()
