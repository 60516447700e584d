# ============================================================================
# File: ingestion/runner.py
# Description: Generic per-platform ETL pipeline
# ============================================================================
"""
Platform pipeline - pulls updated orders from one platform and loads them.

This module provides:
- Watermark-driven windows (every date since the last successful run)
- Page budgets per date and a wall-clock budget per run
- Per-order units of work: a bad order is rolled back and recorded, the
  rest of the batch continues
- Idempotent writes: an order whose canonical payload is unchanged is skipped
- ETL run audit rows and watermark bookkeeping
"""

from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional
import asyncio
import logging
import time

from core.config import Settings, settings as default_settings
from core.exceptions import ETLException
from ingestion.base import FetchPage, PlatformAdapter, fingerprint
from ingestion.loaders.base import EntityStore
from ingestion.transformers.enrichment import date_key
from ingestion.transformers.status_canonicalizer import StatusCanonicalizer, describe_status
from models.base import ETLStatus
from schemas.etl import ApiCheckResult, EtlResult
from schemas.normalized import CanonicalOrder

logger = logging.getLogger(__name__)


class PlatformPipeline:
    """
    Per-platform ETL pipeline over a PlatformAdapter and an EntityStore.

    Responsibilities:
    - Resolve the fetch window from the watermark
    - Page through the platform API within budget
    - Map, fingerprint and persist each order in its own unit of work
    - Advance the watermark only after a successful run
    """

    def __init__(
        self,
        adapter: PlatformAdapter,
        store: EntityStore,
        settings: Settings = default_settings,
        canonicalizer: Optional[StatusCanonicalizer] = None
    ):
        self.adapter = adapter
        self.store = store
        self.settings = settings
        self.canonicalizer = canonicalizer or StatusCanonicalizer(store)
        self.platform_settings = settings.platform(adapter.name)

        # One store (session) per pipeline: runs of the same platform never overlap
        self._run_lock = asyncio.Lock()

    @property
    def platform(self) -> str:
        return self.adapter.name

    @property
    def enabled(self) -> bool:
        return self.platform_settings.enabled

    async def reset(self) -> None:
        """Discard a unit of work left open by an interrupted run."""
        await self.store.rollback()
        self.canonicalizer.forget()

    async def close(self) -> None:
        await self.adapter.close()
        await self.store.close()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def process_updated_orders(self) -> EtlResult:
        """
        Pull every order updated since the last successful run.

        The window covers each date from the watermark's date through today,
        capped at ETL_MAX_LOOKBACK_DAYS. Without a watermark only today is
        pulled. On success the watermark moves to this run's start time.
        """
        async with self._run_lock:
            run_started = datetime.utcnow()
            return await self._run(
                lambda watermark: self.window_days(watermark, run_started.date()),
                advance_to=run_started
            )

    async def process_orders_for_date(self, day: date) -> EtlResult:
        """Pull one date, e.g. for a backfill. The watermark is left alone."""
        async with self._run_lock:
            return await self._run(lambda watermark: [day], advance_to=None)

    def window_days(self, watermark: Optional[str], today: date) -> List[date]:
        earliest = today - timedelta(days=self.settings.ETL_MAX_LOOKBACK_DAYS)
        start = today

        if watermark:
            try:
                start = datetime.fromisoformat(watermark).date()
            except ValueError:
                logger.warning(f"{self.platform}: unreadable watermark {watermark!r}, pulling today only")
                start = today

        start = min(max(start, earliest), today)
        return [start + timedelta(days=offset) for offset in range((today - start).days + 1)]

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    async def check_api(self, day: Optional[date] = None) -> ApiCheckResult:
        """
        Request a single order for ``day`` (default today) and report whether
        the platform answered. Nothing is written.
        """
        day = day or datetime.utcnow().date()
        try:
            fetched = await self.adapter.fetch_page(day, 1, 1)
        except ETLException as e:
            logger.warning(f"{self.platform} API check failed: {e.message}")
            return ApiCheckResult(
                platform=self.platform,
                healthy=False,
                message=e.message,
                report_date=day,
            )

        return ApiCheckResult(
            platform=self.platform,
            healthy=True,
            message=f"{self.platform} API reachable",
            report_date=day,
            order_count=self._count(fetched),
        )

    async def count_orders(self, day: date) -> Optional[int]:
        """
        Orders the platform reports as updated on ``day``.

        None when the platform sends no count and the first page is not the
        last. Fetch errors propagate.
        """
        fetched = await self.adapter.fetch_page(day, 1, 1)
        return self._count(fetched)

    @staticmethod
    def _count(fetched: FetchPage) -> Optional[int]:
        if fetched.total_count is not None:
            return fetched.total_count
        if not fetched.has_more:
            return len(fetched.orders)
        return None

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def _run(
        self,
        plan: Callable[[Optional[str]], List[date]],
        advance_to: Optional[datetime]
    ) -> EtlResult:
        """
        Read the watermark, plan the window, open the audit row and pull.

        Any failure, including the store failing before the pull starts,
        ends up in the returned EtlResult.
        """
        result = EtlResult(platform=self.platform)
        run_id = None

        try:
            watermark = await self.store.get_checkpoint(self.platform)
            days = plan(watermark)
            window_start = days[0].isoformat()
            window_end = days[-1].isoformat()

            logger.info(f"Starting {self.platform} pipeline for {window_start}..{window_end}")

            run_id = await self.store.start_run(
                self.platform,
                window_start=window_start,
                window_end=window_end,
                checkpoint_before=watermark
            )

            await self._pull(days, result)
            result.finish(success=True)

        except ETLException as e:
            # Fetch failures stop the pull; committed orders stay committed
            logger.error(
                f"{self.platform} pipeline aborted: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            await self._discard_unit_of_work()
            result.finish(success=False, error_message=e.message)

        except Exception as e:
            logger.exception(f"Unexpected error in {self.platform} pipeline")
            await self._discard_unit_of_work()
            result.finish(success=False, error_message=f"{type(e).__name__}: {e}")

        await self._record_outcome(run_id, result, advance_to)

        log = logger.info if result.success else logger.error
        log(result.summary())
        return result

    async def _discard_unit_of_work(self) -> None:
        try:
            await self.reset()
        except Exception as e:
            logger.error(f"{self.platform}: rollback failed: {type(e).__name__}: {e}")

    async def _pull(self, days: List[date], result: EtlResult) -> None:
        page_size = self.platform_settings.page_size
        max_pages = self.platform_settings.max_pages
        deadline = time.monotonic() + self.settings.ETL_RUN_TIME_BUDGET_SECONDS

        for day in days:
            page = 1
            while True:
                if time.monotonic() >= deadline:
                    logger.warning(f"{self.platform}: run time budget exhausted at {day} page {page}")
                    result.truncated = True
                    return

                fetched = await self.adapter.fetch_page(day, page, page_size)
                result.pages_fetched += 1

                for raw in fetched.orders:
                    result.total_orders += 1
                    await self._process_one(raw, result)

                if not fetched.has_more:
                    break
                if page >= max_pages:
                    logger.warning(f"{self.platform}: page budget ({max_pages}) exhausted for {day}")
                    result.truncated = True
                    break
                page += 1

    async def _process_one(self, raw: Dict[str, Any], result: EtlResult) -> None:
        try:
            written = await self.process_order(raw)
            await self.store.commit()
        except Exception as e:
            await self.store.rollback()
            self.canonicalizer.forget()

            order_id = self.adapter.extract_order_id(raw)
            result.record_failure(order_id, e)
            logger.error(f"{self.platform} order {order_id} failed: {type(e).__name__}: {e}")
            return

        if written:
            result.orders_processed += 1
        else:
            result.orders_skipped += 1

    async def _record_outcome(
        self,
        run_id: Any,
        result: EtlResult,
        advance_to: Optional[datetime]
    ) -> None:
        if not result.success:
            status = ETLStatus.FAILED
        elif result.orders_failed:
            status = ETLStatus.PARTIAL
        else:
            status = ETLStatus.SUCCESS

        checkpoint_after = advance_to.isoformat() if (advance_to and result.success) else None

        try:
            await self.store.save_checkpoint(
                self.platform,
                checkpoint_after,
                status,
                records_processed=result.orders_processed,
                error_message=result.error_message
            )
            if run_id is not None:
                await self.store.complete_run(run_id, status, result, checkpoint_after=checkpoint_after)
        except ETLException as e:
            logger.error(
                f"{self.platform}: failed to record run outcome: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            await self._discard_unit_of_work()
            result.success = False
            result.error_message = result.error_message or e.message
        except Exception as e:
            logger.exception(f"{self.platform}: unexpected error recording run outcome")
            await self._discard_unit_of_work()
            result.success = False
            result.error_message = result.error_message or f"{type(e).__name__}: {e}"

    # ------------------------------------------------------------------
    # One order
    # ------------------------------------------------------------------

    async def process_order(self, raw: Dict[str, Any]) -> bool:
        """
        Write every entity for one raw order into the current unit of work.

        Returns False when the order is unchanged since it was last loaded.
        Raises on any mapping or persistence problem; the caller rolls back.
        """
        canonical = self.adapter.map_raw_to_canonical(raw)
        source_hash = fingerprint(canonical)
        order_id = canonical.order_id

        existing = await self.store.find_by_key("order", {"order_id": order_id})
        if existing is not None and existing.get("source_hash") == source_hash:
            logger.debug(f"{order_id} unchanged, skipping")
            return False

        await self._write_customer(canonical, existing)

        for product in canonical.products:
            await self.store.upsert("product", product.model_dump())

        await self.store.upsert("order", {
            **canonical.order.model_dump(),
            "source_hash": source_hash,
            "ingested_at": datetime.utcnow(),
        })
        await self.store.replace_children(
            "order_item",
            {"order_id": order_id},
            [item.model_dump() for item in canonical.items]
        )

        await self.store.upsert("payment", {"order_id": order_id, **canonical.payment.model_dump()})
        await self.store.upsert("shipping", {"order_id": order_id, **canonical.shipping.model_dump()})
        await self.store.upsert("geography", {"order_id": order_id, **canonical.geography.model_dump()})
        if canonical.processing_date is not None:
            await self.store.insert_if_absent("processing_date", canonical.processing_date.model_dump())

        await self._write_status(canonical)
        return True

    async def _write_customer(self, canonical: CanonicalOrder, existing_order: Optional[Dict[str, Any]]) -> None:
        customer = canonical.customer
        order = canonical.order
        current = await self.store.find_by_key("customer", {"customer_id": customer.customer_id})

        total_orders = int(current["total_orders"] or 0) if current else 0
        total_spent = float(current["total_spent"] or 0) if current else 0.0
        first_order = current.get("first_order_date") if current else None
        last_order = current.get("last_order_date") if current else None

        if existing_order is None:
            total_orders += 1
            total_spent += order.gross_revenue
        else:
            # Changed order: only the revenue delta counts
            total_spent += order.gross_revenue - float(existing_order.get("gross_revenue") or 0)

        placed_at = order.created_at or order.updated_at
        if placed_at is not None:
            first_order = min(first_order, placed_at) if first_order else placed_at
            last_order = max(last_order, placed_at) if last_order else placed_at

        await self.store.upsert("customer", {
            **customer.model_dump(exclude_none=current is not None),
            "total_orders": total_orders,
            "total_spent": round(total_spent, 2),
            "first_order_date": first_order,
            "last_order_date": last_order,
        })

    async def _write_status(self, canonical: CanonicalOrder) -> None:
        order_id = canonical.order_id
        observed = canonical.status

        status = await self.canonicalizer.resolve_row(
            canonical.order.platform, observed.code, observed.name
        )
        status_key = int(status["status_key"])

        previous = await self.store.find_latest("order_status", {"order_id": order_id}, "transition_timestamp")
        if previous is None or int(previous["status_key"]) != status_key:
            duration = None
            if previous is not None and previous.get("transition_timestamp"):
                elapsed = observed.changed_at - previous["transition_timestamp"]
                duration = round(max(elapsed.total_seconds(), 0.0) / 3600, 2)

            await self.store.insert_if_absent("order_status", {
                "status_key": status_key,
                "order_id": order_id,
                "transition_timestamp": observed.changed_at,
                "transition_date_key": date_key(observed.changed_at),
                "previous_status_key": int(previous["status_key"]) if previous else None,
                "duration_in_previous_status_hours": duration,
                "transition_reason": "INITIAL" if previous is None else "STATUS_CHANGE",
            })

        await self.store.upsert("order_status_detail", {
            "order_id": order_id,
            "status_key": status_key,
            **describe_status(str(status["standard_status_code"])),
        })
