"""
In-memory test doubles for the entity store and the platform API client
"""

import asyncio
import uuid
from datetime import date
from typing import Any, Dict, List, Optional, Set, Tuple

from core.exceptions import NetworkError, UpsertError
from ingestion.base import FetchPage
from ingestion.loaders.base import EntityStore, entity_definition, natural_key_of
from models.base import ETLStatus
from schemas.etl import EtlResult

Key = Tuple[Any, ...]


class InMemoryDatabase:
    """Committed state shared by every store created over it"""

    def __init__(self):
        self.tables: Dict[str, Dict[Key, Dict[str, Any]]] = {}
        self.sequences: Dict[str, int] = {}
        self.checkpoints: Dict[str, Dict[str, Any]] = {}
        self.runs: Dict[Any, Dict[str, Any]] = {}
        self.lock = asyncio.Lock()

    def table(self, entity: str) -> Dict[Key, Dict[str, Any]]:
        return self.tables.setdefault(entity, {})

    def rows(self, entity: str) -> List[Dict[str, Any]]:
        return list(self.table(entity).values())

    def nextval(self, entity: str) -> int:
        self.sequences[entity] = self.sequences.get(entity, 0) + 1
        return self.sequences[entity]


def _key(entity: str, values: Dict[str, Any]) -> Key:
    return tuple(natural_key_of(entity, values).values())


def _matches(row: Dict[str, Any], key: Dict[str, Any]) -> bool:
    return all(row.get(field) == value for field, value in key.items())


class InMemoryEntityStore(EntityStore):
    """
    EntityStore over an InMemoryDatabase.

    Writes are staged until commit(). insert_if_absent writes through to the
    shared tables under the database lock (like a row lock on the unique
    index) and is undone on rollback().
    """

    def __init__(self, database: Optional[InMemoryDatabase] = None, fail_on_order_ids: Optional[Set[str]] = None):
        self.database = database or InMemoryDatabase()
        self.fail_on_order_ids = fail_on_order_ids or set()
        self._staged: Dict[str, Dict[Key, Optional[Dict[str, Any]]]] = {}
        self._written_through: List[Tuple[str, Key]] = []
        self.commits = 0
        self.rollbacks = 0

    def _visible(self, entity: str) -> Dict[Key, Dict[str, Any]]:
        rows = dict(self.database.table(entity))
        for key, row in self._staged.get(entity, {}).items():
            if row is None:
                rows.pop(key, None)
            else:
                rows[key] = row
        return rows

    def _stage(self, entity: str, key: Key, row: Optional[Dict[str, Any]]) -> None:
        self._staged.setdefault(entity, {})[key] = row

    async def find_by_key(self, entity: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        # Yield so concurrent callers interleave like real I/O
        await asyncio.sleep(0)
        for row in self._visible(entity).values():
            if _matches(row, key):
                return dict(row)
        return None

    async def exists_by_natural_key(self, entity: str, key: Dict[str, Any]) -> bool:
        return await self.find_by_key(entity, key) is not None

    async def upsert(self, entity: str, values: Dict[str, Any]) -> None:
        definition = entity_definition(entity)
        if values.get("order_id") in self.fail_on_order_ids:
            raise UpsertError(f"Simulated failure writing {entity}", context={"order_id": values.get("order_id")})

        key = _key(entity, values)
        current = self._visible(entity).get(key)
        if current is not None:
            row = {**current, **{k: v for k, v in values.items() if k != definition.surrogate_key}}
        else:
            row = dict(values)
            if definition.surrogate_key and row.get(definition.surrogate_key) is None:
                row[definition.surrogate_key] = self.database.nextval(entity)
        self._stage(entity, key, row)

    async def insert_if_absent(self, entity: str, values: Dict[str, Any]) -> Dict[str, Any]:
        key = _key(entity, values)
        async with self.database.lock:
            existing = self._visible(entity).get(key)
            if existing is not None:
                return dict(existing)
            self.database.table(entity)[key] = dict(values)
            self._written_through.append((entity, key))
            return dict(values)

    async def next_surrogate_key(self, entity: str) -> int:
        await asyncio.sleep(0)
        return self.database.nextval(entity)

    async def replace_children(self, entity: str, parent_key: Dict[str, Any], rows: List[Dict[str, Any]]) -> int:
        for key, row in self._visible(entity).items():
            if _matches(row, parent_key):
                self._stage(entity, key, None)
        for row in rows:
            full = {**row, **parent_key}
            self._stage(entity, _key(entity, full), full)
        return len(rows)

    async def find_latest(self, entity: str, key: Dict[str, Any], order_by: str) -> Optional[Dict[str, Any]]:
        candidates = [row for row in self._visible(entity).values() if _matches(row, key)]
        if not candidates:
            return None
        return dict(max(candidates, key=lambda row: row[order_by]))

    async def commit(self) -> None:
        for entity, rows in self._staged.items():
            table = self.database.table(entity)
            for key, row in rows.items():
                if row is None:
                    table.pop(key, None)
                else:
                    table[key] = row
        self._staged.clear()
        self._written_through.clear()
        self.commits += 1

    async def rollback(self) -> None:
        for entity, key in self._written_through:
            self.database.table(entity).pop(key, None)
        self._staged.clear()
        self._written_through.clear()
        self.rollbacks += 1

    # ------------------------------------------------------------------
    # Watermark and run audit
    # ------------------------------------------------------------------

    async def get_checkpoint(self, platform: str) -> Optional[str]:
        checkpoint = self.database.checkpoints.get(platform)
        return checkpoint["checkpoint_value"] if checkpoint else None

    async def save_checkpoint(
        self,
        platform: str,
        checkpoint_value: Optional[str],
        status: ETLStatus,
        records_processed: int = 0,
        error_message: Optional[str] = None
    ) -> None:
        checkpoint = self.database.checkpoints.setdefault(
            platform, {"checkpoint_value": None, "total_runs": 0}
        )
        if checkpoint_value is not None:
            checkpoint["checkpoint_value"] = checkpoint_value
        checkpoint["status"] = status
        checkpoint["total_runs"] += 1
        checkpoint["last_records_processed"] = records_processed
        checkpoint["error_message"] = error_message

    async def start_run(self, platform: str, window_start: str, window_end: str, checkpoint_before: Optional[str] = None) -> Any:
        run_id = uuid.uuid4()
        self.database.runs[run_id] = {
            "platform": platform,
            "status": ETLStatus.RUNNING,
            "window_start": window_start,
            "window_end": window_end,
            "checkpoint_before": checkpoint_before,
        }
        return run_id

    async def complete_run(self, run_id: Any, status: ETLStatus, result: EtlResult, checkpoint_after: Optional[str] = None) -> None:
        self.database.runs[run_id].update({
            "status": status,
            "records_extracted": result.total_orders,
            "records_loaded": result.orders_processed,
            "records_failed": result.orders_failed,
            "records_skipped": result.orders_skipped,
            "checkpoint_after": checkpoint_after,
        })


class FakePlatformClient:
    """
    Serves a fixed list of raw orders page by page for any date.

    ``fail_on_page`` makes that page raise a NetworkError.
    """

    def __init__(self, orders: Optional[List[Dict[str, Any]]] = None, fail_on_page: Optional[int] = None, delay: float = 0.0):
        self.orders = orders or []
        self.fail_on_page = fail_on_page
        self.delay = delay
        self.calls: List[Tuple[date, int, int]] = []
        self.closed = False

    async def fetch(self, day: date, page: int = 1, page_size: Optional[int] = None) -> FetchPage:
        self.calls.append((day, page, page_size))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_on_page == page:
            raise NetworkError("Simulated network failure", context={"page": page})

        limit = page_size or 20
        start = (page - 1) * limit
        chunk = self.orders[start:start + limit]
        return FetchPage(
            orders=chunk,
            has_more=page * limit < len(self.orders),
            total_count=len(self.orders),
            page=page,
        )

    async def close(self) -> None:
        self.closed = True
