"""
Persistence capability contract used by the pipeline and status canonicalizer.

The core never builds queries itself. It asks the store for a small set of
capabilities per entity (find by key, existence by natural key, upsert,
atomic insert-if-absent, next surrogate key) plus unit-of-work control and
watermark/run bookkeeping.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from models.base import ETLStatus
from schemas.etl import EtlResult


@dataclass(frozen=True)
class EntityDefinition:
    name: str
    natural_key: Tuple[str, ...]
    surrogate_key: Optional[str] = None


ENTITIES: Dict[str, EntityDefinition] = {
    definition.name: definition
    for definition in (
        EntityDefinition("customer", ("customer_id",), "customer_key"),
        EntityDefinition("order", ("order_id",)),
        EntityDefinition("order_item", ("order_id", "item_sequence")),
        EntityDefinition("product", ("sku", "platform_product_id")),
        EntityDefinition("status", ("platform", "platform_status_code"), "status_key"),
        EntityDefinition("order_status", ("status_key", "order_id", "transition_timestamp")),
        EntityDefinition("order_status_detail", ("order_id",)),
        EntityDefinition("payment", ("order_id",), "payment_key"),
        EntityDefinition("shipping", ("order_id",), "shipping_key"),
        EntityDefinition("geography", ("order_id",), "geography_key"),
        EntityDefinition("processing_date", ("date_key",)),
    )
}


def entity_definition(entity: str) -> EntityDefinition:
    try:
        return ENTITIES[entity]
    except KeyError:
        raise KeyError(f"Unknown entity: {entity}") from None


def natural_key_of(entity: str, values: Dict[str, Any]) -> Dict[str, Any]:
    """Pick the natural key fields out of a full row."""
    definition = entity_definition(entity)
    missing = [field for field in definition.natural_key if values.get(field) is None]
    if missing:
        raise KeyError(f"{entity} row is missing natural key fields: {missing}")
    return {field: values[field] for field in definition.natural_key}


class EntityStore(ABC):
    """
    Storage capabilities required by the ETL core.

    Writes are staged in a unit of work and become visible to other stores on
    ``commit()``. ``insert_if_absent`` and ``next_surrogate_key`` must be atomic
    with respect to concurrent stores sharing the same backend.
    """

    # ------------------------------------------------------------------
    # Entity capabilities
    # ------------------------------------------------------------------

    @abstractmethod
    async def find_by_key(self, entity: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Return the row matching ``key`` (natural or primary key) or None."""

    @abstractmethod
    async def exists_by_natural_key(self, entity: str, key: Dict[str, Any]) -> bool:
        pass

    @abstractmethod
    async def upsert(self, entity: str, values: Dict[str, Any]) -> None:
        """Insert or update by natural key; an existing surrogate key is kept."""

    @abstractmethod
    async def insert_if_absent(self, entity: str, values: Dict[str, Any]) -> Dict[str, Any]:
        """
        Atomically insert ``values`` unless a row with the same natural key
        exists. Returns the persisted row, which is the pre-existing one when
        another writer won.
        """

    @abstractmethod
    async def next_surrogate_key(self, entity: str) -> int:
        """Allocate the next key from the entity's sequence. Keys are never reused."""

    @abstractmethod
    async def replace_children(
        self,
        entity: str,
        parent_key: Dict[str, Any],
        rows: List[Dict[str, Any]]
    ) -> int:
        """Replace every row matching ``parent_key`` with ``rows``."""

    @abstractmethod
    async def find_latest(
        self,
        entity: str,
        key: Dict[str, Any],
        order_by: str
    ) -> Optional[Dict[str, Any]]:
        """Row matching ``key`` with the greatest ``order_by`` value."""

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    @abstractmethod
    async def commit(self) -> None:
        pass

    @abstractmethod
    async def rollback(self) -> None:
        pass

    async def close(self) -> None:
        """Release the underlying connection or session"""
        return None

    # ------------------------------------------------------------------
    # Watermark and run audit
    # ------------------------------------------------------------------

    @abstractmethod
    async def get_checkpoint(self, platform: str) -> Optional[str]:
        """Stored watermark for a platform, as an ISO timestamp."""

    @abstractmethod
    async def save_checkpoint(
        self,
        platform: str,
        checkpoint_value: Optional[str],
        status: ETLStatus,
        records_processed: int = 0,
        error_message: Optional[str] = None
    ) -> None:
        pass

    @abstractmethod
    async def start_run(
        self,
        platform: str,
        window_start: str,
        window_end: str,
        checkpoint_before: Optional[str] = None
    ) -> Any:
        """Create an audit row and return its identifier."""

    @abstractmethod
    async def complete_run(
        self,
        run_id: Any,
        status: ETLStatus,
        result: EtlResult,
        checkpoint_after: Optional[str] = None
    ) -> None:
        pass
