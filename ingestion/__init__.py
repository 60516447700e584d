"""
Order ingestion pipeline for Shopee, TikTok Shop and Facebook.

Modules:
    base: PlatformAdapter interface, FetchPage and payload fingerprinting
    runner: PlatformPipeline, the generic per-platform ETL run
    scheduler: MultiPlatformScheduler (APScheduler interval + manual triggers)
    health: Sliding-window platform health

Subpackages:
    extractors: Platform API client and per-platform adapters
    transformers: Status canonicalization and dimension enrichment
    loaders: EntityStore contract and the PostgreSQL implementation

Usage:
    from ingestion.scheduler import build_scheduler

    scheduler = build_scheduler()
    cycle = await scheduler.trigger_all_platforms()

Error Handling:
    A bad order is rolled back and reported in EtlResult.failed_orders; a
    fetch failure ends that platform's run with success=False. The scheduler
    never lets one platform's failure reach another.
"""

__all__ = [
    "PlatformAdapter",
    "PlatformPipeline",
    "MultiPlatformScheduler",
    "PostgresEntityStore",
    "StatusCanonicalizer",
]
