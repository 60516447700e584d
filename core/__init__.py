"""
Core utilities and configuration for the multi-platform order ETL system.

This package provides foundational components used throughout the ETL pipeline:

Modules:
    config: Application configuration and environment variable management
    database: Database engine and session factory
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities
    security: Salted identity hashing and PII masking

Usage:
    from core.config import settings
    from core.database import async_session_maker
    from core.exceptions import APIExtractionError, NetworkError
    from core.logging import setup_logging
    from core.security import hash_phone, generate_customer_id

Example:
    setup_logging()

    phone_hash = hash_phone("+84 912-345-678")
    customer_id = generate_customer_id("SHOPEE", phone_hash)
"""

__all__ = [
    "settings",
    "async_session_maker",
    "setup_logging",
    "hash_phone",
    "hash_email",
    # Exceptions
    "ETLException",
    "ExtractionError",
    "APIExtractionError",
    "TransformationError",
    "ValidationError",
    "MappingError",
    "LoadError",
    "DatabaseError",
    "UpsertError",
    "CheckpointError",
    "SchedulerError",
    "PlatformNotFoundError",
    "PlatformDisabledError",
    "RetryableError",
    "NonRetryableError",
    "NetworkError",
    "RateLimitError",
    "AuthenticationError",
    "ResourceNotFoundError",
    "MalformedResponseError",
]
