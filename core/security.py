"""
Privacy-preserving identity hashing.

Phone numbers and emails are never stored in clear text. They are normalized,
prefixed with a fixed salt and digested with SHA-256 (64 lowercase hex chars).
The digest is the join key used to deduplicate customers across pulls, so the
normalization rules and salts must stay fixed once data has been loaded.

Masking helpers produce display-only values for log lines. A masked value is
never a lookup key.
"""

import enum
import hashlib
import logging
import re
from typing import Optional

from core.config import settings

logger = logging.getLogger(__name__)

_PHONE_PUNCTUATION = re.compile(r"[\s\-\(\)\+\.]")

# Legacy 11-digit mobile prefixes renumbered into the current 10-digit plan
_LEGACY_PREFIXES = (
    ("012", lambda n: "032" + n[3:]),
    ("016", lambda n: "03" + n[2:]),
    ("018", lambda n: "03" + n[2:]),
    ("019", lambda n: "059" + n[3:]),
)

SHORT_HASH_LENGTH = 8
CUSTOMER_HASH_LENGTH = 12


class IdentityKind(str, enum.Enum):
    PHONE = "phone"
    EMAIL = "email"


def normalize_phone(raw: Optional[str]) -> Optional[str]:
    """Collapse formatting variants of a Vietnamese phone number."""
    if raw is None:
        return None

    digits = _PHONE_PUNCTUATION.sub("", str(raw))
    if not digits:
        return None

    if digits.startswith("84"):
        digits = digits[2:]

    for prefix, remap in _LEGACY_PREFIXES:
        if digits.startswith(prefix):
            digits = remap(digits)
            break

    if not digits.startswith("0") and len(digits) >= 9:
        digits = "0" + digits

    return digits


def normalize_email(raw: Optional[str]) -> Optional[str]:
    """Trim and lowercase an email, returning None when it is structurally invalid."""
    if raw is None:
        return None

    email = str(raw).strip().lower()
    at = email.find("@")
    if len(email) < 5 or at < 0 or email.rfind(".") < at:
        return None
    return email


def _digest(salt: str, value: str) -> str:
    return hashlib.sha256((salt + value).encode("utf-8")).hexdigest()


def hash_identity(kind: IdentityKind, raw: Optional[str]) -> Optional[str]:
    """
    Hash a phone number or email into a salted SHA-256 lookup key.

    Returns None (and logs a warning) for empty or invalid input; never raises.
    """
    if raw is None or not str(raw).strip():
        logger.warning(f"Cannot hash empty {kind.value}")
        return None

    if kind == IdentityKind.PHONE:
        normalized = normalize_phone(raw)
        if not normalized:
            logger.warning(f"Cannot hash phone {mask_phone(raw)}: nothing left after normalization")
            return None
        return _digest(settings.PHONE_SALT, normalized)

    normalized = normalize_email(raw)
    if normalized is None:
        logger.warning(f"Cannot hash invalid email {mask_email(raw)}")
        return None
    return _digest(settings.EMAIL_SALT, normalized)


def hash_phone(raw: Optional[str]) -> Optional[str]:
    return hash_identity(IdentityKind.PHONE, raw)


def hash_email(raw: Optional[str]) -> Optional[str]:
    return hash_identity(IdentityKind.EMAIL, raw)


def verify_phone(raw: Optional[str], expected_hash: Optional[str]) -> bool:
    """Check whether a raw phone number hashes to a stored digest."""
    if not expected_hash:
        return False
    return hash_phone(raw) == expected_hash


def verify_email(raw: Optional[str], expected_hash: Optional[str]) -> bool:
    if not expected_hash:
        return False
    return hash_email(raw) == expected_hash


def generate_customer_id(platform: str, identity_hash: str) -> str:
    """Deterministic customer id: PLATFORM_ + first 12 hex chars of the digest."""
    if not platform or not identity_hash:
        raise ValueError("platform and identity_hash are required to build a customer id")
    return f"{platform.upper()}_{identity_hash[:CUSTOMER_HASH_LENGTH]}"


def short_hash(identity_hash: Optional[str]) -> str:
    if not identity_hash:
        return ""
    return identity_hash[:SHORT_HASH_LENGTH]


def mask_phone(raw: Optional[str]) -> str:
    """Display form of a phone number, e.g. 091***78."""
    if raw is None:
        return "***"
    phone = str(raw).strip()
    if len(phone) < 5:
        return "***"
    return f"{phone[:3]}***{phone[-2:]}"


def mask_email(raw: Optional[str]) -> str:
    """Display form of an email, e.g. ab***@example.com."""
    if raw is None:
        return "***@***.***"
    email = str(raw).strip()
    if "@" not in email:
        return "***@***.***"
    local, domain = email.split("@", 1)
    if not domain:
        return "***@***.***"
    if len(local) <= 2:
        return f"**@{domain}"
    return f"{local[:2]}***@{domain}"
