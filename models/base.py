from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


# ============================================================================
# ENUMS
# ============================================================================

class Platform(str, enum.Enum):
    """Upstream e-commerce platforms"""
    SHOPEE = "SHOPEE"
    TIKTOK = "TIKTOK"
    FACEBOOK = "FACEBOOK"


class ETLStatus(str, enum.Enum):
    """ETL run status"""
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    PARTIAL = "partial"
