from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


# ============================================================================
# ENUMS
# ============================================================================

class UploadStatus(str, enum.Enum):
    """Upload lifecycle status"""
    PRESIGNED = "presigned"
    UPLOADED = "uploaded"


class DatasetSourceType(str, enum.Enum):
    """Where a catalog dataset came from"""
    TRACKER = "tracker"
    PARQUET = "parquet"
    IMPORT = "import"


class UsageType(str, enum.Enum):
    """Usage event types"""
    EVENTS_INGEST = "events_ingest"
    UPLOAD_COMPLETE = "upload_complete"
    STORAGE_WRITE = "storage_write"
