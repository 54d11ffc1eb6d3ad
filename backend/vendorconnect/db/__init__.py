"""Database package."""

from vendorconnect.db.base import Base, BaseModel, UTCDateTime, utcnow

__all__ = ["Base", "BaseModel", "UTCDateTime", "utcnow"]
