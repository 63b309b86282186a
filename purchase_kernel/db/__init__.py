"""Database layer: declarative base, portable column types, engine and sessions."""

from purchase_kernel.db.base import Base, MoneyType, TrackedBase, UTCDateTime, UUIDString

__all__ = ["Base", "MoneyType", "TrackedBase", "UTCDateTime", "UUIDString"]
