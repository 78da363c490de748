"""Verdict persistence: SQLAlchemy models and the VettingStore implementations."""

from backend_vetting.database.store import (
    MemoryVettingStore,
    SqlVettingStore,
    VettingStore,
    get_store,
)

__all__ = ["MemoryVettingStore", "SqlVettingStore", "VettingStore", "get_store"]
