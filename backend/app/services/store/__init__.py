"""Record store boundary."""
from .record_store import RecordStore

__all__ = ["RecordStore"]
