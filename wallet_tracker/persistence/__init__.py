"""Persistence layer: engine, ORM models and the storage gateway."""

from .engine import Database, to_async_url
from .gateway import EventPage, PersistenceGateway, event_fingerprint, event_to_record
from .models import Base, TrackedWallet, TransactionRecord

__all__ = [
    "Base",
    "Database",
    "EventPage",
    "PersistenceGateway",
    "TrackedWallet",
    "TransactionRecord",
    "event_fingerprint",
    "event_to_record",
    "to_async_url",
]
