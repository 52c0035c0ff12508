"""Pending-buffer storage providers keyed by descriptor."""

from .memory_store import LockingPendingStore, MemoryPendingStore, PendingStore

__all__ = [
	"PendingStore",
	"MemoryPendingStore",
	"LockingPendingStore",
]
