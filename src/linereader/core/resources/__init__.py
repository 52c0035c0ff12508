"""Buffer budgeting utilities."""

from .manager import BufferBudget, BufferLease, BufferLimitError

__all__ = ["BufferBudget", "BufferLease", "BufferLimitError"]
