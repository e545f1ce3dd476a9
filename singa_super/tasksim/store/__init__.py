"""Task registry implementations."""
from .interface import TaskRegistryProtocol
from .memory import MemoryTaskRegistry

__all__ = ["MemoryTaskRegistry", "TaskRegistryProtocol"]
