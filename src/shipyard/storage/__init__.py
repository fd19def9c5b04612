from .base import Storage
from .memory import MemoryStorage
from .sql import SQLStorage

__all__ = ["Storage", "MemoryStorage", "SQLStorage"]
