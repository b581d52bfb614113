from telescope.storage.base import StorageDriver
from telescope.storage.memory import MemoryStorage
from telescope.storage.port import StoragePort
from telescope.storage.sql import SQLStorage

__all__ = ["MemoryStorage", "SQLStorage", "StorageDriver", "StoragePort"]
