"""
Mnemo Storage

Reference StorageAdapter backends.
"""

from .memory import MemoryStorage
from .file import FileStorage

__all__ = ["MemoryStorage", "FileStorage"]
