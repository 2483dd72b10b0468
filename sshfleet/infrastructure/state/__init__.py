"""
JSON state persistence
"""
from .file_store import JsonFileStore

__all__ = ["JsonFileStore"]
