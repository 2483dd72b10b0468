"""
Saved command sequences
"""
from .models import HistoryEntry, Sequence
from .history import CommandHistory, distinct_recent
from .service import SequenceStore

__all__ = [
    "HistoryEntry",
    "Sequence",
    "CommandHistory",
    "distinct_recent",
    "SequenceStore",
]
