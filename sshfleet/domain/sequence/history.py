"""
Command history fed by the dispatcher
"""
import threading
from typing import List, Optional

from ...core.constants import DEFAULT_HISTORY_LIMIT, HISTORY_STATE_KEY, SEQUENCE_SIZE
from ...core.interfaces import StateStore
from ...core.logging import get_logger
from ..dispatch.models import CommandRun
from .models import HistoryEntry

logger = get_logger(__name__)


def distinct_recent(commands: List[str], limit: int) -> List[str]:
    """
    Newest-first distinct commands from an oldest-first list.

    Example:
        distinct_recent(["a", "b", "a", "c"], 2) -> ["c", "a"]
    """
    result: List[str] = []
    for command in reversed(commands):
        if command not in result:
            result.append(command)
        if len(result) == limit:
            break
    return result


class CommandHistory:
    """
    Issued command texts, oldest first, bounded.

    Registered as a dispatcher history listener; optionally persisted so the
    history survives between CLI invocations.
    """

    def __init__(self, state_store: Optional[StateStore] = None, limit: int = DEFAULT_HISTORY_LIMIT):
        self.state_store = state_store
        self.limit = limit
        self._entries: List[HistoryEntry] = []
        self._lock = threading.Lock()
        self._load()

    def _load(self) -> None:
        if self.state_store is None:
            return
        data = self.state_store.load(HISTORY_STATE_KEY) or {}
        try:
            self._entries = [HistoryEntry.from_dict(item) for item in data.get("commands", [])]
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring unreadable command history: {e}")
            self._entries = []

    def _persist(self) -> None:
        if self.state_store is None:
            return
        self.state_store.save(HISTORY_STATE_KEY, {"commands": [e.to_dict() for e in self._entries]})

    def record(self, run: CommandRun) -> None:
        with self._lock:
            self._entries.append(HistoryEntry(run.command_text, run.issued_at))
            # runs can finish out of order; keep issue order
            self._entries.sort(key=lambda e: e.issued_at)
            del self._entries[:-self.limit]
            self._persist()

    def entries(self) -> List[HistoryEntry]:
        with self._lock:
            return list(self._entries)

    def recent(self, limit: int = SEQUENCE_SIZE) -> List[str]:
        """Most recent distinct command texts, newest first"""
        with self._lock:
            return distinct_recent([e.command for e in self._entries], limit)

    def clear(self) -> None:
        with self._lock:
            self._entries = []
            self._persist()
