"""
Sequence store - named snapshots of recent commands
"""
import threading
from datetime import datetime
from typing import Dict, List, Optional, Sequence as SequenceType

from ...core.constants import SEQUENCE_SIZE, SEQUENCES_STATE_KEY
from ...core.exceptions import NotFound, ValidationError
from ...core.interfaces import StateStore
from ...core.logging import get_logger
from .history import distinct_recent
from .models import Sequence

logger = get_logger(__name__)


class SequenceStore:
    """
    Owns saved sequences. A sequence is never changed once created; saving
    under an existing name replaces it with a new value.

    Replaying is left to the caller: it re-issues each command text through
    the dispatcher.
    """

    def __init__(self, state_store: Optional[StateStore] = None, size: int = SEQUENCE_SIZE):
        self.state_store = state_store
        self.size = size
        self._sequences: Dict[str, Sequence] = {}
        self._lock = threading.Lock()
        self._load()

    def _load(self) -> None:
        if self.state_store is None:
            return
        data = self.state_store.load(SEQUENCES_STATE_KEY) or {}
        for item in data.get("sequences", []):
            try:
                sequence = Sequence.from_dict(item)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping unreadable sequence: {e}")
                continue
            self._sequences[sequence.name] = sequence

    def _persist(self) -> None:
        if self.state_store is None:
            return
        self.state_store.save(
            SEQUENCES_STATE_KEY,
            {"sequences": [s.to_dict() for s in self._sequences.values()]},
        )

    def save(self, name: str, recent_commands: SequenceType[str]) -> Sequence:
        """
        Capture up to `size` distinct commands.

        Args:
            name: Sequence name
            recent_commands: Command texts, most recent first

        Raises:
            ValidationError: Empty name or no commands
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Sequence name is required")

        commands = [c for c in recent_commands if c]
        if not commands:
            raise ValidationError("No commands have been run yet")

        # distinct_recent walks oldest-first input
        captured = distinct_recent(list(reversed(commands)), self.size)
        sequence = Sequence(name=name, commands=tuple(captured), created_at=datetime.now())

        with self._lock:
            self._sequences.pop(name, None)
            self._sequences[name] = sequence
            self._persist()

        logger.info(f"Saved sequence {name} ({len(captured)} commands)")
        return sequence

    def get(self, name: str) -> Sequence:
        with self._lock:
            if name not in self._sequences:
                raise NotFound(f"Unknown sequence: {name}")
            return self._sequences[name]

    def list(self) -> List[Sequence]:
        """Sequences in creation order"""
        with self._lock:
            return list(self._sequences.values())

    def delete(self, name: str) -> Sequence:
        with self._lock:
            if name not in self._sequences:
                raise NotFound(f"Unknown sequence: {name}")
            sequence = self._sequences.pop(name)
            self._persist()
        return sequence
