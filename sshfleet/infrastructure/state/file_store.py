"""
File-based state storage implementation
"""
import json
import os
import tempfile
from pathlib import Path
from typing import Dict, Any, Optional

from ...core.interfaces import StateStore
from ...core.exceptions import DurabilityError
from ...core.constants import DEFAULT_STATE_DIR
from ...core.logging import get_logger

logger = get_logger(__name__)


class JsonFileStore(StateStore):
    """
    File-based state storage.

    Stores one JSON document per name:
    - {state_dir}/{name}.json
    """

    def __init__(self, state_dir: Optional[Path] = None):
        """
        Initialize file state store.

        Args:
            state_dir: Directory for storing state files
        """
        if state_dir is None:
            state_dir = Path(DEFAULT_STATE_DIR)

        self.state_dir = Path(state_dir).expanduser()
        self.state_dir.mkdir(parents=True, exist_ok=True)

    def _get_state_file(self, name: str) -> Path:
        """Get state file path for name"""
        return self.state_dir / f"{name}.json"

    def save(self, name: str, state: Dict[str, Any]) -> None:
        """Save state for a name (temp file + rename)"""
        state_file = self._get_state_file(name)
        tmp_name: Optional[str] = None
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=f".{name}.", suffix=".tmp", dir=self.state_dir)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(state, f, indent=2)
            os.replace(tmp_name, state_file)
            tmp_name = None
        except OSError as e:
            raise DurabilityError(f"Failed to write {state_file}: {e}") from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

    def load(self, name: str) -> Optional[Dict[str, Any]]:
        """Load state for a name, None if missing or unreadable"""
        state_file = self._get_state_file(name)
        if not state_file.exists():
            return None

        try:
            return json.loads(state_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable state file {state_file}: {e}")
            return None

    def delete(self, name: str) -> None:
        """Delete state for a name"""
        state_file = self._get_state_file(name)
        if state_file.exists():
            state_file.unlink()

    def list(self) -> list[str]:
        """List all stored names"""
        return sorted(p.stem for p in self.state_dir.glob("*.json"))

    def exists(self, name: str) -> bool:
        """Check if state exists for a name"""
        return self._get_state_file(name).exists()
