"""
Sequence domain models
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Tuple, Dict, Any


@dataclass(frozen=True)
class Sequence:
    """Named snapshot of recent command texts, most recent first"""
    name: str
    commands: Tuple[str, ...]
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "name": self.name,
            "commands": list(self.commands),
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Sequence":
        """Create from dictionary"""
        return cls(
            name=data["name"],
            commands=tuple(data["commands"]),
            created_at=datetime.fromisoformat(data["created_at"]),
        )


@dataclass(frozen=True)
class HistoryEntry:
    command: str
    issued_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {"command": self.command, "issued_at": self.issued_at.isoformat()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryEntry":
        return cls(command=data["command"], issued_at=datetime.fromisoformat(data["issued_at"]))
