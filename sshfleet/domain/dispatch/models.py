"""
Dispatch domain models
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple, Dict, Any, Iterable


class RunStatus(str, Enum):
    EXECUTING = "executing"
    COMPLETED = "completed"
    PARTIALLY_FAILED = "partially-failed"


class Outcome(str, Enum):
    """
    Per-target result:
    - success: exit code 0
    - failed: command ran and exited non-zero
    - error: connection or authentication failure
    - timeout: no answer within the command timeout
    - cancelled: run cancelled before or while this target ran
    """
    SUCCESS = "success"
    FAILED = "failed"
    ERROR = "error"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class TargetResult:
    server_name: str
    outcome: Outcome
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    exit_code: Optional[int] = None
    stdout: str = ""
    stderr: str = ""
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome == Outcome.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "server_name": self.server_name,
            "outcome": self.outcome.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "exit_code": self.exit_code,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "error": self.error,
        }


@dataclass(frozen=True)
class ExcludedTarget:
    """Selected server that was not executed against, and why"""
    server_name: str
    reason: str


@dataclass(frozen=True)
class CommandRun:
    """One dispatch of a command; results follow target_names order"""
    id: str
    command_text: str
    target_names: Tuple[str, ...]
    issued_at: datetime
    status: RunStatus
    results: Tuple[TargetResult, ...] = ()
    excluded: Tuple[ExcludedTarget, ...] = ()

    def result_for(self, server_name: str) -> Optional[TargetResult]:
        for result in self.results:
            if result.server_name == server_name:
                return result
        return None

    @property
    def failed(self) -> Tuple[TargetResult, ...]:
        return tuple(r for r in self.results if not r.ok)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "id": self.id,
            "command_text": self.command_text,
            "target_names": list(self.target_names),
            "issued_at": self.issued_at.isoformat(),
            "status": self.status.value,
            "results": [r.to_dict() for r in self.results],
            "excluded": [{"server_name": e.server_name, "reason": e.reason} for e in self.excluded],
        }


def overall_status(results: Iterable[TargetResult]) -> RunStatus:
    """completed only when every target succeeded"""
    if all(r.ok for r in results):
        return RunStatus.COMPLETED
    return RunStatus.PARTIALLY_FAILED
