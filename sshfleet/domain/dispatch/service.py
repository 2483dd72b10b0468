"""
Dispatcher - runs one command on many servers concurrently
"""
import threading
import uuid
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Deque, List, Optional, Sequence, Set

from ...core.constants import DEFAULT_COMMAND_TIMEOUT, DEFAULT_HISTORY_LIMIT, DEFAULT_MAX_WORKERS
from ...core.events import EventBus
from ...core.exceptions import Cancelled, RemoteSessionError, Timeout, ValidationError
from ...core.interfaces import RemoteSession
from ...core.logging import get_logger
from ..fleet.models import ServerState
from ..fleet.registry import ServerRegistry
from .models import CommandRun, ExcludedTarget, Outcome, RunStatus, TargetResult, overall_status

logger = get_logger(__name__)

HistoryListener = Callable[[CommandRun], None]


class RunHandle:
    """
    A CommandRun in progress.

    Each target owns one pre-sized slot in the result list, so results are
    always reported in target order whatever order the workers finish in.
    """

    def __init__(
        self,
        command_text: str,
        target_names: Sequence[str],
        eligible: Sequence[str],
        excluded: Sequence[ExcludedTarget],
        remote_session: RemoteSession,
    ):
        self.id = uuid.uuid4().hex
        self.command_text = command_text
        self.target_names = tuple(target_names)
        self.eligible = tuple(eligible)
        self.excluded = tuple(excluded)
        self.issued_at = datetime.now()
        self.remote_session = remote_session

        self._results: List[Optional[TargetResult]] = [None] * len(self.eligible)
        self._remaining = len(self.eligible)
        self._in_flight: Set[str] = set()
        self._futures: List[Future] = []
        self._final: Optional[CommandRun] = None
        self._cancel_event = threading.Event()
        self._done_event = threading.Event()
        self._lock = threading.Lock()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def done(self) -> bool:
        return self._done_event.is_set()

    def cancel(self) -> None:
        """
        Cancel the run. Targets not started yet report cancelled; targets in
        flight are interrupted through the remote session.
        """
        self._cancel_event.set()
        for future in list(self._futures):
            future.cancel()
        with self._lock:
            in_flight = list(self._in_flight)
        for name in in_flight:
            logger.debug(f"Interrupting {name}")
            self.remote_session.interrupt(name, call_id=self.id)

    def wait(self, timeout: Optional[float] = None) -> CommandRun:
        self._done_event.wait(timeout)
        return self.snapshot()

    def snapshot(self) -> CommandRun:
        with self._lock:
            if self._final is not None:
                return self._final
            results = tuple(r for r in self._results if r is not None)
        return self._build(RunStatus.EXECUTING, results)

    # --------------------
    # Worker side
    # --------------------
    def _enter(self, name: str) -> bool:
        """Mark name in flight unless the run was cancelled"""
        with self._lock:
            if self.cancelled:
                return False
            self._in_flight.add(name)
            return True

    def _leave(self, name: str) -> None:
        with self._lock:
            self._in_flight.discard(name)

    def _record(self, index: int, result: TargetResult) -> Optional[CommandRun]:
        """Store one result; returns the final run once every slot is filled"""
        with self._lock:
            self._results[index] = result
            self._remaining -= 1
            if self._remaining > 0:
                return None
            results = tuple(self._results)
            self._final = self._build(overall_status(results), results)
            return self._final

    def _complete(self) -> None:
        self._done_event.set()

    def _build(self, status: RunStatus, results) -> CommandRun:
        return CommandRun(
            id=self.id,
            command_text=self.command_text,
            target_names=self.target_names,
            issued_at=self.issued_at,
            status=status,
            results=tuple(results),
            excluded=self.excluded,
        )


class Dispatcher:
    """
    Fans one command out to the selected configured servers.

    Every target runs in its own task on a bounded thread pool; a failure,
    timeout or exception on one target is recorded for that target only.
    Nothing is retried here.
    """

    def __init__(
        self,
        registry: ServerRegistry,
        remote_session: RemoteSession,
        events: Optional[EventBus] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        if max_workers < 1:
            raise ValidationError("max_workers must be at least 1")
        self.registry = registry
        self.remote_session = remote_session
        self.events = events or registry.events
        self.max_workers = max_workers
        self.command_timeout = command_timeout
        self._history: Deque[CommandRun] = deque(maxlen=history_limit)
        self._listeners: List[HistoryListener] = []
        self._lock = threading.Lock()

    # --------------------
    # History
    # --------------------
    def add_history_listener(self, listener: HistoryListener) -> None:
        """listener receives every finished CommandRun"""
        with self._lock:
            self._listeners.append(listener)

    def history(self) -> List[CommandRun]:
        """Finished runs, oldest first"""
        with self._lock:
            return list(self._history)

    # --------------------
    # Dispatch
    # --------------------
    def run(self, command_text: str, target_names: Sequence[str]) -> CommandRun:
        """Dispatch and block until every target has finished"""
        return self.start(command_text, target_names).wait()

    def start(self, command_text: str, target_names: Sequence[str]) -> RunHandle:
        """
        Dispatch without waiting.

        Raises:
            ValidationError: Empty command, no targets, or no target is
                currently configured
        """
        command_text = (command_text or "").strip()
        if not command_text:
            raise ValidationError("Command is required")

        names = list(dict.fromkeys(n for n in target_names if n))
        if not names:
            raise ValidationError("Select at least one server")

        eligible, excluded = self._select(names)
        if not eligible:
            reasons = ", ".join(f"{e.server_name}: {e.reason}" for e in excluded)
            raise ValidationError(f"No configured server among the selection ({reasons})")

        handle = RunHandle(command_text, names, eligible, excluded, self.remote_session)
        for item in excluded:
            logger.warning(f"Skipping {item.server_name}: {item.reason}")
        logger.info(f"Running {command_text!r} on {len(eligible)} server(s)")
        self.events.publish("run.started", run=handle.snapshot())

        executor = ThreadPoolExecutor(
            max_workers=min(len(eligible), self.max_workers),
            thread_name_prefix="sshfleet-dispatch",
        )
        futures = [executor.submit(self._run_target, handle, name) for name in eligible]
        handle._futures = futures
        for index, future in enumerate(futures):
            future.add_done_callback(
                lambda f, i=index: self._on_target_done(handle, executor, i, f)
            )
        return handle

    def _select(self, names: Sequence[str]):
        eligible: List[str] = []
        excluded: List[ExcludedTarget] = []
        for name in names:
            entry = self.registry.find_by_name(name)
            if entry is None:
                excluded.append(ExcludedTarget(name, "unknown server"))
            elif entry.state != ServerState.CONFIGURED:
                excluded.append(ExcludedTarget(name, f"not configured ({entry.state.value})"))
            else:
                eligible.append(name)
        return eligible, excluded

    def _run_target(self, handle: RunHandle, name: str) -> TargetResult:
        if not handle._enter(name):
            return TargetResult(name, Outcome.CANCELLED, error="Cancelled before start")

        started_at = datetime.now()
        try:
            result = self.remote_session.exec(
                name, handle.command_text, self.command_timeout, call_id=handle.id
            )
        except Timeout as e:
            return self._failure(name, Outcome.TIMEOUT, started_at, e)
        except Cancelled as e:
            return self._failure(name, Outcome.CANCELLED, started_at, e)
        except RemoteSessionError as e:
            return self._failure(name, Outcome.ERROR, started_at, e)
        except Exception as e:
            logger.exception(f"Unexpected failure on {name}")
            return self._failure(name, Outcome.ERROR, started_at, e)
        finally:
            handle._leave(name)

        return TargetResult(
            server_name=name,
            outcome=Outcome.SUCCESS if result.ok else Outcome.FAILED,
            started_at=started_at,
            finished_at=datetime.now(),
            exit_code=result.exit_code,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    def _failure(self, name: str, outcome: Outcome, started_at: datetime, error: Exception) -> TargetResult:
        logger.warning(f"{name}: {outcome.value}: {error}")
        return TargetResult(
            server_name=name,
            outcome=outcome,
            started_at=started_at,
            finished_at=datetime.now(),
            error=str(error) or error.__class__.__name__,
        )

    def _on_target_done(self, handle: RunHandle, executor: ThreadPoolExecutor, index: int, future: Future) -> None:
        name = handle.eligible[index]
        if future.cancelled():
            result = TargetResult(name, Outcome.CANCELLED, error="Cancelled before start")
        else:
            result = future.result()

        self.events.publish("run.target_finished", run_id=handle.id, result=result)
        final = handle._record(index, result)
        if final is None:
            return

        executor.shutdown(wait=False)
        self._finish(final)
        handle._complete()

    def _finish(self, run: CommandRun) -> None:
        logger.info(f"Run {run.id[:8]} {run.status.value}")
        with self._lock:
            self._history.append(run)
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(run)
            except Exception:
                logger.exception("History listener failed")
        self.events.publish("run.finished", run=run)
