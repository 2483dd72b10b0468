import threading
from pathlib import Path
from typing import Dict, List, Optional, Union

import pytest

from sshfleet.core.events import EventBus
from sshfleet.core.exceptions import AlreadyExists, Cancelled
from sshfleet.core.interfaces import ExecResult, KeyProvider, RemoteSession
from sshfleet.domain import FleetService
from sshfleet.domain.dispatch import Dispatcher
from sshfleet.domain.fleet import ProvisioningController, ServerRegistry, ServerSpec, ServerState
from sshfleet.domain.sequence import CommandHistory, SequenceStore
from sshfleet.infrastructure.ssh_config import SshConfigStore
from sshfleet.infrastructure.state import JsonFileStore


class FakeRemoteSession(RemoteSession):
    """
    In-memory remote session.

    results maps a server name to an ExecResult or an exception to raise.
    A name listed in gates blocks in exec until its event is set (or the
    name is interrupted).
    """

    def __init__(self) -> None:
        self.results: Dict[str, Union[ExecResult, Exception]] = {}
        self.gates: Dict[str, threading.Event] = {}
        self.verify_results: Dict[str, Union[bool, Exception]] = {}
        self.install_error: Optional[Exception] = None
        self.installs: List[tuple] = []
        self.calls: List[tuple] = []
        self.finished: List[str] = []
        self.interrupted: List[str] = []
        self.call_ids: List[Optional[str]] = []
        self.interrupt_ids: List[Optional[str]] = []
        self.started: Dict[str, threading.Event] = {}
        self._lock = threading.Lock()

    def started_event(self, name: str) -> threading.Event:
        with self._lock:
            return self.started.setdefault(name, threading.Event())

    def install_key(self, host, user, public_key, password=None) -> None:
        self.installs.append((host, user, Path(public_key), password))
        if self.install_error is not None:
            raise self.install_error

    def verify(self, name: str, timeout: float) -> bool:
        outcome = self.verify_results.get(name, True)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def exec(self, name: str, command: str, timeout: float, call_id: Optional[str] = None) -> ExecResult:
        with self._lock:
            self.calls.append((name, command))
            self.call_ids.append(call_id)
        self.started_event(name).set()

        gate = self.gates.get(name)
        if gate is not None:
            gate.wait(5)

        try:
            if name in self.interrupted:
                raise Cancelled(f"{name}: interrupted")
            outcome = self.results.get(name, ExecResult(stdout=f"{name}: {command}\n", stderr="", exit_code=0))
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        finally:
            with self._lock:
                self.finished.append(name)

    def interrupt(self, name: str, call_id: Optional[str] = None) -> None:
        self.interrupted.append(name)
        self.interrupt_ids.append(call_id)
        gate = self.gates.get(name)
        if gate is not None:
            gate.set()


class FakeKeyProvider(KeyProvider):
    """Key provider that only writes placeholder files"""

    def __init__(self, ssh_dir: Path) -> None:
        self.ssh_dir = Path(ssh_dir)
        self.generated: List[Path] = []

    def default_public_key(self) -> Path:
        return self.ssh_dir / "id_rsa.pub"

    def generate(self, path: Optional[Path] = None, overwrite: bool = False) -> Path:
        key_path = Path(path) if path else self.ssh_dir / "id_rsa"
        public_key = Path(str(key_path) + ".pub")
        if key_path.exists() and not overwrite:
            raise AlreadyExists(f"Key already exists: {key_path}")
        key_path.parent.mkdir(parents=True, exist_ok=True)
        key_path.write_text(f"private {len(self.generated)}\n")
        public_key.write_text(f"ssh-rsa AAAA{len(self.generated)} test\n")
        self.generated.append(public_key)
        return public_key

    def delete(self, path: Path) -> None:
        for p in (Path(path), Path(str(path) + ".pub")):
            if p.exists():
                p.unlink()


def make_configured(registry: ServerRegistry, name: str, host: Optional[str] = None):
    """Add a server and walk it to configured"""
    entry = registry.add(ServerSpec(host=host or f"{name}.example.com", name=name))
    for state in (ServerState.PENDING_VERIFICATION, ServerState.VERIFYING, ServerState.CONFIGURED):
        entry = registry.transition(entry.id, state)
    return entry


@pytest.fixture
def ssh_dir(tmp_path: Path) -> Path:
    path = tmp_path / "ssh"
    path.mkdir()
    return path


@pytest.fixture
def config_path(ssh_dir: Path) -> Path:
    return ssh_dir / "sshfleet_config"


@pytest.fixture
def key_provider(ssh_dir: Path) -> FakeKeyProvider:
    return FakeKeyProvider(ssh_dir)


@pytest.fixture
def session() -> FakeRemoteSession:
    return FakeRemoteSession()


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def registry(config_path, key_provider, events) -> ServerRegistry:
    return ServerRegistry(
        config_path,
        config_store=SshConfigStore(),
        key_provider=key_provider,
        events=events,
    )


@pytest.fixture
def dispatcher(registry, session, events) -> Dispatcher:
    return Dispatcher(registry, session, events=events, max_workers=4, command_timeout=5)


@pytest.fixture
def state_store(tmp_path: Path) -> JsonFileStore:
    return JsonFileStore(tmp_path / "state")


@pytest.fixture
def service(registry, session, dispatcher, key_provider, state_store) -> FleetService:
    return FleetService(
        registry=registry,
        provisioning=ProvisioningController(registry, session, verify_timeout=5),
        dispatcher=dispatcher,
        sequences=SequenceStore(state_store),
        history=CommandHistory(state_store),
        key_provider=key_provider,
    )
