"""
Server registry - authoritative in-memory server list backed by the
fleet config file
"""
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional

from ...core.constants import DEFAULT_USER, VERIFIED_STATE_KEY
from ...core.events import EventBus
from ...core.exceptions import DurabilityError, NotFound, ParseError, ValidationError
from ...core.interfaces import KeyProvider, StateStore
from ...core.logging import get_logger
from ...infrastructure.ssh_config import ConfigDocument, SshConfigStore, validate_host_name
from .lifecycle import check_transition
from .models import CredentialRef, ServerEntry, ServerSpec, ServerState

logger = get_logger(__name__)


class ServerRegistry:
    """
    Owns the server list and is the only writer of the fleet config file.

    Every public method runs under one re-entrant lock. Mutations are
    applied to memory first (and announced on the event bus), then written
    to the config file; if the write fails the in-memory change is undone
    before the error propagates.
    """

    def __init__(
        self,
        config_path: Path,
        config_store: Optional[SshConfigStore] = None,
        key_provider: Optional[KeyProvider] = None,
        events: Optional[EventBus] = None,
        default_user: str = DEFAULT_USER,
        state_store: Optional[StateStore] = None,
    ):
        self.config_path = Path(config_path).expanduser()
        self.config_store = config_store or SshConfigStore()
        self.key_provider = key_provider
        self.events = events or EventBus()
        self.default_user = default_user
        self.state_store = state_store
        self._entries: List[ServerEntry] = []
        self._diagnostics: List[ParseError] = []
        self._lock = threading.RLock()

    # --------------------
    # Queries
    # --------------------
    def list(self) -> List[ServerEntry]:
        with self._lock:
            return [replace(e) for e in self._entries]

    def get(self, server_id: str) -> ServerEntry:
        with self._lock:
            return replace(self._require(server_id))

    def find_by_name(self, name: str) -> Optional[ServerEntry]:
        with self._lock:
            entry = self._find(name)
            return replace(entry) if entry else None

    @property
    def diagnostics(self) -> List[ParseError]:
        """Blocks skipped by the last load_from_config"""
        with self._lock:
            return list(self._diagnostics)

    # --------------------
    # Loading
    # --------------------
    def load_from_config(self, path: Optional[Path] = None) -> List[ServerEntry]:
        """
        Replace the server list with the Host blocks of the config file.

        A missing file gives an empty list. Entries start as configured;
        last_verified_at is carried over by name, from memory or from the
        state store.
        """
        with self._lock:
            if path is not None:
                self.config_path = Path(path).expanduser()

            try:
                doc = self.config_store.load(self.config_path)
            except NotFound:
                logger.info(f"No fleet config at {self.config_path}, starting empty")
                doc = ConfigDocument()

            verified: Dict[str, Optional[datetime]] = dict(self._load_verified())
            verified.update((e.name, e.last_verified_at) for e in self._entries if e.last_verified_at)
            self._entries = [
                ServerEntry(
                    name=block.name,
                    host=block.hostname,
                    user=block.user or self.default_user,
                    credential=(
                        CredentialRef.from_identity_file(block.identity_file)
                        if block.identity_file else None
                    ),
                    state=ServerState.CONFIGURED,
                    last_verified_at=verified.get(block.name),
                )
                for block in doc.hosts
            ]
            self._diagnostics = list(doc.diagnostics)

            logger.debug(f"Loaded {len(self._entries)} servers from {self.config_path}")
            self.events.publish(
                "servers.loaded",
                servers=self.list(),
                diagnostics=list(self._diagnostics),
            )
            return self.list()

    # --------------------
    # Mutations
    # --------------------
    def add(self, spec: ServerSpec) -> ServerEntry:
        """
        Add a server in state configuring and write its Host block.

        Raises:
            ValidationError: Empty host or name already taken
            DurabilityError: Config write failed (entry removed again)
        """
        host, name, user = self._resolve_fields(spec)
        credential = self._resolve_credential(spec.public_key)

        with self._transaction("add"):
            if self._find(name) is not None:
                raise ValidationError(f"Server '{name}' already exists")

            entry = ServerEntry(name=name, host=host, user=user, credential=credential)
            self._entries.append(entry)
            self.events.publish("server.added", server=replace(entry))

            self._write(
                lambda doc: self.config_store.add_or_replace(
                    doc, name, host, user, entry.identity_file
                )
            )
            logger.info(f"Added server {name} ({user}@{host})")
            return replace(entry)

    def update(self, server_id: str, spec: ServerSpec) -> ServerEntry:
        """
        Replace a server's fields. The Host block of the previous name is
        removed and a block for the new name written, in one file write.

        Lifecycle state and last_verified_at are kept.
        """
        host, name, _ = self._resolve_fields(spec)

        with self._transaction("update"):
            entry = self._require(server_id)
            clash = self._find(name)
            if clash is not None and clash.id != server_id:
                raise ValidationError(f"Server '{name}' already exists")

            old_name = entry.name
            entry.name = name
            entry.host = host
            entry.user = (spec.user or "").strip() or entry.user
            if spec.public_key is not None:
                entry.credential = CredentialRef.from_public_key(spec.public_key)
            elif entry.credential is None:
                entry.credential = self._resolve_credential(None)
            self.events.publish("server.updated", server=replace(entry), previous_name=old_name)

            def rewrite(doc: ConfigDocument) -> ConfigDocument:
                if old_name != name:
                    doc = self.config_store.remove(doc, old_name)
                return self.config_store.add_or_replace(
                    doc, entry.name, entry.host, entry.user, entry.identity_file
                )

            self._write(rewrite)
            self._save_verified()
            logger.info(f"Updated server {old_name} -> {name}")
            return replace(entry)

    def remove(self, server_id: str) -> ServerEntry:
        """
        Remove the Host block, then the entry. If the file write fails the
        entry stays.
        """
        with self._transaction("remove"):
            entry = self._require(server_id)
            self._write(lambda doc: self.config_store.remove(doc, entry.name))
            self._entries.remove(entry)
            self._save_verified()
            self.events.publish("server.removed", server=replace(entry))
            logger.info(f"Removed server {entry.name}")
            return replace(entry)

    def transition(self, server_id: str, new_state: ServerState) -> ServerEntry:
        """
        Move a server to new_state.

        Raises:
            InvalidTransition: If the lifecycle does not allow it
        """
        with self._lock:
            entry = self._require(server_id)
            previous = entry.state
            check_transition(previous, new_state)

            entry.state = new_state
            if previous == ServerState.VERIFYING and new_state == ServerState.CONFIGURED:
                entry.last_verified_at = datetime.now()
                self._save_verified()

            logger.debug(f"{entry.name}: {previous.value} -> {new_state.value}")
            self.events.publish("server.state_changed", server=replace(entry), previous=previous)
            return replace(entry)

    def invalidate_credential(self, public_key: Path) -> List[ServerEntry]:
        """
        Send servers using public_key back to pending_verification after the
        key was regenerated. Servers mid-verification are left alone.
        """
        public_key = Path(public_key).expanduser()
        affected = []
        with self._lock:
            for entry in self._entries:
                if entry.credential is None or entry.credential.public_key != public_key:
                    continue
                if entry.state in (ServerState.CONFIGURED, ServerState.ERROR):
                    affected.append(self.transition(entry.id, ServerState.PENDING_VERIFICATION))
        return affected

    # --------------------
    # Internals
    # --------------------
    @contextmanager
    def _transaction(self, label: str) -> Iterator[None]:
        """Snapshot entries; restore them if the block raises"""
        with self._lock:
            snapshot = [replace(e) for e in self._entries]
            try:
                yield
            except Exception as e:
                if self._entries != snapshot:
                    self._entries = snapshot
                    logger.warning(f"Rolled back {label}: {e}")
                    self.events.publish("server.rolled_back", operation=label, error=e)
                raise

    def _load_verified(self) -> Dict[str, datetime]:
        if self.state_store is None:
            return {}
        data = self.state_store.load(VERIFIED_STATE_KEY)
        if not isinstance(data, dict):
            return {}

        verified: Dict[str, datetime] = {}
        for name, stamp in data.items():
            try:
                verified[name] = datetime.fromisoformat(stamp)
            except (TypeError, ValueError):
                logger.warning(f"Ignoring bad verification time for {name}: {stamp!r}")
        return verified

    def _save_verified(self) -> None:
        """Record last_verified_at by name; a failed write is only logged"""
        if self.state_store is None:
            return
        data = {
            e.name: e.last_verified_at.isoformat()
            for e in self._entries
            if e.last_verified_at is not None
        }
        try:
            self.state_store.save(VERIFIED_STATE_KEY, data)
        except DurabilityError as e:
            logger.warning(f"Could not record verification times: {e}")

    def _write(self, mutate: Callable[[ConfigDocument], ConfigDocument]) -> None:
        """Read-modify-write of the config file"""
        try:
            doc = self.config_store.load(self.config_path)
        except NotFound:
            doc = ConfigDocument()
        self.config_store.save(mutate(doc), self.config_path)

    def _resolve_fields(self, spec: ServerSpec):
        host = (spec.host or "").strip()
        if not host:
            raise ValidationError("Host is required")
        if any(c.isspace() or c == '"' for c in host):
            raise ValidationError(f"Invalid host: {host!r}")
        name = (spec.name or "").strip() or host
        validate_host_name(name)
        user = (spec.user or "").strip() or self.default_user
        return host, name, user

    def _resolve_credential(self, public_key: Optional[Path]) -> Optional[CredentialRef]:
        if public_key is not None:
            return CredentialRef.from_public_key(public_key)
        if self.key_provider is None:
            return None
        return CredentialRef.from_public_key(self.key_provider.default_public_key())

    def _find(self, name: str) -> Optional[ServerEntry]:
        for entry in self._entries:
            if entry.name == name:
                return entry
        return None

    def _require(self, server_id: str) -> ServerEntry:
        for entry in self._entries:
            if entry.id == server_id:
                return entry
        raise NotFound(f"Unknown server id: {server_id}")
