"""
Fleet service - the operations a UI collaborator calls
"""
from pathlib import Path
from typing import Callable, List, Optional, Sequence as SequenceType, Tuple

from ..core.constants import SEQUENCE_SIZE
from ..core.events import Event, EventBus
from ..core.exceptions import ParseError, ValidationError
from ..core.interfaces import KeyProvider
from ..core.logging import get_logger
from .dispatch import CommandRun, Dispatcher, RunHandle
from .fleet import ProvisioningController, ServerEntry, ServerRegistry, ServerSpec
from .sequence import CommandHistory, Sequence, SequenceStore

logger = get_logger(__name__)


class FleetService:
    """
    Facade over registry, provisioning, dispatcher and sequences.

    Every method returns a value or raises one FleetError subclass; state
    changes are also published on the event bus for subscribers.
    """

    def __init__(
        self,
        registry: ServerRegistry,
        provisioning: ProvisioningController,
        dispatcher: Dispatcher,
        sequences: SequenceStore,
        history: CommandHistory,
        key_provider: Optional[KeyProvider] = None,
    ):
        self.registry = registry
        self.provisioning = provisioning
        self.dispatcher = dispatcher
        self.sequences = sequences
        self.history = history
        self.key_provider = key_provider
        self.dispatcher.add_history_listener(self.history.record)

    @property
    def events(self) -> EventBus:
        return self.registry.events

    def subscribe(self, callback: Callable[[Event], None]) -> Callable[[], None]:
        return self.events.subscribe(callback)

    # --------------------
    # Servers
    # --------------------
    def reload(self, config_path: Optional[Path] = None) -> List[ServerEntry]:
        return self.registry.load_from_config(config_path)

    def list_servers(self) -> List[ServerEntry]:
        return self.registry.list()

    def diagnostics(self) -> List[ParseError]:
        return self.registry.diagnostics

    def get_server(self, server_id: str) -> ServerEntry:
        return self.registry.get(server_id)

    def find_server(self, name: str) -> Optional[ServerEntry]:
        return self.registry.find_by_name(name)

    def add_server(
        self,
        spec: ServerSpec,
        password: Optional[str] = None,
        install_key: bool = True,
    ) -> ServerEntry:
        """
        Add a server and start key installation.

        If installation fails the server stays (in configuring) and the
        ConnectError / AuthError is raised; provision_server retries it.
        """
        entry = self.registry.add(spec)
        if not install_key:
            return entry
        return self.provisioning.provision(entry.id, password=password)

    def update_server(self, server_id: str, spec: ServerSpec) -> ServerEntry:
        return self.registry.update(server_id, spec)

    def remove_server(self, server_id: str) -> ServerEntry:
        return self.registry.remove(server_id)

    def provision_server(self, server_id: str, password: Optional[str] = None) -> ServerEntry:
        return self.provisioning.provision(server_id, password=password)

    def verify_server(self, server_id: str) -> ServerEntry:
        return self.provisioning.verify(server_id)

    def install_command(self, server_id: str) -> str:
        return self.provisioning.install_command(server_id)

    # --------------------
    # Commands
    # --------------------
    def _names_for(self, server_ids: SequenceType[str]) -> List[str]:
        return [self.registry.get(server_id).name for server_id in server_ids]

    def run_command(self, text: str, server_ids: SequenceType[str]) -> CommandRun:
        return self.dispatcher.run(text, self._names_for(server_ids))

    def run_command_by_name(self, text: str, names: SequenceType[str]) -> CommandRun:
        return self.dispatcher.run(text, names)

    def start_command(self, text: str, server_ids: SequenceType[str]) -> RunHandle:
        return self.dispatcher.start(text, self._names_for(server_ids))

    def start_command_by_name(self, text: str, names: SequenceType[str]) -> RunHandle:
        return self.dispatcher.start(text, names)

    def recent_commands(self, limit: int = SEQUENCE_SIZE) -> List[str]:
        return self.history.recent(limit)

    # --------------------
    # Sequences
    # --------------------
    def save_sequence(self, name: str) -> Sequence:
        return self.sequences.save(name, self.history.recent(self.sequences.size))

    def list_sequences(self) -> List[Sequence]:
        return self.sequences.list()

    def get_sequence(self, name: str) -> Sequence:
        return self.sequences.get(name)

    def delete_sequence(self, name: str) -> Sequence:
        return self.sequences.delete(name)

    def replay_sequence(self, name: str, names: SequenceType[str]) -> List[CommandRun]:
        """
        Re-issue the commands of a sequence, oldest first, one run each.
        Runs are independent: a failed run does not stop the next one.
        """
        sequence = self.sequences.get(name)
        return [self.dispatcher.run(command, names) for command in reversed(sequence.commands)]

    # --------------------
    # Keys
    # --------------------
    def generate_key(
        self,
        path: Optional[Path] = None,
        overwrite: bool = False,
    ) -> Tuple[Path, List[ServerEntry]]:
        """
        Generate a key pair. When an existing pair is replaced, servers that
        used it go back to pending_verification.

        Returns:
            (public_key_path, affected_servers)
        """
        if self.key_provider is None:
            raise ValidationError("No key provider configured")

        public_key = self.key_provider.generate(path, overwrite=overwrite)
        affected: List[ServerEntry] = []
        if overwrite:
            affected = self.registry.invalidate_credential(public_key)
            for entry in affected:
                logger.warning(f"{entry.name} needs the new key installed and verified again")
        return public_key, affected
