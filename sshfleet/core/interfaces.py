"""
Core interfaces for dependency injection
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Any, Optional
from pathlib import Path


@dataclass(frozen=True)
class ExecResult:
    """Outcome of one remote command"""
    stdout: str
    stderr: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class StateStore(ABC):
    """State storage interface"""

    @abstractmethod
    def save(self, name: str, state: Dict[str, Any]) -> None:
        """Save state under a name"""
        pass

    @abstractmethod
    def load(self, name: str) -> Optional[Dict[str, Any]]:
        """Load state for a name, None if absent"""
        pass

    @abstractmethod
    def delete(self, name: str) -> None:
        """Delete state for a name"""
        pass

    @abstractmethod
    def list(self) -> list[str]:
        """List all stored names"""
        pass

    @abstractmethod
    def exists(self, name: str) -> bool:
        """Check if state exists for a name"""
        pass


class KeyProvider(ABC):
    """Local key material"""

    @abstractmethod
    def default_public_key(self) -> Path:
        """Public key used when a server has no credential of its own"""
        pass

    @abstractmethod
    def generate(self, path: Path, overwrite: bool = False) -> Path:
        """
        Generate a key pair at path (private) and path + '.pub'.

        Returns:
            Public key path

        Raises:
            AlreadyExists: If the key exists and overwrite is False
            GenerationFailed: If the key could not be written
        """
        pass

    @abstractmethod
    def delete(self, path: Path) -> None:
        """Delete the key pair whose private half lives at path"""
        pass


class RemoteSession(ABC):
    """
    Remote shell capability.

    Servers are addressed by their fleet name except for install_key, which
    runs before the host is known to work with key authentication.
    """

    @abstractmethod
    def install_key(
        self,
        host: str,
        user: str,
        public_key: Path,
        password: Optional[str] = None,
    ) -> None:
        """
        Append public_key to the remote authorized_keys.

        Raises:
            ConnectError, AuthError
        """
        pass

    @abstractmethod
    def verify(self, name: str, timeout: float) -> bool:
        """Round-trip a trivial command, True if the host answered correctly"""
        pass

    @abstractmethod
    def exec(self, name: str, command: str, timeout: float, call_id: Optional[str] = None) -> ExecResult:
        """
        Run command on the named server. timeout bounds the whole call.
        call_id tags the call for a later interrupt.

        Raises:
            ConnectError, AuthError, Timeout, Cancelled
        """
        pass

    def interrupt(self, name: str, call_id: Optional[str] = None) -> None:
        """
        Interrupt in-flight execs on name tagged with call_id, or every exec
        on name when call_id is None; no-op when unsupported
        """
        pass


class PromptProvider(ABC):
    """User prompt interface"""

    @abstractmethod
    def prompt(self, message: str, default: Optional[str] = None, password: bool = False) -> str:
        """Prompt user for input"""
        pass

    @abstractmethod
    def confirm(self, message: str, default: bool = False) -> bool:
        """Prompt user for confirmation"""
        pass
