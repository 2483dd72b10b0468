"""
RemoteSession over paramiko
"""
import socket
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import paramiko

from ...core.client import RemoteClient
from ...core.constants import DEFAULT_CONNECT_TIMEOUT, DEFAULT_SSH_PORT, DEFAULT_USER, VERIFY_MARKER
from ...core.exceptions import (
    AuthError,
    Cancelled,
    ConnectError,
    FleetError,
    RemoteSessionError,
    Timeout,
    ValidationError,
)
from ...core.interfaces import ExecResult, RemoteSession
from ...core.logging import get_logger
from ...core.utils import add_authorized_key
from ..ssh_config import HostBlock, SshConfigStore

logger = get_logger(__name__)


def map_ssh_error(error: BaseException, target: str) -> RemoteSessionError:
    """Translate paramiko / socket failures into the session error types"""
    if isinstance(error, RemoteSessionError):
        return error
    if isinstance(error, paramiko.AuthenticationException):
        return AuthError(f"{target}: authentication failed: {error}")
    if isinstance(error, (socket.timeout, TimeoutError)):
        return Timeout(f"{target}: timed out")
    if isinstance(error, (paramiko.SSHException, OSError, EOFError)):
        return ConnectError(f"{target}: {error}")
    return ConnectError(f"{target}: {error!r}")


def block_params(block: HostBlock) -> Dict[str, Any]:
    """
    Connection parameters of a managed Host block.

    Raises:
        ConnectError: If the block's Port line is not a number
    """
    port = DEFAULT_SSH_PORT
    for line in block.extra:
        parts = line.replace("=", " ", 1).split()
        if len(parts) == 2 and parts[0].lower() == "port":
            try:
                port = int(parts[1])
            except ValueError:
                raise ConnectError(f"{block.name}: invalid Port {parts[1]!r}") from None
            break

    return {
        "host": block.hostname,
        "user": block.user,
        "port": port,
        "key_file": block.identity_file,
    }


class _Call:
    """One in-flight exec"""

    def __init__(self, name: str, call_id: Optional[str], client: RemoteClient):
        self.name = name
        self.call_id = call_id
        self.client = client
        self.interrupted = False


class ParamikoRemoteSession(RemoteSession):
    """
    Resolves server names through the managed Host blocks of the fleet
    config file and opens one connection per call.

    Each exec is tracked on its own, so interrupting one caller's calls
    leaves other callers' connections to the same server running.
    """

    def __init__(
        self,
        config_path: Path,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        default_user: str = DEFAULT_USER,
        config_store: Optional[SshConfigStore] = None,
    ):
        self.config_path = Path(config_path).expanduser()
        self.connect_timeout = connect_timeout
        self.default_user = default_user
        self.config_store = config_store or SshConfigStore()
        self._calls: List[_Call] = []
        self._lock = threading.Lock()

    # --------------------
    # Connection helpers
    # --------------------
    def resolve(self, name: str) -> Dict[str, Any]:
        """
        Raises:
            ConnectError: No readable config file or no managed block for name
        """
        try:
            doc = self.config_store.load(self.config_path)
        except FleetError as e:
            raise ConnectError(f"{name}: {e}") from e

        block = doc.find(name)
        if block is None:
            raise ConnectError(f"{name}: no Host block in {self.config_path}")
        return block_params(block)

    def _client_for(self, name: str, timeout: float) -> RemoteClient:
        params = self.resolve(name)
        key_file = params["key_file"]
        return RemoteClient(
            host=params["host"],
            user=params["user"] or self.default_user,
            port=params["port"],
            auth_method="key" if key_file else "agent",
            key_path=key_file,
            timeout=timeout,
        )

    def _track(self, call: _Call) -> None:
        with self._lock:
            self._calls.append(call)

    def _untrack(self, call: _Call) -> bool:
        """Forget call; True if it was interrupted meanwhile"""
        with self._lock:
            if call in self._calls:
                self._calls.remove(call)
            return call.interrupted

    # --------------------
    # RemoteSession
    # --------------------
    def install_key(
        self,
        host: str,
        user: str,
        public_key: Path,
        password: Optional[str] = None,
    ) -> None:
        public_key = Path(public_key).expanduser()
        if not public_key.exists():
            raise ValidationError(f"Public key not found: {public_key}")

        client = RemoteClient(
            host=host,
            user=user,
            auth_method="password" if password else "agent",
            password=password,
            timeout=self.connect_timeout,
        )
        target = f"{user}@{host}"
        try:
            client.connect()
            added = add_authorized_key(client, str(public_key))
        except Exception as e:
            raise map_ssh_error(e, target) from e
        finally:
            client.close()

        if added:
            logger.info(f"Installed {public_key.name} on {target}")
        else:
            logger.info(f"{public_key.name} already authorized on {target}")

    def verify(self, name: str, timeout: float) -> bool:
        result = self.exec(name, f"echo {VERIFY_MARKER}", timeout)
        return result.ok and VERIFY_MARKER in result.stdout

    def exec(self, name: str, command: str, timeout: float, call_id: Optional[str] = None) -> ExecResult:
        """timeout covers connecting and running the command together"""
        deadline = time.monotonic() + timeout
        try:
            client = self._client_for(name, min(self.connect_timeout, timeout))
        except Exception as e:
            raise map_ssh_error(e, name) from e

        call = _Call(name, call_id, client)
        self._track(call)
        try:
            client.connect()
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise socket.timeout("connect used up the command timeout")
            out, err, code = client.exec_with_code(command, timeout=remaining)
        except Exception as e:
            if self._untrack(call):
                raise Cancelled(f"{name}: interrupted") from e
            raise map_ssh_error(e, name) from e
        else:
            if self._untrack(call):
                raise Cancelled(f"{name}: interrupted")
        finally:
            client.close()

        logger.debug(f"{name}: exit {code}")
        return ExecResult(stdout=out, stderr=err, exit_code=code)

    def interrupt(self, name: str, call_id: Optional[str] = None) -> None:
        """
        Close in-flight connections to name made with call_id (every call on
        name when call_id is None); their exec raises Cancelled.
        """
        with self._lock:
            calls = [
                c for c in self._calls
                if c.name == name and (call_id is None or c.call_id == call_id)
            ]
            for call in calls:
                call.interrupted = True
        for call in calls:
            call.client.close()
