"""
Provisioning controller - drives one server through key installation and
verification
"""
from typing import Optional

from ...core.constants import DEFAULT_VERIFY_TIMEOUT
from ...core.exceptions import InvalidTransition, RemoteSessionError, ValidationError
from ...core.interfaces import RemoteSession
from ...core.logging import get_logger
from ...core.utils import install_key_command
from .lifecycle import VERIFIABLE_STATES
from .models import ServerEntry, ServerState
from .registry import ServerRegistry

logger = get_logger(__name__)


class ProvisioningController:
    """
    Connect-and-verify workflow.

    No step here retries on its own: a failed install leaves the server in
    configuring, a failed verification leaves it in error, and the operator
    decides when to try again.
    """

    def __init__(
        self,
        registry: ServerRegistry,
        remote_session: RemoteSession,
        verify_timeout: float = DEFAULT_VERIFY_TIMEOUT,
    ):
        self.registry = registry
        self.remote_session = remote_session
        self.verify_timeout = verify_timeout

    def provision(self, server_id: str, password: Optional[str] = None) -> ServerEntry:
        """
        Install the server's public key on the host. A server in configuring
        moves to pending_verification; from any other state but verifying the
        key is installed again and the state is left alone.

        Args:
            server_id: Server id
            password: Login password for the host, if it doesn't accept a key yet

        Raises:
            InvalidTransition: Server is being verified
            ValidationError: Server has no credential
            ConnectError, AuthError: Key installation failed (state unchanged)
        """
        entry = self.registry.get(server_id)
        if entry.state == ServerState.VERIFYING:
            raise InvalidTransition(f"{entry.name} is being verified")
        if entry.credential is None:
            raise ValidationError(f"{entry.name} has no public key to install")

        logger.info(f"Installing {entry.credential.public_key} on {entry.user}@{entry.host}")
        self.remote_session.install_key(
            entry.host,
            entry.user,
            entry.credential.public_key,
            password=password,
        )
        if entry.state != ServerState.CONFIGURING:
            return self.registry.get(server_id)
        return self.registry.transition(server_id, ServerState.PENDING_VERIFICATION)

    def verify(self, server_id: str) -> ServerEntry:
        """
        Round-trip to the host and record the result.

        Returns:
            The entry in configured or error
        """
        entry = self.registry.get(server_id)
        if entry.state not in VERIFIABLE_STATES:
            raise InvalidTransition(f"{entry.name} cannot be verified while {entry.state.value}")

        self.registry.transition(server_id, ServerState.VERIFYING)
        try:
            ok = self.remote_session.verify(entry.name, self.verify_timeout)
        except RemoteSessionError as e:
            logger.warning(f"Verification of {entry.name} failed: {e}")
            ok = False
        except Exception as e:
            logger.warning(f"Verification of {entry.name} aborted: {e!r}")
            self.registry.transition(server_id, ServerState.ERROR)
            raise

        if ok:
            logger.info(f"{entry.name} verified")
            return self.registry.transition(server_id, ServerState.CONFIGURED)
        return self.registry.transition(server_id, ServerState.ERROR)

    def install_command(self, server_id: str) -> str:
        """Manual key-copy command for the server"""
        entry = self.registry.get(server_id)
        if entry.credential is None:
            raise ValidationError(f"{entry.name} has no public key to install")
        return install_key_command(entry.credential.public_key, entry.user, entry.host)
