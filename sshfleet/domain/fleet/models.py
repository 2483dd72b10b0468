"""
Fleet domain models
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any

from ...core.utils import private_key_for


class ServerState(str, Enum):
    """Provisioning lifecycle of a server"""
    CONFIGURING = "configuring"
    PENDING_VERIFICATION = "pending_verification"
    VERIFYING = "verifying"
    CONFIGURED = "configured"
    ERROR = "error"


@dataclass(frozen=True)
class CredentialRef:
    """Public/private key path pair"""
    public_key: Path
    private_key: Path

    @classmethod
    def from_public_key(cls, public_key: Path) -> "CredentialRef":
        public_key = Path(public_key).expanduser()
        return cls(public_key=public_key, private_key=private_key_for(public_key))

    @classmethod
    def from_identity_file(cls, identity_file: str) -> "CredentialRef":
        private_key = Path(identity_file).expanduser()
        return cls(public_key=Path(str(private_key) + ".pub"), private_key=private_key)


@dataclass
class ServerSpec:
    """Caller input for adding or updating a server"""
    host: str
    name: Optional[str] = None
    user: Optional[str] = None
    public_key: Optional[Path] = None


@dataclass
class ServerEntry:
    """One managed host"""
    name: str
    host: str
    user: str
    credential: Optional[CredentialRef] = None
    state: ServerState = ServerState.CONFIGURING
    last_verified_at: Optional[datetime] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def identity_file(self) -> Optional[str]:
        if self.credential is None:
            return None
        return str(self.credential.private_key)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "id": self.id,
            "name": self.name,
            "host": self.host,
            "user": self.user,
            "public_key": str(self.credential.public_key) if self.credential else None,
            "identity_file": self.identity_file,
            "state": self.state.value,
            "last_verified_at": self.last_verified_at.isoformat() if self.last_verified_at else None,
        }
