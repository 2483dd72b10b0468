"""
Local key material under ~/.ssh
"""
import os
from pathlib import Path
from typing import Optional

import paramiko

from ...core.constants import DEFAULT_KEY_BITS, DEFAULT_KEY_NAME, SSH_DIR
from ...core.exceptions import AlreadyExists, GenerationFailed
from ...core.interfaces import KeyProvider
from ...core.logging import get_logger
from ...core.utils import generate_ssh_key_pair, private_key_for, public_key_for

logger = get_logger(__name__)


class LocalKeyProvider(KeyProvider):
    """
    Key pairs stored on the local file system.

    The default public key is, in order: the configured one, the first
    *.pub file in ssh_dir, or ssh_dir/id_rsa.pub.
    """

    def __init__(
        self,
        ssh_dir: Optional[Path] = None,
        public_key: Optional[Path] = None,
        bits: int = DEFAULT_KEY_BITS,
    ):
        self.ssh_dir = Path(ssh_dir or SSH_DIR).expanduser()
        self.public_key = Path(public_key).expanduser() if public_key else None
        self.bits = bits

    def default_public_key(self) -> Path:
        if self.public_key is not None:
            return self.public_key

        if self.ssh_dir.is_dir():
            candidates = sorted(self.ssh_dir.glob("*.pub"))
            if candidates:
                return candidates[0]

        return self.default_key_path().with_name(f"{DEFAULT_KEY_NAME}.pub")

    def default_key_path(self) -> Path:
        """Private key path used by generate() when none is given"""
        return self.ssh_dir / DEFAULT_KEY_NAME

    def keys_exist(self) -> bool:
        public_key = self.default_public_key()
        return public_key.exists() and private_key_for(public_key).exists()

    def generate(self, path: Optional[Path] = None, overwrite: bool = False) -> Path:
        """
        Generate an RSA key pair.

        Args:
            path: Private key path (default: ssh_dir/id_rsa); '.pub' is stripped
            overwrite: Replace an existing pair

        Returns:
            Public key path

        Raises:
            AlreadyExists: If the key exists and overwrite is False
            GenerationFailed: If the key could not be generated or written
        """
        key_path = private_key_for(Path(path).expanduser()) if path else self.default_key_path()

        if key_path.exists() and not overwrite:
            raise AlreadyExists(f"Key already exists: {key_path}")

        # written next to the target, then renamed over it
        staging = key_path.with_name(f".{key_path.name}.new")
        public_key = public_key_for(key_path)
        try:
            _, staged_public = generate_ssh_key_pair(staging, bits=self.bits)
            os.replace(staging, key_path)
            os.replace(staged_public, public_key)
        except (OSError, paramiko.SSHException, ValueError) as e:
            self.delete(staging)
            raise GenerationFailed(f"Failed to generate key at {key_path}: {e}") from e

        logger.info(f"Generated key pair {key_path}")
        return public_key

    def delete(self, path: Path) -> None:
        key_path = private_key_for(Path(path).expanduser())
        for p in (key_path, public_key_for(key_path)):
            if p.exists():
                p.unlink()
                logger.debug(f"Deleted {p}")
