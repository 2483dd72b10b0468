"""
Core utility functions
"""
import shlex
import paramiko
from pathlib import Path
from typing import Optional, Tuple, TYPE_CHECKING

from .constants import DEFAULT_KEY_BITS

if TYPE_CHECKING:
    from .client import RemoteClient


# ============================================================
# Host String Parsing
# ============================================================

def parse_host_string(host: str, user: Optional[str] = None) -> Tuple[str, Optional[str]]:
    """
    Split "user@hostname" into (hostname, user).

    An explicit user argument wins over the one embedded in the string.

    Examples:
        parse_host_string("server") -> ("server", None)
        parse_host_string("admin@server") -> ("server", "admin")
        parse_host_string("admin@server", user="root") -> ("server", "root")
    """
    if "@" in host:
        embedded_user, hostname = host.split("@", 1)
        return hostname, user or embedded_user or None
    return host, user


# ============================================================
# SSH Key Management
# ============================================================

def private_key_for(public_key: Path) -> Path:
    """Private half of a key pair: the public path without '.pub'"""
    public_key = Path(public_key)
    if public_key.suffix == ".pub":
        return public_key.with_suffix("")
    return public_key


def public_key_for(private_key: Path) -> Path:
    return Path(str(private_key) + ".pub")


def generate_ssh_key_pair(key_path: Path, bits: int = DEFAULT_KEY_BITS) -> Tuple[str, str]:
    """
    Generate an RSA SSH key pair.

    Args:
        key_path: Path to private key file (public key will be key_path + '.pub')
        bits: RSA modulus size

    Returns:
        (private_key_path, public_key_path) as strings
    """
    key_path = Path(key_path).expanduser()
    key_path.parent.mkdir(parents=True, exist_ok=True)

    key = paramiko.RSAKey.generate(bits)

    key.write_private_key_file(str(key_path))
    key_path.chmod(0o600)

    pub_key_path = public_key_for(key_path)
    pub_key_path.write_text(f"{key.get_name()} {key.get_base64()} sshfleet\n")
    pub_key_path.chmod(0o644)

    return str(key_path), str(pub_key_path)


def install_key_command(public_key: Path, user: str, host: str) -> str:
    """Shell one-liner an operator can run to install public_key by hand"""
    return (
        f"cat {shlex.quote(str(public_key))} | ssh {user}@{host} "
        "\"mkdir -p ~/.ssh && chmod 700 ~/.ssh && cat >> ~/.ssh/authorized_keys "
        "&& chmod 600 ~/.ssh/authorized_keys\""
    )


def add_authorized_key(client: "RemoteClient", public_key_path: str) -> bool:
    """
    Add public key to remote ~/.ssh/authorized_keys.

    Args:
        client: RemoteClient instance (must be connected)
        public_key_path: Local path to public key file

    Returns:
        False if the key was already present
    """
    pub_key_path = Path(public_key_path).expanduser()
    if not pub_key_path.exists():
        raise FileNotFoundError(f"Public key not found: {pub_key_path}")

    pub_key_content = pub_key_path.read_text().strip()
    quoted_key = shlex.quote(pub_key_content)

    client.exec("mkdir -p ~/.ssh && chmod 700 ~/.ssh")

    out, _ = client.exec(f"grep -Fx {quoted_key} ~/.ssh/authorized_keys 2>/dev/null || true")
    if out.strip():
        return False

    client.exec(f"echo {quoted_key} >> ~/.ssh/authorized_keys && chmod 600 ~/.ssh/authorized_keys")
    return True
