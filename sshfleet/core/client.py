from __future__ import annotations
import socket
import time
from dataclasses import dataclass
from typing import Optional, Literal, Tuple
import paramiko
from pathlib import Path

from .constants import DEFAULT_SSH_PORT, DEFAULT_CONNECT_TIMEOUT, EXEC_POLL_INTERVAL, EXEC_READ_SIZE


@dataclass
class ClientConfig:
    host: str
    user: str
    port: int = DEFAULT_SSH_PORT
    auth_method: Literal["password", "key", "agent"] = "key"
    password: Optional[str] = None
    key_path: Optional[str] = None
    timeout: float = DEFAULT_CONNECT_TIMEOUT


class RemoteClient:
    """
    Thin wrapper around paramiko.SSHClient:
    - keeps host / user / port explicitly
    - password, private key or agent/default-key login
    - loads Ed25519 / ECDSA / RSA private keys
    - exec helpers returning exit codes
    """

    def __init__(
        self,
        host: str,
        user: str,
        port: int = DEFAULT_SSH_PORT,
        auth_method: Literal["password", "key", "agent"] = "key",
        password: Optional[str] = None,
        key_path: Optional[str] = None,
        timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ) -> None:
        self.config = ClientConfig(
            host=host,
            user=user,
            port=port,
            auth_method=auth_method,
            password=password,
            key_path=key_path,
            timeout=timeout,
        )

        self.client = paramiko.SSHClient()
        self.client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

    # --------------------
    # Connection management
    # --------------------
    def connect(self) -> None:
        cfg = self.config
        common = dict(
            hostname=cfg.host,
            port=cfg.port,
            username=cfg.user,
            timeout=cfg.timeout,
            banner_timeout=cfg.timeout,
            auth_timeout=cfg.timeout,
        )

        if cfg.auth_method == "password":
            self.client.connect(
                password=cfg.password,
                allow_agent=False,
                look_for_keys=False,
                **common,
            )

        elif cfg.auth_method == "key":
            key = self._load_private_key(cfg.key_path)
            self.client.connect(pkey=key, allow_agent=False, look_for_keys=False, **common)

        elif cfg.auth_method == "agent":
            self.client.connect(allow_agent=True, look_for_keys=True, **common)

        else:
            raise ValueError(f"Unsupported auth method: {cfg.auth_method}")

    # --------------------
    # Load private key
    # --------------------
    def _load_private_key(self, path: Optional[str]) -> paramiko.PKey:
        """Try Ed25519, ECDSA then RSA"""
        if not path:
            raise ValueError("Key authentication requires a key path")
        p = Path(path).expanduser()

        for key_class in (paramiko.Ed25519Key, paramiko.ECDSAKey, paramiko.RSAKey):
            try:
                return key_class.from_private_key_file(str(p))
            except paramiko.SSHException:
                continue
        raise paramiko.SSHException(f"Failed to load private key at {p}")

    # --------------------
    # Helpers
    # --------------------
    def exec(self, cmd: str, timeout: Optional[float] = None) -> Tuple[str, str]:
        """Run cmd, return (stdout, stderr)"""
        out, err, _ = self.exec_with_code(cmd, timeout=timeout)
        return out, err

    def exec_with_code(self, cmd: str, timeout: Optional[float] = None) -> Tuple[str, str, int]:
        """
        Run cmd, return (stdout, stderr, exit_code).

        timeout bounds the whole command, however much output it keeps
        producing; expiry closes the channel and raises socket.timeout.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        channel = self.client.get_transport().open_session()
        try:
            channel.exec_command(cmd)
            out, err = bytearray(), bytearray()
            while True:
                idle = True
                if channel.recv_ready():
                    out += channel.recv(EXEC_READ_SIZE)
                    idle = False
                if channel.recv_stderr_ready():
                    err += channel.recv_stderr(EXEC_READ_SIZE)
                    idle = False
                if idle and channel.exit_status_ready():
                    break
                if deadline is not None and time.monotonic() >= deadline:
                    raise socket.timeout(f"command did not finish within {timeout}s")
                if idle:
                    time.sleep(EXEC_POLL_INTERVAL)
            exit_code = channel.recv_exit_status()
        finally:
            channel.close()

        return out.decode("utf-8", errors="replace"), err.decode("utf-8", errors="replace"), exit_code

    def close(self) -> None:
        self.client.close()

