from pathlib import Path

import pytest

from sshfleet.core.exceptions import AlreadyExists, GenerationFailed
from sshfleet.infrastructure.keys import LocalKeyProvider
from sshfleet.infrastructure.keys import local


@pytest.fixture
def provider(ssh_dir):
    return LocalKeyProvider(ssh_dir=ssh_dir, bits=2048)


def test_default_public_key_falls_back_to_id_rsa(provider, ssh_dir):
    assert provider.default_public_key() == ssh_dir / "id_rsa.pub"
    assert not provider.keys_exist()


def test_default_public_key_uses_first_existing(provider, ssh_dir):
    (ssh_dir / "id_rsa.pub").write_text("ssh-rsa BBBB\n")
    (ssh_dir / "id_ed25519.pub").write_text("ssh-ed25519 AAAA\n")

    assert provider.default_public_key() == ssh_dir / "id_ed25519.pub"


def test_configured_public_key_wins(ssh_dir, tmp_path):
    provider = LocalKeyProvider(ssh_dir=ssh_dir, public_key=tmp_path / "fleet.pub")

    assert provider.default_public_key() == tmp_path / "fleet.pub"


def test_generate_writes_pair(provider, ssh_dir):
    public_key = provider.generate()

    assert public_key == ssh_dir / "id_rsa.pub"
    assert public_key.read_text().startswith("ssh-rsa ")
    assert (ssh_dir / "id_rsa").stat().st_mode & 0o777 == 0o600
    assert provider.keys_exist()


def test_generate_refuses_to_overwrite(provider, ssh_dir):
    provider.generate()
    before = (ssh_dir / "id_rsa.pub").read_text()

    with pytest.raises(AlreadyExists):
        provider.generate()
    assert (ssh_dir / "id_rsa.pub").read_text() == before

    provider.generate(overwrite=True)
    assert (ssh_dir / "id_rsa.pub").read_text() != before


def test_generate_at_path_strips_pub_suffix(provider, tmp_path):
    public_key = provider.generate(tmp_path / "keys" / "fleet.pub")

    assert public_key == tmp_path / "keys" / "fleet.pub"
    assert (tmp_path / "keys" / "fleet").exists()


def test_generate_failure_is_wrapped(provider, tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")

    with pytest.raises(GenerationFailed):
        provider.generate(blocker / "id_rsa")


def test_delete(provider, ssh_dir):
    provider.generate()

    provider.delete(ssh_dir / "id_rsa")

    assert list(ssh_dir.iterdir()) == []


def test_failed_overwrite_keeps_old_pair(provider, ssh_dir, monkeypatch):
    provider.generate()
    before = {p.name: p.read_text() for p in ssh_dir.iterdir()}

    def broken_generate(key_path, bits):
        Path(key_path).write_text("partial")
        raise OSError("disk full")

    monkeypatch.setattr(local, "generate_ssh_key_pair", broken_generate)

    with pytest.raises(GenerationFailed):
        provider.generate(overwrite=True)

    assert {p.name: p.read_text() for p in ssh_dir.iterdir()} == before
