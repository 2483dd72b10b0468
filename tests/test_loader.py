from pathlib import Path

import pytest

from sshfleet.adapters.config import ConfigLoader, FleetSettings
from sshfleet.core.exceptions import ValidationError


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for name in ("MAX_WORKERS", "COMMAND_TIMEOUT", "DEFAULT_USER", "CONFIG_PATH"):
        monkeypatch.delenv(f"SSHFLEET_{name}", raising=False)


def test_defaults(tmp_path):
    settings = ConfigLoader().load()

    assert settings.config_path == tmp_path / "home" / ".ssh" / "sshfleet_config"
    assert settings.default_user == "root"
    assert settings.max_workers == 8
    assert settings.public_key is None


def test_priority_cli_over_env_over_toml(tmp_path, monkeypatch):
    toml_path = tmp_path / "settings.toml"
    toml_path.write_text(
        "[fleet]\n"
        "max_workers = 2\n"
        "command_timeout = 12\n"
        'default_user = "deploy"\n'
        'config_path = "~/fleet"\n'
    )
    monkeypatch.setenv("SSHFLEET_MAX_WORKERS", "4")
    monkeypatch.setenv("SSHFLEET_COMMAND_TIMEOUT", "7.5")

    settings = ConfigLoader().load(toml_path=toml_path, cli_overrides={"max_workers": 16, "config_path": None})

    assert settings.max_workers == 16
    assert settings.command_timeout == 7.5
    assert settings.default_user == "deploy"
    assert settings.config_path == tmp_path / "home" / "fleet"


def test_default_settings_file_is_read_when_present(tmp_path):
    settings_file = tmp_path / "home" / ".sshfleet" / "config.toml"
    settings_file.parent.mkdir(parents=True)
    settings_file.write_text("history_limit = 10\n")

    assert ConfigLoader().load().history_limit == 10


def test_unknown_keys_are_ignored(tmp_path):
    toml_path = tmp_path / "settings.toml"
    toml_path.write_text("[fleet]\nfavourite_colour = 'blue'\n")

    assert ConfigLoader().load(toml_path=toml_path, use_env=False) == FleetSettings()


def test_bad_toml(tmp_path):
    toml_path = tmp_path / "settings.toml"
    toml_path.write_text("max_workers = = 3\n")

    with pytest.raises(ValidationError):
        ConfigLoader().load(toml_path=toml_path)


def test_missing_explicit_settings_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        ConfigLoader().load(toml_path=tmp_path / "absent.toml")


@pytest.mark.parametrize(
    "overrides",
    [{"max_workers": 0}, {"command_timeout": -1}, {"history_limit": 0}, {"default_user": ""}],
)
def test_invalid_values(overrides):
    with pytest.raises(ValidationError):
        ConfigLoader().load(cli_overrides=overrides, use_env=False)


def test_numeric_user_from_env_stays_text(monkeypatch):
    monkeypatch.setenv("SSHFLEET_DEFAULT_USER", "1000")

    assert ConfigLoader().load().default_user == "1000"


def test_path_fields_are_paths():
    settings = FleetSettings.from_dict({"public_key": "/keys/fleet.pub", "state_dir": "/tmp/state"})

    assert settings.public_key == Path("/keys/fleet.pub")
    assert settings.state_dir == Path("/tmp/state")
