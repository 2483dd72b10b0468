import pytest

from sshfleet.core.exceptions import ConnectError, NotFound
from sshfleet.domain.dispatch import RunStatus
from sshfleet.domain.fleet import ServerSpec, ServerState

from conftest import make_configured


def test_add_server_installs_key(service, session):
    entry = service.add_server(ServerSpec(host="10.0.0.1", name="web1"), password="pw")

    assert entry.state == ServerState.PENDING_VERIFICATION
    assert session.installs[0][3] == "pw"
    assert service.verify_server(entry.id).state == ServerState.CONFIGURED


def test_add_server_install_failure_keeps_entry(service, session, config_path):
    session.install_error = ConnectError("web1: refused")

    with pytest.raises(ConnectError):
        service.add_server(ServerSpec(host="10.0.0.1", name="web1"))

    entry = service.find_server("web1")
    assert entry.state == ServerState.CONFIGURING
    assert "Host web1" in config_path.read_text()


def test_add_server_without_install(service, session):
    entry = service.add_server(ServerSpec(host="10.0.0.1", name="web1"), install_key=False)

    assert entry.state == ServerState.CONFIGURING
    assert session.installs == []


def test_run_command_by_id(service, registry):
    a = make_configured(registry, "A")

    run = service.run_command("uptime", [a.id])

    assert run.status == RunStatus.COMPLETED
    assert run.target_names == ("A",)
    with pytest.raises(NotFound):
        service.run_command("uptime", ["missing-id"])


def test_start_command_returns_handle(service, registry):
    make_configured(registry, "A")

    handle = service.start_command_by_name("uptime", ["A"])

    assert handle.wait(5).status == RunStatus.COMPLETED
    assert service.recent_commands() == ["uptime"]


def test_subscribers_see_state_changes(service):
    seen = []
    unsubscribe = service.subscribe(lambda event: seen.append(event.name))

    entry = service.add_server(ServerSpec(host="10.0.0.1", name="web1"))
    unsubscribe()
    service.remove_server(entry.id)

    assert seen == ["server.added", "server.state_changed"]


def test_generate_key_overwrite_invalidates_servers(service, registry, key_provider, ssh_dir):
    key_provider.generate()
    entry = make_configured(registry, "A")

    public_key, affected = service.generate_key(overwrite=True)

    assert public_key == ssh_dir / "id_rsa.pub"
    assert [e.name for e in affected] == ["A"]
    assert service.get_server(entry.id).state == ServerState.PENDING_VERIFICATION


def test_generate_key_fresh_leaves_servers_alone(service, registry, tmp_path):
    entry = make_configured(registry, "A")

    _, affected = service.generate_key(tmp_path / "keys" / "fleet")

    assert affected == []
    assert service.get_server(entry.id).state == ServerState.CONFIGURED


def test_reload_reads_file(service, config_path):
    config_path.write_text("Host x\n    HostName 10.0.0.1\n")

    servers = service.reload()

    assert [s.name for s in servers] == ["x"]
    assert service.list_servers()[0].state == ServerState.CONFIGURED
