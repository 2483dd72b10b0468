import pytest

from sshfleet.core.exceptions import AuthError, ConnectError, InvalidTransition, Timeout, ValidationError
from sshfleet.domain.fleet import ProvisioningController, ServerRegistry, ServerSpec, ServerState

from conftest import make_configured


@pytest.fixture
def controller(registry, session):
    return ProvisioningController(registry, session, verify_timeout=5)


def test_provision_installs_key_and_waits_for_verification(registry, session, controller, ssh_dir):
    entry = registry.add(ServerSpec(host="10.0.0.1", name="web1", user="deploy"))

    result = controller.provision(entry.id, password="secret")

    assert result.state == ServerState.PENDING_VERIFICATION
    assert session.installs == [("10.0.0.1", "deploy", ssh_dir / "id_rsa.pub", "secret")]


def test_failed_install_leaves_server_configuring(registry, session, controller):
    entry = registry.add(ServerSpec(host="10.0.0.1", name="web1"))
    session.install_error = AuthError("web1: authentication failed")

    with pytest.raises(AuthError):
        controller.provision(entry.id)

    assert registry.get(entry.id).state == ServerState.CONFIGURING

    session.install_error = None
    assert controller.provision(entry.id).state == ServerState.PENDING_VERIFICATION


def test_provision_reinstalls_on_configured_server(registry, session, controller):
    entry = make_configured(registry, "web1")

    result = controller.provision(entry.id)

    assert result.state == ServerState.CONFIGURED
    assert len(session.installs) == 1


def test_provision_rejected_while_verifying(registry, session, controller):
    entry = registry.add(ServerSpec(host="10.0.0.1", name="web1"))
    registry.transition(entry.id, ServerState.PENDING_VERIFICATION)
    registry.transition(entry.id, ServerState.VERIFYING)

    with pytest.raises(InvalidTransition):
        controller.provision(entry.id)
    assert session.installs == []


def test_provision_reinstalls_rotated_key(registry, session, controller, ssh_dir):
    entry = make_configured(registry, "web1")
    registry.invalidate_credential(ssh_dir / "id_rsa.pub")

    result = controller.provision(entry.id)

    assert result.state == ServerState.PENDING_VERIFICATION
    assert len(session.installs) == 1


def test_provision_without_credential(config_path, session):
    registry = ServerRegistry(config_path)
    entry = registry.add(ServerSpec(host="10.0.0.1", name="web1"))

    with pytest.raises(ValidationError):
        ProvisioningController(registry, session).provision(entry.id)
    assert session.installs == []


def test_verify_success(registry, controller):
    entry = registry.add(ServerSpec(host="10.0.0.1", name="web1"))
    controller.provision(entry.id)

    result = controller.verify(entry.id)

    assert result.state == ServerState.CONFIGURED
    assert result.last_verified_at is not None


@pytest.mark.parametrize("outcome", [False, ConnectError("refused"), Timeout("slow")])
def test_verify_failure_moves_to_error(registry, session, controller, outcome):
    entry = registry.add(ServerSpec(host="10.0.0.1", name="web1"))
    controller.provision(entry.id)
    session.verify_results["web1"] = outcome

    result = controller.verify(entry.id)

    assert result.state == ServerState.ERROR
    assert result.last_verified_at is None


def test_retry_after_error(registry, session, controller):
    entry = registry.add(ServerSpec(host="10.0.0.1", name="web1"))
    controller.provision(entry.id)
    session.verify_results["web1"] = False
    controller.verify(entry.id)

    session.verify_results["web1"] = True
    assert controller.verify(entry.id).state == ServerState.CONFIGURED


def test_verify_before_install_is_rejected(registry, controller):
    entry = registry.add(ServerSpec(host="10.0.0.1", name="web1"))

    with pytest.raises(InvalidTransition):
        controller.verify(entry.id)


def test_install_command(registry, controller, ssh_dir):
    entry = registry.add(ServerSpec(host="10.0.0.1", name="web1", user="deploy"))

    command = controller.install_command(entry.id)

    assert command.startswith(f"cat {ssh_dir / 'id_rsa.pub'} | ssh deploy@10.0.0.1 ")
    assert "authorized_keys" in command


def test_unexpected_verify_error_still_ends_in_error(registry, session, controller):
    entry = registry.add(ServerSpec(host="10.0.0.1", name="web1"))
    controller.provision(entry.id)
    session.verify_results["web1"] = RuntimeError("bad config")

    with pytest.raises(RuntimeError):
        controller.verify(entry.id)
    assert registry.get(entry.id).state == ServerState.ERROR

    session.verify_results["web1"] = True
    assert controller.verify(entry.id).state == ServerState.CONFIGURED
