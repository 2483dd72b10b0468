import threading
import time

import pytest

from sshfleet.core.exceptions import AuthError, Timeout, ValidationError
from sshfleet.core.interfaces import ExecResult
from sshfleet.domain.dispatch import Dispatcher, Outcome, RunStatus
from sshfleet.domain.fleet import ServerSpec

from conftest import make_configured


@pytest.fixture
def fleet(registry):
    for name in ("A", "B", "C"):
        make_configured(registry, name)
    return registry


def test_one_failure_gives_partially_failed(fleet, dispatcher, session):
    session.results["B"] = ExecResult(stdout="", stderr="boom\n", exit_code=2)

    run = dispatcher.run("uptime", ["A", "B", "C"])

    assert run.status == RunStatus.PARTIALLY_FAILED
    assert [r.server_name for r in run.results] == ["A", "B", "C"]
    assert [r.outcome for r in run.results] == [Outcome.SUCCESS, Outcome.FAILED, Outcome.SUCCESS]
    assert run.result_for("B").exit_code == 2
    assert run.result_for("B").stderr == "boom\n"
    assert run.result_for("A").stdout == "A: uptime\n"
    assert [r.server_name for r in run.failed] == ["B"]


def test_all_success_gives_completed(fleet, dispatcher, session):
    run = dispatcher.run("hostname", ["A", "B", "C"])

    assert run.status == RunStatus.COMPLETED
    assert sorted(session.calls) == [("A", "hostname"), ("B", "hostname"), ("C", "hostname")]


def test_results_follow_target_order_not_finish_order(fleet, dispatcher, session):
    session.gates["A"] = threading.Event()

    handle = dispatcher.start("date", ["A", "B"])
    assert session.started_event("B").wait(5)
    # B is done while A is still blocked
    for _ in range(100):
        if "B" in session.finished:
            break
        time.sleep(0.01)
    assert handle.snapshot().status == RunStatus.EXECUTING
    session.gates["A"].set()
    run = handle.wait(5)

    assert session.finished == ["B", "A"]
    assert [r.server_name for r in run.results] == ["A", "B"]
    assert run.status == RunStatus.COMPLETED


def test_timeout_and_connection_errors_are_per_target(fleet, dispatcher, session):
    session.results["A"] = Timeout("A: timed out")
    session.results["B"] = AuthError("B: authentication failed")

    run = dispatcher.run("ls", ["A", "B", "C"])

    assert [r.outcome for r in run.results] == [Outcome.TIMEOUT, Outcome.ERROR, Outcome.SUCCESS]
    assert run.result_for("A").error == "A: timed out"
    assert run.result_for("A").exit_code is None
    assert run.status == RunStatus.PARTIALLY_FAILED


def test_unexpected_exception_is_contained(fleet, dispatcher, session):
    session.results["A"] = RuntimeError("bug")

    run = dispatcher.run("ls", ["A", "C"])

    assert run.result_for("A").outcome == Outcome.ERROR
    assert run.result_for("C").outcome == Outcome.SUCCESS


def test_unconfigured_and_unknown_targets_are_excluded(fleet, registry, dispatcher, session):
    registry.add(ServerSpec(host="10.0.0.9", name="fresh"))

    run = dispatcher.run("ls", ["A", "fresh", "ghost", "A"])

    assert run.target_names == ("A", "fresh", "ghost")
    assert [r.server_name for r in run.results] == ["A"]
    assert {e.server_name: e.reason for e in run.excluded} == {
        "fresh": "not configured (configuring)",
        "ghost": "unknown server",
    }
    assert run.status == RunStatus.COMPLETED
    assert session.calls == [("A", "ls")]


def test_rejects_empty_command_and_empty_selection(fleet, registry, dispatcher):
    registry.add(ServerSpec(host="10.0.0.9", name="fresh"))

    with pytest.raises(ValidationError):
        dispatcher.run("   ", ["A"])
    with pytest.raises(ValidationError):
        dispatcher.run("ls", [])
    with pytest.raises(ValidationError):
        dispatcher.run("ls", ["fresh", "ghost"])
    assert dispatcher.history() == []


def test_cancel_interrupts_running_and_skips_queued(registry, session, events):
    make_configured(registry, "A")
    make_configured(registry, "B")
    dispatcher = Dispatcher(registry, session, events=events, max_workers=1)
    session.gates["A"] = threading.Event()

    handle = dispatcher.start("sleep 60", ["A", "B"])
    assert session.started_event("A").wait(5)
    handle.cancel()
    run = handle.wait(5)

    assert handle.done
    assert session.interrupted == ["A"]
    assert session.interrupt_ids == [handle.id]
    assert session.call_ids == [handle.id]
    assert [r.outcome for r in run.results] == [Outcome.CANCELLED, Outcome.CANCELLED]
    assert ("B", "sleep 60") not in session.calls
    assert run.status == RunStatus.PARTIALLY_FAILED


def test_history_and_events(fleet, dispatcher, events):
    finished = []
    dispatcher.add_history_listener(finished.append)

    first = dispatcher.run("one", ["A"])
    second = dispatcher.run("two", ["A", "B"])

    assert dispatcher.history() == [first, second]
    assert finished == [first, second]
    assert len(events.get_events("run.started")) == 2
    assert len(events.get_events("run.target_finished")) == 3
    assert [e.metadata["run"] for e in events.get_events("run.finished")] == [first, second]


def test_history_is_bounded(registry, session):
    make_configured(registry, "A")
    dispatcher = Dispatcher(registry, session, history_limit=2)

    for command in ("a", "b", "c"):
        dispatcher.run(command, ["A"])

    assert [r.command_text for r in dispatcher.history()] == ["b", "c"]


def test_invalid_worker_count(registry, session):
    with pytest.raises(ValidationError):
        Dispatcher(registry, session, max_workers=0)
