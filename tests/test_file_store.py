import pytest

from sshfleet.infrastructure.state import JsonFileStore


def test_save_load_list_delete(tmp_path):
    store = JsonFileStore(tmp_path / "state")

    store.save("history", {"commands": ["ls"]})
    store.save("sequences", {"sequences": []})

    assert store.load("history") == {"commands": ["ls"]}
    assert store.list() == ["history", "sequences"]
    assert store.exists("history")

    store.delete("history")
    store.delete("history")
    assert store.load("history") is None
    assert not store.exists("history")


def test_unreadable_state_is_ignored(tmp_path):
    store = JsonFileStore(tmp_path)
    (tmp_path / "history.json").write_text("{not json")

    assert store.load("history") is None


def test_failed_save_leaves_no_temp_file(tmp_path):
    store = JsonFileStore(tmp_path)
    store.save("history", {"commands": ["ls"]})

    with pytest.raises(TypeError):
        store.save("history", {"commands": {object()}})

    assert [p.name for p in tmp_path.iterdir()] == ["history.json"]
    assert store.load("history") == {"commands": ["ls"]}
