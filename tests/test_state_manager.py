from datetime import datetime, timedelta, timezone
from unittest.mock import mock_open, patch

import pytest

from feed_translator.models import ProviderKind
from feed_translator.state_manager import State, StateManager
from tests.test_utils import generate_test_agent_record, generate_test_entry, generate_test_feed_config

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

def state_manager_with_feed(**overrides) -> StateManager:
    state_manager = StateManager()
    state_manager.sync_config([generate_test_feed_config(**overrides)], [generate_test_agent_record("translator")])
    return state_manager

@pytest.mark.parametrize("path_exists", [True, False])
@patch("builtins.open", new_callable=mock_open)
@patch("os.path.exists", name="mock_exists")
def test_state_manager_load_state(mock_exists, mock_open, path_exists):
    expected_state = State(feeds={"1": generate_test_feed_config()})
    mock_exists.return_value = path_exists
    mock_open.return_value.read.return_value = expected_state.model_dump_json()

    state = StateManager._load_state(file_path="test_state.json")

    assert state == (expected_state if path_exists else None)

def test_write_and_reload(tmp_path):
    file_path = str(tmp_path / "state.json")
    state_manager = StateManager(file_path=file_path)
    state_manager.sync_config([generate_test_feed_config()], [generate_test_agent_record("translator")])
    state_manager.add_entry(1, generate_test_entry(1))
    state_manager.update_feed(1, {"etag": "\"etag-1\""})
    state_manager.write()

    reloaded = StateManager(file_path=file_path)

    assert reloaded.get_feed_by_id(1).etag == "\"etag-1\""
    assert reloaded.entry_exists(1, "test-guid-1")
    assert reloaded.get_agents()[0].type == ProviderKind.TEST

def test_sync_config_keeps_runtime_fields():
    state_manager = state_manager_with_feed()
    state_manager.update_feed(1, {"etag": "\"etag-1\"", "total_tokens": 10, "last_fetch": NOW})

    state_manager.sync_config([generate_test_feed_config(name="Renamed", max_posts=5)], [])

    feed = state_manager.get_feed_by_id(1)
    assert feed.name == "Renamed"
    assert feed.max_posts == 5
    assert feed.etag == "\"etag-1\""
    assert feed.total_tokens == 10
    assert feed.last_fetch == NOW

@pytest.mark.parametrize(
    "changes",
    [
        {"feed_url": "https://example.com/other.xml"},
        {"target_language": "Japanese"},
    ]
)
def test_sync_config_resets_runtime_fields_on_source_change(changes):
    state_manager = state_manager_with_feed()
    state_manager.update_feed(1, {"etag": "\"etag-1\"", "total_tokens": 10})

    state_manager.sync_config([generate_test_feed_config(**changes)], [])

    feed = state_manager.get_feed_by_id(1)
    assert feed.etag is None
    assert feed.total_tokens == 0

def test_sync_config_removes_unconfigured_feeds_and_entries():
    state_manager = state_manager_with_feed()
    state_manager.add_entry(1, generate_test_entry(1))

    state_manager.sync_config([generate_test_feed_config(id=2)], [])

    assert state_manager.get_feed_by_id(1) is None
    assert not state_manager.entry_exists(1, "test-guid-1")

@pytest.mark.parametrize(
    "new_config, expected_valid",
    [
        ({}, True),
        ({"api_key": "rotated"}, None),
    ]
)
def test_sync_config_keeps_agent_validity_for_unchanged_config(new_config, expected_valid):
    state_manager = StateManager()
    state_manager.sync_config([], [generate_test_agent_record("a", valid=None)])
    state_manager.update_agent("a", True)

    state_manager.sync_config([], [generate_test_agent_record("a", valid=None, **new_config)])

    assert state_manager.get_agents()[0].valid is expected_valid

def test_get_feeds_due():
    state_manager = StateManager()
    state_manager.sync_config([
        generate_test_feed_config(id="never"),
        generate_test_feed_config(id="due", last_fetch=NOW - timedelta(minutes=45)),
        generate_test_feed_config(id="fresh", last_fetch=NOW - timedelta(minutes=10)),
        generate_test_feed_config(id="older", last_fetch=NOW - timedelta(hours=5)),
    ], [])

    due = state_manager.get_feeds_due(NOW)

    assert [feed.id for feed in due] == ["never", "older", "due"]
    assert len(state_manager.get_feeds_due(NOW, limit=1)) == 1

def test_add_entry_deduplicates_by_guid():
    state_manager = state_manager_with_feed()

    assert state_manager.add_entry(1, generate_test_entry(1))
    assert not state_manager.add_entry(1, generate_test_entry(1, title="Changed"))
    assert len(state_manager.get_entries(1)) == 1

def test_get_entries_newest_first_capped():
    state_manager = state_manager_with_feed(max_posts=2)
    for index in range(4):
        state_manager.add_entry(1, generate_test_entry(index))

    entries = state_manager.get_entries(1)

    assert [entry.guid for entry in entries] == ["test-guid-3", "test-guid-2"]

def test_add_usage_accumulates():
    state_manager = state_manager_with_feed()

    state_manager.add_usage(1, tokens=10, characters=100, when=NOW)
    state_manager.add_usage(1, tokens=5, characters=0, when=NOW)

    feed = state_manager.get_feed_by_id(1)
    assert (feed.total_tokens, feed.total_characters, feed.last_translate) == (15, 100, NOW)

def test_update_unknown_feed_raises():
    with pytest.raises(KeyError):
        StateManager().update_feed("missing", {"etag": "x"})

def test_cleanup_keeps_latest_max_posts():
    state_manager = state_manager_with_feed(max_posts=1)
    with patch("feed_translator.state_manager.datetime") as mock_datetime:
        mock_datetime.now.return_value = NOW - timedelta(days=40)
        state_manager.add_entry(1, generate_test_entry(1))
        state_manager.add_entry(1, generate_test_entry(2))
    state_manager.add_entry(1, generate_test_entry(3))

    deleted = state_manager.cleanup_old_entries(days_to_keep=30, now=NOW)

    assert deleted == 2
    assert [entry.guid for entry in state_manager.get_entries(1)] == ["test-guid-3"]

def test_cleanup_keeps_old_entries_within_max_posts():
    state_manager = state_manager_with_feed(max_posts=5)
    with patch("feed_translator.state_manager.datetime") as mock_datetime:
        mock_datetime.now.return_value = NOW - timedelta(days=40)
        state_manager.add_entry(1, generate_test_entry(1))

    assert state_manager.cleanup_old_entries(days_to_keep=30, now=NOW) == 0
