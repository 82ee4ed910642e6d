import json

import pytest

from feed_translator.config import load_config, load_feeds_file
from feed_translator.models import ProviderKind

ENV_NAMES = [
    "FEEDS_FILE",
    "OUTPUT_DIR",
    "STATE_FILE_NAME",
    "MAX_CONCURRENT",
    "TASK_TIMEOUT",
    "DAYS_TO_KEEP",
    "LOG_LEVEL",
]

@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    # Keep any .env of the working copy out of the tests.
    monkeypatch.chdir(tmp_path)

def test_defaults():
    config = load_config([])

    assert config.feeds_file == "feeds.json"
    assert config.output_dir == "./output"
    assert config.state_file_name == "state.json"
    assert config.max_concurrent == 3
    assert config.task_timeout is None
    assert config.days_to_keep == 30
    assert config.log_level == "INFO"
    assert config.feed_id is None
    assert not config.validate_agents

def test_environment_overrides_defaults(monkeypatch):
    monkeypatch.setenv("OUTPUT_DIR", "/srv/feeds")
    monkeypatch.setenv("MAX_CONCURRENT", "5")
    monkeypatch.setenv("TASK_TIMEOUT", "60")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    config = load_config([])

    assert config.output_dir == "/srv/feeds"
    assert config.max_concurrent == 5
    assert config.task_timeout == 60
    assert config.log_level == "DEBUG"

def test_cli_overrides_environment(monkeypatch):
    monkeypatch.setenv("MAX_CONCURRENT", "5")
    monkeypatch.setenv("FEEDS_FILE", "env.json")

    config = load_config([
        "-c", "2",
        "-f", "cli.json",
        "-d", "7",
        "--feed-id", "hn",
        "--validate-agents",
    ])

    assert config.max_concurrent == 2
    assert config.feeds_file == "cli.json"
    assert config.days_to_keep == 7
    assert config.feed_id == "hn"
    assert config.validate_agents

@pytest.mark.parametrize("argv", [["-c", "0"], ["--max-concurrent", "-1"]])
def test_max_concurrent_must_be_positive(argv):
    with pytest.raises(ValueError):
        load_config(argv)

def test_load_feeds_file(tmp_path):
    feeds_file = tmp_path / "feeds.json"
    feeds_file.write_text(json.dumps({
        "agents": [
            {"id": "deepl", "name": "DeepL", "type": "deepl", "config": {"api_key": "key"}},
        ],
        "feeds": [
            {"id": "hn", "name": "Hacker News", "feed_url": "https://news.ycombinator.com/rss", "translator_id": "deepl"},
            {"id": 2, "feed_url": "https://example.com/feed.xml", "slug": "custom"},
        ],
    }))

    feeds, agents = load_feeds_file(str(feeds_file))

    assert agents[0].type == ProviderKind.DEEPL
    assert agents[0].valid is None
    assert [feed.slug for feed in feeds] == ["hn-hacker-news", "custom"]
    assert feeds[0].target_language == "Chinese Simplified"
    assert feeds[0].max_posts == 20

def test_load_feeds_file_missing(tmp_path):
    with pytest.raises(ValueError, match="not found"):
        load_feeds_file(str(tmp_path / "missing.json"))

def test_cli_zero_is_not_replaced_by_environment(monkeypatch):
    monkeypatch.setenv("DAYS_TO_KEEP", "14")
    monkeypatch.setenv("TASK_TIMEOUT", "60")

    config = load_config(["-d", "0", "-t", "0"])

    assert config.days_to_keep == 0
    assert config.task_timeout == 0
