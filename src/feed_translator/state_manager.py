import os
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from feed_translator.models import (
    RUNTIME_FEED_FIELDS,
    AgentID,
    AgentRecord,
    EntryGUID,
    FeedConfig,
    FeedID,
    ProcessedEntry,
    StoredEntry,
)

class State(BaseModel):
    """
    The persisted state: feeds, agents and stored entries.
    """
    feeds: Dict[str, FeedConfig] = {} # Feeds by id
    agents: Dict[str, AgentRecord] = {} # Agents by id
    entries: Dict[str, List[StoredEntry]] = {} # Stored entries by feed id, oldest first

class StateManager:
    """
    JSON file backed feed and entry store.
    """
    def __init__(
            self,
            file_path: Optional[str] = None, # The path to load/save the state file, None for in-memory
        ):
        """
        Initialize the state manager and load the state from the given path if present.
        """
        self._file_path = file_path
        self._state = self._load_state(file_path) or State()

    @classmethod
    def _load_state(
            cls,
            file_path: Optional[str],
        ) -> Optional[State]:
        """
        Load the state from the given path.
        """
        if file_path and os.path.exists(file_path):
            with open(file_path, "r") as f:
                return State.model_validate_json(f.read())
        return None

    def sync_config(
            self,
            feeds: List[FeedConfig],
            agents: List[AgentRecord],
        ):
        """
        Replace the configured feeds and agents, keeping what earlier runs recorded about them.

        Feeds and agents missing from the configuration are dropped together with their entries.
        """
        synced_feeds: Dict[str, FeedConfig] = {}
        for feed in feeds:
            key = str(feed.id)
            previous = self._state.feeds.get(key)
            if previous is not None:
                if previous.feed_url != feed.feed_url or previous.target_language != feed.target_language:
                    logging.warning(f"Feed \"{key}\" source or language changed. Resetting its runtime state.")
                else:
                    feed = feed.model_copy(update={
                        field: getattr(previous, field) for field in RUNTIME_FEED_FIELDS
                    })
            synced_feeds[key] = feed

        for key in set(self._state.feeds) - set(synced_feeds):
            logging.warning(f"Feed \"{key}\" is no longer configured. Removing from state.")
            self._state.entries.pop(key, None)

        synced_agents: Dict[str, AgentRecord] = {}
        for agent in agents:
            key = str(agent.id)
            previous = self._state.agents.get(key)
            if agent.valid is None and previous is not None and previous.config == agent.config:
                agent = agent.model_copy(update={"valid": previous.valid})
            synced_agents[key] = agent

        self._state.feeds = synced_feeds
        self._state.agents = synced_agents

    ### Feeds

    def get_feeds(self) -> List[FeedConfig]:
        return list(self._state.feeds.values())

    def get_feed_by_id(self, feed_id: FeedID) -> Optional[FeedConfig]:
        return self._state.feeds.get(str(feed_id))

    def get_feeds_due(self, now: datetime, limit: int = 50) -> List[FeedConfig]:
        """
        Get the feeds never fetched or whose update frequency has elapsed, oldest fetch first.
        """
        due = [
            feed for feed in self._state.feeds.values()
            if feed.last_fetch is None
            or feed.last_fetch + timedelta(minutes=feed.update_frequency) <= now
        ]
        due.sort(key=lambda feed: (feed.last_fetch is not None, feed.last_fetch or now))
        return due[:limit]

    def update_feed(self, feed_id: FeedID, updates: Dict[str, Any]) -> FeedConfig:
        key = str(feed_id)
        feed = self._state.feeds.get(key)
        if feed is None:
            raise KeyError(f"Feed \"{key}\" not found in state.")
        feed = feed.model_copy(update=updates)
        self._state.feeds[key] = feed
        return feed

    def add_usage(self, feed_id: FeedID, tokens: int, characters: int, when: datetime):
        feed = self.get_feed_by_id(feed_id)
        if feed is None:
            raise KeyError(f"Feed \"{feed_id}\" not found in state.")
        self.update_feed(feed_id, {
            "total_tokens": feed.total_tokens + tokens,
            "total_characters": feed.total_characters + characters,
            "last_translate": when,
        })

    ### Entries

    def entry_exists(self, feed_id: FeedID, guid: EntryGUID) -> bool:
        return any(entry.guid == guid for entry in self._state.entries.get(str(feed_id), []))

    def add_entry(self, feed_id: FeedID, entry: ProcessedEntry) -> bool:
        """
        Store the entry unless an entry with the same guid exists for the feed.

        Returns:
            bool: True if the entry was added.
        """
        if self.entry_exists(feed_id, entry.guid):
            logging.debug(f"Entry \"{entry.guid}\" already stored for feed \"{feed_id}\".")
            return False
        stored = StoredEntry(**entry.model_dump(), created_at=datetime.now(timezone.utc))
        self._state.entries.setdefault(str(feed_id), []).append(stored)
        return True

    def get_entries(self, feed_id: FeedID) -> List[StoredEntry]:
        """
        Get the newest entries of a feed, at most its max_posts.
        """
        feed = self.get_feed_by_id(feed_id)
        entries = sorted(
            self._state.entries.get(str(feed_id), []),
            key=lambda entry: (entry.published, entry.created_at),
            reverse=True,
        )
        return entries[: feed.max_posts] if feed else entries

    def cleanup_old_entries(self, days_to_keep: int, now: Optional[datetime] = None) -> int:
        """
        Delete entries stored before the cutoff, except each feed's newest max_posts entries.

        Returns:
            int: The number of deleted entries.
        """
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days_to_keep)
        deleted = 0
        for key, entries in self._state.entries.items():
            feed = self._state.feeds.get(key)
            keep_latest = feed.max_posts if feed else 0
            newest_first = sorted(entries, key=lambda entry: entry.created_at, reverse=True)
            kept = [
                entry for index, entry in enumerate(newest_first)
                if index < keep_latest or entry.created_at >= cutoff
            ]
            deleted += len(entries) - len(kept)
            self._state.entries[key] = list(reversed(kept))
        logging.info(f"Cleaned up {deleted} old entries.")
        return deleted

    ### Agents

    def get_agents(self) -> List[AgentRecord]:
        return list(self._state.agents.values())

    def update_agent(self, agent_id: AgentID, valid: bool) -> AgentRecord:
        key = str(agent_id)
        agent = self._state.agents.get(key)
        if agent is None:
            raise KeyError(f"Agent \"{key}\" not found in state.")
        agent = agent.model_copy(update={"valid": valid})
        self._state.agents[key] = agent
        return agent

    def write(self):
        """
        Write the state to the file.
        """
        if not self._file_path:
            return
        with open(self._file_path, "w") as f:
            f.write(self._state.model_dump_json())
            logging.info(f"State written to \"{self._file_path}\".")
