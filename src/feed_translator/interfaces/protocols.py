"""Defines protocols for dependency injection and mocking core components."""

from datetime import datetime
from typing import Any, Awaitable, Dict, List, Optional, Protocol, Union

from feed_translator.models import (
    AgentID,
    EntryGUID,
    FeedConfig,
    FeedID,
    ProcessedEntry,
    TranslationOutcome,
)


class TranslationAgentProtocol(Protocol):
    """Protocol defining the interface of a translation backend adapter."""

    name: str
    valid: Optional[bool]
    is_ai: bool

    async def translate(
        self,
        text: str,
        target_language: str,
        text_type: str = "content",
        user_prompt: Optional[str] = None,
    ) -> TranslationOutcome:
        """Translate ``text``; expected failures are reported, never raised."""
        ...

    async def validate(self) -> bool:
        """Check that the provider is reachable with the configured credentials."""
        ...


class SummarizingAgentProtocol(TranslationAgentProtocol, Protocol):
    """Protocol for AI adapters which can also summarize."""

    async def summarize(self, text: str, target_language: str) -> TranslationOutcome:
        """Summarize ``text`` in ``target_language``."""
        ...


class AgentResolverProtocol(Protocol):
    """Protocol for looking up adapters by agent id, synchronously or awaited."""

    def get_agent_by_id(
        self, agent_id: AgentID
    ) -> Union[Optional[TranslationAgentProtocol], Awaitable[Optional[TranslationAgentProtocol]]]:
        """Return the adapter of the agent, None if unknown."""
        ...


class FeedStoreProtocol(Protocol):
    """Protocol defining the feed side of the store."""

    def get_feed_by_id(self, feed_id: FeedID) -> Optional[FeedConfig]:
        """Return the configuration of a feed."""
        ...

    def get_feeds_due(self, now: datetime, limit: int = 50) -> List[FeedConfig]:
        """Return the feeds whose update interval has elapsed."""
        ...

    def update_feed(self, feed_id: FeedID, updates: Dict[str, Any]) -> FeedConfig:
        """Apply a partial update to a feed."""
        ...

    def add_usage(self, feed_id: FeedID, tokens: int, characters: int, when: datetime) -> None:
        """Accumulate usage on a feed and stamp its last translation."""
        ...


class EntryStoreProtocol(Protocol):
    """Protocol defining the entry side of the store."""

    def entry_exists(self, feed_id: FeedID, guid: EntryGUID) -> bool:
        """Check if an entry with this guid is stored for the feed."""
        ...

    def add_entry(self, feed_id: FeedID, entry: ProcessedEntry) -> bool:
        """Store an entry unless its guid already exists; return whether it was added."""
        ...


class StoreProtocol(FeedStoreProtocol, EntryStoreProtocol, Protocol):
    """Protocol for a store persisting processing results."""
