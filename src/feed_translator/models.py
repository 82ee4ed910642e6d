from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# Identifier of a feed or an agent in the store.
FeedID = Union[int, str]
AgentID = Union[int, str]
# Stable identifier of an entry (guid, falling back to link).
EntryGUID = str


### Agents

class ProviderKind(str, Enum):
    """
    Kind of translation provider an agent talks to.
    """
    OPENAI = "openai"
    DEEPL = "deepl"
    LIBRETRANSLATE = "libretranslate"
    TEST = "test"


class AgentRecord(BaseModel):
    """
    Stored settings of a translation/summarization agent.
    """
    id: AgentID # The identifier of the agent.
    name: str # The unique display name of the agent.
    type: ProviderKind # The provider the agent talks to.
    valid: Optional[bool] = None # Result of the last validation, None if never validated.
    is_ai: bool = False # Whether the agent is an AI (chat-completion style) agent.
    config: Dict[str, Any] = {} # Provider specific settings (api_key, base_url, model...).


class TranslationOutcome(BaseModel):
    """
    Result of a single adapter call.
    """
    text: str = "" # The translated text.
    tokens: int = 0 # Tokens consumed (AI providers).
    characters: int = 0 # Characters consumed (character-accounted providers).
    success: bool # Whether the call succeeded.
    error: Optional[str] = None # The error detail if the call failed.


### Feeds

class FeedConfig(BaseModel):
    """
    A source feed and its translation policy.
    """
    id: FeedID # The identifier of the feed.
    feed_url: str # The URL of the source feed.
    name: Optional[str] = None # The title of the feed.
    slug: Optional[str] = None # The file name stem of the generated outputs.
    subtitle: Optional[str] = None # The description of the generated feed.
    link: Optional[str] = None # The home page of the source feed.
    language: Optional[str] = None # The language of the source feed.
    target_language: str = "Chinese Simplified" # The language to translate into.
    translate_title: bool = False # Whether entry titles are translated.
    translate_content: bool = False # Whether entry contents are translated.
    summary: bool = False # Whether entries are summarized.
    translator_id: Optional[AgentID] = None # The agent used for translation.
    summarizer_id: Optional[AgentID] = None # The agent used for summarization.
    additional_prompt: Optional[str] = None # Free-text instruction appended to the system prompt.
    max_posts: int = 20 # The maximum number of entries processed per cycle.
    fetch_article: bool = False # Whether the full article replaces the feed content.
    update_frequency: int = 30 # Minutes between two fetches.
    translation_display: int = 0 # 0: translation, 1: translation | original, 2: original | translation.
    # Runtime fields, owned by the store.
    etag: Optional[str] = None # The ETag of the last fetch.
    last_fetch: Optional[datetime] = None # When the feed was last fetched.
    fetch_status: Optional[bool] = None # Whether the last fetch succeeded.
    last_translate: Optional[datetime] = None # When entries were last translated.
    total_tokens: int = 0 # Accumulated tokens.
    total_characters: int = 0 # Accumulated characters.
    log: str = "" # The last error.

    model_config = ConfigDict(
        frozen=True,
    )


# Fields of FeedConfig which are produced by processing rather than configured.
RUNTIME_FEED_FIELDS = (
    "etag",
    "last_fetch",
    "fetch_status",
    "last_translate",
    "total_tokens",
    "total_characters",
    "log",
)


class RawEntry(BaseModel):
    """
    Item of a parsed source feed.
    """
    title: str = "" # The title of the entry.
    link: str = "" # The URL of the entry.
    author: str = "" # The author of the entry.
    description: str = "" # The short description of the entry.
    content: str = "" # The full content of the entry.
    published: Optional[str] = None # The UTC ISO-8601 publish timestamp.
    guid: str = "" # The unique identifier of the entry.
    categories: List[str] = [] # The categories of the entry.


class ParsedFeed(BaseModel):
    """
    Source feed after parsing.
    """
    type: str # "rss" or "atom".
    title: str = "" # The title of the feed.
    description: str = "" # The description of the feed.
    link: str = "" # The home page of the feed.
    language: str = "" # The language of the feed.
    pub_date: Optional[str] = None # The UTC ISO-8601 publish timestamp of the feed.
    entries: List[RawEntry] = [] # The entries of the feed.


class FetchResult(BaseModel):
    """
    Result of downloading a source feed.
    """
    not_modified: bool = False # Whether the server answered 304.
    content: str = "" # The body of the response.
    etag: Optional[str] = None # The ETag header.
    last_modified: Optional[str] = None # The Last-Modified header.
    content_type: str = "" # The Content-Type header.


class ProcessedEntry(BaseModel):
    """
    Entry ready to be persisted.
    """
    title: str # The original title.
    link: str # The URL of the entry.
    author: str # The author of the entry.
    content: str # The original (or full article) content.
    published: str # The UTC ISO-8601 publish timestamp.
    guid: EntryGUID # The unique identifier of the entry.
    translated_title: str = "" # The translated title, empty when not translated.
    translated_content: str = "" # The translated content, empty when not translated.
    summary: str = "" # The AI summary, empty when not summarized.
    tokens_used: int = 0 # Tokens consumed for this entry.
    characters_used: int = 0 # Characters consumed for this entry.


class StoredEntry(ProcessedEntry):
    """
    Entry as kept by the store.
    """
    created_at: datetime # When the entry was stored.


class TranslationResult(BaseModel):
    """
    Result of translating one entry.
    """
    entry_id: EntryGUID # The guid of the translated entry.
    title: str # The original title, for reporting.
    success: bool = False # Whether the task succeeded.
    translated_title: str = "" # Empty when identical to the source or not requested.
    translated_content: str = "" # Empty when identical to the source or not requested.
    tokens_used: int = 0 # Tokens consumed.
    characters_used: int = 0 # Characters consumed.
    duration: float = 0.0 # Seconds spent on the task.
    error: Optional[str] = None # The error detail if the task failed.


class FeedCycleState(str, Enum):
    """
    States of one feed processing cycle.
    """
    FETCHING = "fetching"
    NOT_MODIFIED = "not_modified"
    PARSE_ERROR = "parse_error"
    PARSED = "parsed"
    TRANSLATING = "translating"
    MERGING = "merging"
    DONE = "done"
    FAILED = "failed"


class FeedUpdates(BaseModel):
    """
    Partial update of a feed produced by a processing cycle.
    """
    name: Optional[str] = None
    link: Optional[str] = None
    language: Optional[str] = None
    etag: Optional[str] = None
    last_fetch: Optional[datetime] = None
    fetch_status: Optional[bool] = None
    log: Optional[str] = None


class ProcessFeedResult(BaseModel):
    """
    Outcome of processing one feed.
    """
    success: bool # Whether the cycle succeeded.
    not_modified: bool = False # Whether the upstream feed was unchanged.
    state: FeedCycleState = FeedCycleState.DONE # The final state of the cycle.
    feed_updates: Optional[FeedUpdates] = None # The updates to apply to the feed.
    entries: List[ProcessedEntry] = [] # The candidate entries, in source order.
    etag: Optional[str] = None # The ETag of the fetched feed.
    error: Optional[str] = None # The error detail if the cycle failed.


class FeedRunResult(BaseModel):
    """
    Per-feed line of an update summary.
    """
    feed: str # The name or URL of the feed.
    success: bool
    entries: int = 0 # The number of entries returned by processing.
    not_modified: bool = False
    error: Optional[str] = None


class UpdateSummary(BaseModel):
    """
    Outcome of an update run over several feeds.
    """
    success: bool
    updated: int = 0 # Feeds updated with new data.
    errors: int = 0 # Feeds which failed.
    duration: float = 0.0 # Seconds spent.
    results: List[FeedRunResult] = Field(default_factory=list)
    error: Optional[str] = None


### Output

class OutputType(BaseModel):
    """
    An output type.
    """
    template_name: str # The name of the template to use.
    relative_output_path: str # The relative path inside the output folder where the output will be saved.

    model_config = ConfigDict(
        frozen=True,
    )
