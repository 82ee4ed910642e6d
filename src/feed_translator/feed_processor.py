"""Turns a feed configuration into persisted-ready entries.

Fetches and parses the source feed, optionally replaces entry content with
the full article, translates (sequentially or through the bounded queue)
and summarizes. Failures are returned as results, never raised.
"""

import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

import feedparser
import httpx
import requests
from bs4 import BeautifulSoup

from feed_translator.agents import resolve_agent
from feed_translator.errors import FeedFetchError, FeedParseError, TranslationTaskError
from feed_translator.interfaces.protocols import AgentResolverProtocol, SummarizingAgentProtocol
from feed_translator.models import (
    FeedConfig,
    FeedCycleState,
    FeedUpdates,
    FetchResult,
    ParsedFeed,
    ProcessedEntry,
    ProcessFeedResult,
    RawEntry,
    TranslationOutcome,
    TranslationResult,
)
from feed_translator.translation_queue import BatchTask, TranslationQueue
from feed_translator.translation_task import TranslationTask, apply_translation
from feed_translator.utils.date_parser import to_iso

USER_AGENT = "Feed-Translator/1.0 (+https://github.com/feed-translator/feed-translator)"
FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml"
VALID_FEED_TYPES = (
    "application/rss+xml",
    "application/atom+xml",
    "application/xml",
    "text/xml",
    "text/html", # Some feeds incorrectly report as HTML
)
# Elements removed from a page before looking for the article body.
NOISE_TAGS = ["script", "style", "nav", "header", "footer", "aside"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _text(value: Any) -> str:
    if not value:
        return ""
    return str(value).strip()


class FeedProcessor:
    """
    Processes one feed per call; holds no per-feed state.
    """
    def __init__(
            self,
            user_agent: str = USER_AGENT,
            request_timeout: float = 30,
            *,
            http_client: Optional[httpx.AsyncClient] = None, # if provided, used for full-article fetches
        ):
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.http_client = http_client

    ### Fetching and parsing

    def fetch_feed(self, feed_url: str, etag: Optional[str] = None) -> FetchResult:
        """
        Download the feed, sending the stored ETag.

        Raises:
            FeedFetchError: transport error or non-2xx status.
        """
        headers = {
            "User-Agent": self.user_agent,
            "Accept": FEED_ACCEPT,
            "Accept-Encoding": "gzip, deflate",
        }
        if etag:
            headers["If-None-Match"] = etag

        try:
            response = requests.get(feed_url, headers=headers, timeout=self.request_timeout)
        except requests.RequestException as e:
            raise FeedFetchError(f"Failed to fetch {feed_url}: {e}") from e

        if response.status_code == 304:
            return FetchResult(not_modified=True)

        if not 200 <= response.status_code < 300:
            raise FeedFetchError(f"HTTP {response.status_code}: {response.reason}")

        content_type = response.headers.get("content-type", "")
        if not any(feed_type in content_type for feed_type in VALID_FEED_TYPES):
            logging.warning(f"Unexpected content type: {content_type} for {feed_url}")

        return FetchResult(
            content=response.text,
            etag=response.headers.get("etag"),
            last_modified=response.headers.get("last-modified"),
            content_type=content_type,
        )

    def parse_feed(self, content: str) -> ParsedFeed:
        """
        Parse an RSS or Atom document.

        Raises:
            FeedParseError: the document has neither feed metadata nor entries.
        """
        parsed = feedparser.parse(content)
        channel = parsed.feed
        if not parsed.entries and not channel.get("title"):
            reason = parsed.get("bozo_exception") or "Unrecognized feed format"
            raise FeedParseError(f"Feed parsing failed: {reason}")

        if parsed.bozo:
            bozo_type = parsed.bozo_exception.__class__.__name__
            logging.warning(f"Feed is not well-formed ({bozo_type}). Processing may be incomplete.")

        feed_type = "atom" if parsed.get("version", "").startswith("atom") else "rss"
        return ParsedFeed(
            type=feed_type,
            title=_text(channel.get("title")),
            description=_text(channel.get("subtitle") or channel.get("description")),
            link=_text(channel.get("link")),
            language=_text(channel.get("language")) or ("en" if feed_type == "atom" else ""),
            pub_date=to_iso(channel.get("updated_parsed") or channel.get("published_parsed")),
            entries=[self._parse_entry(entry) for entry in parsed.entries],
        )

    @staticmethod
    def _parse_entry(entry: Any) -> RawEntry:
        link = _text(entry.get("link"))
        description = _text(entry.get("summary") or entry.get("description"))

        content = ""
        for part in entry.get("content") or []:
            if part.get("value"):
                content = part["value"].strip()
                break

        return RawEntry(
            title=_text(entry.get("title")),
            link=link,
            author=_text(entry.get("author")),
            description=description,
            content=content or description,
            published=to_iso(entry.get("published_parsed") or entry.get("updated_parsed"))
                or to_iso(entry.get("published") or entry.get("updated")),
            guid=_text(entry.get("id")) or link,
            categories=[tag.get("term") for tag in entry.get("tags") or [] if tag.get("term")],
        )

    async def extract_full_article(self, url: str) -> str:
        """
        Download ``url`` and return the inner HTML of its main content, "" on failure.
        """
        if not url:
            return ""

        try:
            if self.http_client is not None:
                response = await self.http_client.get(url, headers={"User-Agent": self.user_agent})
            else:
                async with httpx.AsyncClient(timeout=self.request_timeout, follow_redirects=True) as client:
                    response = await client.get(url, headers={"User-Agent": self.user_agent})
        except httpx.HTTPError as e:
            logging.error(f"Failed to extract article from {url}: {e}")
            return ""

        if not response.is_success:
            logging.warning(f"Failed to fetch article: {response.status_code}")
            return ""

        soup = BeautifulSoup(response.text, "html.parser")
        for tag in soup(NOISE_TAGS):
            tag.decompose()

        main = (
            soup.find("article")
            or soup.find("main")
            or soup.find("div", class_=lambda classes: classes and "content" in classes)
            or soup.body
        )
        if main is None:
            return ""
        return main.decode_contents().strip()

    ### Entries

    async def _prepare_entries(self, parsed_feed: ParsedFeed, feed_config: FeedConfig) -> List[ProcessedEntry]:
        entries = []
        for raw_entry in parsed_feed.entries[: feed_config.max_posts or 20]:
            content = raw_entry.content or raw_entry.description
            if feed_config.fetch_article and raw_entry.link:
                full_content = await self.extract_full_article(raw_entry.link)
                if full_content:
                    content = full_content

            entries.append(ProcessedEntry(
                title=raw_entry.title,
                link=raw_entry.link,
                author=raw_entry.author,
                content=content,
                published=raw_entry.published or _now().isoformat(),
                guid=raw_entry.guid or raw_entry.link,
            ))
        return entries

    @staticmethod
    def _wants_translation(feed_config: FeedConfig) -> bool:
        return bool(feed_config.translator_id) and (
            feed_config.translate_title or feed_config.translate_content
        )

    async def translate_entry(
            self,
            entry: ProcessedEntry,
            feed_config: FeedConfig,
            agent_resolver: AgentResolverProtocol,
        ) -> ProcessedEntry:
        """
        Translate ``entry`` inline, leaving it untranslated if the task is rejected.
        """
        try:
            result = await TranslationTask(entry, feed_config, agent_resolver).execute()
        except TranslationTaskError as e:
            logging.error(f"Translation failed for \"{entry.title}\": {e}")
            return entry
        return apply_translation(entry, result)

    async def summarize_entry(
            self,
            entry: ProcessedEntry,
            feed_config: FeedConfig,
            agent_resolver: AgentResolverProtocol,
        ) -> TranslationOutcome:
        """
        Summarize the translated content of ``entry``, or its content when untranslated.
        """
        agent: Optional[SummarizingAgentProtocol] = await resolve_agent(agent_resolver, feed_config.summarizer_id)
        if agent is None or not agent.valid or not agent.is_ai or not hasattr(agent, "summarize"):
            logging.error(f"Invalid or missing summarizer agent for feed {feed_config.feed_url}")
            return TranslationOutcome(success=False, error="Invalid or missing summarizer agent")

        text = entry.translated_content or entry.content
        if not text:
            return TranslationOutcome(success=False)

        try:
            return await agent.summarize(text, feed_config.target_language)
        except Exception as e:
            logging.error(f"Summarization failed for \"{entry.title}\": {e}")
            return TranslationOutcome(success=False, error=str(e))

    async def _summarize_entries(
            self,
            entries: List[ProcessedEntry],
            feed_config: FeedConfig,
            agent_resolver: AgentResolverProtocol,
        ) -> List[ProcessedEntry]:
        if not (feed_config.summary and feed_config.summarizer_id):
            return entries

        summarized = []
        for entry in entries:
            outcome = await self.summarize_entry(entry, feed_config, agent_resolver)
            if outcome.success:
                entry = entry.model_copy(update={
                    "summary": outcome.text,
                    "tokens_used": entry.tokens_used + outcome.tokens,
                })
            summarized.append(entry)
        return summarized

    ### Feed cycle

    async def process_feed(
            self,
            feed_config: FeedConfig,
            agent_resolver: AgentResolverProtocol,
        ) -> ProcessFeedResult:
        """
        Process a feed, translating entries one after the other.
        """
        return await self._process(feed_config, agent_resolver, queue=None)

    async def process_feed_with_concurrent_translation(
            self,
            feed_config: FeedConfig,
            agent_resolver: AgentResolverProtocol,
            queue: TranslationQueue,
        ) -> ProcessFeedResult:
        """
        Process a feed, translating all entries as one batch on ``queue``.

        A rejected entry keeps its untranslated content; the feed still succeeds.
        """
        return await self._process(feed_config, agent_resolver, queue=queue)

    async def _process(
            self,
            feed_config: FeedConfig,
            agent_resolver: AgentResolverProtocol,
            queue: Optional[TranslationQueue],
        ) -> ProcessFeedResult:
        state = FeedCycleState.FETCHING
        logging.info(f"Processing feed: {feed_config.feed_url}")

        try:
            fetch_result = self.fetch_feed(feed_config.feed_url, feed_config.etag)
            if fetch_result.not_modified:
                logging.info(f"Feed not modified: {feed_config.feed_url}")
                return ProcessFeedResult(
                    success=True,
                    not_modified=True,
                    state=FeedCycleState.NOT_MODIFIED,
                )

            try:
                parsed_feed = self.parse_feed(fetch_result.content)
            except FeedParseError:
                state = FeedCycleState.PARSE_ERROR
                raise
            state = self._transition(feed_config, FeedCycleState.PARSED)

            feed_updates = FeedUpdates(
                name=parsed_feed.title or feed_config.name,
                link=parsed_feed.link or feed_config.link,
                language=parsed_feed.language or feed_config.language,
                etag=fetch_result.etag,
                last_fetch=_now(),
                fetch_status=True,
                log="",
            )

            entries = await self._prepare_entries(parsed_feed, feed_config)

            if self._wants_translation(feed_config):
                state = self._transition(feed_config, FeedCycleState.TRANSLATING)
                if queue is None:
                    entries = [
                        await self.translate_entry(entry, feed_config, agent_resolver)
                        for entry in entries
                    ]
                else:
                    entries = await self._translate_concurrently(entries, feed_config, agent_resolver, queue)

            state = self._transition(feed_config, FeedCycleState.MERGING)
            entries = await self._summarize_entries(entries, feed_config, agent_resolver)

            state = self._transition(feed_config, FeedCycleState.DONE)
            return ProcessFeedResult(
                success=True,
                state=state,
                feed_updates=feed_updates,
                entries=entries,
                etag=fetch_result.etag,
            )

        except Exception as e:
            logging.error(f"Failed to process feed {feed_config.feed_url} while {state.value}: {e}")
            now = _now()
            return ProcessFeedResult(
                success=False,
                state=FeedCycleState.PARSE_ERROR if state == FeedCycleState.PARSE_ERROR else FeedCycleState.FAILED,
                error=str(e),
                feed_updates=FeedUpdates(
                    fetch_status=False,
                    log=f"{now.isoformat()}: {e}",
                    last_fetch=now,
                ),
            )

    @staticmethod
    def _transition(feed_config: FeedConfig, state: FeedCycleState) -> FeedCycleState:
        logging.debug(f"Feed {feed_config.feed_url}: {state.value}")
        return state

    async def _translate_concurrently(
            self,
            entries: List[ProcessedEntry],
            feed_config: FeedConfig,
            agent_resolver: AgentResolverProtocol,
            queue: TranslationQueue,
        ) -> List[ProcessedEntry]:
        tasks = [TranslationTask(entry, feed_config, agent_resolver) for entry in entries]

        queue.reset_progress()
        settled = await queue.add_batch_tasks([
            BatchTask(task=task.execute, metadata=task.get_metadata()) for task in tasks
        ])
        await queue.wait_for_completion()

        progress = queue.get_progress()
        logging.info(
            f"Translated {feed_config.feed_url}: {progress.summary}, {progress.failed} failed"
        )

        # Results are matched to entries by position, not by completion order.
        merged = []
        for entry, outcome in zip(entries, settled):
            result: Optional[TranslationResult] = None
            if outcome.fulfilled:
                result = outcome.value
            else:
                logging.warning(f"Keeping \"{entry.title}\" untranslated: {outcome.reason}")
            merged.append(apply_translation(entry, result))
        return merged
