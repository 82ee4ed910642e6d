"""Update runs: process due feeds and persist their results in the store."""

import logging
import time
from datetime import datetime, timezone
from typing import List, Optional

import httpx

from feed_translator.agents import AgentCache
from feed_translator.config import AppConfig
from feed_translator.errors import FeedTranslatorError
from feed_translator.feed_processor import FeedProcessor
from feed_translator.interfaces.protocols import StoreProtocol
from feed_translator.models import FeedConfig, FeedRunResult, ProcessedEntry, ProcessFeedResult, UpdateSummary
from feed_translator.state_manager import StateManager
from feed_translator.translation_queue import TranslationQueue


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _feed_label(feed: FeedConfig) -> str:
    return feed.name or feed.feed_url


def persist_result(
        state_manager: StoreProtocol,
        feed: FeedConfig,
        result: ProcessFeedResult,
    ) -> List[ProcessedEntry]:
    """
    Apply a processing result to the store.

    Returns:
        List[ProcessedEntry]: The entries which were new for the feed.
    """
    if result.not_modified:
        state_manager.update_feed(feed.id, {"last_fetch": _now(), "fetch_status": True})
        return []

    if not result.success:
        updates = result.feed_updates.model_dump(exclude_none=True) if result.feed_updates else {
            "fetch_status": False,
            "log": result.error or "Unknown error",
            "last_fetch": _now(),
        }
        state_manager.update_feed(feed.id, updates)
        return []

    if result.feed_updates is not None:
        state_manager.update_feed(feed.id, result.feed_updates.model_dump(exclude_none=True))

    saved_entries = []
    for entry in result.entries:
        try:
            if state_manager.add_entry(feed.id, entry):
                saved_entries.append(entry)
        except Exception as e:
            logging.error(f"Failed to save entry \"{entry.guid}\" for feed {feed.id}: {e}")

    if result.entries:
        state_manager.add_usage(
            feed.id,
            tokens=sum(entry.tokens_used for entry in result.entries),
            characters=sum(entry.characters_used for entry in result.entries),
            when=_now(),
        )
    return saved_entries


async def update_all_feeds(
        state_manager: StateManager,
        config: AppConfig,
        processor: Optional[FeedProcessor] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> UpdateSummary:
    """
    Process every due feed, one feed at a time, translating entries concurrently.
    """
    start = time.monotonic()
    processor = processor or FeedProcessor(http_client=http_client)
    agent_cache = AgentCache(state_manager.get_agents(), http_client=http_client)
    queue = TranslationQueue(config.max_concurrent, task_timeout=config.task_timeout)

    feeds = state_manager.get_feeds_due(_now())
    logging.info(f"Found {len(feeds)} feeds to update")

    summary = UpdateSummary(success=True)
    for feed in feeds:
        try:
            result = await processor.process_feed_with_concurrent_translation(feed, agent_cache, queue)
            saved_entries = persist_result(state_manager, feed, result)
        except Exception as e:
            logging.error(f"Failed to process feed {feed.id}: {e}")
            now = _now()
            state_manager.update_feed(feed.id, {
                "fetch_status": False,
                "log": f"{now.isoformat()}: {e}",
                "last_fetch": now,
            })
            summary.errors += 1
            summary.results.append(FeedRunResult(feed=_feed_label(feed), success=False, error=str(e)))
            continue

        if result.not_modified:
            summary.results.append(FeedRunResult(feed=_feed_label(feed), success=True, not_modified=True))
        elif result.success:
            summary.updated += 1
            summary.results.append(FeedRunResult(
                feed=_feed_label(feed),
                success=True,
                entries=len(result.entries),
            ))
            logging.info(f"Saved {len(saved_entries)} new entries for {_feed_label(feed)}")
        else:
            summary.errors += 1
            summary.results.append(FeedRunResult(feed=_feed_label(feed), success=False, error=result.error))

    summary.duration = round(time.monotonic() - start, 3)
    logging.info(
        f"Feed update completed: {summary.updated} updated, {summary.errors} errors, {summary.duration}s"
    )
    return summary


async def update_single_feed(
        state_manager: StateManager,
        feed_id: str,
        config: AppConfig,
        processor: Optional[FeedProcessor] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> List[ProcessedEntry]:
    """
    Process one feed regardless of its update frequency.

    Raises:
        FeedTranslatorError: the feed is unknown or could not be processed.
    """
    feed = state_manager.get_feed_by_id(feed_id)
    if feed is None:
        raise FeedTranslatorError(f"Feed not found: {feed_id}")

    processor = processor or FeedProcessor(http_client=http_client)
    agent_cache = AgentCache(state_manager.get_agents(), http_client=http_client)
    queue = TranslationQueue(config.max_concurrent, task_timeout=config.task_timeout)

    result = await processor.process_feed_with_concurrent_translation(feed, agent_cache, queue)
    saved_entries = persist_result(state_manager, feed, result)
    if not result.success:
        raise FeedTranslatorError(result.error or "Feed processing failed")

    logging.info(f"Updated {len(saved_entries)} entries for {_feed_label(feed)}")
    return saved_entries


async def validate_agents(
        state_manager: StateManager,
        only_unknown: bool = False,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> int:
    """
    Check agents and record whether each is usable.

    Returns:
        int: The number of valid agents.
    """
    records = [
        record for record in state_manager.get_agents()
        if not only_unknown or record.valid is None
    ]
    agent_cache = AgentCache(records, http_client=http_client)

    valid_count = 0
    for record in records:
        agent = agent_cache.get_agent_by_id(record.id)
        valid = await agent.validate() if agent is not None else False
        state_manager.update_agent(record.id, valid)
        logging.info(f"Agent \"{record.name}\" is {'valid' if valid else 'invalid'}")
        valid_count += int(valid)
    return valid_count


def cleanup_old_entries(state_manager: StateManager, days_to_keep: int = 30) -> int:
    """
    Delete stored entries older than ``days_to_keep`` beyond each feed's max_posts.
    """
    try:
        return state_manager.cleanup_old_entries(days_to_keep)
    except Exception as e:
        logging.error(f"Cleanup failed: {e}")
        return 0
