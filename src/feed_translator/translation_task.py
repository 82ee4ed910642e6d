"""Translation of a single feed entry."""

import logging
import time
from typing import Optional

from feed_translator.agents import resolve_agent
from feed_translator.errors import TranslationTaskError
from feed_translator.interfaces.protocols import AgentResolverProtocol, TranslationAgentProtocol
from feed_translator.models import FeedConfig, ProcessedEntry, TranslationOutcome, TranslationResult
from feed_translator.translation_queue import TaskMetadata

INVALID_AGENT_MESSAGE = "Invalid or missing translator agent"


class TranslationTask:
    """
    Translates the title and content of one entry with the feed's translator agent.
    """
    def __init__(
            self,
            entry: ProcessedEntry, # The entry to translate
            feed_config: FeedConfig, # The feed the entry belongs to
            agent_resolver: AgentResolverProtocol, # Looks up the translator agent
        ):
        self.entry = entry
        self.feed_config = feed_config
        self.agent_resolver = agent_resolver

    def get_description(self) -> str:
        return f"Translate entry: {self.entry.title[:50]}..."

    def get_metadata(self) -> TaskMetadata:
        return TaskMetadata(description=self.get_description(), entry_id=self.entry.guid)

    async def execute(self) -> TranslationResult:
        """
        Translate the entry.

        A translated field is only kept when it differs from the source once
        both are trimmed; usage is only counted for kept fields.

        Raises:
            TranslationTaskError: the agent is missing or invalid, or translation raised.
                The error carries a zero-usage result.
        """
        start = time.monotonic()
        result = TranslationResult(entry_id=self.entry.guid, title=self.entry.title)

        try:
            agent = await resolve_agent(self.agent_resolver, self.feed_config.translator_id)
            if agent is None or not agent.valid:
                raise TranslationTaskError(
                    result.model_copy(update={"error": INVALID_AGENT_MESSAGE})
                )

            if self.feed_config.translate_title and self.entry.title:
                outcome = await self._translate(agent, self.entry.title, "title")
                result = self._merge(result, "translated_title", self.entry.title, outcome)

            if self.feed_config.translate_content and self.entry.content:
                outcome = await self._translate(agent, self.entry.content, "content")
                result = self._merge(result, "translated_content", self.entry.content, outcome)

        except Exception as e:
            error = e.result.error if isinstance(e, TranslationTaskError) else str(e)
            logging.warning(f"Translation failed for \"{self.entry.title}\": {error}")
            raise TranslationTaskError(
                TranslationResult(
                    entry_id=self.entry.guid,
                    title=self.entry.title,
                    success=False,
                    duration=time.monotonic() - start,
                    error=error,
                ),
                cause=e,
            ) from e

        return result.model_copy(update={
            "success": True,
            "duration": time.monotonic() - start,
        })

    async def _translate(
            self,
            agent: TranslationAgentProtocol,
            text: str,
            text_type: str,
        ) -> TranslationOutcome:
        return await agent.translate(
            text,
            self.feed_config.target_language,
            text_type=text_type,
            user_prompt=self.feed_config.additional_prompt,
        )

    @staticmethod
    def _merge(
            result: TranslationResult,
            field_name: str,
            original: str,
            outcome: TranslationOutcome,
        ) -> TranslationResult:
        if not outcome.success:
            logging.warning(f"Agent could not translate {field_name} of \"{result.title}\": {outcome.error}")
            return result

        translated = outcome.text.strip()
        if translated == original.strip():
            return result

        return result.model_copy(update={
            field_name: translated,
            "tokens_used": result.tokens_used + outcome.tokens,
            "characters_used": result.characters_used + outcome.characters,
        })


def apply_translation(entry: ProcessedEntry, result: Optional[TranslationResult]) -> ProcessedEntry:
    """
    Copy the translated fields and usage of ``result`` onto ``entry``.
    """
    if result is None:
        return entry
    return entry.model_copy(update={
        "translated_title": result.translated_title,
        "translated_content": result.translated_content,
        "tokens_used": entry.tokens_used + result.tokens_used,
        "characters_used": entry.characters_used + result.characters_used,
    })
