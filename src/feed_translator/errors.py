"""Exceptions raised by the translation pipeline."""

from typing import Optional

from feed_translator.models import TranslationResult


class FeedTranslatorError(Exception):
    """Base class for all errors of the package."""


class FeedFetchError(FeedTranslatorError):
    """The source feed could not be downloaded."""


class FeedParseError(FeedTranslatorError):
    """The source feed could not be parsed."""


class AgentConfigError(FeedTranslatorError):
    """An agent record cannot be turned into an adapter."""


class TranslationTaskError(FeedTranslatorError):
    """A translation task was rejected.

    Carries the zero-usage result so callers can report which entry failed.
    """

    def __init__(self, result: TranslationResult, cause: Optional[BaseException] = None):
        super().__init__(result.error or "Translation task failed")
        self.result = result
        self.cause = cause
