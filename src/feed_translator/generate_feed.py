"""Builds the translated feed published for a source feed."""

import json
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel

from feed_translator.generate_outputs import generate_outputs
from feed_translator.models import FeedConfig, OutputType, ProcessedEntry
from feed_translator.utils.date_parser import parse_date
from feed_translator.utils.json_encoder import FeedTranslatorJSONEncoder
from feed_translator.utils.text import strip_html

GENERATOR = "Feed Translator"
DEFAULT_DESCRIPTION = "Feed Translator Generated Feed"

LANGUAGE_CODES = {
    "English": "en",
    "Chinese Simplified": "zh-CN",
    "Chinese Traditional": "zh-TW",
    "Russian": "ru",
    "Japanese": "ja",
    "Korean": "ko",
    "Czech": "cs",
    "Danish": "da",
    "German": "de",
    "Spanish": "es",
    "French": "fr",
    "Indonesian": "id",
    "Italian": "it",
    "Hungarian": "hu",
    "Norwegian Bokmål": "nb",
    "Dutch": "nl",
    "Polish": "pl",
    "Portuguese": "pt",
    "Swedish": "sv",
    "Turkish": "tr",
}

# Values of FeedConfig.translation_display.
TRANSLATION_ONLY = 0
TRANSLATION_FIRST = 1
ORIGINAL_FIRST = 2


class OutputEntry(BaseModel):
    """
    Entry of a generated feed.
    """
    id: str # The guid, falling back to the link.
    title: str # The title as displayed.
    content: str # The HTML content as displayed.
    description: str # The plain text of the content.
    link: str # The URL of the entry.
    author: str # The author of the entry.
    published: datetime # The publish date of the entry.
    summary: str = "" # The AI summary of the entry.


class OutputFeed(BaseModel):
    """
    Input of the output templates.
    """
    title: str # The title of the feed.
    description: str # The description of the feed.
    link: str # The home page of the source feed.
    language: str # The language code of the output.
    updated: datetime # When the output was generated.
    generator: str = GENERATOR
    slug: str # The file name stem of the outputs.
    entries: List[OutputEntry] = [] # The entries of the feed.


def get_language_code(language: Optional[str]) -> str:
    return LANGUAGE_CODES.get(language or "", "en")


def format_title(entry: ProcessedEntry, display_mode: int) -> str:
    original = entry.title
    translated = entry.translated_title
    both = translated and original and translated != original

    if display_mode == TRANSLATION_FIRST and both:
        return f"{translated} | {original}"
    if display_mode == ORIGINAL_FIRST:
        return f"{original} | {translated}" if both else (original or translated)
    return translated or original


def format_content(entry: ProcessedEntry, display_mode: int) -> str:
    original = entry.content
    translated = entry.translated_content
    both = translated and original and translated != original

    if display_mode == TRANSLATION_FIRST and both:
        content = (
            f"<div class=\"translated-content\">{translated}</div>"
            f"<hr><div class=\"original-content\">{original}</div>"
        )
    elif display_mode == ORIGINAL_FIRST and both:
        content = (
            f"<div class=\"original-content\">{original}</div>"
            f"<hr><div class=\"translated-content\">{translated}</div>"
        )
    elif display_mode == ORIGINAL_FIRST:
        content = original or translated
    else:
        content = translated or original

    if entry.summary:
        content = f"<div class=\"summary\"><strong>Summary:</strong> {entry.summary}</div><hr>{content}"
    return content


def build_output_feed(
        feed: FeedConfig,
        entries: Sequence[ProcessedEntry],
        now: Optional[datetime] = None,
    ) -> OutputFeed:
    """
    Apply the feed's display mode to its entries.
    """
    now = now or datetime.now(timezone.utc)
    output_entries = []
    for entry in entries:
        content = format_content(entry, feed.translation_display)
        output_entries.append(OutputEntry(
            id=entry.guid or entry.link,
            title=format_title(entry, feed.translation_display),
            content=content,
            description=strip_html(content),
            link=entry.link,
            author=entry.author,
            published=parse_date(entry.published) or now,
            summary=entry.summary,
        ))

    return OutputFeed(
        title=feed.name or "Unnamed Feed",
        description=feed.subtitle or DEFAULT_DESCRIPTION,
        link=feed.link or feed.feed_url,
        language=get_language_code(feed.target_language),
        updated=now,
        slug=feed.slug or str(feed.id),
        entries=output_entries,
    )


def generate_json_feed(output_feed: OutputFeed) -> str:
    """
    Render a JSON Feed 1.1 document.
    """
    items = []
    for entry in output_feed.entries:
        item = {
            "id": entry.id,
            "title": entry.title,
            "content_html": entry.content,
            "url": entry.link,
            "date_published": entry.published,
        }
        if entry.author:
            item["authors"] = [{"name": entry.author}]
        if entry.summary:
            item["summary"] = entry.summary
        items.append(item)

    document = {
        "version": "https://jsonfeed.org/version/1.1",
        "title": output_feed.title,
        "description": output_feed.description,
        "home_page_url": output_feed.link,
        "language": output_feed.language,
        "generator": output_feed.generator,
        "items": items,
    }
    return json.dumps(document, cls=FeedTranslatorJSONEncoder, ensure_ascii=False, indent=2)


def generate_feed_outputs(
        feed: FeedConfig,
        entries: Sequence[ProcessedEntry],
        template_dir: str,
        now: Optional[datetime] = None,
    ) -> Dict[str, str]:
    """
    Render the RSS, Atom and JSON outputs of a feed.

    Returns:
        Dict[str, str]: Output contents by path relative to the output directory.
    """
    output_feed = build_output_feed(feed, entries, now)
    output_types = [
        OutputType(template_name="feed.rss.j2", relative_output_path=f"{output_feed.slug}.rss"),
        OutputType(template_name="feed.atom.j2", relative_output_path=f"{output_feed.slug}.atom"),
    ]
    rendered = generate_outputs(
        input=output_feed,
        template_dir=template_dir,
        outputs=output_types,
    )

    outputs = {output_type.relative_output_path: content for output_type, content in rendered.items()}
    outputs[f"{output_feed.slug}.json"] = generate_json_feed(output_feed)
    return outputs
