"""Text helpers for usage estimation and chunking of translation input."""

import re
from typing import List

from bs4 import BeautifulSoup

_WHITESPACE_RE = re.compile(r"\s+")
_NON_ASCII_RE = re.compile(r"[^\x00-\x7F]")

# Preferred places to cut a chunk, best first.
_BOUNDARIES = ["\n\n", "\n", ". ", "。", "! ", "？", " "]


def get_token_count(text: str) -> int:
    """Approximate the number of tokens of ``text``.

    One token is counted per four characters; texts with more than 10%
    non-ASCII characters get a 20% surcharge.
    """
    if not text:
        return 0

    char_count = len(text)
    token_count = -(-char_count // 4)

    non_ascii = len(_NON_ASCII_RE.findall(text))
    if non_ascii > char_count * 0.1:
        return -(-token_count * 12 // 10)

    return token_count


def adaptive_chunking(
    text: str,
    min_chunk_size: int = 500,
    max_chunk_size: int = 4000,
) -> List[str]:
    """Split ``text`` into chunks no longer than ``max_chunk_size``.

    Chunks are cut at the last natural boundary found in the final 30% of
    the window. The current chunk is shortened when the text after it
    would be shorter than ``min_chunk_size``.
    """
    if not text or len(text) <= max_chunk_size:
        return [text]

    chunks: List[str] = []
    remaining = text

    while remaining:
        chunk_size = min(max_chunk_size, len(remaining))

        tail = len(remaining) - chunk_size
        if 0 < tail < min_chunk_size:
            chunk_size = len(remaining) - min_chunk_size

        chunk = remaining[:chunk_size]

        if chunk_size < len(remaining):
            for boundary in _BOUNDARIES:
                position = chunk.rfind(boundary)
                if position > chunk_size * 0.7:
                    if position > min_chunk_size:
                        chunk = remaining[: position + 1]
                    break

        chunks.append(chunk.strip())
        remaining = remaining[len(chunk):].strip()

    return [chunk for chunk in chunks if chunk]


def strip_html(html: str) -> str:
    """Convert HTML to plain text with scripts and styles removed and whitespace collapsed."""
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    return _WHITESPACE_RE.sub(" ", soup.get_text(" ", strip=True)).strip()


def generate_slug(text: str) -> str:
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug)
    return slug.strip("-")
