import json
import os
import xml.etree.ElementTree as ET
from datetime import datetime, timezone

import pytest

from feed_translator.generate_feed import (
    build_output_feed,
    format_content,
    format_title,
    generate_feed_outputs,
    get_language_code,
)
from feed_translator.generate_outputs import cdata, generate_outputs
from feed_translator.models import OutputType
from tests.test_utils import generate_test_entry, generate_test_feed_config

TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), "..", "src", "feed_translator", "templates")
NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
ATOM = "{http://www.w3.org/2005/Atom}"

def translated_entry(**overrides):
    values = dict(translated_title="标题", translated_content="<p>内容</p>")
    values.update(overrides)
    return generate_test_entry(1, **values)

@pytest.mark.parametrize(
    "display_mode, expected",
    [
        (0, "标题"),
        (1, "标题 | Test Item 1"),
        (2, "Test Item 1 | 标题"),
    ]
)
def test_format_title(display_mode, expected):
    assert format_title(translated_entry(), display_mode) == expected

@pytest.mark.parametrize("display_mode", [0, 1, 2])
def test_format_title_untranslated(display_mode):
    assert format_title(generate_test_entry(1), display_mode) == "Test Item 1"

@pytest.mark.parametrize(
    "display_mode, expected",
    [
        (0, "<p>内容</p>"),
        (1, "<div class=\"translated-content\"><p>内容</p></div><hr><div class=\"original-content\"><p>Test Content 1</p></div>"),
        (2, "<div class=\"original-content\"><p>Test Content 1</p></div><hr><div class=\"translated-content\"><p>内容</p></div>"),
    ]
)
def test_format_content(display_mode, expected):
    assert format_content(translated_entry(), display_mode) == expected

def test_format_content_prepends_summary():
    content = format_content(translated_entry(summary="Short summary"), 0)

    assert content == "<div class=\"summary\"><strong>Summary:</strong> Short summary</div><hr><p>内容</p>"

@pytest.mark.parametrize(
    "language, expected",
    [
        ("Chinese Simplified", "zh-CN"),
        ("Japanese", "ja"),
        ("Klingon", "en"),
        (None, "en"),
    ]
)
def test_get_language_code(language, expected):
    assert get_language_code(language) == expected

def test_build_output_feed():
    feed = generate_test_feed_config(subtitle="Translated news", link="https://example.com")

    output_feed = build_output_feed(feed, [translated_entry(), generate_test_entry(2)], now=NOW)

    assert output_feed.title == "Test Feed"
    assert output_feed.description == "Translated news"
    assert output_feed.language == "zh-CN"
    assert output_feed.slug == "test-feed"
    assert [entry.id for entry in output_feed.entries] == ["test-guid-1", "test-guid-2"]
    assert output_feed.entries[0].description == "内容"
    assert output_feed.entries[0].published == datetime(2024, 1, 2, tzinfo=timezone.utc)

def test_generate_feed_outputs():
    feed = generate_test_feed_config(translation_display=1)
    entries = [
        translated_entry(title="Tom & Jerry", translated_content="<p>Ends with ]]> marker</p>"),
        generate_test_entry(2, author=""),
    ]

    outputs = generate_feed_outputs(feed, entries, TEMPLATE_DIR, now=NOW)

    assert set(outputs) == {"test-feed.rss", "test-feed.atom", "test-feed.json"}

    channel = ET.fromstring(outputs["test-feed.rss"].encode("utf-8")).find("channel")
    assert channel.findtext("title") == "Test Feed"
    assert channel.findtext("language") == "zh-CN"
    assert channel.findtext("lastBuildDate") == "Sat, 01 Jun 2024 12:00:00 +0000"
    items = channel.findall("item")
    assert items[0].findtext("title") == "标题 | Tom & Jerry"
    assert items[0].findtext("guid") == "test-guid-1"
    encoded = items[0].findtext("{http://purl.org/rss/1.0/modules/content/}encoded")
    assert "<p>Ends with ]]> marker</p>" in encoded

    atom = ET.fromstring(outputs["test-feed.atom"].encode("utf-8"))
    atom_entries = atom.findall(f"{ATOM}entry")
    assert len(atom_entries) == 2
    assert atom_entries[1].findtext(f"{ATOM}content") == "<p>Test Content 2</p>"
    assert atom_entries[1].find(f"{ATOM}author") is None

    document = json.loads(outputs["test-feed.json"])
    assert document["version"] == "https://jsonfeed.org/version/1.1"
    assert document["language"] == "zh-CN"
    assert document["items"][0]["title"] == "标题 | Tom & Jerry"
    assert document["items"][0]["authors"] == [{"name": "Test Author"}]
    assert document["items"][1]["date_published"] == "2024-01-03T00:00:00+00:00"
    assert "authors" not in document["items"][1]

def test_rss_description_decodes_entities():
    entry = translated_entry(translated_content="<p>It&#8217;s &amp;lt;here&amp;gt;</p>")

    outputs = generate_feed_outputs(generate_test_feed_config(), [entry], TEMPLATE_DIR, now=NOW)

    channel = ET.fromstring(outputs["test-feed.rss"].encode("utf-8")).find("channel")
    assert channel.find("item").findtext("description") == "It’s &lt;here&gt;"
    atom = ET.fromstring(outputs["test-feed.atom"].encode("utf-8"))
    assert atom.find(f"{ATOM}entry").findtext(f"{ATOM}summary") == "It’s &lt;here&gt;"

def test_generate_outputs_renders_each_output_type(tmp_path):
    (tmp_path / "hello.txt.j2").write_text("Hello {{ input.name }}")
    output_type = OutputType(template_name="hello.txt.j2", relative_output_path="hello.txt")

    outputs = generate_outputs(input={"name": "<World>"}, template_dir=str(tmp_path), outputs=[output_type])

    assert outputs == {output_type: "Hello &lt;World&gt;"}

def test_cdata_splits_terminator():
    assert cdata("a]]>b") == "a]]]]><![CDATA[>b"
    assert cdata(None) == ""
