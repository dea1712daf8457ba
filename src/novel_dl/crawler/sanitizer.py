"""HTML fragment to plain text conversion for chapter bodies."""

import re

from bs4.dammit import EntitySubstitution
from bs4.formatter import HTMLFormatter

from novel_dl.crawler.sites import SiteConfig

IMAGE_PLACEHOLDER = "[Imagen]"

_FLAGS = re.IGNORECASE | re.DOTALL

# Elements dropped together with everything inside them
_NOISE_BLOCKS = [
    re.compile(r"<aside\b[^>]*>.*?</aside\s*>", _FLAGS),
    re.compile(r"<script\b[^>]*>.*?</script\s*>", _FLAGS),
    re.compile(r"<style\b[^>]*>.*?</style\s*>", _FLAGS),
    re.compile(r"<!--.*?-->", re.DOTALL),
]

_DIV_TAG = re.compile(r"</?div\b[^>]*>", re.IGNORECASE)
_LINE_BREAK_TAG = re.compile(r"</?p\b[^>]*>|<br\b[^>]*>", re.IGNORECASE)
_IMG_TAG = re.compile(r"<img\b[^>]*>", re.IGNORECASE)
_ANY_TAG = re.compile(r"<[^>]*>")
_EXTRA_NEWLINES = re.compile(r"\n{3,}")

# Typographic quotes are folded to their ASCII forms; dashes keep their
# Unicode glyphs. &amp; must stay last so "&amp;lt;" decodes to "&lt;".
HTML_ENTITIES = [
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&apos;", "'"),
    ("&nbsp;", " "),
    ("&ndash;", "–"),
    ("&mdash;", "—"),
    ("&lsquo;", "'"),
    ("&rsquo;", "'"),
    ("&ldquo;", '"'),
    ("&rdquo;", '"'),
    ("&amp;", "&"),
]

# Characters the parser already decoded that the table above folds. They are
# written back as entities when a parsed element is serialized.
_FOLDED_CHARS = {
    "\xa0": "&nbsp;",
    "\u2018": "&lsquo;",
    "\u2019": "&rsquo;",
    "\u201c": "&ldquo;",
    "\u201d": "&rdquo;",
}

_UNSAFE_FILENAME_CHARS = re.compile(r'[/\\?%*:|"<>]')


def unescape_entities(text: str) -> str:
    """Decode the fixed named-entity table; other entities are kept as-is."""
    for entity, char in HTML_ENTITIES:
        text = text.replace(entity, char)
    return text


def sanitize_html(raw_html: str, site: SiteConfig) -> str:
    """Convert a chapter's inner HTML into normalized plain text.

    Paragraphs come out separated by exactly one blank line, every line
    is stripped, and images are replaced by a placeholder.
    """
    text = site.process_content(raw_html)

    for pattern in _NOISE_BLOCKS:
        text = pattern.sub("", text)

    text = _DIV_TAG.sub("", text)
    text = _LINE_BREAK_TAG.sub("\n", text)
    text = _IMG_TAG.sub(IMAGE_PLACEHOLDER, text)
    text = _ANY_TAG.sub("", text)
    text = unescape_entities(text)
    text = _EXTRA_NEWLINES.sub("\n\n", text)

    lines = (line.strip() for line in text.split("\n"))
    return "\n\n".join(line for line in lines if line)


def sanitize_filename(name: str) -> str:
    """Replace characters that are unsafe in file names with ``_``."""
    return _UNSAFE_FILENAME_CHARS.sub("_", name)


def _substitute_entities(text: str) -> str:
    text = EntitySubstitution.substitute_xml(text)
    for char, entity in _FOLDED_CHARS.items():
        text = text.replace(char, entity)
    return text


# Serializes parsed markup for sanitize_html: &, < and > escaped as usual,
# plus the folded characters; everything else stays a literal character.
ENTITY_FORMATTER = HTMLFormatter(entity_substitution=_substitute_entities)
