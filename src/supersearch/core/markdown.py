"""Markdown stripping for search result snippets. Display only."""

import re

# Applied in order; each entry is (pattern, replacement).
_MARKDOWN_PATTERNS = [
    # Emphasis: *text*, **text**, _text_, __text__
    (re.compile(r"[*_]{1,2}([^*_]+)[*_]{1,2}"), r"\1"),
    # Headers: # Header
    (re.compile(r"#{1,6}\s*(.*)"), r"\1"),
    # Images: ![alt](url), removed entirely
    (re.compile(r"!\[([^\[\]]*)\]\([^()]+\)"), ""),
    # Links: [label](url) keeps the label
    (re.compile(r"\[([^\[\]]+)\]\([^()]+\)"), r"\1"),
    # Fenced code blocks
    (re.compile(r"`{3}([^`]+)`{3}"), ""),
    # Inline code keeps its content
    (re.compile(r"`([^`]+)`"), r"\1"),
    # List items: * item, - item, + item
    (re.compile(r"^[\s]*[\-*+]\s+(.*)", re.MULTILINE), r"\1"),
    # Blockquotes
    (re.compile(r"^>\s+(.*)", re.MULTILINE), r"\1"),
    # Horizontal rules
    (re.compile(r"^-{3,}", re.MULTILINE), ""),
    # Strikethrough
    (re.compile(r"~~([^~]+)~~"), r"\1"),
    # Wikilinks: [[Note]]
    (re.compile(r"\[\[([^\]]+)\]\]"), r"\1"),
]

ELLIPSIS = "..."


def strip_markdown(text: str) -> str:
    """Remove markdown markup, keeping the readable text."""
    for pattern, replacement in _MARKDOWN_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def truncate(text: str, max_length: int) -> str:
    """Cut ``text`` to ``max_length`` characters, marking the cut with an ellipsis."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + ELLIPSIS


def render_snippet(content: str, max_length: int = 200) -> str:
    return truncate(strip_markdown(content), max_length)
