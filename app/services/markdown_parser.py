"""
Markdown parsing for generated assignment text.

Turns the free-form Markdown returned by the LLM into either

* a cleaned plain-text string (JSON response path), or
* an ordered list of typed ContentBlock objects (rendered-document path).

Public API
----------
strip_references(text)   -> str
clean_markdown(text)     -> str
join_wrapped_lines(text) -> str
classify_block(block)    -> ContentBlock
parse_blocks(text)       -> List[ContentBlock]

Every function accepts any string and never raises; malformed Markdown
degrades to plain paragraphs.
"""
from __future__ import annotations

import dataclasses
import enum
import logging
import re
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Upper bound on blocks handed to a renderer
MAX_BLOCKS: int = 200


# ---------------------------------------------------------------------------
# Block types
# ---------------------------------------------------------------------------

class BlockType(str, enum.Enum):
    HEADING = "heading"
    SUBHEADING = "subheading"
    SUBSUBHEADING = "subsubheading"
    BULLET = "bullet"
    PARAGRAPH = "paragraph"


@dataclasses.dataclass(frozen=True)
class ContentBlock:
    """One classified unit of content, consumed in order by the renderer."""

    type: BlockType
    text: str
    emphasis: bool = False

    @property
    def is_heading(self) -> bool:
        return self.type in (
            BlockType.HEADING,
            BlockType.SUBHEADING,
            BlockType.SUBSUBHEADING,
        )


# ---------------------------------------------------------------------------
# Reference stripping
# ---------------------------------------------------------------------------

# A standalone heading line such as "References", "## Bibliography",
# "**Works Cited:**".  Matches only whole lines.
_REFERENCE_HEADING_RE = re.compile(
    r"^[ \t]*(?:#{1,6}[ \t]*)?(?:\*\*|__)?[ \t]*"
    r"(?:references?|bibliography|works[ \t]+cited|sources|citations?)"
    r"[ \t]*:?[ \t]*(?:\*\*|__)?[ \t]*:?[ \t]*$",
    re.IGNORECASE | re.MULTILINE,
)

# "Smith, J. (2020). Title ..." / "Okafor and Bello (2019)." / "Eze et al. (2021a)."
# A short name list, then the year in parentheses closed by a full stop.
_CITATION_LINE_RE = re.compile(
    r"^[ \t]*(?:[*\-•][ \t]+)?"
    r"[A-Z][A-Za-z'\-]+"
    r"(?:,?[ \t]+(?:[A-Z]\.|and|&|et[ \t]+al\.|[A-Z][A-Za-z'\-]+)){0,6}"
    r",?[ \t]*\(\d{4}[a-z]?\)\."
    r"(?:[ \t].*)?$"
)


def strip_references(text: str) -> str:
    """
    Remove a trailing references / bibliography section.

    Everything from the first standalone References, Bibliography, Works
    Cited, Sources or Citations heading to the end of the text is dropped,
    followed by any trailing lines shaped like an ``Author (Year).``
    citation.
    """
    match = _REFERENCE_HEADING_RE.search(text)
    if match:
        logger.debug("strip_references: cutting %d chars", len(text) - match.start())
        text = text[: match.start()]

    lines = text.rstrip().split("\n")
    while lines and (not lines[-1].strip() or _CITATION_LINE_RE.match(lines[-1])):
        lines.pop()
    return "\n".join(lines).strip()


# ---------------------------------------------------------------------------
# Markdown cleanup (JSON response path)
# ---------------------------------------------------------------------------

_CLEANUP_STEPS: Tuple[Tuple[re.Pattern, str], ...] = (
    # Fenced code blocks
    (re.compile(r"```.*?```", re.DOTALL), ""),
    # Horizontal rules (---, ***, ___, * * *)
    (re.compile(r"^[ \t]*([-*_])(?:[ \t]*\1){2,}[ \t]*$", re.MULTILINE), ""),
    # Heading markers
    (re.compile(r"^[ \t]*(?:#{1,6}[ \t]+)+", re.MULTILINE), ""),
    # "* item" bullets become typographic bullets
    (re.compile(r"^[ \t]*\*[ \t]+", re.MULTILINE), "• "),
    # Inline code
    (re.compile(r"`([^`\n]*)`"), r"\1"),
    # Links [text](url)
    (re.compile(r"\[([^\[\]\n]+)\]\([^()\n]*\)"), r"\1"),
    # Bold
    (re.compile(r"\*\*(.+?)\*\*"), r"\1"),
    (re.compile(r"__(.+?)__"), r"\1"),
    # Italic
    (re.compile(r"\*([^*\n]+?)\*"), r"\1"),
    (re.compile(r"(?<!\w)_([^_\n]+?)_(?!\w)"), r"\1"),
    # Any asterisk left over (line-start bullets were already converted)
    (re.compile(r"\*"), ""),
    # Whitespace: blank-line runs, then every remaining run becomes one space
    (re.compile(r"\n\s*\n\s*\n"), "\n\n"),
    (re.compile(r"\s+"), " "),
)


def _clean_once(text: str) -> str:
    for pattern, replacement in _CLEANUP_STEPS:
        text = pattern.sub(replacement, text)
    return text.strip()


def clean_markdown(text: str) -> str:
    """
    Strip Markdown syntax and normalise whitespace.

    All whitespace, line breaks included, collapses to single spaces, so the
    result is one line of plain text.  Nested constructs such
    as ``[[a](b)](c)`` are unwrapped by repeating the pass until the text
    stops changing, so the result is a fixed point: cleaning it again
    returns it unchanged.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    # Passes only remove characters or normalise them, so this reaches a fixed point
    while True:
        cleaned = _clean_once(text)
        if cleaned == text:
            return text
        text = cleaned


# ---------------------------------------------------------------------------
# Block segmentation (rendered-document path)
# ---------------------------------------------------------------------------

_STRUCTURAL_LINE_START_RE = re.compile(r"\n(?=[ \t]*(?:#{1,6}[ \t]|[*•-][ \t]))")
_AFTER_HEADING_LINE_RE = re.compile(r"^([ \t]*#{1,6}[ \t][^\n]*)\n(?!\n)", re.MULTILINE)
_SOFT_WRAP_RE = re.compile(r"([^\n])\n(?!\n)")
_BLOCK_SPLIT_RE = re.compile(r"\n{2,}")


def join_wrapped_lines(text: str) -> str:
    """
    Join soft-wrapped lines into single lines.

    A single newline becomes a space; blank-line paragraph breaks are left
    alone.  A newline that opens a heading or bullet line, or closes a
    heading line, is promoted to a paragraph break so list items and
    headings stay separate blocks.
    """
    normalized = re.sub(r"\r\n?", "\n", text)
    normalized = _STRUCTURAL_LINE_START_RE.sub("\n\n", normalized)
    normalized = _AFTER_HEADING_LINE_RE.sub(r"\1\n\n", normalized)
    return _SOFT_WRAP_RE.sub(r"\1 ", normalized)


_INLINE_MARKUP_STEPS: Tuple[Tuple[re.Pattern, str], ...] = (
    (re.compile(r"`([^`]*)`"), r"\1"),
    (re.compile(r"\[([^\[\]]+)\]\([^()]*\)"), r"\1"),
    (re.compile(r"\*\*|__"), ""),
    (re.compile(r"(?<!\S)\*(?=\S)|(?<=\S)\*(?!\S)"), ""),
)


def _strip_inline_markup(text: str) -> str:
    stripped = text
    for pattern, replacement in _INLINE_MARKUP_STEPS:
        stripped = pattern.sub(replacement, stripped)
    stripped = stripped.strip()
    # A block made only of markup keeps its raw text
    return stripped or text


# ---------------------------------------------------------------------------
# Classification cascade
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class ClassificationRule:
    """A predicate/constructor pair; the first matching rule wins."""

    name: str
    matches: Callable[[str], bool]
    build: Callable[[str], ContentBlock]


def _prefix_rule(name: str, pattern: str, block_type: BlockType, emphasis: bool) -> ClassificationRule:
    regex = re.compile(pattern)

    def build(block: str) -> ContentBlock:
        return ContentBlock(block_type, _strip_inline_markup(regex.sub("", block, count=1)), emphasis)

    return ClassificationRule(name, lambda block: regex.match(block) is not None, build)


_BOLD_BLOCK_RE = re.compile(r"^\*\*((?:(?!\*\*).)+)\*\*$", re.DOTALL)
_ALL_CAPS_RE = re.compile(r"^[A-Z][A-Z\s]{2,50}$")
_SHORT_TITLE_RE = re.compile(r"^[A-Z][A-Za-z\s'&-]{3,40}$")


def _is_bold_block(block: str) -> bool:
    return _BOLD_BLOCK_RE.match(block) is not None


def _build_bold_block(block: str) -> ContentBlock:
    return ContentBlock(BlockType.PARAGRAPH, _strip_inline_markup(block), True)


def _is_caps_heading(block: str) -> bool:
    return len(block) < 60 and _ALL_CAPS_RE.match(block) is not None


def _is_short_subheading(block: str) -> bool:
    if block.endswith(":") and len(block) < 100:
        return True
    return len(block) < 50 and _SHORT_TITLE_RE.match(block) is not None


CLASSIFICATION_RULES: Tuple[ClassificationRule, ...] = (
    _prefix_rule("subsubheading", r"^###\s+", BlockType.SUBSUBHEADING, True),
    _prefix_rule("subheading", r"^##\s+", BlockType.SUBHEADING, True),
    _prefix_rule("heading", r"^#\s+", BlockType.HEADING, True),
    _prefix_rule("bullet", r"^[*•-]\s+", BlockType.BULLET, False),
    ClassificationRule("bold_paragraph", _is_bold_block, _build_bold_block),
    ClassificationRule(
        "caps_heading",
        _is_caps_heading,
        lambda block: ContentBlock(BlockType.HEADING, block.strip(), True),
    ),
    ClassificationRule(
        "short_subheading",
        _is_short_subheading,
        lambda block: ContentBlock(BlockType.SUBHEADING, _strip_inline_markup(block), True),
    ),
    ClassificationRule(
        "paragraph",
        lambda block: True,
        lambda block: ContentBlock(BlockType.PARAGRAPH, _strip_inline_markup(block), False),
    ),
)


def classify_block(block: str, rules: Optional[Tuple[ClassificationRule, ...]] = None) -> ContentBlock:
    """Classify a single, already-trimmed block of text."""
    for rule in rules or CLASSIFICATION_RULES:
        if rule.matches(block):
            return rule.build(block)
    # Custom rule tables without a catch-all still get a paragraph
    return ContentBlock(BlockType.PARAGRAPH, block, False)


def parse_blocks(text: str, max_blocks: int = MAX_BLOCKS) -> List[ContentBlock]:
    """
    Segment assembled content into classified blocks.

    Lines are joined, the text is split on blank lines, empty blocks are
    dropped and at most *max_blocks* blocks are returned, in order.
    """
    joined = join_wrapped_lines(text)
    raw_blocks = [b.strip() for b in _BLOCK_SPLIT_RE.split(joined)]
    raw_blocks = [b for b in raw_blocks if b]

    if len(raw_blocks) > max_blocks:
        logger.warning(
            "parse_blocks: %d blocks found, keeping the first %d",
            len(raw_blocks),
            max_blocks,
        )
        raw_blocks = raw_blocks[:max_blocks]

    return [classify_block(block) for block in raw_blocks]
