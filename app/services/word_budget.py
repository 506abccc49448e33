"""
Word-count and page-count estimation.

Every conversion between pages and words in the pipeline goes through
WORDS_PER_PAGE so planning and estimating never drift apart.
"""
from __future__ import annotations

import math
import re
from typing import Optional

# One academic A4 page
WORDS_PER_PAGE: int = 500

_WHITESPACE_RE = re.compile(r"\s+")


def estimate_word_count(text: str) -> int:
    """
    Count whitespace-separated tokens in *text*.

    An empty string is a single empty token and counts as 1, so callers must
    not read the result as "no content".
    """
    return len(_WHITESPACE_RE.split(text))


def estimate_pages(text: str) -> int:
    """Return the number of academic pages *text* fills, rounded up."""
    return math.ceil(estimate_word_count(text) / WORDS_PER_PAGE)


def resolve_target_words(page_count: int, explicit_word_count: Optional[int] = None) -> int:
    """Explicit word count wins when present and positive; else pages × 500."""
    if explicit_word_count is not None and explicit_word_count > 0:
        return explicit_word_count
    return page_count * WORDS_PER_PAGE
