"""
Section planning: split a word target into ordered generation sub-tasks.

A plan is always ``Introduction``, one or more body sections, ``Conclusion``.
Prompt templates are module-level constants so they can be tuned without
touching the arithmetic.
"""
from __future__ import annotations

import dataclasses
import logging
import math
from typing import List

from app.services.word_budget import WORDS_PER_PAGE

logger = logging.getLogger(__name__)

# Introduction and conclusion each get 0.7 of an academic page
FRAME_SECTION_WORDS: int = WORDS_PER_PAGE * 7 // 10
MIN_BODY_SECTION_WORDS: int = 400
MAX_BODY_SECTION_WORDS: int = 600
# Target body-section size starts at one eighth of the total
BODY_SECTION_DIVISOR: int = 8

_NAMED_BODY_TITLES = (
    "Background and Context",
    "Main Arguments and Analysis",
    "Case Studies and Examples",
    "Critical Evaluation",
)

_NO_REFERENCES_RULE = (
    "Do not include any references, bibliography, citations, works cited "
    "section, footnotes or endnotes."
)

_INTRODUCTION_PROMPT = """\
Write the Introduction of an academic assignment answering the question below.

Question: {question}

Introduce the topic, give the necessary background, state the scope and \
outline how the rest of the assignment is organised.
Write approximately {words} words. Start directly with the content and do not \
repeat the section title. {no_references}\
"""

_BODY_PROMPT = """\
Write the section titled "{title}" of an academic assignment answering the \
question below.

Question: {question}

Develop this section in depth with clear sub-headings, explanation, relevant \
examples and analysis. Do not write an introduction or conclusion for the \
whole assignment.
Write approximately {words} words. Start directly with the content and do not \
repeat the section title. {no_references}\
"""

_CONCLUSION_PROMPT = """\
Write the Conclusion of an academic assignment answering the question below.

Question: {question}

Summarise the main points, give a clear final answer to the question and, \
where appropriate, recommendations.
Write approximately {words} words. Start directly with the content and do not \
repeat the section title. {no_references}\
"""


@dataclasses.dataclass(frozen=True)
class Section:
    """One planned generation sub-task."""

    title: str
    prompt: str
    target_words: int


def body_section_titles(count: int) -> List[str]:
    """Titles for *count* body sections."""
    if count <= 1:
        return ["Main Content"]
    if count == 2:
        return ["Main Analysis", "Critical Evaluation"]
    if count == 3:
        return ["Background and Context", "Main Analysis", "Critical Evaluation"]
    titles = list(_NAMED_BODY_TITLES)
    titles.extend(f"Additional Analysis {k}" for k in range(1, count - len(_NAMED_BODY_TITLES) + 1))
    return titles


def target_body_section_words(total_words: int) -> int:
    """``clamp(floor(total / 8), 400, 600)``."""
    return max(
        MIN_BODY_SECTION_WORDS,
        min(MAX_BODY_SECTION_WORDS, total_words // BODY_SECTION_DIVISOR),
    )


def plan_sections(total_words: int, question: str) -> List[Section]:
    """
    Decompose *total_words* into an ordered plan for *question*.

    Steps
    -----
    1. Reserve 350 words each for the introduction and conclusion.
    2. Size body sections at ``clamp(floor(total / 8), 400, 600)`` words.
    3. Use ``max(1, ceil(body / size))`` body sections, each with
       ``floor(body / n)`` words.  A target too small to cover the frame
       still gets one (zero-word) body section.
    """
    body_words = max(0, total_words - 2 * FRAME_SECTION_WORDS)
    section_size = target_body_section_words(total_words)
    num_body_sections = max(1, math.ceil(body_words / section_size))
    words_per_body_section = body_words // num_body_sections

    plan: List[Section] = [
        Section(
            title="Introduction",
            prompt=_INTRODUCTION_PROMPT.format(
                question=question,
                words=FRAME_SECTION_WORDS,
                no_references=_NO_REFERENCES_RULE,
            ),
            target_words=FRAME_SECTION_WORDS,
        )
    ]
    for title in body_section_titles(num_body_sections):
        plan.append(
            Section(
                title=title,
                prompt=_BODY_PROMPT.format(
                    title=title,
                    question=question,
                    words=words_per_body_section,
                    no_references=_NO_REFERENCES_RULE,
                ),
                target_words=words_per_body_section,
            )
        )
    plan.append(
        Section(
            title="Conclusion",
            prompt=_CONCLUSION_PROMPT.format(
                question=question,
                words=FRAME_SECTION_WORDS,
                no_references=_NO_REFERENCES_RULE,
            ),
            target_words=FRAME_SECTION_WORDS,
        )
    )

    logger.info(
        "plan_sections: %d words → %d section(s) (%d body × %d words)",
        total_words,
        len(plan),
        num_body_sections,
        words_per_body_section,
    )
    return plan
