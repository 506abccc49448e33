"""
Expansion controller: realise a section plan into content that meets a word
target, within a bounded number of generation calls.

Generation calls are strictly sequential.  Sections always appear in plan
order, followed by numbered expansion blocks.  The total number of calls is
``len(plan) + max_expansion_rounds``, so assembly always terminates even if
the target is never reached; under-length content is returned, not raised.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Awaitable, Callable, List, Optional

from app.config import settings
from app.models.schemas import AssignmentRequest
from app.services.section_planner import Section
from app.services.text_generator import TextGenerator
from app.services.word_budget import estimate_word_count

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], Awaitable[None]]

# Expansion stops once the content reaches this fraction of the target
TARGET_SATISFIED_RATIO: float = 0.9
MAX_EXPANSION_WORDS: int = 800
# The section pass fills 0..90; each expansion round adds EXPANSION_PROGRESS_STEP.
# 100 is reserved for a finished job.
SECTION_PROGRESS_SPAN: int = 90
EXPANSION_PROGRESS_STEP: int = 3

_EXPANSION_PROMPT = """\
The assignment below is shorter than required. Write approximately {words} \
more words of additional analysis that expands on it.

Question: {question}

Cover aspects, perspectives, implications or examples that have not been \
discussed yet. Do not repeat points already made, do not write a new \
introduction or conclusion, and do not include any references, \
bibliography, citations, footnotes or endnotes. Start directly with the \
content.\
"""


@dataclasses.dataclass
class AssemblyResult:
    """Returned by assemble(): the content plus word-count telemetry."""

    content: str
    final_word_count: int
    target_word_count: int
    expansions_used: int
    generation_calls: int

    @property
    def target_reached(self) -> bool:
        return self.final_word_count >= self.target_word_count * TARGET_SATISFIED_RATIO


def section_progress(completed: int, total: int) -> int:
    """Progress after *completed* of *total* planned sections."""
    if total <= 0:
        return SECTION_PROGRESS_SPAN
    return round(SECTION_PROGRESS_SPAN * completed / total)


def expansion_progress(expansions_used: int, max_rounds: int) -> int:
    """Progress after an expansion round; stays below 100 for any round count."""
    step = min(EXPANSION_PROGRESS_STEP, 9 // max(1, max_rounds))
    return min(99, SECTION_PROGRESS_SPAN + step * expansions_used)


class ExpansionController:
    """
    Drives the text generator through a plan and tops the result up with
    bounded expansion rounds.
    """

    def __init__(
        self,
        generator: TextGenerator,
        max_expansion_rounds: Optional[int] = None,
        max_content_chars: Optional[int] = None,
    ) -> None:
        self._generator = generator
        self.max_expansion_rounds = (
            settings.MAX_EXPANSION_ROUNDS if max_expansion_rounds is None else max_expansion_rounds
        )
        self.max_content_chars = (
            settings.MAX_CONTENT_CHARS if max_content_chars is None else max_content_chars
        )

    async def assemble(
        self,
        plan: List[Section],
        request: AssignmentRequest,
        target_words: int,
        on_progress: Optional[ProgressCallback] = None,
    ) -> AssemblyResult:
        """
        Generate every planned section, then expand while short of target.

        Steps
        -----
        1. For each section, in order: generate, append
           ``"\\n\\n## {title}\\n\\n{response}"``, report progress.
        2. While words < 90% of target and fewer than the maximum expansion
           rounds have run: request ``min(target - words, 800)`` more words
           and append them under ``"## Additional Analysis {n}"``.
        3. Truncate to the content cap and measure the final word count.

        Raises:
            GenerationError: propagated unchanged from the generator.
        """
        parts: List[str] = []
        calls = 0

        # ---- Planned sections ----
        for index, section in enumerate(plan, start=1):
            response = await self._generator.generate(section.prompt, request)
            calls += 1
            parts.append(f"\n\n## {section.title}\n\n{response}")
            logger.info(
                "assemble: section %d/%d '%s' → %d words",
                index,
                len(plan),
                section.title,
                estimate_word_count(response),
            )
            await self._report(on_progress, section_progress(index, len(plan)))

        content = "".join(parts)
        current_words = estimate_word_count(content)

        # ---- Expansion rounds ----
        expansions = 0
        while (
            current_words < target_words * TARGET_SATISFIED_RATIO
            and expansions < self.max_expansion_rounds
        ):
            requested = min(target_words - current_words, MAX_EXPANSION_WORDS)
            prompt = _EXPANSION_PROMPT.format(words=requested, question=request.question)
            response = await self._generator.generate(prompt, request)
            calls += 1
            expansions += 1

            content += f"\n\n## Additional Analysis {expansions}\n\n{response}"
            current_words = estimate_word_count(content)
            logger.info(
                "assemble: expansion %d/%d requested %d words → total %d/%d",
                expansions,
                self.max_expansion_rounds,
                requested,
                current_words,
                target_words,
            )
            await self._report(
                on_progress, expansion_progress(expansions, self.max_expansion_rounds)
            )

        if len(content) > self.max_content_chars:
            logger.warning(
                "assemble: truncating content from %d to %d chars",
                len(content),
                self.max_content_chars,
            )
            content = content[: self.max_content_chars]

        content = content.strip()
        result = AssemblyResult(
            content=content,
            final_word_count=estimate_word_count(content),
            target_word_count=target_words,
            expansions_used=expansions,
            generation_calls=calls,
        )
        if not result.target_reached:
            logger.warning(
                "assemble: target not reached after %d expansion(s): %d/%d words",
                expansions,
                result.final_word_count,
                target_words,
            )
        return result

    @staticmethod
    async def _report(on_progress: Optional[ProgressCallback], progress: int) -> None:
        if on_progress is not None:
            await on_progress(progress)
