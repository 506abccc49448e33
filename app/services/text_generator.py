"""
Text generation via Ollama's /api/generate endpoint.

The pipeline treats generation as a black box: ``generate(prompt, request)``
returns the model's text or raises GenerationError.  Prompts are module-level
constants so they can be tuned without touching logic code.

Public API
----------
TextGenerator                       (protocol used by the pipeline)
OllamaTextGenerator.generate(prompt, request) -> str
OllamaTextGenerator.check_health()            -> bool
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol

import httpx

from app.config import settings
from app.exceptions import GenerationError
from app.models.schemas import AssignmentRequest

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Prompt templates
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = """\
You are an expert academic assistant for Nigerian university students. Your \
role is to help students with their assignments by providing comprehensive, \
well-structured, and academically sound responses.

Key Guidelines:
1. Provide detailed, comprehensive answers that meet the specified length
2. Use proper academic writing style and formatting
3. Structure your response with clear headings, subheadings, and paragraphs
4. Ensure the content is relevant to Nigerian university standards
5. Use formal academic language while maintaining clarity
6. Provide practical examples and case studies relevant to the Nigerian context when applicable
7. DO NOT include any header information like student name, matric number, etc.
8. DO NOT include any references, bibliography, citations, or works cited section
9. DO NOT include any footnotes or endnotes
10. Write as if this is a standalone academic essay without external citations\
"""

_REQUEST_PROMPT = """\
Course Information:
- Department: {department}
- Course Code: {course_code}
- Course Title: {course_title}

Task:
{prompt}

Format the response as Markdown ready for an academic document. Do not include \
any header information (name, matric number, etc.) and do not include any \
references or bibliography section.\
"""


class TextGenerator(Protocol):
    """Anything that can turn a prompt into text for a given request."""

    async def generate(self, prompt: str, request: AssignmentRequest) -> str:
        ...


def build_request_prompt(prompt: str, request: AssignmentRequest) -> str:
    """Wrap a section prompt with the request's course metadata."""
    return _REQUEST_PROMPT.format(
        department=request.department,
        course_code=request.course_code,
        course_title=request.course_title,
        prompt=prompt,
    )


# ---------------------------------------------------------------------------
# Ollama client
# ---------------------------------------------------------------------------

class OllamaTextGenerator:
    """
    Long-form text generation via Ollama /api/generate.

    Calls are not retried; any failure is raised as GenerationError with the
    collaborator's message so the caller can record it on the job.
    """

    LLM_TIMEOUT: float = float(settings.OLLAMA_TIMEOUT)

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.base_url = settings.OLLAMA_BASE_URL
        self.model = settings.OLLAMA_LLM_MODEL
        self.timeout = httpx.Timeout(self.LLM_TIMEOUT, connect=10.0)
        self._transport = transport

    async def generate(self, prompt: str, request: AssignmentRequest) -> str:
        """
        POST to Ollama /api/generate and return the response text.

        Raises:
            GenerationError: timeout, connection failure, non-200 response or
                an empty completion.
        """
        payload = {
            "model": self.model,
            "system": SYSTEM_PROMPT,
            "prompt": build_request_prompt(prompt, request),
            "stream": False,
            "options": {
                "num_predict": settings.GENERATION_MAX_TOKENS,
                "temperature": settings.GENERATION_TEMPERATURE,
            },
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(f"{self.base_url}/api/generate", json=payload)
        except httpx.TimeoutException as exc:
            logger.error("generate: request timed out after %.0f s", self.LLM_TIMEOUT)
            raise GenerationError(
                f"Text generation timed out after {self.LLM_TIMEOUT:.0f}s"
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("generate: connection error: %s", exc)
            raise GenerationError(f"Text generation service unreachable: {exc}") from exc

        if resp.status_code != 200:
            logger.error(
                "generate: Ollama returned HTTP %d: %s",
                resp.status_code,
                resp.text[:300],
            )
            raise GenerationError(
                f"Text generation failed with HTTP {resp.status_code}"
            )

        try:
            text = resp.json().get("response") or ""
        except ValueError as exc:
            logger.error("generate: non-JSON body: %s", resp.text[:300])
            raise GenerationError("Text generation returned a malformed response") from exc

        if not text.strip():
            logger.error("generate: empty response from model %s", self.model)
            raise GenerationError("Text generation returned an empty response")

        logger.debug("generate: %d chars from model %s", len(text), self.model)
        return text

    async def check_health(self) -> bool:
        """Return True when Ollama answers /api/tags with HTTP 200."""
        try:
            async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
                resp = await client.get(f"{self.base_url}/api/tags")
            return resp.status_code == 200
        except httpx.HTTPError as exc:
            logger.warning("check_health: Ollama unreachable: %s", exc)
            return False
