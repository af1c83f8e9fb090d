"""Parsing helpers for the JSON envelopes streamed by ``streamGenerateContent``."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ValidationError


class Part(BaseModel):
    text: Optional[str] = None


class Content(BaseModel):
    parts: List[Part] = []
    role: Optional[str] = None


class Candidate(BaseModel):
    content: Optional[Content] = None
    finishReason: Optional[str] = None


class GeminiEnvelope(BaseModel):
    """One increment of a streamed Gemini reply.

    Only the fields the decoder reads are modelled; everything else the API
    sends (safety ratings, usage metadata, ...) is ignored.
    """

    candidates: List[Candidate] = []
    error: Optional[dict] = None

    @property
    def text(self) -> Optional[str]:
        """``candidates[0].content.parts[0].text`` or None when the path is missing."""
        if not self.candidates:
            return None
        content = self.candidates[0].content
        if content is None or not content.parts:
            return None
        return content.parts[0].text


@dataclass(frozen=True)
class Complete:
    value: Any


@dataclass(frozen=True)
class Incomplete:
    pass


@dataclass(frozen=True)
class Invalid:
    reason: str


ParseResult = Union[Complete, Incomplete, Invalid]


def try_parse(text: str) -> ParseResult:
    """Parse one candidate JSON value without raising.

    Errors located at the very end of ``text`` (or an unterminated string)
    mean more input could still complete the value; anything else is invalid.
    """
    try:
        return Complete(json.loads(text))
    except json.JSONDecodeError as exc:
        if exc.pos >= len(text.rstrip()) or exc.msg.startswith("Unterminated string"):
            return Incomplete()
        return Invalid(f"{exc.msg} at position {exc.pos}")


def parse_envelope(value: Any) -> Optional[GeminiEnvelope]:
    """Validate a decoded JSON value as an envelope; None when it has another shape."""
    if not isinstance(value, dict):
        return None
    try:
        return GeminiEnvelope.model_validate(value)
    except ValidationError:
        return None
