"""Incremental decoder for the body of a ``streamGenerateContent`` response."""

from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional

from editor_chat.core.config import FALLBACK_RESPONSE
from .envelope import Complete, Incomplete, Invalid, parse_envelope, try_parse


class FramingMode(str, Enum):
    UNKNOWN = "unknown"
    ARRAY = "array"
    OBJECT_STREAM = "object-stream"


class StreamDecoder:
    """
    Small state machine that reads the raw response text chunk by chunk and
    returns the text deltas of every envelope as soon as it is complete.

    The body is either one JSON array of envelopes or bare envelope objects
    back to back (optionally behind SSE ``data:`` prefixes). Chunk boundaries
    can fall anywhere, including inside strings and escape sequences.

    One decoder serves exactly one response: create it when the request is
    sent, ``feed`` it every chunk, call ``finish`` once the body is exhausted.
    """

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        fallback: str = FALLBACK_RESPONSE,
    ) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.fallback = fallback
        self._value: List[str] = []  # slices of the open value from earlier chunks
        self._in_value = False
        self._depth = 0
        self._mode = FramingMode.UNKNOWN  # UNKNOWN -> ARRAY | OBJECT_STREAM -> UNKNOWN
        self._in_string = False
        self._escaped = False
        self._parts: List[str] = []
        self._dropped = 0
        self._final: Optional[str] = None

    # ----------------------- Public API -----------------------
    @property
    def accumulated(self) -> str:
        return "".join(self._parts)

    @property
    def framing_mode(self) -> FramingMode:
        return self._mode

    @property
    def depth(self) -> int:
        return self._depth

    @property
    def delta_count(self) -> int:
        return len(self._parts)

    @property
    def dropped_values(self) -> int:
        """Number of closed values that could not be parsed and were discarded."""
        return self._dropped

    @property
    def pending(self) -> str:
        """Buffered text of the value currently in progress."""
        return "".join(self._value)

    @property
    def finished(self) -> bool:
        return self._final is not None

    def feed(self, chunk: str) -> List[str]:
        """Consume ``chunk`` and return the deltas completed by it, in stream order."""
        if self.finished:
            self.logger.warning("feed() after finish(); ignoring %d characters", len(chunk))
            return []
        if not chunk:
            return []

        deltas: List[str] = []
        # where the open value's text starts within this chunk
        seg: Optional[int] = 0 if self._in_value else None
        for i, ch in enumerate(chunk):
            if self._in_string:
                if self._escaped:
                    self._escaped = False
                elif ch == "\\":
                    self._escaped = True
                elif ch == '"':
                    self._in_string = False
                continue

            if self._mode is FramingMode.UNKNOWN:
                # Anything before the framing character (whitespace, "data:") is skipped
                if ch == "[":
                    self._mode = FramingMode.ARRAY
                elif ch == "{":
                    self._mode = FramingMode.OBJECT_STREAM
                    self._in_value = True
                    seg = i
                    self._depth = 1
                continue

            if ch == '"':
                self._in_string = True
            elif ch == "{":
                if not self._in_value:
                    self._in_value = True
                    seg = i
                self._depth += 1
            elif ch == "}":
                if self._depth == 0:
                    continue  # stray
                self._depth -= 1
                if self._depth == 0:
                    span = "".join(self._value) + chunk[seg:i + 1]
                    if self._close_value(span, deltas):
                        seg = None
            elif ch == "]" and self._depth == 0 and self._mode is FramingMode.ARRAY:
                self.logger.debug("Envelope array closed.")
                self._mode = FramingMode.UNKNOWN
                self._reset_value()
                seg = None

        if self._in_value:
            self._value.append(chunk[seg:])
        return deltas

    def finish(self) -> str:
        """Return the accumulated response, or the fallback text when nothing arrived.

        A value still open at end of stream cannot be recovered and is dropped.
        Calling ``finish`` again returns the same text.
        """
        if self._final is not None:
            return self._final

        pending = self.pending
        if pending.strip():
            self.logger.debug(
                "Discarding %d characters of an incomplete value at end of stream.",
                len(pending),
            )
        self._reset_value()
        self._depth = 0
        self._final = self.accumulated or self.fallback
        self.logger.info(
            "Stream finished: %d deltas, %d dropped values.", self.delta_count, self._dropped
        )
        return self._final

    # ----------------------- Internals -----------------------
    def _close_value(self, span: str, deltas: List[str]) -> bool:
        """Parse a value whose braces just balanced; False keeps it open.

        Strings are tracked while scanning, so a balanced span normally parses
        or is invalid. ``Incomplete`` only keeps the value open for whatever
        more input ``try_parse`` might still need.
        """
        result = try_parse(span)
        if isinstance(result, Incomplete):
            self.logger.debug("Value of %d characters not complete yet.", len(span))
            return False
        if isinstance(result, Invalid):
            self._dropped += 1
            self.logger.debug("Dropping malformed value: %s", result.reason)
        elif isinstance(result, Complete):
            text = self._extract(result.value)
            if text:
                self._parts.append(text)
                deltas.append(text)
                self.logger.debug("Stream chunk: %r", text)

        self._reset_value()
        if self._mode is FramingMode.OBJECT_STREAM:
            self._mode = FramingMode.UNKNOWN
        return True

    def _extract(self, value) -> Optional[str]:
        envelope = parse_envelope(value)
        if envelope is None:
            self.logger.debug("Ignoring value that is not an envelope.")
            return None
        if envelope.error:
            self.logger.warning(
                "Stream reported an error: %s", envelope.error.get("message", envelope.error)
            )
        return envelope.text

    def _reset_value(self) -> None:
        self._value = []
        self._in_value = False
