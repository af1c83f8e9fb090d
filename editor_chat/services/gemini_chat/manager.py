"""Editor chat orchestration that coordinates payloads, the HTTP stream and decoding."""

from __future__ import annotations
import asyncio
import logging
import threading
from typing import Callable, Iterable, List, Optional, Tuple

from pydantic import BaseModel

from editor_chat.core.config import ERROR_PREFIX
from .gemini_client import GeminiStreamClient, TransportError
from .prompt_builder import PromptBuilder
from .stream_decoder import StreamDecoder


class ChatResult(BaseModel):
    answer: str
    error: Optional[str] = None
    delta_count: int = 0


def consume_stream(
    chunks: Iterable[str],
    *,
    on_delta: Optional[Callable[[str], None]] = None,
    logger: Optional[logging.Logger] = None,
) -> ChatResult:
    """Decode one response body and return its final answer.

    A ``TransportError`` raised by ``chunks`` ends the session early; the
    answer then holds the text decoded so far followed by the error message.
    """
    logger = logger or logging.getLogger(__name__)
    decoder = StreamDecoder(logger)
    try:
        for chunk in chunks:
            for delta in decoder.feed(chunk):
                if on_delta is not None:
                    on_delta(delta)
    except TransportError as exc:
        logger.error("AI Chat Error: %s", exc)
        partial = decoder.accumulated
        decoder.finish()
        message = f"{ERROR_PREFIX} {exc}"
        answer = f"{partial}\n\n{message}" if partial else message
        return ChatResult(answer=answer, error=str(exc), delta_count=decoder.delta_count)

    answer = decoder.finish()
    return ChatResult(answer=answer, delta_count=decoder.delta_count)


class GeminiChat:
    """Editor chat assistant that delegates to helper components.

    Every call decodes its own response with a fresh ``StreamDecoder``, so
    concurrent requests never share state.
    """

    def __init__(
        self,
        logger: logging.Logger,
        client: Optional[GeminiStreamClient] = None,
        prompt_builder: Optional[PromptBuilder] = None,
    ) -> None:
        self.logger = logger
        self.client = client or GeminiStreamClient(logger)
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.logger.info("GeminiChat initialized.")

    # ----------------------- Public API -----------------------
    def chat(
        self,
        message: str,
        *,
        system_prompt: Optional[str] = None,
        knowledge_base: Optional[List[Tuple[str, str]]] = None,
    ) -> ChatResult:
        """Send a message and block until the whole answer has streamed in."""

        self.logger.debug("User message: %s", message)
        payload = self.prompt_builder.build_payload(message, system_prompt, knowledge_base)
        return consume_stream(self.client.stream_chunks(payload), logger=self.logger)

    async def stream_chat(
        self,
        message: str,
        *,
        system_prompt: Optional[str] = None,
        knowledge_base: Optional[List[Tuple[str, str]]] = None,
    ):
        """Yield ``(delta, None)`` per decoded delta, then ``(None, ChatResult)`` once.

        Closing the generator early stops the worker before its next chunk,
        which closes the upstream response.
        """

        self.logger.debug("User message: %s", message)
        payload = self.prompt_builder.build_payload(message, system_prompt, knowledge_base)
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[Tuple[Optional[str], Optional[ChatResult]]] = asyncio.Queue()

        def _put(item: Tuple[Optional[str], Optional[ChatResult]]) -> None:
            loop.call_soon_threadsafe(queue.put_nowait, item)

        stop = threading.Event()

        def _chunks():
            chunks = self.client.stream_chunks(payload)
            try:
                for chunk in chunks:
                    if stop.is_set():
                        self.logger.info("Stream consumer went away; closing the response.")
                        break
                    yield chunk
            finally:
                chunks.close()

        def _run_blocking() -> None:
            result = None
            try:
                result = consume_stream(
                    _chunks(),
                    on_delta=lambda delta: _put((delta, None)),
                    logger=self.logger,
                )
            finally:
                _put((None, result))

        thread_task = asyncio.create_task(asyncio.to_thread(_run_blocking))
        completed = False
        try:
            while True:
                delta, result = await queue.get()
                if delta is None:
                    break
                yield delta, None
            completed = True
            # re-raises anything other than a transport failure
            await thread_task
            yield None, result
        finally:
            if not completed:
                stop.set()
                thread_task.add_done_callback(self._log_worker_failure)

    def _log_worker_failure(self, task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            self.logger.error("Abandoned chat stream failed: %s", task.exception())
