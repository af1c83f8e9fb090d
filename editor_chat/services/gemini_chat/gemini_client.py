"""Client wrapper for the Gemini ``streamGenerateContent`` endpoint."""

from __future__ import annotations

import logging
from typing import Iterator

import requests
from dotenv import load_dotenv

from editor_chat.core.config import settings


class TransportError(RuntimeError):
    """The response body could not be opened or read to the end."""


class GeminiStreamClient:
    """Opens a streaming generation request and yields the body as text chunks."""

    def __init__(
        self,
        logger: logging.Logger,
        api_key: str | None = None,
        *,
        base_url: str | None = None,
        model_id: str | None = None,
        stream_format: str | None = None,
        timeout: float | None = None,
    ) -> None:
        load_dotenv()
        self.logger = logger
        self.api_key = api_key or settings.gemini_api_key
        self.base_url = (base_url or settings.gemini_base_url).rstrip("/")
        self.model_id = model_id or settings.model_id
        self.stream_format = stream_format or settings.stream_format
        self.timeout = timeout if timeout is not None else settings.request_timeout
        if self.api_key:
            self.logger.info("GEMINI_API_KEY loaded successfully.")
        else:
            self.logger.warning("WARNING: GEMINI_API_KEY not found in settings or environment.")

    def build_url(self) -> str:
        return f"{self.base_url}/{self.model_id}:streamGenerateContent"

    def build_params(self) -> dict[str, str]:
        params = {"key": self.api_key or ""}
        if self.stream_format == "sse":
            params["alt"] = "sse"
        return params

    def stream_chunks(self, payload: dict) -> Iterator[str]:
        """POST ``payload`` and yield the response body as decoded text chunks.

        Raises:
            TransportError: If the key is missing, the request fails, the API
                answers with a non-2xx status or the body breaks off.
        """
        if not self.api_key:
            raise TransportError("GEMINI_API_KEY is not set")

        self.logger.info("Making request to Gemini API for model: %s", self.model_id)
        try:
            response = requests.post(
                self.build_url(),
                params=self.build_params(),
                json=payload,
                stream=True,
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise TransportError(f"Request timeout after {self.timeout:g} seconds") from exc
        except requests.RequestException as exc:
            raise TransportError(str(exc)) from exc

        try:
            if not response.ok:
                details = response.text
                self.logger.error("Gemini API error: %s %s", response.status_code, details)
                raise TransportError(
                    f"API request failed with status {response.status_code}: {details}"
                )
            if response.encoding is None:
                response.encoding = "utf-8"
            try:
                for chunk in response.iter_content(chunk_size=None, decode_unicode=True):
                    if chunk:
                        yield chunk
            except requests.RequestException as exc:
                raise TransportError(f"Stream interrupted: {exc}") from exc
        finally:
            response.close()
