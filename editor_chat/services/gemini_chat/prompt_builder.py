"""Utilities for constructing Gemini request payloads for the editor chat."""

from __future__ import annotations
from typing import List, Optional, Tuple

from editor_chat.core.config import settings


class PromptBuilder:
    """Builds ``streamGenerateContent`` payloads for the language model."""

    def __init__(self, system_prompt: str = settings.system_prompt) -> None:
        self._system_prompt = system_prompt

    def build_knowledge_base(self, files: List[Tuple[str, str]]) -> str:
        return "\n\n".join(f"## {name}\n{content}" for name, content in files)

    def build_payload(
        self,
        new_message: str,
        system_prompt: Optional[str] = None,
        knowledge_base: Optional[List[Tuple[str, str]]] = None,
    ) -> dict:
        """Return the request body: system prompt, optional knowledge base, then the message."""

        contents = [
            {"role": "user", "parts": [{"text": system_prompt or self._system_prompt}]}
        ]
        if knowledge_base:
            contents.append(
                {
                    "role": "user",
                    "parts": [{"text": f"Knowledge Base:\n{self.build_knowledge_base(knowledge_base)}"}],
                }
            )
        contents.append({"role": "user", "parts": [{"text": new_message}]})
        return {
            "contents": contents,
            "generationConfig": {"responseMimeType": "text/plain"},
        }
