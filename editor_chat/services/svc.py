from __future__ import annotations
from pathlib import Path
from typing import List, Optional, Tuple
from sqlalchemy.orm import Session
from editor_chat.core.config import SUPPORTED_EXTENSIONS
from editor_chat.models.db import ChatMessage
from editor_chat.services.gemini_chat.manager import ChatResult, GeminiChat
import logging


def chat(
    bot: GeminiChat,
    message: str,
    system_prompt: Optional[str] = None,
    knowledge_base: Optional[List[Tuple[str, str]]] = None,
) -> ChatResult:
    """Process a chat message."""
    return bot.chat(message, system_prompt=system_prompt, knowledge_base=knowledge_base)

def stream_chat(
    bot: GeminiChat,
    message: str,
    system_prompt: Optional[str] = None,
    knowledge_base: Optional[List[Tuple[str, str]]] = None,
):
    """Stream chat response."""
    return bot.stream_chat(message, system_prompt=system_prompt, knowledge_base=knowledge_base)

def load_knowledge_base(directory: str, logger: logging.Logger) -> List[Tuple[str, str]]:
    """Return ``(file name, content)`` for every markdown file in ``directory``."""
    root = Path(directory)
    if not root.is_dir():
        logger.warning(f"Knowledge base directory not found: {directory}")
        return []
    files = [
        (path.name, path.read_text(encoding="utf-8"))
        for path in sorted(root.iterdir())
        if path.is_file() and path.suffix.lower() in SUPPORTED_EXTENSIONS
    ]
    logger.info(f"Knowledge base enabled - found {len(files)} files")
    return files

def save_message(db: Session, chat_id: str, sender: str, content: str) -> ChatMessage:
    entry = ChatMessage(chat_id=chat_id, sender=sender, content=content)
    db.add(entry)
    db.commit()
    return entry

def get_history(db: Session, chat_id: str) -> List[ChatMessage]:
    return (
        db.query(ChatMessage)
        .filter(ChatMessage.chat_id == chat_id)
        .order_by(ChatMessage.id)
        .all()
    )

def clear_history(db: Session, chat_id: str) -> int:
    """Delete a conversation so the next message starts a new chat."""
    deleted = db.query(ChatMessage).filter(ChatMessage.chat_id == chat_id).delete()
    db.commit()
    return deleted
