from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
import json
from editor_chat.core.config import ERROR_PREFIX, settings
from editor_chat.models.db import init_db, SessionLocal
from editor_chat.schemas.api import (
    ChatHistoryResponse,
    ChatMessageOut,
    ChatRequest,
    ChatResponse,
    ClearHistoryResponse,
)
from editor_chat.services import svc
from editor_chat.services.gemini_chat.manager import GeminiChat
import logging

init_db()
def get_db() -> Session:
    """Get a database session generator for FastAPI dependency injection."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
logger = logging.getLogger("services")
router = APIRouter()

_chat: GeminiChat | None = None

def get_chat() -> GeminiChat:
    """FastAPI dependency to provide the shared chat assistant (built on first use)."""
    global _chat
    if _chat is None:
        _chat = GeminiChat(logger)
    return _chat

def _knowledge_base(req: ChatRequest) -> list[tuple[str, str]] | None:
    if not req.use_knowledge_base:
        return None
    return svc.load_knowledge_base(settings.knowledge_base_dir, logger)


@router.post("/chat", response_model=ChatResponse)
def chat(req: ChatRequest, db: Session = Depends(get_db), bot: GeminiChat = Depends(get_chat)):
    svc.save_message(db, req.chat_id, "user", req.message)
    result = svc.chat(bot, req.message, req.system_prompt, _knowledge_base(req))
    svc.save_message(db, req.chat_id, "ai", result.answer)
    return ChatResponse(response=result.answer, error=result.error)

@router.post("/chat/stream", response_model=ChatResponse)
async def chat_stream(req: ChatRequest, db: Session = Depends(get_db), bot: GeminiChat = Depends(get_chat)):
    svc.save_message(db, req.chat_id, "user", req.message)
    knowledge_base = _knowledge_base(req)

    async def token_generator():
        result = None

        # Consume the generator and stream deltas
        async for delta, final in svc.stream_chat(bot, req.message, req.system_prompt, knowledge_base):
            if delta:
                yield f"data: {json.dumps({'response': delta})}\n\n"
            if final is not None:
                result = final

        if result is not None and result.error:
            yield f"data: {json.dumps({'error': f'{ERROR_PREFIX} {result.error}'})}\n\n"

        # After streaming is complete, save the answer with a session of its own
        if result is not None:
            try:
                with SessionLocal() as session:
                    svc.save_message(session, req.chat_id, "ai", result.answer)
            except Exception as e:
                logger.exception(f"Failed to save chat {req.chat_id}: {e}")
        # Send a final empty message to signal completion
        yield "data: {}\n\n"

    return StreamingResponse(
        token_generator(),
        media_type="text/event-stream",
        headers={
            'Cache-Control': 'no-cache',
            'Connection': 'keep-alive',
            'X-Accel-Buffering': 'no'  # Disable buffering for nginx
        }
    )

@router.get("/history/{chat_id}", response_model=ChatHistoryResponse)
def get_history(chat_id: str, db: Session = Depends(get_db)):
    messages = svc.get_history(db, chat_id)
    return ChatHistoryResponse(
        chat_id=chat_id,
        messages=[ChatMessageOut.model_validate(message) for message in messages],
    )

@router.delete("/history/{chat_id}", response_model=ClearHistoryResponse)
def clear_history(chat_id: str, db: Session = Depends(get_db)):
    deleted = svc.clear_history(db, chat_id)
    logger.info(f"Cleared {deleted} messages from chat {chat_id}")
    return ClearHistoryResponse(deleted=deleted)
