from datetime import datetime

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    message: str = Field(
        example="Summarize chapter 2 as a bulleted list",
        description="The new message from the user",
    )
    chat_id: str = Field(
        default="current",
        example="current",
        description="Identifier of the conversation the message belongs to",
    )
    system_prompt: str | None = Field(
        default=None,
        description="Custom system prompt; the configured default is used when omitted",
    )
    use_knowledge_base: bool = Field(
        default=False,
        description="Send the markdown files of the knowledge base along with the message",
    )


class ChatResponse(BaseModel):
    response: str
    error: str | None = None


class ChatMessageOut(BaseModel):
    sender: str
    content: str
    date_added: datetime

    class Config:
        from_attributes = True


class ChatHistoryResponse(BaseModel):
    chat_id: str
    messages: list[ChatMessageOut]


class ClearHistoryResponse(BaseModel):
    deleted: int
