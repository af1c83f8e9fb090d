from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


DEFAULT_SYSTEM_PROMPT = (
    "You are an AI assistant for a document editor. You help users write and edit "
    "textbooks and documents. Always output perfect markdown formatting. Keep image "
    "links as markdown image syntax (![alt](url)). Be concise and helpful."
)
FALLBACK_RESPONSE = "Sorry, I couldn't generate a response."
ERROR_PREFIX = "Error: Could not connect to the AI service."
SUPPORTED_EXTENSIONS = (".md", ".markdown")
MODEL = "gemini-2.0-flash-exp"


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    gemini_api_key: str | None = Field(default=None)
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta/models"
    )
    model_id: str = Field(default=MODEL)
    stream_format: Literal["json", "sse"] = Field(default="json")
    request_timeout: float = Field(default=45.0)
    database_url: str = Field(default="sqlite:///chat_history.db")
    knowledge_base_dir: str = Field(default="data/knowledge_base")
    system_prompt: str = Field(default=DEFAULT_SYSTEM_PROMPT)

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
