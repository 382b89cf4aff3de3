"""Application configuration via environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env")

    debug: bool = False
    cors_origins: list[str] = ["http://localhost:5173"]

    # Generation service
    # "gateway" = OpenAI-compatible chat completions over HTTP,
    # "claude_agent" = Claude Agent SDK (no sampling control).
    generation_backend: Literal["gateway", "claude_agent"] = "gateway"
    ai_gateway_url: str = "https://ai.gateway.lovable.dev/v1/chat/completions"
    ai_gateway_api_key: str = ""
    ai_model: str = "google/gemini-2.5-flash"
    claude_model: str = "claude-sonnet-4-5"
    generation_timeout_seconds: float = 60.0

    # Input bounds (characters)
    max_notes_chars: int = 30000
    max_guideline_chars: int = 80000
    full_guideline_threshold: int = 30000

    # Guideline retrieval
    chunk_min_len: int = 400
    chunk_max_len: int = 700
    top_k: int = 5
    excerpt_separator: str = "\n\n---\n\n"

    # Sampling temperature per stage
    facts_temperature: float = 0.0
    narrative_temperature: float = 0.2
    gap_temperature: float = 0.1
    explanation_temperature: float = 0.2
    audit_temperature: float = 0.1


settings = Settings()
