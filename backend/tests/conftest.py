"""Test fixtures and configuration."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
from httpx import ASGITransport, AsyncClient

from cdi_optimizer.config import settings
from cdi_optimizer.main import app


@pytest.fixture
async def client() -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture(autouse=True)
def default_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    """Pin tunables so tests do not depend on a local .env."""
    monkeypatch.setattr(settings, "debug", False)
    monkeypatch.setattr(settings, "generation_backend", "gateway")
    monkeypatch.setattr(settings, "ai_gateway_api_key", "test-key")
    monkeypatch.setattr(settings, "max_notes_chars", 30000)
    monkeypatch.setattr(settings, "max_guideline_chars", 80000)
    monkeypatch.setattr(settings, "full_guideline_threshold", 30000)
    monkeypatch.setattr(settings, "chunk_min_len", 400)
    monkeypatch.setattr(settings, "chunk_max_len", 700)
    monkeypatch.setattr(settings, "top_k", 5)
