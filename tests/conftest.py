"""Pytest configuration and shared fixtures."""

import json
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest
import pytest_asyncio

from deep_synthesis.core.config import DatabaseSettings
from deep_synthesis.core.database import DatabaseClient, create_engine, create_session_maker
from deep_synthesis.core.provider_registry import ProviderRegistry
from deep_synthesis.repositories import BriefRepository, PaperBriefRepository, PaperRepository
from deep_synthesis.schemas.llm import ProviderSettings
from deep_synthesis.schemas.paper import PaperRecord

OPENAI_KEY = "sk-" + "x" * 40
GEMINI_KEY = "g" * 40


class ScriptedChat:
    """Serves queued chat-completions replies and records every request body."""

    def __init__(self):
        self.replies: List[Tuple[int, str]] = []
        self.requests: List[Dict[str, Any]] = []
        self.urls: List[str] = []

    def reply(self, content: str, status_code: int = 200) -> None:
        self.replies.append((status_code, content))

    def reply_json(self, payload: Any) -> None:
        self.reply(json.dumps(payload))

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content or b"{}")
        self.requests.append(body)
        self.urls.append(str(request.url))

        status_code, content = self.replies.pop(0) if self.replies else (200, "")
        if status_code != 200:
            return httpx.Response(status_code, json={"error": {"message": content}})
        return httpx.Response(
            200,
            json={
                "choices": [{"message": {"role": "assistant", "content": content}}],
                "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
                "model": body.get("model"),
            },
        )


@pytest.fixture
def chat() -> ScriptedChat:
    """Scripted LLM endpoint.

    Returns:
        ScriptedChat: Queue replies with ``reply``/``reply_json``
    """
    return ScriptedChat()


@pytest_asyncio.fixture
async def http_client(chat):
    """httpx client routed to the scripted LLM endpoint."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(chat.handler)) as client:
        yield client


@pytest.fixture
def registry(http_client) -> ProviderRegistry:
    """Registry with a configured OpenAI key and gpt-4o selected."""
    return ProviderRegistry(
        settings={
            "openai": ProviderSettings(api_key=OPENAI_KEY, selected_model="gpt-4o"),
            "gemini": ProviderSettings(api_key=GEMINI_KEY, selected_model="gemini-1.5-pro"),
        },
        max_retries=2,
        retry_delay=0,
        http_client=http_client,
    )


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_engine(DatabaseSettings(DATABASE_URL="sqlite+aiosqlite://"))
    await DatabaseClient(engine).create_tables()
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return create_session_maker(engine)


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def brief_repository(session) -> BriefRepository:
    return BriefRepository(session)


@pytest.fixture
def paper_repository(session) -> PaperRepository:
    return PaperRepository(session)


@pytest.fixture
def association_repository(session) -> PaperBriefRepository:
    return PaperBriefRepository(session)


@pytest.fixture
def make_record() -> Callable[..., PaperRecord]:
    """Factory for external-index paper records."""

    def _make(
        arxiv_id: str = "2301.00001v1",
        title: str = "Attention Is All You Need",
        authors: Optional[List[str]] = None,
        year: str = "2023",
        **extra: Any,
    ) -> PaperRecord:
        return PaperRecord(
            arxiv_id=arxiv_id,
            title=title,
            abstract=extra.pop("abstract", "We propose a new architecture."),
            authors=authors or ["Ashish Vaswani", "Noam Shazeer"],
            year=year,
            submitted_date=f"{year}-01-01T00:00:00Z",
            pdf_url=f"https://arxiv.org/pdf/{arxiv_id}",
            abstract_url=f"https://arxiv.org/abs/{arxiv_id}",
            **extra,
        )

    return _make
