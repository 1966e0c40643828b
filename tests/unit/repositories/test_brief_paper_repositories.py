"""Persistence tests for briefs, papers and their associations (in-memory SQLite)."""

from uuid import uuid4

import pytest

from deep_synthesis.core.provider_registry import ProviderRegistry
from deep_synthesis.database.models import PaperBriefAssociation
from deep_synthesis.repositories import ProviderSettingsRepository, ProviderSettingsStore
from deep_synthesis.schemas.brief import (
    ChatMessage,
    ChatRole,
    DateConstraint,
    Reference,
    RelevancyData,
    SearchQuery,
    SearchQueryStatus,
    SearchQueryWithStatus,
)
from deep_synthesis.schemas.llm import ProviderSettings


class TestBriefRepository:

    @pytest.mark.asyncio
    async def test_create_and_update_fields(self, brief_repository):
        brief = await brief_repository.create_brief(query="How do LLM agents plan?", title="Agents")
        created_at = brief.updated_at

        updated = await brief_repository.update_fields(brief.id, review="A review", title="Agents v2")

        assert updated.review == "A review"
        assert updated.title == "Agents v2"
        assert updated.query == "How do LLM agents plan?"
        assert updated.updated_at >= created_at

    @pytest.mark.asyncio
    async def test_update_missing_brief(self, brief_repository):
        assert await brief_repository.update_fields(uuid4(), review="x") is None

    @pytest.mark.asyncio
    async def test_search_queries_drop_session_status(self, brief_repository):
        brief = await brief_repository.create_brief(query="q")
        view = SearchQueryWithStatus(
            term='ti:"llm"', is_active=True, status=SearchQueryStatus.FAILED, error="timeout"
        )

        await brief_repository.set_search_queries(brief.id, [view])

        assert brief.search_queries == [{"id": view.id, "term": 'ti:"llm"', "is_active": True}]
        assert brief.get_search_queries() == [SearchQuery(id=view.id, term='ti:"llm"', is_active=True)]

    @pytest.mark.asyncio
    async def test_date_constraint_is_stored_with_wire_names_and_cleared(self, brief_repository):
        brief = await brief_repository.create_brief(query="q")

        await brief_repository.set_date_constraint(
            brief.id, DateConstraint(type="after", afterDate="2020-01-01")
        )
        assert brief.date_constraint == {"type": "after", "beforeDate": None, "afterDate": "2020-01-01"}
        assert brief.get_date_constraint().after_date == "2020-01-01"

        await brief_repository.set_date_constraint(brief.id, None)
        assert brief.date_constraint is None
        assert brief.get_date_constraint() is None

    @pytest.mark.asyncio
    async def test_references_and_chat(self, brief_repository):
        brief = await brief_repository.create_brief(query="q")

        await brief_repository.set_references(
            brief.id, [Reference(paper_id="p1", text="A (2020). T", pdf_url="https://x/pdf")]
        )
        await brief_repository.append_chat_message(brief.id, ChatMessage(role=ChatRole.USER, content="hi"))
        await brief_repository.append_chat_message(brief.id, ChatMessage(role=ChatRole.AI, content="hello"))

        assert brief.references == [{"paperId": "p1", "text": "A (2020). T", "pdfUrl": "https://x/pdf"}]
        assert [m.content for m in brief.get_chat_messages()] == ["hi", "hello"]
        assert brief.get_chat_messages()[1].role == ChatRole.AI

    @pytest.mark.asyncio
    async def test_append_to_missing_brief(self, brief_repository):
        message = ChatMessage(role=ChatRole.USER, content="hi")

        assert await brief_repository.append_chat_message(uuid4(), message) is None

    @pytest.mark.asyncio
    async def test_mark_opened_and_completed(self, brief_repository):
        brief = await brief_repository.create_brief(query="q")

        await brief_repository.mark_opened(brief.id)
        await brief_repository.mark_completed(brief.id)

        assert brief.last_opened_at is not None
        assert brief.completed_at is not None
        assert [b.id for b in await brief_repository.get_recent()] == [brief.id]


class TestPaperRepository:

    @pytest.mark.asyncio
    async def test_upsert_is_unique_per_arxiv_id(self, paper_repository, make_record):
        first = await paper_repository.upsert(make_record(title="Draft title"))
        second = await paper_repository.upsert(make_record(title="Final title", journal_ref="NeurIPS"))

        assert second.id == first.id
        assert second.title == "Final title"
        assert second.journal_ref == "NeurIPS"
        assert await paper_repository.count() == 1

    @pytest.mark.asyncio
    async def test_lookup(self, paper_repository, make_record):
        a = await paper_repository.upsert(make_record("2301.00001v1"))
        b = await paper_repository.upsert(make_record("2301.00002v1"))

        assert (await paper_repository.get_by_arxiv_id("2301.00002v1")).id == b.id
        assert {p.id for p in await paper_repository.get_by_ids([a.id, b.id])} == {a.id, b.id}
        assert await paper_repository.get_by_ids([]) == []


class TestPaperBriefRepository:

    @pytest.fixture
    def score(self):
        return RelevancyData(
            overall_score=87,
            reasons=[{"reason": "Directly on topic", "impactOnScore": 40}],
            keywords_matched=["agents"],
            confidence_level=90,
        )

    @pytest.mark.asyncio
    async def test_relevancy_upsert_keeps_one_row(
        self, brief_repository, paper_repository, association_repository, make_record, score
    ):
        brief = await brief_repository.create_brief(query="q")
        paper = await paper_repository.upsert(make_record())

        await association_repository.save_relevancy_score(brief.id, paper.id, RelevancyData.default("first"))
        saved = await association_repository.save_relevancy_score(brief.id, paper.id, score)

        assert await association_repository.count({"brief_id": brief.id}) == 1
        assert saved.relevancy_score == 87
        assert saved.relevancy_justification == "Directly on topic"
        assert saved.get_relevancy_data().keywords_matched == ["agents"]
        assert saved.relevancy_data["overallScore"] == 87
        assert saved.is_scored

    @pytest.mark.asyncio
    async def test_search_hits_accumulate_terms(
        self, brief_repository, paper_repository, association_repository, make_record
    ):
        brief = await brief_repository.create_brief(query="q")
        paper = await paper_repository.upsert(make_record())

        await association_repository.add_search_hit(brief.id, paper.id, "term a")
        await association_repository.add_search_hit(brief.id, paper.id, "term b")
        association = await association_repository.add_search_hit(brief.id, paper.id, "term a")

        assert association.search_query == ["term a", "term b"]
        assert not association.is_selected
        assert not association.is_scored
        assert await association_repository.count() == 1

    @pytest.mark.asyncio
    async def test_selection(
        self, brief_repository, paper_repository, association_repository, make_record
    ):
        brief = await brief_repository.create_brief(query="q")
        paper = await paper_repository.upsert(make_record())
        await association_repository.add_search_hit(brief.id, paper.id, "t")

        assert await association_repository.set_selected(brief.id, uuid4(), True) is None
        selected = await association_repository.set_selected(brief.id, paper.id, True)

        assert selected.is_selected
        assert [a.paper_id for a in await association_repository.get_by_brief(brief.id, selected_only=True)] == [
            paper.id
        ]

    @pytest.mark.asyncio
    async def test_get_by_brief_orders_by_score_with_unscored_last(
        self, brief_repository, paper_repository, association_repository, make_record, score
    ):
        brief = await brief_repository.create_brief(query="q")
        low = await paper_repository.upsert(make_record("2301.00001v1"))
        unscored = await paper_repository.upsert(make_record("2301.00002v1"))
        high = await paper_repository.upsert(make_record("2301.00003v1"))

        await association_repository.add_search_hit(brief.id, unscored.id, "t")
        await association_repository.save_relevancy_score(brief.id, low.id, RelevancyData.default("x"))
        await association_repository.save_relevancy_score(brief.id, high.id, score)

        associations = await association_repository.get_by_brief(brief.id)

        assert [a.paper_id for a in associations] == [high.id, low.id, unscored.id]
        assert associations[0].paper.arxiv_id == "2301.00003v1"
        assert [a.paper_id for a in await association_repository.get_unscored(brief.id)] == [unscored.id]
        assert all(isinstance(a, PaperBriefAssociation) for a in associations)


class TestProviderSettingsPersistence:

    @pytest.mark.asyncio
    async def test_save_is_an_upsert(self, session):
        repository = ProviderSettingsRepository(session)

        await repository.save("OpenAI", ProviderSettings(api_key="k1", selected_model="gpt-4o"))
        await repository.save("openai", ProviderSettings(api_key="k2", selected_model="o3-mini"))

        stored = await repository.get_all_settings()
        assert list(stored) == ["openai"]
        assert stored["openai"].api_key == "k2"
        assert stored["openai"].selected_model == "o3-mini"

    @pytest.mark.asyncio
    async def test_registry_writes_through_and_reloads(self, session_maker):
        store = ProviderSettingsStore(session_maker)
        registry = ProviderRegistry(settings_store=store)

        await registry.update_provider_settings(
            "anthropic", ProviderSettings(api_key="sk-ant-" + "a" * 60, selected_model="claude-3-5-haiku-latest")
        )

        fresh = ProviderRegistry(settings_store=store)
        assert fresh.get_provider_settings("anthropic").api_key == ""
        assert await fresh.load_from_store() == 1
        assert fresh.get_provider_settings("anthropic").selected_model == "claude-3-5-haiku-latest"
