"""AI-assisted conversation that sharpens a brief's research question."""

import re
from dataclasses import dataclass
from typing import Optional, Sequence
from uuid import UUID

from deep_synthesis.core.config import ScoringSettings
from deep_synthesis.core.exceptions import ValidationError
from deep_synthesis.core.provider_registry import ProviderRegistry
from deep_synthesis.database.models import Brief
from deep_synthesis.prompts.system_prompts import (
    REFINEMENT_FOCUS,
    REFINEMENT_FOLLOW_UP_PROMPT,
    REFINEMENT_INITIAL_PROMPT,
)
from deep_synthesis.repositories.brief_repository import BriefRepository
from deep_synthesis.schemas.brief import ChatMessage, ChatRole
from deep_synthesis.services.base_service import BaseLLMService
from deep_synthesis.workflow.steps import REFINEMENT_COMPLETE_MARKER

_REFINED_QUERY = re.compile(r"REFINED QUERY:\s*(.+?)(?=\n\n|\n\Z|\Z)", re.IGNORECASE)

TITLE_LENGTH = 50


@dataclass
class RefinementTurn:
    message: ChatMessage
    # None when the reply carried no REFINED QUERY line
    refined_query: Optional[str] = None


def extract_refined_query(content: str) -> Optional[str]:
    match = _REFINED_QUERY.search(content or "")
    if match is None:
        return None
    return match.group(1).strip() or None


def strip_refined_query(content: str) -> str:
    """Message text without its ``REFINED QUERY:`` line, for display."""
    return _REFINED_QUERY.sub("", content or "").strip()


def latest_refined_query(messages: Sequence[ChatMessage]) -> Optional[str]:
    for message in reversed(messages):
        if message.role != ChatRole.AI:
            continue
        refined = extract_refined_query(message.content)
        if refined:
            return refined
    return None


def format_conversation_history(messages: Sequence[ChatMessage]) -> str:
    return "\n\n".join(
        f"{'User' if message.role == ChatRole.USER else 'Assistant'}: {message.content}"
        for message in messages
    )


def title_for(query: str) -> str:
    return query[:TITLE_LENGTH] + "..." if len(query) > TITLE_LENGTH else query


class QueryRefinementService(BaseLLMService):
    """Chat with the selected model about the research question, then save the result.

    Every message is persisted on the brief as it is produced, so a failed
    completion leaves the user's message in the conversation.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        brief_repository: BriefRepository,
        provider_name: str = "openai",
        scoring_settings: Optional[ScoringSettings] = None,
    ):
        super().__init__(registry, provider_name)
        self.brief_repository = brief_repository
        self.scoring_settings = scoring_settings or ScoringSettings()

    async def _get_brief(self, brief_id: UUID) -> Brief:
        brief = await self.brief_repository.get_by_id(brief_id)
        if brief is None:
            raise ValidationError(f"Brief {brief_id} not found")
        return brief

    async def start(self, brief_id: UUID) -> RefinementTurn:
        """Open the conversation with questions about the brief's initial query.

        Raises:
            ValidationError: If the brief has no query or already has messages
        """
        brief = await self._get_brief(brief_id)
        if not (brief.query and brief.query.strip()):
            raise ValidationError("Brief has no research question to refine")
        if brief.chat_messages:
            raise ValidationError("Refinement conversation has already started")

        prompt = REFINEMENT_INITIAL_PROMPT.format(query=brief.query.strip(), focus=REFINEMENT_FOCUS)
        return await self._reply(brief_id, prompt)

    async def refine(self, brief_id: UUID, user_message: str) -> RefinementTurn:
        """Store the user's message and answer it with the whole conversation as context."""
        content = (user_message or "").strip()
        if not content:
            raise ValidationError("Message cannot be empty")

        brief = await self.brief_repository.append_chat_message(
            brief_id, ChatMessage(role=ChatRole.USER, content=content)
        )
        if brief is None:
            raise ValidationError(f"Brief {brief_id} not found")
        history = format_conversation_history(brief.get_chat_messages())
        prompt = REFINEMENT_FOLLOW_UP_PROMPT.format(history=history, focus=REFINEMENT_FOCUS)
        return await self._reply(brief_id, prompt)

    async def _reply(self, brief_id: UUID, prompt: str) -> RefinementTurn:
        response = await self.complete(
            prompt,
            temperature=self.scoring_settings.refinement_temperature,
            max_tokens=self.scoring_settings.refinement_max_tokens,
        )
        message = ChatMessage(role=ChatRole.AI, content=response.content)
        await self.brief_repository.append_chat_message(brief_id, message)

        refined = extract_refined_query(message.content)
        self.logger.info(
            "Refinement reply stored",
            extra={"brief_id": str(brief_id), "model": response.model, "has_refined_query": refined is not None},
        )
        return RefinementTurn(message=message, refined_query=refined)

    async def save_refined_query(self, brief_id: UUID, refined_query: str) -> Brief:
        """Make the refined query the brief's question and complete the refinement step."""
        query = (refined_query or "").strip()
        if not query:
            raise ValidationError("Please enter a refined query")

        brief = await self._get_brief(brief_id)
        messages = list(brief.chat_messages or [])
        if not any(REFINEMENT_COMPLETE_MARKER in (m.get("content") or "") for m in messages):
            marker = ChatMessage(
                role=ChatRole.AI,
                content=f'{REFINEMENT_COMPLETE_MARKER}: User saved refined query: "{query}"',
            )
            messages.append(marker.model_dump(mode="json"))

        self.logger.info("Saving refined query", extra={"brief_id": str(brief_id)})
        return await self.brief_repository.update_fields(
            brief_id, query=query, title=title_for(query), chat_messages=messages
        )

    async def add_chat_message(self, brief_id: UUID, role: ChatRole, content: str) -> ChatMessage:
        message = ChatMessage(role=role, content=content)
        brief = await self.brief_repository.append_chat_message(brief_id, message)
        if brief is None:
            raise ValidationError(f"Brief {brief_id} not found")
        return message

    async def complete_refinement(self, brief_id: UUID) -> ChatMessage:
        """Mark the refinement step complete without changing the query."""
        return await self.add_chat_message(brief_id, ChatRole.AI, REFINEMENT_COMPLETE_MARKER)
