"""Shared mention-suggestion interface and candidate formatting."""

import logging
from abc import ABC, abstractmethod
from typing import Protocol

from knowledge_hub.models.catalog import Agent, CatalogEntry
from knowledge_hub.models.knowledge import (
    AgentPayload,
    DocumentPayload,
    KnowledgeDocument,
    MentionSuggestion,
    SearchResult,
    SkillPayload,
    SystemPayload,
    ToolPayload,
)

logger = logging.getLogger(__name__)

TYPE_PRIORITY = ("agent", "skill", "tool", "knowledge")

ICONS = {
    "agent": "🤖",
    "knowledge": "📄",
    "skill": "💡",
    "tool": "🔧",
    "system": "📁",
}


class DocumentProvider(Protocol):
    """What a mention strategy needs from the document side."""

    async def get_all_documents(self) -> list[KnowledgeDocument]: ...

    async def search_documents(self, query: str) -> list[SearchResult]: ...


class MentionSource(ABC):
    """A strategy that turns a typed query into ranked suggestions."""

    name: str = "mention"

    @abstractmethod
    async def suggest(self, query: str) -> list[MentionSuggestion]:
        """Return suggestions for ``query``.

        Args:
            query: Text typed after (or including) the ``@`` trigger

        Returns:
            Ordered suggestions, best first
        """
        pass


def agent_suggestion(agent: Agent) -> MentionSuggestion:
    return MentionSuggestion(
        id=agent.id,
        type="agent",
        label=f"agent/{agent.name}",
        description=agent.description,
        icon=ICONS["agent"],
        color=agent.color,
        path=f"@agent/{agent.id}",
        payload=AgentPayload(agent_id=agent.id, name=agent.name, color=agent.color),
    )


def document_suggestion(document: KnowledgeDocument) -> MentionSuggestion:
    return MentionSuggestion(
        id=document.id,
        type="knowledge",
        label=f"knowledge/{document.title}",
        description=", ".join(document.metadata.tags) or "No tags",
        icon=ICONS["knowledge"],
        path=f"@knowledge/{document.id}",
        payload=DocumentPayload(
            document_id=document.id,
            title=document.title,
            tags=list(document.metadata.tags),
            publishing_status=document.publishing_status,
        ),
    )


def skill_suggestion(skill: CatalogEntry) -> MentionSuggestion:
    return MentionSuggestion(
        id=skill.id,
        type="skill",
        label=f"skill/{skill.name}",
        description=skill.description,
        icon=ICONS["skill"],
        path=f"@skill/{skill.id}",
        payload=SkillPayload(skill_id=skill.id, name=skill.name),
    )


def tool_suggestion(tool: CatalogEntry) -> MentionSuggestion:
    return MentionSuggestion(
        id=tool.id,
        type="tool",
        label=f"tool/{tool.name}",
        description=tool.description,
        icon=ICONS["tool"],
        path=f"@tool/{tool.id}",
        payload=ToolPayload(tool_id=tool.id, name=tool.name),
    )


def system_suggestion(entry: CatalogEntry) -> MentionSuggestion:
    # System entries live in the knowledge namespace for ranking purposes.
    return MentionSuggestion(
        id=f"seamstress-{entry.id}",
        type="knowledge",
        label=f"seamstress/{entry.name}",
        description=entry.description,
        icon=ICONS["system"],
        path=f"@seamstress/{entry.id}",
        payload=SystemPayload(name=entry.name),
    )
