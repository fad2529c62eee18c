"""Category-prefix mention dispatch.

The query keeps its leading ``@``. A recognized category prefix routes the
remainder of the query to that category's candidate source; a bare ``@``
yields the fixed category menu.
"""

import logging

from knowledge_hub.models.catalog import AgentRegistry, Catalog, CatalogEntry
from knowledge_hub.models.knowledge import MentionSuggestion
from knowledge_hub.mentions.sources import (
    DocumentProvider,
    MentionSource,
    agent_suggestion,
    document_suggestion,
    skill_suggestion,
    system_suggestion,
    tool_suggestion,
)

logger = logging.getLogger(__name__)

MAX_DOCUMENT_SUGGESTIONS = 10

CATEGORY_MENU = [
    MentionSuggestion(
        id="mention-knowledge",
        type="knowledge",
        label="knowledge/",
        description="Reference knowledge documents",
        icon="📚",
        path="@knowledge/",
    ),
    MentionSuggestion(
        id="mention-agent",
        type="agent",
        label="agent/",
        description="Reference AI agents",
        icon="🤖",
        path="@agent/",
    ),
    MentionSuggestion(
        id="mention-skill",
        type="skill",
        label="skill/",
        description="Reference skills",
        icon="💡",
        path="@skill/",
    ),
    MentionSuggestion(
        id="mention-tool",
        type="tool",
        label="tool/",
        description="Reference tools",
        icon="🔧",
        path="@tool/",
    ),
    MentionSuggestion(
        id="mention-seamstress",
        type="knowledge",
        label="seamstress/",
        description="System commands and contexts",
        icon="⚙️",
        path="@seamstress/",
    ),
]


def _catalog_matches(entries: list[CatalogEntry], term: str) -> list[CatalogEntry]:
    if not term:
        return list(entries)
    return [e for e in entries if term in e.name.lower() or term in e.id.lower()]


class PrefixDispatchStrategy(MentionSource):
    """Routes ``@agent/``, ``@skill/``, ``@tool/``, ``@knowledge/`` and
    ``@seamstress/`` queries to their own candidate sources."""

    name = "prefix-dispatch"

    def __init__(self, documents: DocumentProvider, agents: AgentRegistry, catalog: Catalog):
        self.documents = documents
        self.agents = agents
        self.catalog = catalog

    async def suggest(self, query: str) -> list[MentionSuggestion]:
        if query.startswith("@seamstress/"):
            term = query[len("@seamstress/") :].lower()
            return [system_suggestion(e) for e in _catalog_matches(self.catalog.system_entries, term)]

        if query.startswith("@knowledge/"):
            return await self._documents(query[len("@knowledge/") :])

        if query.startswith("@agent/"):
            term = query[len("@agent/") :].lower()
            return [
                agent_suggestion(agent)
                for agent in self.agents.get_all_agents()
                if term in agent.name.lower()
            ]

        if query.startswith("@skill/"):
            term = query[len("@skill/") :].lower()
            return [skill_suggestion(s) for s in _catalog_matches(self.catalog.skills, term)]

        if query.startswith("@tool/"):
            term = query[len("@tool/") :].lower()
            return [tool_suggestion(t) for t in _catalog_matches(self.catalog.tools, term)]

        if query.startswith("@"):
            logger.debug(f"No category prefix in '{query}', returning category menu")
            return [item.model_copy() for item in CATEGORY_MENU]

        return []

    async def _documents(self, term: str) -> list[MentionSuggestion]:
        # An empty term searches too, which matches nothing.
        results = await self.documents.search_documents(term)
        return [document_suggestion(r.document) for r in results[:MAX_DOCUMENT_SUGGESTIONS]]
