"""Flat aggregate mention ranker used by the editor's live autocomplete.

Every candidate from every source is gathered into one list, then filtered
and ranked. The query arrives with its leading ``@`` already stripped.
"""

import logging
from collections import defaultdict

from knowledge_hub.models.catalog import AgentRegistry, Catalog
from knowledge_hub.models.knowledge import MentionSuggestion
from knowledge_hub.mentions.sources import (
    TYPE_PRIORITY,
    DocumentProvider,
    MentionSource,
    agent_suggestion,
    document_suggestion,
    skill_suggestion,
    system_suggestion,
    tool_suggestion,
)

logger = logging.getLogger(__name__)

MAX_DOCUMENT_CANDIDATES = 20
PER_TYPE_PREVIEW = 3
EMPTY_QUERY_TARGET = 10
MAX_RESULTS = 15
FALLBACK_SIZE = 5


def _matches(item: MentionSuggestion, lower_query: str) -> bool:
    label = item.label.lower()
    if lower_query in label:
        return True
    if lower_query in (item.description or "").lower():
        return True

    head, _, tail = label.partition("/")
    return head.startswith(lower_query) or (bool(tail) and lower_query in tail)


def _rank_key(item: MentionSuggestion, lower_query: str) -> tuple[bool, int, str]:
    label = item.label.lower()
    return (not label.startswith(lower_query), TYPE_PRIORITY.index(item.type), label)


class FlatAggregateStrategy(MentionSource):
    name = "flat-aggregate"

    def __init__(self, documents: DocumentProvider, agents: AgentRegistry, catalog: Catalog):
        self.documents = documents
        self.agents = agents
        self.catalog = catalog

    async def candidates(self) -> list[MentionSuggestion]:
        """All candidates in source order: agents, documents, skills, tools, system."""
        items = [agent_suggestion(a) for a in self.agents.get_all_agents()]

        try:
            documents = await self.documents.get_all_documents()
        except Exception as e:
            logger.warning(f"Document candidates unavailable, continuing without them: {e}")
            documents = []
        items.extend(document_suggestion(d) for d in documents[:MAX_DOCUMENT_CANDIDATES])

        items.extend(skill_suggestion(s) for s in self.catalog.skills)
        items.extend(tool_suggestion(t) for t in self.catalog.tools)
        items.extend(system_suggestion(e) for e in self.catalog.system_entries)
        return items

    async def suggest(self, query: str) -> list[MentionSuggestion]:
        everything = await self.candidates()

        if query == "":
            suggestions = self._balanced_preview(everything)
        else:
            lower_query = query.lower()
            filtered = [item for item in everything if _matches(item, lower_query)]
            filtered.sort(key=lambda item: _rank_key(item, lower_query))
            suggestions = filtered[:MAX_RESULTS]

        if not suggestions and everything:
            logger.debug(f"No mention matched '{query}', returning first {FALLBACK_SIZE} candidates")
            return everything[:FALLBACK_SIZE]

        return suggestions

    @staticmethod
    def _balanced_preview(everything: list[MentionSuggestion]) -> list[MentionSuggestion]:
        by_type: dict[str, list[int]] = defaultdict(list)
        for position, item in enumerate(everything):
            by_type[item.type].append(position)

        chosen: list[int] = []
        for ref_type in TYPE_PRIORITY:
            chosen.extend(by_type[ref_type][:PER_TYPE_PREVIEW])

        if len(chosen) < EMPTY_QUERY_TARGET:
            taken = set(chosen)
            remaining = [i for i in range(len(everything)) if i not in taken]
            chosen.extend(remaining[: EMPTY_QUERY_TARGET - len(chosen)])

        return [everything[i] for i in chosen]
