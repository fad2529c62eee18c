"""Entity registry models for agents, skills, tools and system entries."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Agent:
    """An AI agent that documents can mention as ``@agent/<id>``."""

    id: str
    name: str
    description: str = ""
    color: str | None = None
    capabilities: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Agent":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            description=data.get("description", ""),
            color=data.get("color"),
            capabilities=list(data.get("capabilities", [])),
        )


@dataclass
class CatalogEntry:
    """A static skill, tool or system entry."""

    id: str
    name: str
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CatalogEntry":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            description=data.get("description", ""),
        )


DEFAULT_SKILLS = [
    CatalogEntry("data-analysis", "Data Analysis", "Data analysis and visualization"),
    CatalogEntry("code-generation", "Code Generation", "Generate code snippets"),
    CatalogEntry("text-processing", "Text Processing", "Text manipulation and NLP"),
]

DEFAULT_TOOLS = [
    CatalogEntry("calculator", "Calculator", "Basic calculator functions"),
    CatalogEntry("converter", "Unit Converter", "Convert between units"),
    CatalogEntry("formatter", "Code Formatter", "Format and beautify code"),
]

DEFAULT_SYSTEM_ENTRIES = [
    CatalogEntry("contexts", "contexts", "System context documents"),
    CatalogEntry("templates", "templates", "Document templates"),
    CatalogEntry("help", "help", "Help and documentation"),
]


class AgentRegistry:
    """Read-only registry of agents, owned by the agent subsystem."""

    def __init__(self, agents: list[Agent] | None = None):
        self._agents: dict[str, Agent] = {}
        for agent in agents or []:
            self._agents[agent.id] = agent

    def get_all_agents(self) -> list[Agent]:
        return list(self._agents.values())

    def get_agent(self, agent_id: str) -> Agent | None:
        return self._agents.get(agent_id)


class Catalog:
    """Static skill and tool catalogs."""

    def __init__(
        self,
        skills: list[CatalogEntry] | None = None,
        tools: list[CatalogEntry] | None = None,
        system_entries: list[CatalogEntry] | None = None,
    ):
        self.skills = list(DEFAULT_SKILLS if skills is None else skills)
        self.tools = list(DEFAULT_TOOLS if tools is None else tools)
        self.system_entries = list(
            DEFAULT_SYSTEM_ENTRIES if system_entries is None else system_entries
        )

    def get_skill(self, skill_id: str) -> CatalogEntry | None:
        return next((s for s in self.skills if s.id == skill_id), None)

    def get_tool(self, tool_id: str) -> CatalogEntry | None:
        return next((t for t in self.tools if t.id == tool_id), None)
