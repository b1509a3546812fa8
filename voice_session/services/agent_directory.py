"""
Lookup of agents and their knowledge documents.

Agents and documents are owned by the dashboard's storage layer; the voice
pipeline only reads them. ``AgentDirectory`` is the narrow interface it
depends on. Two implementations ship here: an in-memory one for tests and
local development, and one that loads a JSON export once at startup.

JSON export format::

    {
      "agents": [{"id": 42, "name": "Ava", "voiceId": "v1"}],
      "documents": [{"name": "Website: acme.com", "content": "...", "agentId": 42,
                     "metadata": {"services": [{"title": "Consulting"}]}}]
    }
"""

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Union

from pydantic import ValidationError

from voice_session.config.constants import LOGGER_NAME
from voice_session.models.agent import AgentContext, AgentRecord, KnowledgeDocument
from voice_session.services.errors import ConfigurationError, StructuralSessionError

logger = logging.getLogger(LOGGER_NAME)


class AgentDirectory(Protocol):
    """Read-only access to agent configuration and knowledge documents."""

    async def get_agent(self, agent_id: int) -> Optional[AgentRecord]:
        ...

    async def get_documents_for_agent(self, agent_id: int) -> List[KnowledgeDocument]:
        ...


class InMemoryAgentDirectory:
    """Agent directory backed by plain dictionaries."""

    def __init__(
        self,
        agents: Iterable[AgentRecord] = (),
        documents: Iterable[KnowledgeDocument] = (),
    ):
        self._agents: Dict[int, AgentRecord] = {agent.id: agent for agent in agents}
        self._documents: List[KnowledgeDocument] = list(documents)

    def add_agent(self, agent: AgentRecord) -> None:
        self._agents[agent.id] = agent

    def remove_agent(self, agent_id: int) -> None:
        self._agents.pop(agent_id, None)

    def add_document(self, document: KnowledgeDocument) -> None:
        self._documents.append(document)

    async def get_agent(self, agent_id: int) -> Optional[AgentRecord]:
        return self._agents.get(agent_id)

    async def get_documents_for_agent(self, agent_id: int) -> List[KnowledgeDocument]:
        return [doc for doc in self._documents if doc.agent_id == agent_id]

    def __len__(self) -> int:
        return len(self._agents)


class JsonFileAgentDirectory(InMemoryAgentDirectory):
    """Agent directory loaded once from a JSON export."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"Cannot load agents file {self.path}: {exc}") from exc

        try:
            agents = [AgentRecord.model_validate(a) for a in raw.get("agents", [])]
            documents = [
                KnowledgeDocument.model_validate(d) for d in raw.get("documents", [])
            ]
        except (ValidationError, AttributeError) as exc:
            raise ConfigurationError(f"Invalid agents file {self.path}: {exc}") from exc

        super().__init__(agents, documents)
        logger.info(
            f"Loaded {len(agents)} agents and {len(documents)} documents from {self.path}"
        )


async def load_agent_context(directory: AgentDirectory, agent_id: int) -> AgentContext:
    """
    Take the immutable agent snapshot a session runs with.

    Raises:
        StructuralSessionError: If the agent does not exist
    """
    agent = await directory.get_agent(agent_id)
    if agent is None:
        raise StructuralSessionError(f"Agent {agent_id} not found")
    documents = await directory.get_documents_for_agent(agent_id)
    return AgentContext(agent=agent, documents=tuple(documents))
