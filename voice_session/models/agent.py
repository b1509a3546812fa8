"""
Agent and knowledge-document records consumed from the dashboard's storage.

Document metadata produced by the website crawler is loosely shaped JSON. These
models pin down the fields the voice pipeline actually reads and ignore the
rest, so a crawl that adds keys never breaks a live call.
"""

from typing import List, Optional, Tuple, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class ServiceInfo(BaseModel):
    """A service extracted from a crawled page."""

    model_config = ConfigDict(extra="ignore")

    title: str = Field(..., description="Service name as shown on the website")
    description: str = Field("", description="Short description of the service")

    @field_validator("title")
    def validate_title(cls, v):
        """Reject blank service titles."""
        if not v or not v.strip():
            raise ValueError("Service title cannot be empty")
        return v.strip()

    @field_validator("description", mode="before")
    def coerce_description(cls, v):
        """Crawled descriptions are sometimes null."""
        return v or ""


class PageInfo(BaseModel):
    """A crawled page reference."""

    model_config = ConfigDict(extra="ignore")

    url: str = ""
    title: str = ""


class DocumentMetadata(BaseModel):
    """Metadata attached to a knowledge document by the crawler or uploader."""

    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    description: Optional[str] = None
    services: List[ServiceInfo] = Field(default_factory=list)
    pages: List[Union[PageInfo, str]] = Field(default_factory=list)

    @field_validator("services", mode="before")
    def drop_malformed_services(cls, v):
        """Keep only entries that look like services with a non-empty title."""
        if not isinstance(v, list):
            return []
        return [
            item
            for item in v
            if isinstance(item, dict)
            and isinstance(item.get("title"), str)
            and item["title"].strip()
        ]

    @field_validator("pages", mode="before")
    def coerce_pages(cls, v):
        """Pages may be missing or null in older crawls."""
        return v if isinstance(v, list) else []


class KnowledgeDocument(BaseModel):
    """A knowledge-base document assigned to an agent."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str
    content: str = ""
    agent_id: Optional[int] = Field(
        None, validation_alias=AliasChoices("agent_id", "agentId")
    )
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)

    @field_validator("content", mode="before")
    def coerce_content(cls, v):
        """Documents without extracted text have null content."""
        return v or ""

    @field_validator("metadata", mode="before")
    def coerce_metadata(cls, v):
        """Documents without metadata store null."""
        return v if isinstance(v, (dict, DocumentMetadata)) else {}


class AgentRecord(BaseModel):
    """The agent configuration a session talks as."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: int
    name: str
    voice_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("voice_id", "voiceId")
    )
    greeting_message: Optional[str] = Field(
        None, validation_alias=AliasChoices("greeting_message", "greetingMessage")
    )
    system_prompt: Optional[str] = Field(
        None, validation_alias=AliasChoices("system_prompt", "systemPrompt")
    )

    @field_validator("voice_id", "greeting_message", "system_prompt", mode="before")
    def blank_to_none(cls, v):
        """Treat empty strings from the dashboard form as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v


class AgentContext(BaseModel):
    """Immutable snapshot of an agent and its documents, taken at session start."""

    model_config = ConfigDict(frozen=True)

    agent: AgentRecord
    documents: Tuple[KnowledgeDocument, ...] = ()

    @property
    def has_voice(self) -> bool:
        return bool(self.agent.voice_id)
