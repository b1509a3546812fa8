"""
Conversation context for an agent: system prompt, knowledge context and greeting.

Everything here is a pure function of the agent record and its documents. The
same input always renders byte-identical text, which keeps the prompt cacheable
and the closed-book wording testable.

An agent with documents runs "closed-book": the model may answer only from the
documents and must otherwise reply with one fixed fallback sentence. Replies
lacking both closed-book markers are replaced by that sentence before they reach
the caller.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from voice_session.config.constants import (
    CLOSED_BOOK_MARKERS,
    DOCUMENT_SUMMARY_LENGTH,
    MAX_CONTEXT_SERVICES,
    MAX_GREETING_SERVICES,
)
from voice_session.models.agent import AgentRecord, KnowledgeDocument, ServiceInfo

WEBSITE_PREFIX = "Website: "
NO_SERVICES_TEXT = "No specific services listed."

DEFAULT_GREETING = "Hello! I'm {name}, your AI assistant. How can I help you today?"

OPEN_BOOK_INSTRUCTIONS = (
    "You are {name}, a helpful AI assistant speaking with a caller. "
    "Answer clearly and keep responses short enough to be spoken aloud."
)

FALLBACK_TEMPLATE = (
    "I cannot answer this question as it's not covered in the assigned documents. "
    "I can only provide information that is explicitly present in {names}. "
    "Please ask about the content from these documents."
)

CLOSED_BOOK_INSTRUCTIONS = """You are a document-focused AI assistant with STRICT limitations. Follow these rules without exception:

1. You can ONLY provide information that is explicitly present in the assigned documents.
2. Your knowledge is LIMITED to ONLY these documents:
{document_list}

3. For EVERY response you give:
   - First verify if the information exists in the documents
   - If found: Start with "Based on the document(s), ..." and provide only that information
   - If not found: Respond EXACTLY with this message: "{fallback}"

4. NEVER use any external knowledge or general information, even if relevant.
5. NEVER make assumptions or inferences beyond what's directly stated in the documents.

Important: You have NO access to information outside these documents. Treat any other knowledge as non-existent."""


@dataclass(frozen=True)
class ConversationContext:
    """Rendered prompt material for one agent."""

    system_instructions: str
    services_context: str
    document_context: str
    greeting_message: str
    document_names: Tuple[str, ...] = ()
    fallback_message: Optional[str] = None

    @property
    def closed_book(self) -> bool:
        return bool(self.document_names)

    def system_prompt(self) -> str:
        """The single system message prepended to every completion request."""
        parts = [self.system_instructions, f"Service Information:\n{self.services_context}"]
        if self.document_context:
            parts.append(f"Available documents:\n{self.document_context}")
        return "\n\n".join(parts)


def collect_services(documents: Sequence[KnowledgeDocument]) -> List[ServiceInfo]:
    """All services across the documents, in document order."""
    return [service for doc in documents for service in doc.metadata.services]


def fallback_message(document_names: Sequence[str]) -> str:
    return FALLBACK_TEMPLATE.format(names=", ".join(document_names))


def _services_context(services: Sequence[ServiceInfo]) -> str:
    if not services:
        return NO_SERVICES_TEXT
    lines = [
        f"- {s.title}: {s.description}" if s.description else f"- {s.title}"
        for s in services[:MAX_CONTEXT_SERVICES]
    ]
    if len(services) > MAX_CONTEXT_SERVICES:
        lines.append(f"- and {len(services) - MAX_CONTEXT_SERVICES} more services")
    return "\n".join(lines)


def _document_context(documents: Sequence[KnowledgeDocument]) -> str:
    blocks = []
    for doc in documents:
        summary = (
            doc.content[:DOCUMENT_SUMMARY_LENGTH] + "..." if doc.content else "No content"
        )
        blocks.append(f"Document: {doc.name}\nContent Summary: {summary}\n---")
    return "\n".join(blocks)


def _services_phrase(services: Sequence[ServiceInfo]) -> str:
    phrase = ", ".join(s.title for s in services[:MAX_GREETING_SERVICES])
    if len(services) > MAX_GREETING_SERVICES:
        phrase += f" and {len(services) - MAX_GREETING_SERVICES} more services"
    return phrase


def build_greeting(agent: AgentRecord, documents: Sequence[KnowledgeDocument]) -> str:
    """The first thing the caller hears."""
    if agent.greeting_message:
        return agent.greeting_message.strip()
    if not documents:
        return DEFAULT_GREETING.format(name=agent.name)

    primary = documents[0]
    website_name = primary.name
    if website_name.startswith(WEBSITE_PREFIX):
        website_name = website_name[len(WEBSITE_PREFIX):]
    description = (primary.metadata.description or "").split(".")[0].strip()
    services = _services_phrase(collect_services(documents))

    greeting = f"Hi! I'm {agent.name}, your {website_name} assistant"
    if description:
        greeting += f" - {description}"
    greeting += ". "
    if services:
        greeting += f"I can help you with {services}. "
    return greeting + "How may I assist you today?"


def build_conversation_context(
    agent: AgentRecord, documents: Sequence[KnowledgeDocument]
) -> ConversationContext:
    """
    Render the system instructions, knowledge context and greeting for an agent.

    Args:
        agent: The agent the session talks as
        documents: Knowledge documents assigned to the agent (may be empty)

    Returns:
        ConversationContext: Deterministic prompt material
    """
    services_context = _services_context(collect_services(documents))
    greeting = build_greeting(agent, documents)

    if not documents:
        instructions = OPEN_BOOK_INSTRUCTIONS.format(name=agent.name)
        if agent.system_prompt:
            instructions += f"\n\n{agent.system_prompt.strip()}"
        return ConversationContext(
            system_instructions=instructions,
            services_context=services_context,
            document_context="",
            greeting_message=greeting,
        )

    names = tuple(doc.name for doc in documents)
    fallback = fallback_message(names)
    instructions = CLOSED_BOOK_INSTRUCTIONS.format(
        document_list="\n".join(f"- {name}" for name in names),
        fallback=fallback,
    )
    return ConversationContext(
        system_instructions=instructions,
        services_context=services_context,
        document_context=_document_context(documents),
        greeting_message=greeting,
        document_names=names,
        fallback_message=fallback,
    )


def validate_closed_book_response(context: ConversationContext, text: str) -> str:
    """Return ``text`` if it honours the closed-book contract, else the fallback sentence."""
    if not context.closed_book:
        return text
    if any(marker in text for marker in CLOSED_BOOK_MARKERS):
        return text
    return context.fallback_message
