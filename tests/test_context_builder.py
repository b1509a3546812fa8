import pytest

from voice_session.bot.context_builder import (
    NO_SERVICES_TEXT,
    build_conversation_context,
    build_greeting,
    fallback_message,
    validate_closed_book_response,
)
from voice_session.models.agent import AgentRecord, KnowledgeDocument


def make_document(name="Website: acme.com", services=None, description=None, content="Acme text"):
    metadata = {}
    if services is not None:
        metadata["services"] = [{"title": t, "description": f"{t} desc"} for t in services]
    if description is not None:
        metadata["description"] = description
    return KnowledgeDocument(name=name, content=content, agent_id=42, metadata=metadata)


class TestGreeting:

    def test_default_greeting_names_agent(self, agent):
        assert (
            build_greeting(agent, [])
            == "Hello! I'm Ava, your AI assistant. How can I help you today?"
        )

    def test_configured_greeting_is_used(self):
        agent = AgentRecord(id=1, name="Ava", greeting_message="  Hi, Acme here.  ")
        assert build_greeting(agent, [make_document()]) == "Hi, Acme here."

    def test_document_greeting_names_site_and_services(self, agent):
        doc = make_document(
            services=["Consulting", "Hosting"],
            description="Cloud consulting for small businesses. Founded 2015.",
        )
        assert build_greeting(agent, [doc]) == (
            "Hi! I'm Ava, your acme.com assistant - Cloud consulting for small businesses. "
            "I can help you with Consulting, Hosting. How may I assist you today?"
        )

    def test_greeting_truncates_services_to_three(self, agent):
        doc = make_document(services=["A", "B", "C", "D", "E"])
        greeting = build_greeting(agent, [doc])
        assert "I can help you with A, B, C and 2 more services." in greeting
        assert "D" not in greeting.split("services")[0]

    def test_greeting_collects_services_across_documents(self, agent):
        docs = [make_document(services=["A", "B"]), make_document(name="Pricing", services=["C", "D"])]
        assert "A, B, C and 1 more services" in build_greeting(agent, docs)

    def test_greeting_without_services_or_description(self, agent):
        doc = make_document(name="Handbook")
        assert build_greeting(agent, [doc]) == (
            "Hi! I'm Ava, your Handbook assistant. How may I assist you today?"
        )


class TestConversationContext:

    def test_open_book_context(self, agent):
        context = build_conversation_context(agent, [])

        assert not context.closed_book
        assert context.fallback_message is None
        assert context.document_context == ""
        assert context.services_context == NO_SERVICES_TEXT
        assert "Ava" in context.system_instructions
        assert "Available documents" not in context.system_prompt()

    def test_agent_system_prompt_appended_without_documents(self):
        agent = AgentRecord(id=1, name="Ava", system_prompt="Always answer in French.")
        context = build_conversation_context(agent, [])
        assert context.system_instructions.endswith("\n\nAlways answer in French.")

    def test_closed_book_instructions(self, agent):
        docs = [make_document(), make_document(name="Pricing")]
        context = build_conversation_context(agent, docs)

        assert context.closed_book
        assert context.document_names == ("Website: acme.com", "Pricing")
        assert "2. Your knowledge is LIMITED to ONLY these documents:\n- Website: acme.com\n- Pricing\n" in context.system_instructions
        assert f'Respond EXACTLY with this message: "{context.fallback_message}"' in context.system_instructions
        assert "NEVER use any external knowledge" in context.system_instructions

    def test_fallback_sentence_is_canonical(self):
        assert fallback_message(["Website: acme.com", "Pricing"]) == (
            "I cannot answer this question as it's not covered in the assigned documents. "
            "I can only provide information that is explicitly present in Website: acme.com, Pricing. "
            "Please ask about the content from these documents."
        )

    def test_services_context_is_bounded(self, agent):
        doc = make_document(services=[f"S{i}" for i in range(12)])
        lines = build_conversation_context(agent, [doc]).services_context.split("\n")

        assert len(lines) == 11
        assert lines[0] == "- S0: S0 desc"
        assert lines[-1] == "- and 2 more services"

    def test_document_context_summarizes_content(self, agent):
        docs = [make_document(content="x" * 300), make_document(name="Empty", content="")]
        context = build_conversation_context(agent, docs)

        assert context.document_context == (
            f"Document: Website: acme.com\nContent Summary: {'x' * 200}...\n---\n"
            "Document: Empty\nContent Summary: No content\n---"
        )

    def test_system_prompt_sections(self, agent):
        context = build_conversation_context(agent, [make_document(services=["Consulting"])])
        prompt = context.system_prompt()

        assert prompt.startswith(context.system_instructions)
        assert "\n\nService Information:\n- Consulting: Consulting desc" in prompt
        assert prompt.endswith(f"Available documents:\n{context.document_context}")

    def test_output_is_deterministic(self, agent):
        docs = [make_document(services=["A", "B", "C", "D"], description="Acme. More.")]
        assert build_conversation_context(agent, docs) == build_conversation_context(agent, docs)


class TestClosedBookValidation:

    @pytest.fixture
    def context(self, agent):
        return build_conversation_context(agent, [make_document()])

    @pytest.mark.parametrize(
        "reply",
        [
            "Based on the document, we offer Consulting.",
            "Based on the documents, opening hours are 9 to 5.",
            "I cannot answer this question as it's not covered in the assigned documents.",
        ],
    )
    def test_marked_replies_pass(self, context, reply):
        assert validate_closed_book_response(context, reply) == reply

    def test_unmarked_reply_is_replaced(self, context):
        assert validate_closed_book_response(context, "Sure, the weather is nice.") == context.fallback_message

    def test_open_book_replies_pass(self, agent):
        context = build_conversation_context(agent, [])
        assert validate_closed_book_response(context, "Anything goes.") == "Anything goes."
