"""Assembles knowledge passages, web snippets and a conversation summary into one prompt context."""

from collections.abc import Sequence

from helpdesk_rag.config import ContextSettings
from helpdesk_rag.models import (
    AssembledContext,
    ConversationTurn,
    Role,
    ScoredItem,
    ScoreMethod,
    WebResult,
)

KNOWLEDGE_HEADER = "KNOWLEDGE BASE:"
WEB_HEADER = "ADDITIONAL WEB INFORMATION:"
WEB_INTRO = "The following information was found from web searches to supplement the FAQs:"
SUMMARY_HEADER = "CONVERSATION SUMMARY:"
ENTRY_SEPARATOR = "\n---\n\n"
SECTION_SEPARATOR = "\n\n"


def _relevance(scored: ScoredItem) -> str:
    if scored.method == ScoreMethod.SEMANTIC:
        return f"Relevance: {scored.score * 100:.1f}%"
    return f"Keyword match: {scored.score:g}"


def format_knowledge_entry(index: int, scored: ScoredItem) -> str:
    return f"{index}. {scored.item.title} ({_relevance(scored)})\n\n{scored.item.body}\n"


def format_web_entry(index: int, result: WebResult) -> str:
    lines = [f"{index}. {result.title}"]
    if result.url:
        lines.append(f"   Source: {result.url}")
    lines.append(f"   {result.snippet}")
    return "\n".join(lines) + "\n"


def summarize_conversation(
    history: Sequence[ConversationTurn],
    turns: int = 6,
    max_chars: int = 200,
) -> str:
    """Lossy summary of recent user questions, not a transcript."""
    if not history or turns <= 0:
        return ""
    user_texts = [t.text.strip() for t in history[-turns:] if t.role == Role.USER and t.text.strip()]
    if not user_texts:
        return ""
    joined = "; ".join(user_texts)
    if len(joined) > max_chars:
        joined = joined[:max_chars] + "..."
    return f"Recent topics discussed: {joined}"


class ContextAssembler:
    """Merges retrieval sources under a character budget.

    Passages are never cut mid-text: the budget drops whole lower-ranked
    entries, and the top knowledge passage is always kept.
    """

    def __init__(self, settings: ContextSettings | None = None):
        self.settings = settings or ContextSettings()

    def _knowledge_section(self, results: Sequence[ScoredItem], budget: int) -> tuple[str, list[ScoredItem]]:
        ordered = sorted(results, key=lambda s: s.score, reverse=True)
        entries: list[str] = []
        used: list[ScoredItem] = []
        size = len(KNOWLEDGE_HEADER) + 2
        for scored in ordered:
            entry = format_knowledge_entry(len(entries) + 1, scored)
            cost = len(entry) + (len(ENTRY_SEPARATOR) if entries else 0)
            if entries and size + cost > budget:
                break
            entries.append(entry)
            used.append(scored)
            size += cost
        if not entries:
            return "", []
        return f"{KNOWLEDGE_HEADER}\n\n{ENTRY_SEPARATOR.join(entries)}", used

    def _web_section(self, results: Sequence[WebResult], budget: int) -> tuple[str, int]:
        entries: list[str] = []
        size = len(WEB_HEADER) + len(WEB_INTRO) + 3
        for result in results:
            entry = format_web_entry(len(entries) + 1, result)
            if size + len(entry) + 1 > budget:
                break
            entries.append(entry)
            size += len(entry) + 1
        if not entries:
            return "", 0
        return f"{WEB_HEADER}\n{WEB_INTRO}\n\n" + "\n".join(entries), len(entries)

    def assemble(
        self,
        knowledge_results: Sequence[ScoredItem],
        web_results: Sequence[WebResult],
        history: Sequence[ConversationTurn],
    ) -> AssembledContext:
        budget = self.settings.max_context_chars

        summary = summarize_conversation(
            history, self.settings.summary_turns, self.settings.summary_max_chars
        )
        summary_section = f"{SUMMARY_HEADER}\n{summary}" if summary else ""
        remaining = budget - len(summary_section)

        knowledge_section, used = self._knowledge_section(knowledge_results, remaining)
        remaining -= len(knowledge_section) + len(SECTION_SEPARATOR)

        web_section, web_count = self._web_section(web_results, remaining) if web_results else ("", 0)

        combined = SECTION_SEPARATOR.join(
            s for s in (knowledge_section, web_section, summary_section) if s
        )
        return AssembledContext(
            knowledge_section=knowledge_section,
            web_section=web_section,
            summary_section=summary_section,
            combined=combined,
            knowledge_ids=tuple(s.item.id for s in used),
            web_result_count=web_count,
        )


def build_system_prompt(context: AssembledContext, company_name: str = "our company") -> str:
    """Support-assistant persona, assembled context and answering guidelines."""
    base = (
        f"You are an AI customer support assistant for {company_name}.\n\n"
        f"You must always act as the official virtual assistant of {company_name} "
        "and respond in a polite, friendly, and professional tone."
    )

    if context.knowledge_section:
        body = context.combined
    else:
        fallback = (
            "No specific FAQ data available. Use your knowledge while staying relevant "
            f"to {company_name}'s products or services."
        )
        body = SECTION_SEPARATOR.join(s for s in (fallback, context.combined) if s)

    guidelines = f"""Guidelines:

1. Always base your answers primarily on the FAQ and company data provided above.
2. If the answer is not explicitly found in the FAQ, respond naturally using your general knowledge, keeping it relevant to {company_name}'s products or services.
3. Never say "check the website" or "I suggest"; explain or guide directly.
4. If a question cannot be answered confidently, politely offer to connect the user with the human support team.
5. Keep responses short, clear, and user-friendly (2-5 sentences).
6. When web information is provided, use it to enhance your answer while keeping the FAQ as the primary source."""

    return f"{base}\n\nContext:\n{body}\n\n{guidelines}"
