"""Context assembly and grounding instructions for the language model."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from localrag.models import AssembledContext, Attribution, RetrievalResult, format_score

NO_DOCUMENTS_MARKER = "No relevant documents found."

_GROUNDING_RULES = (
    "Answer the user's question using ONLY the information from the context documents",
    "Be clear and concise in your response",
    "If the context doesn't contain enough information to fully answer the question, acknowledge this",
    "Cite which document(s) you're referencing when possible",
    "Do not make up information that isn't in the context",
)
_BEST_EFFORT_RULE = "No documents were found for this query, provide your best answer if possible."


@dataclass(frozen=True)
class ContextAssemblerConfig:
    """Configuration for context construction."""

    document_label: str = "Document"
    page_label: str = "Page"
    separator: str = "\n\n"


class ContextAssembler:
    """Builds the attributed context block and the grounding system prompt."""

    def __init__(self, config: ContextAssemblerConfig | None = None) -> None:
        self._config = config or ContextAssemblerConfig()

    def assemble(self, results: Sequence[RetrievalResult]) -> AssembledContext:
        if not results:
            return AssembledContext(context_text=NO_DOCUMENTS_MARKER, attributions=[], has_documents=False)
        entries: List[str] = []
        attributions: List[Attribution] = []
        for index, result in enumerate(results, start=1):
            source = result.chunk.source
            page = result.chunk.page
            page_info = f" ({self._config.page_label} {page})" if page else ""
            entries.append(f"{self._config.document_label} {index} from {source}{page_info}:\n{result.chunk.text}")
            attributions.append(Attribution(source=source, page=page))
        return AssembledContext(
            context_text=self._config.separator.join(entries),
            attributions=attributions,
            has_documents=True,
        )

    def build_system_prompt(self, context: AssembledContext) -> str:
        rules = list(_GROUNDING_RULES)
        if not context.has_documents:
            rules.append(_BEST_EFFORT_RULE)
        numbered = "\n".join(f"{index}. {rule}" for index, rule in enumerate(rules, start=1))
        return (
            "You are a helpful AI assistant that answers questions based on the provided context.\n"
            "Your task is to:\n"
            f"{numbered}\n\n"
            "Context documents:\n"
            f"{context.context_text}"
        )
