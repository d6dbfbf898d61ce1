"""Service layer orchestrations for LocalRAG."""

from .context import NO_DOCUMENTS_MARKER, ContextAssembler, ContextAssemblerConfig, format_score
from .generation import GenerationBackend, GenerationConfig, OllamaGenerator, TemplateGenerator, build_generator
from .query import FALLBACK_ANSWER, QueryConfig, QueryService, validate_conversation
from .streaming import FragmentChannel

__all__ = [
    "FALLBACK_ANSWER",
    "NO_DOCUMENTS_MARKER",
    "ContextAssembler",
    "ContextAssemblerConfig",
    "FragmentChannel",
    "GenerationBackend",
    "GenerationConfig",
    "OllamaGenerator",
    "QueryConfig",
    "QueryService",
    "TemplateGenerator",
    "build_generator",
    "format_score",
    "validate_conversation",
]
