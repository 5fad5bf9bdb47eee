"""Natural language engine: provider interface, schemas and extractors."""

from karat.orchestrator.nl_engine.bill_extractor import (
    BillExtractionOutcome,
    BillExtractor,
)
from karat.orchestrator.nl_engine.completion import (
    AnthropicCompletionProvider,
    Attachment,
    CompletionMessage,
    CompletionProvider,
    CompletionProviderError,
    CompletionResult,
    PlainText,
    StructuredCall,
    ToolSpec,
)
from karat.orchestrator.nl_engine.intent_extractor import (
    ExtractionTimeoutError,
    IntentExtractor,
)

__all__ = [
    "AnthropicCompletionProvider",
    "Attachment",
    "BillExtractionOutcome",
    "BillExtractor",
    "CompletionMessage",
    "CompletionProvider",
    "CompletionProviderError",
    "CompletionResult",
    "ExtractionTimeoutError",
    "IntentExtractor",
    "PlainText",
    "StructuredCall",
    "ToolSpec",
]
