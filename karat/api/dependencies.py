"""FastAPI dependency providers.

Process-wide collaborators (completion provider, rate limiter, mode
tracker) are created lazily and can be swapped in tests through
``app.dependency_overrides``.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from karat.config import KaratConfig, get_config
from karat.db.connection import get_db
from karat.orchestrator.modes.resolver import ModeTransitionTracker
from karat.orchestrator.nl_engine.completion import (
    AnthropicCompletionProvider,
    CompletionProvider,
)
from karat.services.chat_pipeline import ChatPipeline
from karat.services.rate_limiter import RateLimiter
from karat.services.rate_limiter import get_rate_limiter as _get_rate_limiter

_provider: CompletionProvider | None = None
_tracker = ModeTransitionTracker()


def get_app_config() -> KaratConfig:
    """Loaded application configuration."""
    return get_config()


def get_completion_provider(
    config: KaratConfig = Depends(get_app_config),
) -> CompletionProvider:
    """Shared Anthropic-backed provider, created on first use."""
    global _provider
    if _provider is None:
        _provider = AnthropicCompletionProvider(
            model=config.completion.model,
            max_tokens=config.completion.max_tokens,
            temperature=config.completion.temperature,
        )
    return _provider


def get_rate_limiter() -> RateLimiter:
    return _get_rate_limiter()


def get_mode_tracker() -> ModeTransitionTracker:
    return _tracker


def get_chat_pipeline(
    db: Session = Depends(get_db),
    provider: CompletionProvider = Depends(get_completion_provider),
    limiter: RateLimiter = Depends(get_rate_limiter),
    config: KaratConfig = Depends(get_app_config),
    tracker: ModeTransitionTracker = Depends(get_mode_tracker),
) -> ChatPipeline:
    """Request-scoped pipeline bound to the request's DB session."""
    return ChatPipeline(db, provider, limiter, config, tracker)
