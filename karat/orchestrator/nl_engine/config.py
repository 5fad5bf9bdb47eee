"""Configuration for the NL Engine.

Environment Variables:
    ANTHROPIC_MODEL: Claude model used for extraction.
        Defaults to "claude-haiku-4-5-20251001".
        The ``completion.model`` config value takes precedence when set.
"""

import os

# Default model - can be overridden via ANTHROPIC_MODEL env var
DEFAULT_MODEL = "claude-haiku-4-5-20251001"


def get_model(configured: str | None = None) -> str:
    """Get the Claude model to use for extraction.

    Args:
        configured: Model from the loaded config file, if any.

    Returns:
        Claude model identifier string.
    """
    if configured:
        return configured
    return os.environ.get("ANTHROPIC_MODEL", DEFAULT_MODEL)
