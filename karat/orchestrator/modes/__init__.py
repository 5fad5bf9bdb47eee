"""Capability modes: resolution, definitions and system prompts."""

from karat.orchestrator.modes.prompts import (
    build_prior_questions_note,
    build_system_prompt,
)
from karat.orchestrator.modes.resolver import (
    MODE_CONFIGS,
    ModeTransitionTracker,
    get_mode_config,
    resolve_mode,
)

__all__ = [
    "MODE_CONFIGS",
    "ModeTransitionTracker",
    "build_prior_questions_note",
    "build_system_prompt",
    "get_mode_config",
    "resolve_mode",
]
