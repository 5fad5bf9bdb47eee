"""Capability mode models.

Modes are resolved per request from authentication state and location;
they are never stored. Transitions are recorded as events only.
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from karat.db.models import utc_now_iso


class ChatMode(str, Enum):
    """Closed set of capability modes."""

    guest = "guest"
    assistant = "assistant"
    help = "help"


class ModeConfig(BaseModel):
    """Display metadata, allowed actions and feature flags for a mode."""

    model_config = ConfigDict(frozen=True)

    mode: ChatMode
    display_name: str
    placeholder: str
    welcome_message: str
    analytics_category: str
    capabilities: tuple[str, ...] = ()
    allowed_actions: tuple[str, ...] = ()
    show_voice_input: bool = False
    show_image_upload: bool = False
    can_execute_actions: bool = False
    can_retrieve_data: bool = False
    requires_authentication: bool = False
    persists_history: bool = False


class ModeTransition(BaseModel):
    """A change in resolved mode for one identifier."""

    identifier: str
    from_mode: ChatMode
    to_mode: ChatMode
    trigger: Literal["login", "logout", "navigation"]
    preserve_history: bool = True
    timestamp: str = Field(default_factory=utc_now_iso)
