"""Capability mode resolution.

``resolve_mode`` is a pure function of authentication state and current
location. Mode definitions are static; transitions are observed and logged
but never change a definition or drop history.
"""

import logging
import threading
from collections import OrderedDict

from karat.orchestrator.models.mode import ChatMode, ModeConfig, ModeTransition

logger = logging.getLogger(__name__)

HELP_PREFIX = "/resources/documentation"

BUSINESS_PREFIXES = (
    "/dashboard",
    "/invoices",
    "/customers",
    "/stock",
    "/bookings",
    "/purchases",
    "/reports",
    "/settings",
    "/profile",
    "/create-invoice",
)

LANDING_LOCATION = "/"

MODE_CONFIGS: dict[ChatMode, ModeConfig] = {
    ChatMode.guest: ModeConfig(
        mode=ChatMode.guest,
        display_name="Product Guide",
        placeholder="Ask about features, pricing, or how Karat works...",
        welcome_message=(
            "Hi! I can help you learn about the Karat jewelry management system. "
            "What would you like to know?"
        ),
        analytics_category="sales_chat",
        capabilities=(
            "product_questions",
            "feature_explanations",
            "pricing_info",
            "lead_capture",
            "demo_walkthrough",
        ),
    ),
    ChatMode.assistant: ModeConfig(
        mode=ChatMode.assistant,
        display_name="AI Assistant",
        placeholder="Create invoice, add customer, or ask anything...",
        welcome_message=(
            "Hi {user_name}! Ready to create an invoice, add a customer, "
            "or need help with something?"
        ),
        analytics_category="assistant_chat",
        capabilities=(
            "product_questions",
            "feature_explanations",
            "action_execution",
            "data_access",
            "voice_input",
            "personalization",
        ),
        allowed_actions=("create_invoice", "add_customer"),
        show_voice_input=True,
        show_image_upload=True,
        can_execute_actions=True,
        can_retrieve_data=True,
        requires_authentication=True,
        persists_history=True,
    ),
    ChatMode.help: ModeConfig(
        mode=ChatMode.help,
        display_name="Help Center",
        placeholder="Ask me how to use any feature...",
        welcome_message="Hi! I can help you learn how to use Karat. What do you need help with?",
        analytics_category="help_chat",
        capabilities=(
            "product_questions",
            "feature_explanations",
            "demo_walkthrough",
        ),
    ),
}


def get_mode_config(mode: ChatMode) -> ModeConfig:
    """Return the static definition for a mode."""
    return MODE_CONFIGS[mode]


def resolve_mode(is_authenticated: bool, location: str) -> ChatMode:
    """Map authentication state and location to a capability mode.

    Rules, in priority order:
    1. Help-content locations always yield help.
    2. Authenticated users on business-management locations yield assistant.
    3. Authenticated users on the landing location yield assistant.
    4. Everything else yields guest.
    """
    if location.startswith(HELP_PREFIX):
        return ChatMode.help

    if is_authenticated and location.startswith(BUSINESS_PREFIXES):
        return ChatMode.assistant

    if is_authenticated and location == LANDING_LOCATION:
        return ChatMode.assistant

    return ChatMode.guest


class ModeTransitionTracker:
    """Remembers the last resolved mode per identifier and emits transitions.

    In-memory and process-local; intended for analytics only. At most
    ``max_identifiers`` are remembered; the least recently seen is dropped
    first, so an evicted identifier's next observation counts as its first.
    """

    def __init__(self, max_identifiers: int = 10_000) -> None:
        self.max_identifiers = max_identifiers
        self._last: OrderedDict[str, tuple[ChatMode, bool]] = OrderedDict()
        self._lock = threading.Lock()

    def observe(
        self, identifier: str, is_authenticated: bool, location: str
    ) -> ModeTransition | None:
        """Resolve the mode and return a transition if it changed.

        The trigger is login/logout when the authentication state flipped,
        otherwise navigation. The first observation never yields one.
        """
        mode = resolve_mode(is_authenticated, location)
        with self._lock:
            previous = self._last.pop(identifier, None)
            self._last[identifier] = (mode, is_authenticated)
            if len(self._last) > self.max_identifiers:
                self._last.popitem(last=False)

        if previous is None:
            return None
        previous_mode, was_authenticated = previous
        if previous_mode == mode:
            return None

        if is_authenticated and not was_authenticated:
            trigger = "login"
        elif was_authenticated and not is_authenticated:
            trigger = "logout"
        else:
            trigger = "navigation"

        transition = ModeTransition(
            identifier=identifier,
            from_mode=previous_mode,
            to_mode=mode,
            trigger=trigger,
        )
        logger.info(
            "Mode transition: %s -> %s (trigger=%s)",
            previous_mode.value,
            mode.value,
            trigger,
        )
        return transition
