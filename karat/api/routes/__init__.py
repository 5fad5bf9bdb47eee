"""FastAPI route modules.

Exports all route modules for inclusion in the main application.
"""

from karat.api.routes import actions, bills, chat, settings

__all__ = [
    "actions",
    "bills",
    "chat",
    "settings",
]
