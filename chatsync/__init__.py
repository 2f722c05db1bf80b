"""chatsync - client-side chat synchronization engine.

Keeps an ordered view of a room's messages, reconciles optimistic sends
with realtime echoes, and ships a Textual terminal front-end.
"""

__version__ = "0.1.0"

from .main import main
from .session import ChatSession, SessionConfig

__all__ = ["ChatSession", "SessionConfig", "main", "__version__"]
