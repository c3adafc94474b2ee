import time
from typing import Any, Callable, Optional

from cachetools import TTLCache
from config import Config
from services.logging_utils import get_logger


class SessionRegistry:
    """
    Tracks the live survey session of every user.

    A user owns at most one entry. Entries are released explicitly when a
    session ends; the TTL cache only guarantees a leaked entry can't lock a
    user out forever.
    """

    def __init__(self, ttl: Optional[int] = None, maxsize: int = 4096, timer: Callable[[], float] = time.monotonic):
        """Initialize the registry with a TTL cache."""
        self.sessions = TTLCache(maxsize=maxsize, ttl=ttl if ttl is not None else Config.session_ttl(), timer=timer)

    def acquire(self, user_id: str, session: Any) -> bool:
        """
        Register ``session`` for a user unless one is already live.

        Args:
            user_id: The Discord user ID
            session: The session object to register

        Returns:
            True if the session was registered, False if the user is busy
        """
        key = str(user_id)
        if key in self.sessions:
            get_logger("session", {"userId": key}).info("already in a survey")
            return False
        self.sessions[key] = session
        get_logger("session", {"userId": key}).info("acquired")
        return True

    def release(self, user_id: str) -> None:
        """
        Clears a user's session if it exists.

        Args:
            user_id: The Discord user ID
        """
        key = str(user_id)
        if key in self.sessions:
            del self.sessions[key]
            get_logger("session", {"userId": key}).info("released")

    def get(self, user_id: str) -> Optional[Any]:
        return self.sessions.get(str(user_id))

    def is_active(self, user_id: str) -> bool:
        return str(user_id) in self.sessions

    def __len__(self) -> int:
        return len(self.sessions)
