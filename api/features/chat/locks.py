"""Per-conversation mutual exclusion for turns handled by this process."""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Tuple

_Key = Tuple[str, str]


class ConversationLockRegistry:
    """Hands out one ``asyncio.Lock`` per ``(user_id, conversation_id)``.

    Locks are dropped once nobody holds or waits for them.
    """

    def __init__(self) -> None:
        self._locks: Dict[_Key, asyncio.Lock] = {}
        self._users: Dict[_Key, int] = {}

    @asynccontextmanager
    async def hold(self, user_id: str, conversation_id: str) -> AsyncIterator[None]:
        key = (user_id, conversation_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                self._locks.pop(key, None)

