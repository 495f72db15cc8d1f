import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from dockyard.deployments.store import sanitize_name


class AppLocks:
    """Advisory per-app locks for directory-mutating operations.

    Names are sanitized first so that every spelling of an app maps to the
    directory it would touch.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def get(self, name: str) -> asyncio.Lock:
        key = sanitize_name(name)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, name: str) -> AsyncIterator[None]:
        async with self.get(name):
            yield
