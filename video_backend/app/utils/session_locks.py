from contextlib import asynccontextmanager
from typing import AsyncIterator
import asyncio


class SessionLocks:
    """One asyncio.Lock per upload session id.

    A lock lives only while somebody holds or waits for it, so finished
    sessions do not accumulate entries.
    """

    def __init__(self) -> None:
        self.__upload_locks: dict[str, asyncio.Lock] = {}
        self.__holders: dict[str, int] = {}
        self.__upload_locks_lock = asyncio.Lock()

    async def _get_upload_lock(self, upload_id: str) -> asyncio.Lock:
        async with self.__upload_locks_lock:
            if upload_id not in self.__upload_locks:
                self.__upload_locks[upload_id] = asyncio.Lock()
            self.__holders[upload_id] = self.__holders.get(upload_id, 0) + 1
            return self.__upload_locks[upload_id]

    async def _release_upload_lock(self, upload_id: str) -> None:
        async with self.__upload_locks_lock:
            self.__holders[upload_id] -= 1
            if self.__holders[upload_id] == 0:
                del self.__holders[upload_id]
                del self.__upload_locks[upload_id]

    @asynccontextmanager
    async def hold(self, upload_id: str) -> AsyncIterator[None]:
        upload_lock = await self._get_upload_lock(upload_id)
        try:
            async with upload_lock:
                yield
        finally:
            await self._release_upload_lock(upload_id)

    def __len__(self) -> int:
        return len(self.__upload_locks)
