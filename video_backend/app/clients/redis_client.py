from typing import Optional
import redis.asyncio as redis_async

from video_backend.app.models.uploading import ChunkedUploadMetadata, ChunkDataInfo
from video_backend.config.config import Settings

KEY_PREFIX = "upload:"


class RedisClient:
    def __init__(self, settings: Settings) -> None:
        self.__client = redis_async.Redis(
            host=settings.REDIS_HOST, port=settings.REDIS_PORT, db=0, decode_responses=True
        )

    @property
    def client(self):
        return self.__client


class UploadProgressStore:
    """Keeps per-session upload progress in Redis, expiring after ``ttl`` seconds."""

    def __init__(self, client, ttl: int) -> None:
        self.__client = client
        self.__ttl = ttl

    async def get(self, uuid: str) -> Optional[ChunkedUploadMetadata]:
        raw = await self.__client.get(KEY_PREFIX + uuid)
        if not raw:
            return None
        return ChunkedUploadMetadata.model_validate_json(raw)

    async def save(self, metadata: ChunkedUploadMetadata) -> None:
        await self.__client.set(KEY_PREFIX + metadata.uuid, metadata.model_dump_json(), ex=self.__ttl)

    async def record_chunk(self, metadata: ChunkedUploadMetadata, chunk: ChunkDataInfo) -> ChunkedUploadMetadata:
        """Add or replace the entry for ``chunk.part_index`` and persist."""
        chunks = [cm for cm in metadata.chunk_metadata if cm.part_index != chunk.part_index]
        chunks.append(chunk)
        chunks.sort(key=lambda cm: cm.part_index)
        updated = metadata.model_copy(update={"chunk_metadata": chunks})
        await self.save(updated)
        return updated

    async def delete(self, uuid: str) -> None:
        await self.__client.delete(KEY_PREFIX + uuid)
