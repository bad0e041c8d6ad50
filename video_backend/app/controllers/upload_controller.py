from typing import Optional, Protocol
from pathlib import Path
from redis.exceptions import RedisError
import asyncio
import aiofiles
import aiofiles.os
import logging

from video_backend.config.config import Settings
from video_backend.app.clients.ffprobe_client import FfprobeClient
from video_backend.app.clients.redis_client import RedisClient, UploadProgressStore
from video_backend.app.models.uploading import ChunkedUploadMetadata, ChunkDataInfo, ReassemblyResult
from video_backend.app.models.video_info import VideoInfo
from video_backend.app.utils.chunk_reassembler import ChunkReassembler
from video_backend.app.utils.errors import ProbeError, ReassemblyError
from video_backend.app.utils.probe_report_parser import ProbeReportParser
from video_backend.app.utils.session_locks import SessionLocks


class AsyncReadable(Protocol):
    async def read(self, size: int = -1) -> bytes: ...


class UploadController:
    def __init__(
        self,
        settings: Settings,
        progress_store: Optional[UploadProgressStore] = None,
        probe_client: Optional[FfprobeClient] = None,
    ) -> None:
        self.__settings = settings
        self.__logger = logging.getLogger(__name__)
        self.__reassembler = ChunkReassembler(
            upload_dir=settings.UPLOAD_DIR,
            block_size=settings.MERGING_CHUNK_SIZE,
            part_index_width=settings.PART_INDEX_WIDTH,
        )
        self.__progress_store = progress_store or UploadProgressStore(
            RedisClient(settings).client, ttl=settings.CHUNK_TTL
        )
        self.__probe_client = probe_client or FfprobeClient(settings.FFPROBE_PATH, settings.PROBE_TIMEOUT)
        self.__parser = ProbeReportParser()
        self.__upload_locks = SessionLocks()

    @property
    def reassembler(self) -> ChunkReassembler:
        return self.__reassembler

    def upload_instructions(self) -> dict:
        return {
            "max_file_size": self.__settings.MAX_FILESIZE,
            "max_chunk_size": self.__settings.MAX_CHUNK_SIZE,
            "max_upload_request_size": self.__settings.MAX_FILESIZE + self.__settings.MULTIPART_OVERHEAD,
            "chunk_ttl": self.__settings.CHUNK_TTL,
            "part_index_width": self.__settings.PART_INDEX_WIDTH,
        }

    async def _write_stream(self, source: AsyncReadable, destination: Path, limit: int, what: str) -> int:
        # the destination is only replaced once the whole body fits the limit
        staging = destination.with_name(destination.name + ".uploading")
        size = 0
        try:
            async with aiofiles.open(staging, "wb") as f:
                while True:
                    block = await source.read(self.__settings.MERGING_CHUNK_SIZE)
                    if not block:
                        break
                    size += len(block)
                    if size > limit:
                        raise ValueError(f"{what} exceeds the limit of {limit} bytes")
                    await f.write(block)
            await aiofiles.os.replace(staging, destination)
        finally:
            staging.unlink(missing_ok=True)
        return size

    async def _load_progress(self, uuid: str) -> Optional[ChunkedUploadMetadata]:
        try:
            return await self.__progress_store.get(uuid)
        except RedisError as e:
            self.__logger.warning(f"Redis Error while reading progress of {uuid}: {e}")
            return None

    async def _forget_progress(self, uuid: str) -> None:
        try:
            await self.__progress_store.delete(uuid)
        except RedisError as e:
            self.__logger.warning(f"Redis Error while deleting progress of {uuid}: {e}")

    async def process_chunk(
        self,
        uuid: str,
        part_index: int,
        chunk: AsyncReadable,
        file_name: str,
        total_parts: Optional[int] = None,
        total_file_size: Optional[int] = None,
        chunk_size: Optional[int] = None,
    ) -> ChunkDataInfo:
        """Store one part of a chunked upload and record it in the progress store."""
        if total_file_size is not None and total_file_size > self.__settings.MAX_FILESIZE:
            raise ValueError(f"File size exceeds the limit. {total_file_size} > {self.__settings.MAX_FILESIZE}")
        if total_parts is not None and not 0 <= part_index < total_parts:
            raise ValueError(f"Part index {part_index} outside of [0, {total_parts})")

        part_path = self.__reassembler.part_path(uuid, part_index)

        async with self.__upload_locks.hold(uuid):
            part_path.parent.mkdir(parents=True, exist_ok=True)
            size = await self._write_stream(chunk, part_path, self.__settings.MAX_CHUNK_SIZE, "Chunk size")
            chunk_info = ChunkDataInfo(part_index=part_index, file_path=str(part_path), size=size)

            metadata = await self._load_progress(uuid) or ChunkedUploadMetadata(uuid=uuid, file_name=file_name)
            metadata = metadata.model_copy(update={
                "file_name": file_name or metadata.file_name,
                "total_parts": total_parts if total_parts is not None else metadata.total_parts,
                "total_file_size": total_file_size if total_file_size is not None else metadata.total_file_size,
                "chunk_size": chunk_size if chunk_size is not None else metadata.chunk_size,
            })
            try:
                await self.__progress_store.record_chunk(metadata, chunk_info)
            except RedisError as e:
                self.__logger.warning(f"Redis Error while recording part {part_index} of {uuid}: {e}")

        self.__logger.debug(f"Stored part {part_index} of {uuid} ({size} bytes)")
        return chunk_info

    async def store_whole_file(self, uuid: str, upload: AsyncReadable, file_name: str) -> dict:
        """Handle a non-chunked upload: the request body is the final file."""
        final_path = self.__reassembler.final_path(uuid, file_name)

        async with self.__upload_locks.hold(uuid):
            final_path.parent.mkdir(parents=True, exist_ok=True)
            size = await self._write_stream(upload, final_path, self.__settings.MAX_FILESIZE, "File size")

        self.__logger.info(f"Stored {file_name} for {uuid} ({size} bytes)")
        result = ReassemblyResult(final_path=str(final_path.resolve()), bytes_written=size)
        return await self._with_video_info(result)

    async def complete_chunked_upload(self, uuid: str, file_name: str, total_parts: int, total_file_size: int) -> dict:
        """Reassemble a finished chunked upload and probe the result.

        Reassembly errors propagate unchanged. Probing is best effort: a
        failure is reported next to the result instead of raised.
        """
        async with self.__upload_locks.hold(uuid):
            # a repeated completion call must not reopen a verified file
            result = self.__reassembler.completed_result(uuid, file_name, total_parts, total_file_size)
            if result is not None:
                self.__logger.info(f"Session {uuid} was already reassembled, reusing {result.final_path}")
            else:
                loop = asyncio.get_running_loop()
                try:
                    result = await loop.run_in_executor(
                        None, self.__reassembler.reassemble, uuid, file_name, total_parts, total_file_size
                    )
                except ReassemblyError:
                    await self._sync_progress_with_disk(uuid)
                    raise
                await self._forget_progress(uuid)

        return await self._with_video_info(result)

    async def _sync_progress_with_disk(self, uuid: str) -> None:
        """Drop progress entries for parts a failed reassembly already consumed."""
        metadata = await self._load_progress(uuid)
        if metadata is None:
            return
        on_disk = set(self.__reassembler.list_parts(uuid))
        remaining = [cm for cm in metadata.chunk_metadata if cm.part_index in on_disk]
        try:
            await self.__progress_store.save(metadata.model_copy(update={"chunk_metadata": remaining}))
        except RedisError as e:
            self.__logger.warning(f"Redis Error while updating progress of {uuid}: {e}")

    async def probe(self, file_path: str | Path) -> VideoInfo:
        report = await self.__probe_client.probe(file_path)
        return self.__parser.parse(report)

    async def _with_video_info(self, result: ReassemblyResult) -> dict:
        response = {**result.model_dump(), "video_info": None, "probe_error": None}
        try:
            response["video_info"] = (await self.probe(result.final_path)).model_dump()
        except ProbeError as e:
            self.__logger.warning(f"Probing {result.final_path} failed: {e}")
            response["probe_error"] = str(e)
        return response

    async def chunked_upload_status(self, uuid: str) -> dict:
        self.__reassembler.validate_session_id(uuid)
        metadata = await self._load_progress(uuid)
        on_disk = self.__reassembler.list_parts(uuid)

        if metadata is None:
            if not on_disk:
                raise LookupError(f"Upload session {uuid} not found")
            return {
                "metadata": None,
                "received_indexes": on_disk,
                "missing_indexes": [],
                "progress_percentage": None,
                "is_complete": None,
            }

        received = metadata.received_indexes
        total = metadata.total_parts
        return {
            "metadata": metadata.model_dump(mode="json"),
            "received_indexes": received,
            "missing_indexes": metadata.missing_indexes(),
            "progress_percentage": len(received) / total if total else None,
            "is_complete": len(received) == total if total is not None else None,
        }

    async def delete_upload(self, uuid: str) -> bool:
        async with self.__upload_locks.hold(uuid):
            removed = self.__reassembler.discard_session(uuid)
            await self._forget_progress(uuid)
        return removed
