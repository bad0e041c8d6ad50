from pydantic import BaseModel, Field
from datetime import datetime, timezone
from typing import Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChunkDataInfo(BaseModel):
    part_index: int
    file_path: str
    size: int
    timestamp: datetime = Field(default_factory=_utcnow)

class ChunkedUploadMetadata(BaseModel):
    uuid: str
    file_name: str
    total_file_size: Optional[int] = None
    total_parts: Optional[int] = None
    chunk_size: Optional[int] = None
    chunk_metadata: list[ChunkDataInfo] = []
    timestamp: datetime = Field(default_factory=_utcnow)

    @property
    def received_indexes(self) -> list[int]:
        return sorted({cm.part_index for cm in self.chunk_metadata})

    def missing_indexes(self) -> list[int]:
        if self.total_parts is None:
            return []
        received = set(self.received_indexes)
        return [i for i in range(self.total_parts) if i not in received]

class ReassemblyResult(BaseModel):
    final_path: str
    bytes_written: int

class UploadStatusRequest(BaseModel):
    uuid: str
