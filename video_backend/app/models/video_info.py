from pydantic import BaseModel, ConfigDict


class VideoInfo(BaseModel):
    """Technical metadata pulled out of an ffprobe flat report.

    Every field stays at zero unless a matching line parsed cleanly, so an
    all-zero record is a legitimate result for an unreadable file.
    """
    model_config = ConfigDict(frozen=True)

    video_width: int = 0
    video_height: int = 0
    bit_rate: int = 0
    duration_seconds: float = 0.0
    size_bytes: int = 0


class FieldParseFailed(BaseModel):
    model_config = ConfigDict(frozen=True)

    line_number: int
    line: str
    field: str
    reason: str
