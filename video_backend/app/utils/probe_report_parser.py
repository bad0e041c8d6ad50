from typing import Any, Callable
import logging
import math

from video_backend.app.models.video_info import FieldParseFailed, VideoInfo

_QUOTES = "\"'"


def _to_unsigned(value: str) -> int:
    # int() would also take signs, underscores and non-ASCII digits
    if not (value.isascii() and value.isdigit()):
        raise ValueError(f"not an unsigned integer: {value!r}")
    return int(value)


def _to_seconds(value: str) -> float:
    number = float(value)
    if not math.isfinite(number) or number < 0:
        raise ValueError(f"not a valid duration: {value}")
    return number


# (substring that selects the line, VideoInfo field, converter)
FIELD_MATCHERS: tuple[tuple[str, str, Callable[[str], Any]], ...] = (
    (".width=", "video_width", _to_unsigned),
    (".height=", "video_height", _to_unsigned),
    (".duration=", "duration_seconds", _to_seconds),
    ("format.bit_rate=", "bit_rate", _to_unsigned),
    ("format.size=", "size_bytes", _to_unsigned),
)


class ProbeReportParser:
    """Pulls a VideoInfo out of ``ffprobe -print_format flat`` output.

    Lines are matched by substring, not by stream index, so with several
    streams the last matching line in the report wins for each field.
    Nothing here raises: bad lines are recorded as FieldParseFailed and
    the field keeps whatever it held before.
    """

    def __init__(self) -> None:
        self.__logger = logging.getLogger(__name__)

    def parse(self, report: str) -> VideoInfo:
        video_info, _ = self.parse_with_diagnostics(report)
        return video_info

    def parse_with_diagnostics(self, report: str) -> tuple[VideoInfo, list[FieldParseFailed]]:
        if isinstance(report, (bytes, bytearray)):
            report = report.decode("utf-8", errors="replace")
        if not isinstance(report, str):
            return VideoInfo(), []

        values: dict[str, Any] = {}
        diagnostics: list[FieldParseFailed] = []

        for line_number, line in enumerate(report.split("\n"), start=1):
            line = line.rstrip("\r")
            for marker, field, convert in FIELD_MATCHERS:
                if marker not in line:
                    continue

                pieces = line.split("=")
                if len(pieces) != 2:
                    diagnostics.append(FieldParseFailed(
                        line_number=line_number, line=line, field=field,
                        reason=f"expected one '=' but found {len(pieces) - 1}",
                    ))
                    continue

                raw_value = pieces[1].strip().strip(_QUOTES).strip()
                try:
                    values[field] = convert(raw_value)
                except ValueError as e:
                    diagnostics.append(FieldParseFailed(
                        line_number=line_number, line=line, field=field,
                        reason=f"cannot convert {raw_value!r}: {e}",
                    ))

        for diagnostic in diagnostics:
            self.__logger.warning(
                f"read video {diagnostic.field} failed on line {diagnostic.line_number}: {diagnostic.reason}"
            )

        video_info = VideoInfo(**values)
        self.__logger.info(f"analyze video info {video_info}")
        return video_info, diagnostics
