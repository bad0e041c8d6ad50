from pathlib import Path
from typing import BinaryIO, Optional
import logging
import os
import re
import shutil

from video_backend.app.models.uploading import ReassemblyResult
from video_backend.app.utils.errors import (
    CopyFailedError,
    InvalidSessionError,
    MissingPartError,
    OutputCreateFailedError,
    SizeMismatchError,
)

SESSION_ID_PATTERN = re.compile(r"[A-Za-z0-9][A-Za-z0-9_-]*")


class ChunkReassembler:
    """Merges the part files of one upload session into its final file.

    Parts live at ``<upload_dir>/<session_id>/<session_id>_<index>`` with the
    index zero padded to ``part_index_width`` digits, so a directory listing
    already comes back in part order. The final file is written next to them.
    """

    def __init__(self, upload_dir: str | Path, block_size: int, part_index_width: int = 5) -> None:
        if block_size <= 0:
            raise ValueError("block_size must be positive")
        self.__upload_dir = Path(upload_dir)
        self.__block_size = block_size
        self.__part_index_width = part_index_width
        self.__logger = logging.getLogger(__name__)

    @property
    def upload_dir(self) -> Path:
        return self.__upload_dir

    def validate_session_id(self, session_id: str) -> str:
        if not session_id or not SESSION_ID_PATTERN.fullmatch(session_id):
            raise InvalidSessionError(session_id)
        return session_id

    def session_dir(self, session_id: str) -> Path:
        return self.__upload_dir / self.validate_session_id(session_id)

    def part_name(self, session_id: str, index: int) -> str:
        return f"{session_id}_{index:0{self.__part_index_width}d}"

    def part_path(self, session_id: str, index: int) -> Path:
        if index < 0:
            raise ValueError(f"Part index must be >= 0, got {index}")
        return self.session_dir(session_id) / self.part_name(session_id, index)

    def final_path(self, session_id: str, final_name: str) -> Path:
        name = Path(final_name or "").name
        if name in ("", ".", ".."):
            raise ValueError(f"Invalid final file name: {final_name!r}")
        suffix = name[len(session_id) + 1:]
        if name.startswith(f"{session_id}_") and suffix.isdigit():
            raise ValueError(f"Final file name {name!r} collides with a part file")
        return self.session_dir(session_id) / name

    def list_parts(self, session_id: str) -> list[int]:
        """Indices of the part files currently on disk, ascending."""
        directory = self.session_dir(session_id)
        if not directory.is_dir():
            return []
        prefix = f"{session_id}_"
        indexes = []
        for entry in directory.iterdir():
            suffix = entry.name[len(prefix):]
            if entry.name.startswith(prefix) and suffix.isdigit():
                indexes.append(int(suffix))
        return sorted(indexes)

    def _copy_part(self, part_file: BinaryIO, merged_file: BinaryIO) -> int:
        written = 0
        while True:
            block = part_file.read(self.__block_size)
            if not block:
                break
            merged_file.write(block)
            written += len(block)
        return written

    def reassemble(self, session_id: str, final_name: str, declared_part_count: int, declared_total_size: int) -> ReassemblyResult:
        """Append parts ``0 .. declared_part_count - 1`` to the final file.

        Each part is deleted as soon as it has been copied. Failures are not
        rolled back: whatever was written stays on disk for diagnosis and the
        parts not yet reached are left in place.

        Raises:
            MissingPartError: a part in the range could not be opened.
            CopyFailedError: reading a part or writing the output failed.
            OutputCreateFailedError: the final file could not be created.
            SizeMismatchError: the bytes written differ from the declared total.
        """
        if declared_part_count < 0:
            raise ValueError(f"Declared part count must be >= 0, got {declared_part_count}")
        if declared_total_size < 0:
            raise ValueError(f"Declared total size must be >= 0, got {declared_total_size}")
        merged_path = self.final_path(session_id, final_name)

        # do not truncate an existing output when there is nothing to rebuild it from
        first_part = self.part_path(session_id, 0)
        if declared_part_count > 0 and not first_part.exists():
            raise MissingPartError(0, first_part)

        try:
            merged_path.parent.mkdir(parents=True, exist_ok=True)
            merged_file = open(merged_path, "wb")
        except OSError as e:
            raise OutputCreateFailedError(merged_path, e) from e

        self.__logger.info(f"Reassembling {declared_part_count} parts of session {session_id} into {merged_path}")

        total_written = 0
        with merged_file:
            for index in range(declared_part_count):
                part_path = self.part_path(session_id, index)
                try:
                    part_file = open(part_path, "rb")
                except OSError as e:
                    raise MissingPartError(index, part_path) from e

                with part_file:
                    try:
                        written = self._copy_part(part_file, merged_file)
                    except OSError as e:
                        raise CopyFailedError(index, e) from e

                total_written += written
                self.__logger.debug(f"Copied part {index} ({written} bytes), running total {total_written}")

                try:
                    os.remove(part_path)
                except OSError as e:
                    self.__logger.warning(f"Could not delete part {part_path}: {e}")

        if total_written != declared_total_size:
            raise SizeMismatchError(declared_total_size, total_written)

        self.__logger.info(f"Session {session_id} reassembled: {total_written} bytes")
        return ReassemblyResult(final_path=str(merged_path.resolve()), bytes_written=total_written)

    def completed_result(self, session_id: str, final_name: str, declared_part_count: int, declared_total_size: int) -> Optional[ReassemblyResult]:
        """Result of an earlier successful reassembly, if that is what is on disk.

        That is the case when no part of the range is left and the final file
        already holds ``declared_total_size`` bytes.
        """
        merged_path = self.final_path(session_id, final_name)
        if declared_part_count <= 0 or not merged_path.is_file():
            return None
        if any(0 <= index < declared_part_count for index in self.list_parts(session_id)):
            return None
        if merged_path.stat().st_size != declared_total_size:
            return None
        return ReassemblyResult(final_path=str(merged_path.resolve()), bytes_written=declared_total_size)

    def discard_session(self, session_id: str) -> bool:
        """Remove everything stored for a session. Returns False if nothing was there."""
        directory = self.session_dir(session_id)
        if not directory.exists():
            return False
        shutil.rmtree(directory)
        self.__logger.info(f"Removed session directory {directory}")
        return True
