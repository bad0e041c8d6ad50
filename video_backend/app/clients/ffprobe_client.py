from pathlib import Path
import asyncio
import logging

from video_backend.app.utils.errors import ProbeFailedError, ProbeTimeoutError

PROBE_ARGS = ("-v", "error", "-show_format", "-show_streams", "-print_format", "flat")


class FfprobeClient:
    """Runs ffprobe on a file and returns its flat report as text."""

    def __init__(self, ffprobe_path: str, timeout: float) -> None:
        self.__ffprobe_path = ffprobe_path
        self.__timeout = timeout
        self.__logger = logging.getLogger(__name__)

    async def probe(self, file_path: str | Path) -> str:
        args = [self.__ffprobe_path, *PROBE_ARGS, str(file_path)]
        self.__logger.debug(f"running {args}")

        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ProbeFailedError(f"could not start {self.__ffprobe_path}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.__timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise ProbeTimeoutError(Path(file_path), self.__timeout)

        if process.returncode != 0:
            # ffprobe still prints whatever it managed to read
            self.__logger.warning(
                f"ffprobe exited with {process.returncode} for {file_path}: "
                f"{stderr.decode('utf-8', errors='replace').strip()}"
            )

        return stdout.decode("utf-8", errors="replace")
