from pathlib import Path


class InvalidSessionError(ValueError):
    """Session id is empty or would resolve outside the upload directory."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Invalid upload session id: {session_id!r}")
        self.session_id = session_id


class ReassemblyError(Exception):
    """Base class for terminal failures while merging the parts of a session."""

    error_code = "REASSEMBLY_FAILED"

    def payload(self) -> dict:
        return {"error_code": self.error_code}


class OutputCreateFailedError(ReassemblyError):
    error_code = "OUTPUT_CREATE_FAILED"

    def __init__(self, path: Path, cause: OSError) -> None:
        super().__init__(f"Could not create output file {path}: {cause}")
        self.path = path
        self.cause = cause


class MissingPartError(ReassemblyError):
    error_code = "MISSING_PART"

    def __init__(self, index: int, path: Path) -> None:
        super().__init__(f"Part {index} is missing ({path})")
        self.index = index
        self.path = path

    def payload(self) -> dict:
        return {"error_code": self.error_code, "index": self.index}


class CopyFailedError(ReassemblyError):
    error_code = "COPY_FAILED"

    def __init__(self, index: int, cause: OSError) -> None:
        super().__init__(f"Copying part {index} failed: {cause}")
        self.index = index
        self.cause = cause

    def payload(self) -> dict:
        return {"error_code": self.error_code, "index": self.index}


class SizeMismatchError(ReassemblyError):
    error_code = "SIZE_MISMATCH"

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Total file size mismatch, expected {expected} bytes but actual is {actual}"
        )
        self.expected = expected
        self.actual = actual

    def payload(self) -> dict:
        return {"error_code": self.error_code, "expected": self.expected, "actual": self.actual}


class ProbeError(Exception):
    """ffprobe could not produce a report for a file."""

    error_code = "PROBE_FAILED"


class ProbeFailedError(ProbeError):
    pass


class ProbeTimeoutError(ProbeError):
    error_code = "PROBE_TIMEOUT"

    def __init__(self, path: Path, timeout: float) -> None:
        super().__init__(f"ffprobe did not finish within {timeout}s for {path}")
        self.path = path
        self.timeout = timeout
