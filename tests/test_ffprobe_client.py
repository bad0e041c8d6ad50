"""Tests for running ffprobe as a subprocess."""

import asyncio
import stat

import pytest

from video_backend.app.clients.ffprobe_client import FfprobeClient
from video_backend.app.utils.errors import ProbeFailedError, ProbeTimeoutError


def make_script(tmp_path, body):
    script = tmp_path / "fake_ffprobe"
    script.write_text("#!/bin/sh\n" + body + "\n")
    script.chmod(script.stat().st_mode | stat.S_IXUSR)
    return str(script)


def test_probe_returns_stdout_and_passes_arguments(tmp_path):
    script = make_script(tmp_path, 'echo "args=$*"\necho "format.size=10"')
    client = FfprobeClient(script, timeout=5)

    output = asyncio.run(client.probe(tmp_path / "movie.mp4"))

    assert "-show_format -show_streams -print_format flat" in output
    assert output.rstrip().endswith("format.size=10")
    assert str(tmp_path / "movie.mp4") in output


def test_file_name_is_not_shell_interpreted(tmp_path):
    script = make_script(tmp_path, 'echo "$#"')
    client = FfprobeClient(script, timeout=5)

    output = asyncio.run(client.probe("a file; rm -rf x.mp4"))

    # 6 fixed arguments plus the path as a single argument
    assert output.strip() == "7"


def test_non_zero_exit_still_returns_output(tmp_path):
    script = make_script(tmp_path, 'echo "format.size=5"\necho "broken" >&2\nexit 1')
    client = FfprobeClient(script, timeout=5)

    assert asyncio.run(client.probe("movie.mp4")).strip() == "format.size=5"


def test_missing_binary(tmp_path):
    client = FfprobeClient(str(tmp_path / "does-not-exist"), timeout=5)

    with pytest.raises(ProbeFailedError):
        asyncio.run(client.probe("movie.mp4"))


def test_timeout(tmp_path):
    # exec so that killing the process also closes its pipes
    script = make_script(tmp_path, "exec sleep 10")
    client = FfprobeClient(script, timeout=0.2)

    with pytest.raises(ProbeTimeoutError):
        asyncio.run(client.probe("movie.mp4"))
