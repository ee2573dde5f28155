"""Tests for the child process runner."""

import asyncio
import sys

import pytest

from shipctl.core.async_utils import run_with_timeout
from shipctl.core.exceptions import CommandError, CommandTimeoutError
from shipctl.core.process import CommandResult, CommandRunner


def python(code: str) -> list[str]:
    return [sys.executable, "-c", code]


class TestCommandRunner:
    def test_captures_output(self):
        result = asyncio.run(CommandRunner().run(python("print('hello')")))
        assert result.ok
        assert result.stdout.strip() == "hello"
        assert result.duration >= 0

    def test_nonzero_exit_without_check(self):
        result = asyncio.run(CommandRunner().run(python("import sys; sys.stderr.write('bad'); sys.exit(3)")))
        assert result.returncode == 3
        assert result.output == "bad"

    def test_nonzero_exit_with_check(self):
        with pytest.raises(CommandError) as exc_info:
            asyncio.run(CommandRunner().run(python("import sys; sys.exit(2)"), check=True))
        assert exc_info.value.returncode == 2

    def test_missing_executable(self):
        with pytest.raises(CommandError) as exc_info:
            asyncio.run(CommandRunner().run(["shipctl-no-such-binary-xyz"]))
        assert exc_info.value.returncode == 127

    def test_timeout_kills_child(self):
        with pytest.raises(CommandTimeoutError) as exc_info:
            asyncio.run(CommandRunner().run(python("import time; time.sleep(30)"), timeout=0.5))
        assert exc_info.value.timeout_seconds == 0.5

    def test_env_is_layered(self):
        code = "import os; print(os.environ['SHIPCTL_TEST_VALUE'], 'PATH' in os.environ)"
        result = asyncio.run(CommandRunner().run(python(code), env={"SHIPCTL_TEST_VALUE": "green"}))
        assert result.stdout.split() == ["green", "True"]

    def test_cwd(self, tmp_path):
        result = asyncio.run(CommandRunner().run(python("import os; print(os.getcwd())"), cwd=tmp_path))
        assert result.stdout.strip() == str(tmp_path.resolve())


def test_output_prefers_stderr():
    assert CommandResult(["x"], 1, stdout="out", stderr=" err ").output == "err"
    assert CommandResult(["x"], 1, stdout="out\n").output == "out"


def test_run_with_timeout():
    async def slow():
        await asyncio.sleep(5)

    with pytest.raises(CommandTimeoutError, match="too slow"):
        asyncio.run(run_with_timeout(slow(), 0.05, "too slow"))
