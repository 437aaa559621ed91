# tests/test_python_exec.py

from __future__ import annotations

import pytest

from akara.tools.python_exec import NO_OUTPUT_TEXT, PythonExecutor


@pytest.mark.asyncio
async def test_stdout_is_returned() -> None:
    assert await PythonExecutor().run("print(2 + 2)") == "4"


@pytest.mark.asyncio
async def test_no_output() -> None:
    assert await PythonExecutor().run("x = 1") == NO_OUTPUT_TEXT


@pytest.mark.asyncio
async def test_stderr_wins() -> None:
    out = await PythonExecutor().run("print('partial')\nraise ValueError('bad input')")
    assert out.startswith("Error:\n")
    assert "ValueError: bad input" in out


@pytest.mark.asyncio
async def test_timeout_kills_the_process() -> None:
    out = await PythonExecutor(timeout_seconds=0.5).run("import time\ntime.sleep(10)")
    assert out == "Execution timed out (max 0.5s)"
