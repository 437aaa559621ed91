# src/akara/tools/python_exec.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import sys
import tempfile

logger = logging.getLogger(__name__)

NO_OUTPUT_TEXT = "Code executed successfully (no output)"


class PythonExecutor:
    """
    Run a snippet in a separate interpreter process with a wall-clock limit.

    Every outcome is returned as text for the engine to read:
    stdout, "Error:\\n<stderr>", a no-output notice, or a timeout message.
    """

    def __init__(self, *, executable: str | None = None, timeout_seconds: float = 10.0) -> None:
        self._executable = executable or sys.executable
        self._timeout = float(timeout_seconds)

    async def run(self, code: str) -> str:
        logger.info("Executing Python code (%d chars)...", len(code))

        fd, path = tempfile.mkstemp(prefix="akara_", suffix=".py")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(code)

            proc = await asyncio.create_subprocess_exec(
                self._executable,
                path,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            try:
                stdout_b, stderr_b = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
            except TimeoutError:
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
                await proc.wait()
                logger.warning("Python execution timed out after %.0fs", self._timeout)
                return f"Execution timed out (max {self._timeout:g}s)"
        finally:
            with contextlib.suppress(OSError):
                os.unlink(path)

        stdout = stdout_b.decode("utf-8", errors="replace").strip()
        stderr = stderr_b.decode("utf-8", errors="replace").strip()

        if stderr:
            return f"Error:\n{stderr}"
        return stdout or NO_OUTPUT_TEXT
