"""
Runs model-written analysis code in a separate interpreter process.

The code receives the SQL results of earlier plan steps as `data` (parsed
from JSON on stdin) and reports by printing. A wall-clock timeout kills
runaway processes.
"""

import asyncio
import json
import sys
from dataclasses import dataclass
from typing import Any, Optional

from loguru import logger

from dataagent.utils.errors import ExecutionError

_PRELUDE = "import json, sys\ndata = json.load(sys.stdin)\n"


@dataclass
class PythonRunResult:
    success: bool
    stdout: str
    stderr: str = ""

    @property
    def output(self) -> str:
        return self.stdout if self.success else (self.stderr or self.stdout)


class SubprocessPythonExecutor:
    def __init__(self, timeout: float = 60.0, interpreter: Optional[str] = None):
        self.timeout = timeout
        self.interpreter = interpreter or sys.executable

    async def run(self, code: str, data: Any) -> PythonRunResult:
        try:
            proc = await asyncio.create_subprocess_exec(
                self.interpreter, "-I", "-c", _PRELUDE + code,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ExecutionError(f"Could not start interpreter {self.interpreter}: {e}") from e

        payload = json.dumps(data, default=str).encode()
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(payload), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning(f"Python analysis timed out after {self.timeout}s")
            return PythonRunResult(success=False, stdout="", stderr=f"Timed out after {self.timeout}s")

        result = PythonRunResult(
            success=proc.returncode == 0,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )
        logger.info(f"Python analysis exited with {proc.returncode}")
        return result
