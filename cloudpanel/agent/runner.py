"""
Cloud Console Agent - Command Runner

Runs host utilities as subprocesses and captures their text output.
"""

import asyncio
import os
import signal
import time
from typing import Dict, List, Optional

import structlog

logger = structlog.get_logger(__name__)

TIMEOUT_EXIT_CODE = 124


class CommandError(Exception):
    """A host command could not be run or exited non-zero."""

    def __init__(self, cmd: str, returncode: int, stderr: str):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"{cmd!r} exited with {returncode}: {stderr.strip()}")


def _kill_group(process: asyncio.subprocess.Process) -> None:
    # Children spawned by the shell share its process group and hold the pipes open.
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass


async def _communicate(process: asyncio.subprocess.Process, timeout: Optional[float]) -> Dict:
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        _kill_group(process)
        await process.wait()
        return {
            "returncode": TIMEOUT_EXIT_CODE,
            "stdout": "",
            "stderr": f"Command timed out after {timeout:g}s",
            "timed_out": True,
        }

    return {
        "returncode": process.returncode,
        "stdout": stdout.decode("utf-8", errors="replace"),
        "stderr": stderr.decode("utf-8", errors="replace"),
        "timed_out": False,
    }


async def run_command(cmd: List[str], timeout: Optional[float] = 10.0) -> Dict:
    """Run an argv command without a shell."""
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True
        )
    except (FileNotFoundError, PermissionError) as e:
        return {"returncode": 127, "stdout": "", "stderr": str(e), "timed_out": False}

    return await _communicate(process, timeout)


async def run_shell(command: str, timeout: Optional[float] = 30.0) -> Dict:
    """Run a command line through /bin/sh and time it."""
    start = time.monotonic()
    process = await asyncio.create_subprocess_shell(
        command,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        start_new_session=True
    )
    result = await _communicate(process, timeout)
    result["duration_ms"] = int((time.monotonic() - start) * 1000)
    return result


async def check_output(cmd: List[str], timeout: Optional[float] = 10.0) -> str:
    """Run a command and return stdout, raising CommandError on failure."""
    result = await run_command(cmd, timeout)
    if result["returncode"] != 0:
        raise CommandError(" ".join(cmd), result["returncode"], result["stderr"])
    return result["stdout"]
