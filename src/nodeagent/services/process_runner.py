"""Subprocess helpers shared by sandbox execution and local tools.

Processes are started in their own session so that a kill reaches every
descendant, and output streams are read with a hard byte cap.
"""

import asyncio
import contextlib
import os
import signal

READ_CHUNK_BYTES = 64 * 1024


def kill_process_tree(process: asyncio.subprocess.Process) -> None:
    """Kill the process and, on POSIX, its whole process group."""
    with contextlib.suppress(ProcessLookupError):
        if os.name == "posix":
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()


async def read_bounded(
    process: asyncio.subprocess.Process,
    stream: asyncio.StreamReader | None,
    limit: int,
) -> tuple[str, bool]:
    """
    Read a stream up to ``limit`` bytes.

    The process tree is killed as soon as the limit is exceeded.

    Returns:
        Decoded output and whether the limit was exceeded
    """
    if stream is None:
        return "", False
    buffer = bytearray()
    while chunk := await stream.read(READ_CHUNK_BYTES):
        buffer.extend(chunk)
        if len(buffer) > limit:
            kill_process_tree(process)
            del buffer[limit:]
            return buffer.decode("utf-8", errors="replace"), True
    return buffer.decode("utf-8", errors="replace"), False


async def spawn_shell(command: str, **kwargs) -> asyncio.subprocess.Process:
    """Start a shell command with piped output in a new session."""
    return await asyncio.create_subprocess_shell(
        command,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        stdin=asyncio.subprocess.DEVNULL,
        start_new_session=os.name == "posix",
        **kwargs,
    )
