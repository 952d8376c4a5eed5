"""
Registry of helper processes started on behalf of transcription.

The registry is created at the host boundary, handed to the Orchestrator and
to any backend that needs to start helpers, and terminated from the host's
shutdown hook:
    1. spawn(...) / register(process) - Track a running helper
    2. unregister(process) - Forget a helper that exited on its own
    3. terminate_all() - Stop everything still running (on quit)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class Terminable(Protocol):
    """Common surface of subprocess.Popen and asyncio.subprocess.Process."""

    pid: int

    @property
    def returncode(self) -> int | None: ...

    def terminate(self) -> None: ...


class ProcessRegistry:
    """Tracks helper processes so the host can stop them on shutdown."""

    def __init__(self) -> None:
        self._processes: list[Terminable] = []

    def __len__(self) -> int:
        return len(self._processes)

    def __contains__(self, process: object) -> bool:
        return process in self._processes

    @property
    def processes(self) -> tuple[Terminable, ...]:
        return tuple(self._processes)

    def register(self, process: Terminable) -> None:
        """Track a process. Registering the same process twice is a no-op."""
        if process not in self._processes:
            self._processes.append(process)

    def unregister(self, process: Terminable) -> None:
        """Stop tracking a process."""
        if process in self._processes:
            self._processes.remove(process)

    async def spawn(self, program: str, *args: str, **kwargs) -> asyncio.subprocess.Process:
        """Start a helper with asyncio and register it."""
        process = await asyncio.create_subprocess_exec(program, *args, **kwargs)
        self.register(process)
        logger.debug("Started helper %s (pid %s)", program, process.pid)
        return process

    def terminate_all(self) -> int:
        """Terminate every tracked process still running. Returns how many were signalled."""
        signalled = 0
        for process in self._processes:
            if process.returncode is not None:
                continue
            try:
                process.terminate()
            except ProcessLookupError:
                continue
            signalled += 1
            logger.debug("Terminated helper pid %s", process.pid)
        self._processes.clear()
        return signalled
