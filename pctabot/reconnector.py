from __future__ import annotations

import asyncio
import logging
from typing import Protocol, Sequence

from pctabot.domain import RemediationError

logger = logging.getLogger(__name__)


class Reconnector(Protocol):
    async def reconnect(self) -> None: ...


class CommandReconnector:
    """Forces a new VPN identity by running an external command (e.g. `mullvad reconnect`)."""

    def __init__(self, command: Sequence[str] = ("mullvad", "reconnect"), *, timeout_seconds: float = 60.0) -> None:
        if not command:
            raise ValueError("Reconnect command must not be empty")
        self.command = tuple(command)
        self.timeout_seconds = timeout_seconds

    async def reconnect(self) -> None:
        cmd = " ".join(self.command)
        logger.info("Reconnecting VPN: %s", cmd)
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise RemediationError(f"Failed to start {cmd!r}: {e}") from e

        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise RemediationError(f"{cmd!r} did not finish within {self.timeout_seconds:.0f}s") from e

        if proc.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()
            raise RemediationError(f"{cmd!r} exited with status {proc.returncode}: {detail}")
