from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Mapping, Protocol

from pctabot.domain import Channel, DeliveryError, NotificationPayload

logger = logging.getLogger(__name__)

DEFAULT_TOPICS: Mapping[Channel, str] = {
    Channel.LOGS: "pcta-logs",
    Channel.ALERTS: "pcta-alerts",
    Channel.ERRORS: "pcta-errors",
}


class Notifier(Protocol):
    async def send(self, payload: NotificationPayload) -> None: ...


class KeybaseNotifier:
    """Posts messages to team topics through `keybase chat api`."""

    def __init__(
        self,
        *,
        team: str,
        topics: Mapping[Channel, str] = DEFAULT_TOPICS,
        binary: str = "keybase",
        timeout_seconds: float = 30.0,
    ) -> None:
        missing = [c.value for c in Channel if c not in topics]
        if missing:
            raise ValueError(f"No keybase topic configured for channel(s): {', '.join(missing)}")
        self.team = team
        self.topics = dict(topics)
        self.binary = binary
        self.timeout_seconds = timeout_seconds

    def build_envelope(self, payload: NotificationPayload) -> dict[str, Any]:
        return {
            "method": "send",
            "params": {
                "options": {
                    "channel": {
                        "name": self.team,
                        "members_type": "team",
                        "topic_name": self.topics[payload.channel],
                    },
                    "message": {
                        "body": payload.body,
                    },
                }
            },
        }

    async def send(self, payload: NotificationPayload) -> None:
        message = json.dumps(self.build_envelope(payload))
        try:
            proc = await asyncio.create_subprocess_exec(
                self.binary,
                "chat",
                "api",
                "-m",
                message,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise DeliveryError(f"Failed to start {self.binary!r}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise DeliveryError(f"{self.binary} chat api did not finish within {self.timeout_seconds:.0f}s") from e

        if proc.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip()
            raise DeliveryError(f"{self.binary} chat api exited with status {proc.returncode}: {detail}")

        # keybase reports API-level errors on stdout with exit status 0.
        try:
            reply = json.loads(stdout or b"{}")
        except json.JSONDecodeError:
            logger.debug("Non-JSON reply from keybase: %r", stdout)
            return
        if isinstance(reply, dict) and reply.get("error"):
            raise DeliveryError(f"Keybase API error: {reply['error']}")
