"""HTTP relay client (register / cancel / timeout webhooks)."""

import time
from datetime import datetime
from typing import Any

import httpx
from loguru import logger

from wakeorpay.errors import EscalationError
from wakeorpay.escalation.base import EscalationGateway


class WebhookEscalationGateway(EscalationGateway):
    """
    Posts JSON to the relay's `/api/register`, `/api/cancel` and `/api/timeout`.

    Times are sent as epoch seconds. Anything but a 200 raises
    EscalationError; there is no retry here, the relay's cron sweep is the
    backstop for a lost timeout call.
    """

    name = "webhook"

    DEFAULT_BASE_URL = "https://wakeorpay-server.vercel.app"

    def __init__(
        self,
        base_url: str | None = None,
        device_id: str = "unknown",
        sms_window_seconds: float = 60,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.device_id = device_id
        self.sms_window_seconds = sms_window_seconds
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def register(self, alarm_id: str, started_at: datetime, contact: str) -> None:
        fire_date = started_at.timestamp()
        await self._post("/api/register", {
            "action": "register",
            "alarmId": alarm_id,
            "fireDate": fire_date,
            "phoneNumber": contact,
            "deviceId": self.device_id,
            "deadline": fire_date + self.sms_window_seconds,
        })

    async def cancel(self, alarm_id: str, started_at: datetime) -> None:
        await self._post("/api/cancel", {
            "action": "success",
            "alarmId": alarm_id,
            "fireDate": started_at.timestamp(),
            "deviceId": self.device_id,
            "timestamp": time.time(),
        })

    async def notify_timeout(self, alarm_id: str, started_at: datetime, contact: str) -> None:
        await self._post("/api/timeout", {
            "action": "timeout",
            "alarmId": alarm_id,
            "fireDate": started_at.timestamp(),
            "phoneNumber": contact,
            "deviceId": self.device_id,
            "timestamp": time.time(),
        })

    async def close(self) -> None:
        await self._client.aclose()

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> None:
        logger.debug(f"Relay POST {self.base_url}{endpoint}: {payload}")
        try:
            response = await self._client.post(endpoint, json=payload)
        except httpx.HTTPError as e:
            raise EscalationError(f"{payload['action']} for alarm {payload['alarmId']} failed: {e}") from e

        if response.status_code != 200:
            raise EscalationError(
                f"{payload['action']} for alarm {payload['alarmId']} rejected: "
                f"HTTP {response.status_code} {response.text[:200]}"
            )
        logger.info(f"Relay accepted {payload['action']} for alarm {payload['alarmId']}")
