# src/schengen_agent/monitor/checker.py

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import httpx

from .errors import CheckError
from .models import Account, AgentSettings, CheckResult, HealthStatus, Task

logger = logging.getLogger(__name__)


def _make_timeout(connect_s: float, read_s: float) -> httpx.Timeout:
    return httpx.Timeout(connect=connect_s, read=read_s, write=10.0, pool=connect_s)


class HttpAppointmentChecker:
    """
    Client for the appointment-check backend.

    Endpoints:
    - POST {api_url}/check-appointment  body: {"person": ..., "account": ...}
    - GET  {api_url}/status             liveness probe

    The base URL is taken from `settings_provider()` on every request, so a
    settings change applies to the next call without rebuilding the client.
    """

    def __init__(
        self,
        settings_provider: Callable[[], AgentSettings],
        *,
        timeout_seconds: float = 30.0,
        connect_timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings_provider = settings_provider
        self._client = httpx.AsyncClient(
            timeout=_make_timeout(connect_timeout_seconds, timeout_seconds),
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _url(self, path: str) -> str:
        base = (self._settings_provider().api_url or "").rstrip("/")
        return f"{base}{path}"

    async def check(self, task: Task, account: Account) -> CheckResult:
        payload = {"person": task.to_payload(), "account": account.to_payload()}
        try:
            response = await self._client.post(self._url("/check-appointment"), json=payload)
        except httpx.HTTPError as e:
            raise CheckError(f"request failed: {e!r}") from e

        body: Any
        try:
            body = response.json()
        except ValueError:
            body = None

        if not response.is_success:
            detail = body.get("log") if isinstance(body, dict) else None
            raise CheckError(detail or f"backend responded with status {response.status_code}")

        try:
            return CheckResult.from_payload(body)
        except ValueError as e:
            raise CheckError(f"malformed backend response: {e}") from e

    async def health(self) -> HealthStatus:
        try:
            response = await self._client.get(self._url("/status"))
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.debug("Health probe failed: %r", e)
            return HealthStatus(
                ok=False,
                message="Backend unreachable. Make sure the backend server is running.",
            )

        message = body.get("message") if isinstance(body, dict) else None
        return HealthStatus(ok=True, message=str(message or "OK"))
