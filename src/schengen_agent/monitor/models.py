# src/schengen_agent/monitor/models.py

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, fields
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class TaskStatus(StrEnum):
    """
    Monitoring task lifecycle status.

    Only RUNNING tasks are ever dispatched by the scheduler.
    COMPLETED is terminal.
    """

    READY = "ready"
    RUNNING = "running"
    PAUSED = "paused"
    ACTION_REQUIRED = "action_required"
    COMPLETED = "completed"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.READY
        try:
            return cls(raw)
        except ValueError:
            return cls.READY


class GlobalStatus(StrEnum):
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


class Portal(StrEnum):
    IDATA = "idata"
    VFS = "vfs"


class Channel(StrEnum):
    VISUAL = "visual"
    DESKTOP = "desktop"
    SOUND = "sound"


@dataclass(slots=True)
class Task:
    """One monitored person."""

    id: int | None
    account_id: int | None

    full_name: str
    passport_no: str = ""
    birth_date: str = ""
    country: str = ""
    city: str = ""
    center: str = ""
    earliest_date: str = ""
    latest_date: str = ""

    status: TaskStatus = TaskStatus.READY
    booked_date: str | None = None
    appointment_details: str | None = None
    last_reminder: str | None = None

    def label(self) -> str:
        return f"#{self.id} {self.full_name}" if self.id is not None else self.full_name

    def to_payload(self) -> dict[str, Any]:
        """Wire representation expected by the check backend (camelCase)."""
        return {
            "id": self.id,
            "accountId": self.account_id,
            "fullName": self.full_name,
            "passportNo": self.passport_no,
            "birthDate": self.birth_date,
            "country": self.country,
            "city": self.city,
            "center": self.center,
            "earliestDate": self.earliest_date,
            "latestDate": self.latest_date,
            "taskStatus": self.status.value,
            "bookedDate": self.booked_date,
            "appointmentDetails": self.appointment_details,
            "lastReminder": self.last_reminder,
        }


@dataclass(slots=True)
class Account:
    id: int | None
    portal: Portal
    username: str
    password: str = ""

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "portal": self.portal.value,
            "username": self.username,
            "password": self.password,
        }


@dataclass(slots=True, frozen=True)
class HistoryEntry:
    task_id: int
    old_status: TaskStatus
    new_status: TaskStatus
    details: str
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    id: int | None = None


@dataclass(slots=True, frozen=True)
class CheckResult:
    available: bool
    log: str = ""
    found_date: str | None = None
    appointment_details: str | None = None

    @classmethod
    def from_payload(cls, data: Any) -> CheckResult:
        """
        Parse a backend response body.

        Raises ValueError when the body is not an object with a boolean `available`.
        """
        if not isinstance(data, dict):
            raise ValueError("response body is not a JSON object")
        available = data.get("available")
        if not isinstance(available, bool):
            raise ValueError("response has no boolean 'available'")

        def _opt(key: str) -> str | None:
            val = data.get(key)
            return None if val is None else str(val)

        return cls(
            available=available,
            log=str(data.get("log") or ""),
            found_date=_opt("foundDate"),
            appointment_details=_opt("appointmentDetails"),
        )


@dataclass(slots=True, frozen=True)
class HealthStatus:
    ok: bool
    message: str


@dataclass(slots=True, frozen=True)
class Notification:
    title: str
    body: str
    level: str = "info"
    channels: frozenset[Channel] = frozenset({Channel.VISUAL})


def _as_float(raw: Any, default: float) -> float:
    try:
        val = float(raw)
    except (TypeError, ValueError):
        return default
    return default if math.isnan(val) else val


def _as_bool(raw: Any, default: bool) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        return raw.strip().lower() in {"1", "true", "yes", "y", "on"}
    if raw is None:
        return default
    return bool(raw)


@dataclass(slots=True)
class AgentSettings:
    """
    User-adjustable agent settings.

    Persisted as key/value rows in the store; `status` is runtime-only.
    """

    api_url: str = "http://localhost:3000"
    poll_interval: float = 120.0
    poll_jitter: float = 30.0
    desktop_notify: bool = False
    sound_notify: bool = True

    status: GlobalStatus = GlobalStatus.STOPPED

    @classmethod
    def persisted_keys(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls) if f.name != "status")

    @classmethod
    def from_mapping(cls, raw: dict[str, Any], *, base: AgentSettings | None = None) -> AgentSettings:
        """Merge stored values over `base` (or the defaults). Unknown keys are ignored."""
        out = cls() if base is None else cls(**asdict(base))

        if "api_url" in raw and raw["api_url"]:
            out.api_url = str(raw["api_url"]).strip().rstrip("/")
        if "poll_interval" in raw:
            out.poll_interval = _as_float(raw["poll_interval"], out.poll_interval)
        if "poll_jitter" in raw:
            out.poll_jitter = _as_float(raw["poll_jitter"], out.poll_jitter)
        if "desktop_notify" in raw:
            out.desktop_notify = _as_bool(raw["desktop_notify"], out.desktop_notify)
        if "sound_notify" in raw:
            out.sound_notify = _as_bool(raw["sound_notify"], out.sound_notify)
        return out

    def to_mapping(self) -> dict[str, Any]:
        return {k: getattr(self, k) for k in self.persisted_keys()}
