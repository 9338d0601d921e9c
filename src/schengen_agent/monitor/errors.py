# src/schengen_agent/monitor/errors.py

from __future__ import annotations


class AgentError(Exception):
    """Base class for errors raised by the monitoring core."""


class StoreError(AgentError):
    """Persistence failed; the caller must not apply the failed write to in-memory state."""


class CheckError(AgentError):
    """Remote check failed at the transport or protocol level."""


class TransitionError(AgentError, ValueError):
    """A status change not permitted by the task lifecycle."""
