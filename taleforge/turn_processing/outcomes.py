from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel

from taleforge.core.events import Event


class EventRejected(ValueError):
    """Structural conflict; the same event will never succeed on retry."""


class EventDeferred(ValueError):
    """Unresolved condition; the caller may resubmit after clarification."""


class OutcomeStatus(StrEnum):
    applied = "applied"
    rejected = "rejected"
    deferred = "deferred"


class EventOutcome(BaseModel):
    status: OutcomeStatus
    reason: str | None = None

    @classmethod
    def applied(cls) -> "EventOutcome":
        return cls(status=OutcomeStatus.applied)

    @classmethod
    def rejected(cls, reason: str) -> "EventOutcome":
        return cls(status=OutcomeStatus.rejected, reason=reason)

    @classmethod
    def deferred(cls, reason: str) -> "EventOutcome":
        return cls(status=OutcomeStatus.deferred, reason=reason)

    @property
    def is_applied(self) -> bool:
        return self.status == OutcomeStatus.applied


@dataclass(frozen=True, slots=True)
class EventApplication:
    """An event paired with what happened to it (audit trail entry)."""

    event: Event
    outcome: EventOutcome
