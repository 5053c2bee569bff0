"""
Retry-rights ("R2R") domain model.

Purpose
-------
Track, per mission, how many failed attempts a learner has used and whether a
further attempt is currently permitted through a full or provisional
(time-boxed) right to retry.

Responsibilities
----------------
- ``RetryState``: immutable snapshot stored alongside the mission record
- ``RetryRights``: aggregate root that validates and applies transitions,
  emitting a domain event for each
- Read-time evaluation of provisional expiry

Non-Responsibilities
--------------------
- Pricing of grants and conversions (see ``modules.rewards.costs``)
- Persistence (the progress service writes the new state through its
  data source)

State Machine
-------------
::

    initial ──pass──▶ passed
       │
      fail (+1 attempt)
       ▼
    failed_awaiting_retry ──grant_provisional──▶ provisional_active
       │    ▲                                        │
       │    └────────fail (+1, grant consumed)───────┤
       │                                             │ convert
    grant_full                                       ▼
       └──────────────────────────────────────▶ full_active ──pass──▶ passed

Design Notes
------------
- A provisional grant past its expiry is treated as absent even though
  ``has_provisional_r2r`` stays ``True`` in storage. Nothing sweeps it;
  ``effective_state`` reports it as ``failed_awaiting_retry``.
- ``failed_awaiting_retry`` with ``retry_attempts == max_retries`` is a dead
  end: no grant can be issued and ``can_retry`` is permanently false.
- ``passed`` is terminal.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from progress_engine.core.config.config import Config
from progress_engine.domain.models.base import (
    AggregateRoot,
    DomainValidationError,
    format_timestamp,
    parse_timestamp,
    utc_now,
    validate_non_negative,
    validate_positive,
)
from progress_engine.modules.shared.exceptions import (
    InvalidTransitionError,
    RetryExhaustedError,
    ValidationError,
)


class StudyLoopState(str, Enum):
    INITIAL = "initial"
    PROVISIONAL_ACTIVE = "provisional_active"
    FULL_ACTIVE = "full_active"
    PASSED = "passed"
    FAILED_AWAITING_RETRY = "failed_awaiting_retry"


ACTIVE_STATES = frozenset({StudyLoopState.PROVISIONAL_ACTIVE, StudyLoopState.FULL_ACTIVE})


def _default_max_retries() -> int:
    return Config.RETRY_MAX_ATTEMPTS


def provisional_expiry(granted_at: datetime, hours: Optional[int] = None) -> datetime:
    """
    Expiry for a provisional grant issued at ``granted_at``.

    Defaults to ``Config.PROVISIONAL_RETRY_HOURS`` (48h).
    """
    window = hours if hours is not None else Config.PROVISIONAL_RETRY_HOURS
    return granted_at + timedelta(hours=window)


@dataclass(frozen=True)
class RetryState:
    """
    Immutable retry-rights snapshot for one mission.

    Attributes
    ----------
    has_r2r : bool
        A full right to retry is held
    has_provisional_r2r : bool
        A provisional right was granted (may have expired)
    provisional_expires_at : Optional[datetime]
        Expiry of the provisional right (UTC)
    retry_attempts : int
        Failed attempts so far, ``0 <= retry_attempts <= max_retries``
    max_retries : int
        Policy ceiling, defaults to ``Config.RETRY_MAX_ATTEMPTS``
    state : StudyLoopState
        Stored loop state; read it through ``effective_state(now)``
    """

    has_r2r: bool = False
    has_provisional_r2r: bool = False
    provisional_expires_at: Optional[datetime] = None
    retry_attempts: int = 0
    max_retries: int = field(default_factory=_default_max_retries)
    state: StudyLoopState = StudyLoopState.INITIAL

    def __post_init__(self) -> None:
        validate_positive(self.max_retries, "max_retries")
        validate_non_negative(self.retry_attempts, "retry_attempts")
        if self.retry_attempts > self.max_retries:
            raise DomainValidationError(
                f"retry_attempts ({self.retry_attempts}) cannot exceed max_retries ({self.max_retries})",
                field="retry_attempts",
            )
        if self.has_provisional_r2r and self.provisional_expires_at is None:
            raise DomainValidationError(
                "a provisional grant requires provisional_expires_at",
                field="provisional_expires_at",
            )
        object.__setattr__(self, "state", StudyLoopState(self.state))

    # ------------------------------------------------------------------
    # Read-time properties
    # ------------------------------------------------------------------

    def provisional_active(self, now: datetime) -> bool:
        return (
            self.has_provisional_r2r
            and self.provisional_expires_at is not None
            and now < self.provisional_expires_at
        )

    def can_retry(self, now: datetime) -> bool:
        """``retry_attempts < max_retries`` and a full or unexpired provisional right is held."""
        return self.retry_attempts < self.max_retries and (
            self.has_r2r or self.provisional_active(now)
        )

    def effective_state(self, now: datetime) -> StudyLoopState:
        if self.state is StudyLoopState.PROVISIONAL_ACTIVE and not self.provisional_active(now):
            return StudyLoopState.FAILED_AWAITING_RETRY
        return self.state

    def is_dead_end(self, now: datetime) -> bool:
        return (
            self.effective_state(now) is StudyLoopState.FAILED_AWAITING_RETRY
            and self.retry_attempts >= self.max_retries
        )

    def is_provisional_expired(self, now: datetime) -> bool:
        return self.has_provisional_r2r and not self.provisional_active(now)

    @property
    def retries_remaining(self) -> int:
        return self.max_retries - self.retry_attempts

    @property
    def is_passed(self) -> bool:
        return self.state is StudyLoopState.PASSED

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_r2r": self.has_r2r,
            "has_provisional_r2r": self.has_provisional_r2r,
            "provisional_expires_at": format_timestamp(self.provisional_expires_at),
            "retry_attempts": self.retry_attempts,
            "max_retries": self.max_retries,
            "state": self.state.value,
        }

    def to_view(self, now: datetime) -> Dict[str, Any]:
        """Stored fields plus the read-time properties the UI gates retry buttons on."""
        return {
            **self.to_dict(),
            "effective_state": self.effective_state(now).value,
            "can_retry": self.can_retry(now),
            "is_dead_end": self.is_dead_end(now),
            "retries_remaining": self.retries_remaining,
        }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "RetryState":
        """
        Build a state from a stored record.

        Records without a ``state`` field infer it from the grant flags and the
        attempt count.
        """
        if not data:
            return cls()

        has_r2r = bool(data.get("has_r2r", False))
        has_provisional = bool(data.get("has_provisional_r2r", False))
        attempts = int(data.get("retry_attempts", 0))
        raw_state = data.get("state")
        if raw_state:
            state = StudyLoopState(raw_state)
        elif has_r2r:
            state = StudyLoopState.FULL_ACTIVE
        elif has_provisional:
            state = StudyLoopState.PROVISIONAL_ACTIVE
        elif attempts > 0:
            state = StudyLoopState.FAILED_AWAITING_RETRY
        else:
            state = StudyLoopState.INITIAL

        max_retries = data.get("max_retries")
        return cls(
            has_r2r=has_r2r,
            has_provisional_r2r=has_provisional,
            provisional_expires_at=parse_timestamp(data.get("provisional_expires_at")),
            retry_attempts=attempts,
            max_retries=int(max_retries) if max_retries is not None else _default_max_retries(),
            state=state,
        )


class RetryRights(AggregateRoot):
    """
    Aggregate root guarding one mission's ``RetryState``.

    Every transition validates against the *effective* state at ``now``,
    replaces the held state and records a domain event. Failed validations
    leave the state untouched.

    Example
    -------
    >>> rights = RetryRights("S1M3")
    >>> rights.record_attempt(passed=False).state
    <StudyLoopState.FAILED_AWAITING_RETRY: 'failed_awaiting_retry'>
    >>> rights.grant_full().state
    <StudyLoopState.FULL_ACTIVE: 'full_active'>
    """

    def __init__(self, mission_id: str, state: Optional[RetryState] = None) -> None:
        super().__init__(mission_id)
        self._state = state if state is not None else RetryState()

    @property
    def mission_id(self) -> str:
        return str(self.id)

    @property
    def state(self) -> RetryState:
        return self._state

    def can_retry(self, now: Optional[datetime] = None) -> bool:
        return self._state.can_retry(now or utc_now())

    def effective_state(self, now: Optional[datetime] = None) -> StudyLoopState:
        return self._state.effective_state(now or utc_now())

    def ensure_can_work(self, now: Optional[datetime] = None) -> None:
        """
        Gate for bite work on this mission.

        Raises ``RetryExhaustedError`` while the mission sits in a failed
        attempt with no usable retry right.
        """
        now = now or utc_now()
        if self._state.effective_state(now) is StudyLoopState.FAILED_AWAITING_RETRY:
            raise self._exhausted(now)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def record_attempt(self, passed: bool, now: Optional[datetime] = None) -> RetryState:
        """
        Record the outcome of a mission attempt.

        Raises
        ------
        InvalidTransitionError
            If the mission already passed.
        RetryExhaustedError
            If the learner is awaiting a retry right, or holds one that
            cannot be used.
        """
        now = now or utc_now()
        current = self._state
        effective = current.effective_state(now)

        if effective is StudyLoopState.PASSED:
            raise InvalidTransitionError("record_attempt", effective.value, "mission already passed")

        if effective is StudyLoopState.FAILED_AWAITING_RETRY:
            raise self._exhausted(now)

        if effective in ACTIVE_STATES and not current.can_retry(now):
            raise self._exhausted(now)

        if not passed and current.retry_attempts >= current.max_retries:
            raise self._exhausted(now)

        if passed:
            new_state = replace(
                current,
                has_r2r=False,
                has_provisional_r2r=False,
                provisional_expires_at=None,
                state=StudyLoopState.PASSED,
            )
            self._apply(new_state, "mission.passed", {"retry_attempts": new_state.retry_attempts})
        else:
            new_state = replace(
                current,
                has_r2r=False,
                has_provisional_r2r=False,
                provisional_expires_at=None,
                retry_attempts=current.retry_attempts + 1,
                state=StudyLoopState.FAILED_AWAITING_RETRY,
            )
            self._apply(
                new_state,
                "mission.failed",
                {
                    "retry_attempts": new_state.retry_attempts,
                    "retries_remaining": new_state.retries_remaining,
                    "dead_end": new_state.is_dead_end(now),
                },
            )
        return new_state

    def grant_provisional(
        self, expires_at: Optional[datetime] = None, now: Optional[datetime] = None
    ) -> RetryState:
        """
        Issue a time-boxed right to retry.

        ``expires_at`` defaults to ``now + Config.PROVISIONAL_RETRY_HOURS``.
        """
        now = now or utc_now()
        self._require_awaiting_grant("grant_provisional", now)
        expires_at = expires_at or provisional_expiry(now)
        if expires_at <= now:
            raise ValidationError("provisional_expires_at", "must be in the future")

        new_state = replace(
            self._state,
            has_r2r=False,
            has_provisional_r2r=True,
            provisional_expires_at=expires_at,
            state=StudyLoopState.PROVISIONAL_ACTIVE,
        )
        self._apply(new_state, "retry.provisional_granted", {"expires_at": expires_at.isoformat()})
        return new_state

    def grant_full(self, now: Optional[datetime] = None) -> RetryState:
        now = now or utc_now()
        self._require_awaiting_grant("grant_full", now)
        new_state = replace(
            self._state,
            has_r2r=True,
            has_provisional_r2r=False,
            provisional_expires_at=None,
            state=StudyLoopState.FULL_ACTIVE,
        )
        self._apply(new_state, "retry.full_granted", {"retries_remaining": new_state.retries_remaining})
        return new_state

    def convert_provisional(self, now: Optional[datetime] = None) -> RetryState:
        """Turn an unexpired provisional right into a full one."""
        now = now or utc_now()
        current = self._state
        effective = current.effective_state(now)
        if effective is not StudyLoopState.PROVISIONAL_ACTIVE:
            reason = "provisional retry expired" if current.is_provisional_expired(now) else None
            raise InvalidTransitionError("convert_provisional", effective.value, reason)

        new_state = replace(
            current,
            has_r2r=True,
            has_provisional_r2r=False,
            provisional_expires_at=None,
            state=StudyLoopState.FULL_ACTIVE,
        )
        self._apply(new_state, "retry.converted", {"retries_remaining": new_state.retries_remaining})
        return new_state

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_awaiting_grant(self, action: str, now: datetime) -> None:
        current = self._state
        effective = current.effective_state(now)
        if effective is not StudyLoopState.FAILED_AWAITING_RETRY:
            raise InvalidTransitionError(action, effective.value, "no failed attempt awaiting a retry")
        if current.retry_attempts >= current.max_retries:
            raise RetryExhaustedError(
                self.mission_id,
                current.retry_attempts,
                current.max_retries,
                reason="retry limit reached",
            )

    def _exhausted(self, now: datetime) -> RetryExhaustedError:
        current = self._state
        if current.retry_attempts >= current.max_retries:
            reason = "retry limit reached"
        elif current.is_provisional_expired(now):
            reason = "provisional retry expired"
        else:
            reason = "no active retry right"
        return RetryExhaustedError(
            self.mission_id, current.retry_attempts, current.max_retries, reason=reason
        )

    def _apply(self, new_state: RetryState, event_name: str, payload: Dict[str, Any]) -> None:
        previous = self._state
        self._state = new_state
        self.add_domain_event(
            event_name,
            {
                "mission_id": self.mission_id,
                "from_state": previous.state.value,
                "to_state": new_state.state.value,
                **payload,
            },
        )
