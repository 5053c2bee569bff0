"""
Base domain model classes for the progress engine.

Purpose
-------
Provide foundational abstractions for rich domain models that encapsulate
business rules, validation, and state transitions.

Responsibilities
----------------
- Define base Entity class with identity and equality semantics
- Define base AggregateRoot class for consistency boundaries
- Provide validation helpers for record invariants
- Track domain events emitted by state transitions

Non-Responsibilities
--------------------
- Persistence (delegated to the data-source collaborator)
- Service orchestration (handled by the service layer)

Design Patterns
---------------
- **Entity**: Objects with identity whose state changes over time
- **Value Object**: frozen dataclasses validated in ``__post_init__``
- **Aggregate Root**: Consistency boundary for domain operations
- **Domain Events**: Communicate state changes to other parts of the system

Usage Example
-------------
>>> class Streak(Entity):
...     def __init__(self, learner_id: str, days: int):
...         super().__init__(learner_id)
...         self.days = days
...
...     def extend(self) -> None:
...         self.days += 1
...         self.add_domain_event("streak.extended", {
...             "learner_id": self.id,
...             "days": self.days,
...         })
"""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Hashable, List, Optional


# ============================================================================
# DOMAIN EVENTS
# ============================================================================


@dataclass
class DomainEvent:
    """
    Represents a domain event that has occurred.

    Attributes
    ----------
    event_name : str
        Event name (e.g., "mission.failed")
    payload : Dict[str, Any]
        Event payload with relevant data
    occurred_at : datetime
        When the event occurred (UTC)
    """

    event_name: str
    payload: Dict[str, Any]
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_name": self.event_name,
            "payload": dict(self.payload),
            "occurred_at": self.occurred_at.isoformat(),
        }


# ============================================================================
# ENTITY
# ============================================================================


class Entity(ABC):
    """
    Base class for entities with identity.

    Entities are defined by their identity, not their attributes. Two
    entities of the same class with the same id are the same entity.

    Subclasses should:
    1. Call super().__init__(entity_id) in the constructor
    2. Define business methods that modify state
    3. Emit domain events for significant state changes
    """

    def __init__(self, entity_id: Hashable) -> None:
        self._id = entity_id
        self._domain_events: List[DomainEvent] = []

    @property
    def id(self) -> Hashable:
        return self._id

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, self.__class__):
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash((self.__class__.__name__, self.id))

    def add_domain_event(self, event_name: str, payload: Dict[str, Any]) -> None:
        """
        Record a domain event to be published by the service layer.

        Examples
        --------
        >>> self.add_domain_event("retry.converted", {"mission_id": self.id})
        """
        self._domain_events.append(DomainEvent(event_name=event_name, payload=payload))

    def clear_domain_events(self) -> List[DomainEvent]:
        """Clear and return all pending domain events."""
        events = self._domain_events.copy()
        self._domain_events.clear()
        return events

    def get_pending_events(self) -> List[DomainEvent]:
        return self._domain_events.copy()


# ============================================================================
# AGGREGATE ROOT
# ============================================================================


class AggregateRoot(Entity):
    """
    Base class for aggregate roots.

    The aggregate root is the single entry point for changes to the values
    it guards; it validates invariants before replacing them and emits
    domain events for every transition.
    """


# ============================================================================
# DOMAIN MODEL VALIDATION
# ============================================================================


class DomainValidationError(Exception):
    """
    Exception raised when a domain record violates one of its invariants.

    Parameters
    ----------
    message : str
        Human-readable error message
    field : Optional[str]
        Field name that failed validation (if applicable)
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


def validate_positive(value: int, field_name: str) -> None:
    if value <= 0:
        raise DomainValidationError(
            f"{field_name} must be positive, got {value}",
            field=field_name,
        )


def validate_non_negative(value: int, field_name: str) -> None:
    if value < 0:
        raise DomainValidationError(
            f"{field_name} must be non-negative, got {value}",
            field=field_name,
        )


def validate_range(value: int, min_val: int, max_val: int, field_name: str) -> None:
    """
    Validate that a value is within an inclusive range.

    Raises
    ------
    DomainValidationError
        If value is outside the range
    """
    if not (min_val <= value <= max_val):
        raise DomainValidationError(
            f"{field_name} must be between {min_val} and {max_val}, got {value}",
            field=field_name,
        )


# ============================================================================
# TIMESTAMPS
# ============================================================================


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 string (or pass through a datetime) as an aware UTC datetime.

    Naive values are assumed to be UTC; a trailing ``Z`` is accepted.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise DomainValidationError(f"invalid timestamp {value!r}") from e
    else:
        raise DomainValidationError(f"invalid timestamp {value!r}")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None
