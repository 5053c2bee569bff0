"""
Progress records: Bite, Mission, Stage and Adventure.

Purpose
-------
Immutable snapshots of a learner's position in the curriculum, as handed to
the engine by a data source. Bite completion flags are the only source of
truth; everything above the bite is a container.

Responsibilities
----------------
- Validate record invariants (ids, counts, bite ownership)
- Normalize containers to their fixed size (5 bites per mission, 5 missions
  per stage, the adventure's stage range) by filling in fresh children
- Convert to and from plain mappings with ISO-8601 timestamps
- Derived value objects: ``ProgressStatus``, ``UnitCount``, ``ProgressSnapshot``

Non-Responsibilities
--------------------
- Lock derivation and roll-ups (see ``modules.progress.aggregator``)
- Persistence

Design Notes
------------
- Records are frozen dataclasses. ``with_*`` helpers return modified copies.
- ``is_locked`` on a stored record is advisory; the aggregator derives locks
  along the mission chain when it has the full curriculum.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from progress_engine.domain.models.base import (
    DomainValidationError,
    format_timestamp,
    parse_timestamp,
    validate_non_negative,
    validate_range,
)
from progress_engine.domain.models.curriculum import (
    ADVENTURE_COUNT,
    ADVENTURES,
    AdventureInfo,
    BITES_PER_MISSION,
    MISSIONS_PER_STAGE,
    STAGE_COUNT,
    adventure_for_stage,
    bite_id,
    mission_id,
    parse_bite_id,
    parse_mission_id,
)
from progress_engine.domain.models.retry import RetryState
from progress_engine.modules.shared.formulas import calculate_percentage

# ============================================================================
# DERIVED VALUE OBJECTS
# ============================================================================


class ProgressStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    LOCKED = "locked"


@dataclass(frozen=True)
class UnitCount:
    """
    Completion counter for one kind of unit (bites, missions, ...).

    Example
    -------
    >>> UnitCount(completed=3, total=8).percentage
    38
    """

    completed: int
    total: int

    def __post_init__(self) -> None:
        validate_non_negative(self.completed, "completed")
        validate_non_negative(self.total, "total")
        if self.completed > self.total:
            raise DomainValidationError(
                f"completed ({self.completed}) cannot exceed total ({self.total})",
                field="completed",
            )

    @property
    def remaining(self) -> int:
        return self.total - self.completed

    @property
    def percentage(self) -> int:
        return calculate_percentage(self.completed, self.total)

    def __add__(self, other: "UnitCount") -> "UnitCount":
        return UnitCount(self.completed + other.completed, self.total + other.total)

    def to_dict(self) -> Dict[str, int]:
        return {
            "completed": self.completed,
            "total": self.total,
            "remaining": self.remaining,
            "percentage": self.percentage,
        }


@dataclass(frozen=True)
class ProgressSnapshot:
    """
    Level-agnostic summary of one node, counted in bites.

    Attributes
    ----------
    level : str
        "bite", "mission", "stage", "adventure" or "overall"
    identifier : str
        Node id ("S3M2", "3", ...)
    completed_count, total_count : int
        Completed and total bites under the node
    percentage : int
        0..100, rounded half-up
    status : ProgressStatus
    """

    level: str
    identifier: str
    completed_count: int
    total_count: int
    percentage: int
    status: ProgressStatus

    @classmethod
    def from_counts(
        cls, level: str, identifier: str, bites: UnitCount, status: ProgressStatus
    ) -> "ProgressSnapshot":
        return cls(
            level=level,
            identifier=identifier,
            completed_count=bites.completed,
            total_count=bites.total,
            percentage=bites.percentage,
            status=status,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "identifier": self.identifier,
            "completed_count": self.completed_count,
            "total_count": self.total_count,
            "percentage": self.percentage,
            "status": self.status.value,
        }


# ============================================================================
# BITE
# ============================================================================


@dataclass(frozen=True)
class Bite:
    """
    Atomic task record.

    Attributes
    ----------
    bite_id : str
        ``"S{stage}M{mission}B{bite}"``
    is_completed : bool
        Source of truth for all roll-ups; never reset once set
    checkpoint_passed : bool
        The bite's single checkpoint was passed
    attempts : int
        Submissions so far (>= 0)
    started_at, completed_at : Optional[datetime]
        UTC timestamps
    is_paused : bool
        Work was paused with a local draft
    """

    bite_id: str
    is_completed: bool = False
    checkpoint_passed: bool = False
    attempts: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    is_paused: bool = False

    def __post_init__(self) -> None:
        parse_bite_id(self.bite_id)
        validate_non_negative(self.attempts, "attempts")

    @property
    def mission_id(self) -> str:
        stage_number, mission_number, _ = parse_bite_id(self.bite_id)
        return mission_id(stage_number, mission_number)

    @property
    def bite_number(self) -> int:
        return parse_bite_id(self.bite_id)[2]

    @property
    def has_started(self) -> bool:
        return self.is_completed or self.started_at is not None or self.attempts > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bite_id": self.bite_id,
            "mission_id": self.mission_id,
            "is_completed": self.is_completed,
            "checkpoint_passed": self.checkpoint_passed,
            "attempts": self.attempts,
            "started_at": format_timestamp(self.started_at),
            "completed_at": format_timestamp(self.completed_at),
            "is_paused": self.is_paused,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Bite":
        return cls(
            bite_id=data["bite_id"],
            is_completed=bool(data.get("is_completed", False)),
            checkpoint_passed=bool(data.get("checkpoint_passed", False)),
            attempts=int(data.get("attempts", 0)),
            started_at=parse_timestamp(data.get("started_at")),
            completed_at=parse_timestamp(data.get("completed_at")),
            is_paused=bool(data.get("is_paused", False)),
        )


# ============================================================================
# MISSION
# ============================================================================


@dataclass(frozen=True)
class Mission:
    """
    Group of exactly five bites plus the mission's retry rights.

    Missing bites are filled in as fresh bites; bites belonging to another
    mission or duplicated bite numbers are rejected.
    """

    stage_number: int
    mission_number: int
    bites: Tuple[Bite, ...] = ()
    is_locked: bool = False
    retry: RetryState = field(default_factory=RetryState)

    def __post_init__(self) -> None:
        validate_range(self.stage_number, 1, STAGE_COUNT, "stage_number")
        validate_range(self.mission_number, 1, MISSIONS_PER_STAGE, "mission_number")

        own_id = self.mission_id
        by_number: Dict[int, Bite] = {}
        for bite in self.bites:
            if bite.mission_id != own_id:
                raise DomainValidationError(
                    f"bite {bite.bite_id} does not belong to mission {own_id}", field="bites"
                )
            if bite.bite_number in by_number:
                raise DomainValidationError(f"duplicate bite {bite.bite_id}", field="bites")
            by_number[bite.bite_number] = bite

        filled = tuple(
            by_number.get(n) or Bite(bite_id(self.stage_number, self.mission_number, n))
            for n in range(1, BITES_PER_MISSION + 1)
        )
        object.__setattr__(self, "bites", filled)

    @classmethod
    def empty(cls, identifier: str) -> "Mission":
        stage_number, mission_number = parse_mission_id(identifier)
        return cls(stage_number, mission_number)

    @property
    def mission_id(self) -> str:
        return mission_id(self.stage_number, self.mission_number)

    @property
    def adventure_number(self) -> int:
        return adventure_for_stage(self.stage_number)

    @property
    def completed_bites(self) -> int:
        return sum(1 for b in self.bites if b.is_completed)

    @property
    def passed_checkpoints(self) -> int:
        return sum(1 for b in self.bites if b.checkpoint_passed)

    @property
    def is_complete(self) -> bool:
        return self.completed_bites == BITES_PER_MISSION

    @property
    def has_started(self) -> bool:
        return any(b.has_started for b in self.bites)

    def bite(self, bite_number: int) -> Bite:
        validate_range(bite_number, 1, BITES_PER_MISSION, "bite_number")
        return self.bites[bite_number - 1]

    def with_bite(self, bite: Bite) -> "Mission":
        if bite.mission_id != self.mission_id:
            raise DomainValidationError(
                f"bite {bite.bite_id} does not belong to mission {self.mission_id}", field="bites"
            )
        bites = tuple(bite if b.bite_number == bite.bite_number else b for b in self.bites)
        return replace(self, bites=bites)

    def with_retry(self, retry: RetryState) -> "Mission":
        return replace(self, retry=retry)

    def with_lock(self, is_locked: bool) -> "Mission":
        return replace(self, is_locked=is_locked)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mission_id": self.mission_id,
            "stage_number": self.stage_number,
            "mission_number": self.mission_number,
            "is_locked": self.is_locked,
            "bites": [b.to_dict() for b in self.bites],
            "retry": self.retry.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Mission":
        if "stage_number" in data and "mission_number" in data:
            stage_number, mission_number = int(data["stage_number"]), int(data["mission_number"])
        else:
            stage_number, mission_number = parse_mission_id(data["mission_id"])
        return cls(
            stage_number=stage_number,
            mission_number=mission_number,
            bites=tuple(Bite.from_dict(b) for b in data.get("bites") or ()),
            is_locked=bool(data.get("is_locked", False)),
            retry=RetryState.from_dict(data.get("retry")),
        )


# ============================================================================
# STAGE
# ============================================================================


@dataclass(frozen=True)
class Stage:
    """Group of exactly five missions."""

    stage_number: int
    missions: Tuple[Mission, ...] = ()
    is_locked: bool = False

    def __post_init__(self) -> None:
        validate_range(self.stage_number, 1, STAGE_COUNT, "stage_number")

        by_number: Dict[int, Mission] = {}
        for mission in self.missions:
            if mission.stage_number != self.stage_number:
                raise DomainValidationError(
                    f"mission {mission.mission_id} does not belong to stage {self.stage_number}",
                    field="missions",
                )
            if mission.mission_number in by_number:
                raise DomainValidationError(f"duplicate mission {mission.mission_id}", field="missions")
            by_number[mission.mission_number] = mission

        filled = tuple(
            by_number.get(n) or Mission(self.stage_number, n)
            for n in range(1, MISSIONS_PER_STAGE + 1)
        )
        object.__setattr__(self, "missions", filled)

    @property
    def adventure_number(self) -> int:
        return adventure_for_stage(self.stage_number)

    @property
    def is_complete(self) -> bool:
        return all(m.is_complete for m in self.missions)

    def mission(self, mission_number: int) -> Mission:
        validate_range(mission_number, 1, MISSIONS_PER_STAGE, "mission_number")
        return self.missions[mission_number - 1]

    def with_mission(self, mission: Mission) -> "Stage":
        if mission.stage_number != self.stage_number:
            raise DomainValidationError(
                f"mission {mission.mission_id} does not belong to stage {self.stage_number}",
                field="missions",
            )
        missions = tuple(
            mission if m.mission_number == mission.mission_number else m for m in self.missions
        )
        return replace(self, missions=missions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage_number": self.stage_number,
            "adventure_number": self.adventure_number,
            "is_locked": self.is_locked,
            "missions": [m.to_dict() for m in self.missions],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Stage":
        return cls(
            stage_number=int(data["stage_number"]),
            missions=tuple(Mission.from_dict(m) for m in data.get("missions") or ()),
            is_locked=bool(data.get("is_locked", False)),
        )


# ============================================================================
# ADVENTURE
# ============================================================================


@dataclass(frozen=True)
class Adventure:
    """
    Named phase holding the stages of its fixed range.

    Display metadata comes from the curriculum table via ``info``.
    """

    adventure_number: int
    stages: Tuple[Stage, ...] = ()

    def __post_init__(self) -> None:
        validate_range(self.adventure_number, 0, ADVENTURE_COUNT - 1, "adventure_number")
        stage_range = ADVENTURES[self.adventure_number].stages

        by_number: Dict[int, Stage] = {}
        for stage in self.stages:
            if stage.stage_number not in stage_range:
                raise DomainValidationError(
                    f"stage {stage.stage_number} does not belong to adventure {self.adventure_number}",
                    field="stages",
                )
            if stage.stage_number in by_number:
                raise DomainValidationError(f"duplicate stage {stage.stage_number}", field="stages")
            by_number[stage.stage_number] = stage

        filled = tuple(by_number.get(n) or Stage(n) for n in stage_range)
        object.__setattr__(self, "stages", filled)

    @property
    def info(self) -> AdventureInfo:
        return ADVENTURES[self.adventure_number]

    @property
    def name(self) -> str:
        return self.info.name

    @property
    def is_complete(self) -> bool:
        return all(s.is_complete for s in self.stages)

    def iter_missions(self) -> Iterable[Mission]:
        for stage in self.stages:
            yield from stage.missions

    def to_dict(self) -> Dict[str, Any]:
        return {
            "adventure_number": self.adventure_number,
            "name": self.name,
            "stages": [s.to_dict() for s in self.stages],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Adventure":
        return cls(
            adventure_number=int(data["adventure_number"]),
            stages=tuple(Stage.from_dict(s) for s in data.get("stages") or ()),
        )


# ============================================================================
# BUILDERS
# ============================================================================


def build_curriculum(missions: Iterable[Mission] = ()) -> Tuple[Adventure, ...]:
    """
    Assemble all eight adventures from a flat collection of missions.

    Missions not supplied are filled in fresh; duplicates are rejected by the
    stage containers.

    Example
    -------
    >>> adventures = build_curriculum()
    >>> len(adventures), sum(len(a.stages) for a in adventures)
    (8, 35)
    """
    per_stage: Dict[int, List[Mission]] = {}
    for mission in missions:
        per_stage.setdefault(mission.stage_number, []).append(mission)

    return tuple(
        Adventure(
            info.number,
            tuple(Stage(n, tuple(per_stage.get(n, ()))) for n in info.stages),
        )
        for info in ADVENTURES
    )
