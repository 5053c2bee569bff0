"""
Progress Aggregator

Purpose
-------
Compute completion state at each of the four curriculum levels strictly from
the level below, derive lock status along the linear unlock chain, and find
the learner's current position.

Responsibilities
----------------
- ``bite_progress`` / ``mission_progress`` / ``stage_progress`` /
  ``adventure_progress`` / ``overall_progress`` roll-ups
- Lock derivation: a mission is locked unless it is S1M1 or its predecessor
  (wrapping to the previous stage's last mission) is completed; stages follow
  the same rule over the stage sequence; an adventure is locked iff its
  first stage is
- ``derive_locks``, ``next_milestone`` and ``estimate_time_to_completion``

Design Notes
------------
- Stateless pure functions over records; nothing is cached here. Every call
  recomputes its subtree, bounded by 875 bites.
- Counts are always taken from bite completion flags, regardless of locks.
- Status rule at every level: Locked, else Completed when every child is
  completed, else InProgress when any child has started, else NotStarted.
  The overall level is never Locked.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from progress_engine.core.config.manager import ConfigManager
from progress_engine.domain.models.curriculum import (
    ADVENTURE_COUNT,
    BITES_PER_MISSION,
    iter_mission_ids,
    parse_mission_id,
)
from progress_engine.domain.models.progress import (
    Adventure,
    Bite,
    Mission,
    ProgressSnapshot,
    ProgressStatus,
    Stage,
    UnitCount,
)
from progress_engine.modules.shared.exceptions import NotFoundError, ValidationError
from progress_engine.modules.shared.formulas import ceil_div

# ============================================================================
# RESULTS
# ============================================================================


@dataclass(frozen=True)
class BiteProgress:
    """
    Status of one bite.

    ``progress`` is 0 (not started), 50 (started) or 100 (completed).
    ``duration`` is set once the bite has both timestamps.
    """

    bite_id: str
    status: ProgressStatus
    progress: int
    checkpoint_passed: bool
    duration: Optional[timedelta]

    @property
    def snapshot(self) -> ProgressSnapshot:
        completed = 1 if self.status is ProgressStatus.COMPLETED else 0
        return ProgressSnapshot("bite", self.bite_id, completed, 1, self.progress, self.status)


@dataclass(frozen=True)
class MissionProgress:
    mission_id: str
    stage_number: int
    mission_number: int
    status: ProgressStatus
    bites: UnitCount
    checkpoints: UnitCount
    bite_progress: Tuple[BiteProgress, ...]

    @property
    def is_locked(self) -> bool:
        return self.status is ProgressStatus.LOCKED

    @property
    def percentage(self) -> int:
        return self.bites.percentage

    @property
    def snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot.from_counts("mission", self.mission_id, self.bites, self.status)


@dataclass(frozen=True)
class StageProgress:
    stage_number: int
    adventure_number: int
    status: ProgressStatus
    missions: UnitCount
    bites: UnitCount
    checkpoints: UnitCount
    mission_progress: Tuple[MissionProgress, ...]

    @property
    def is_locked(self) -> bool:
        return self.status is ProgressStatus.LOCKED

    @property
    def percentage(self) -> int:
        return self.bites.percentage

    @property
    def snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot.from_counts("stage", str(self.stage_number), self.bites, self.status)


@dataclass(frozen=True)
class AdventureProgress:
    adventure_number: int
    name: str
    status: ProgressStatus
    stages: UnitCount
    missions: UnitCount
    bites: UnitCount
    checkpoints: UnitCount
    stage_progress: Tuple[StageProgress, ...]

    @property
    def is_locked(self) -> bool:
        return self.status is ProgressStatus.LOCKED

    @property
    def percentage(self) -> int:
        return self.bites.percentage

    @property
    def snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot.from_counts("adventure", str(self.adventure_number), self.bites, self.status)


@dataclass(frozen=True)
class CurrentPosition:
    adventure_number: int
    stage_number: int
    mission_id: str


@dataclass(frozen=True)
class OverallProgress:
    """
    Roll-up of the whole curriculum.

    ``current_position`` is ``None`` once every bite is complete.
    """

    status: ProgressStatus
    adventures: UnitCount
    stages: UnitCount
    missions: UnitCount
    bites: UnitCount
    checkpoints: UnitCount
    adventure_progress: Tuple[AdventureProgress, ...]
    current_position: Optional[CurrentPosition]

    @property
    def percentage(self) -> int:
        return self.bites.percentage

    @property
    def snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot.from_counts("overall", "overall", self.bites, self.status)

    def adventure(self, adventure_number: int) -> AdventureProgress:
        for progress in self.adventure_progress:
            if progress.adventure_number == adventure_number:
                return progress
        raise NotFoundError("Adventure", adventure_number)

    def stage(self, stage_number: int) -> StageProgress:
        for adventure in self.adventure_progress:
            for progress in adventure.stage_progress:
                if progress.stage_number == stage_number:
                    return progress
        raise NotFoundError("Stage", stage_number)

    def mission(self, mission_id: str) -> MissionProgress:
        stage_number, mission_number = parse_mission_id(mission_id)
        return self.stage(stage_number).mission_progress[mission_number - 1]

    def iter_missions(self) -> Iterable[MissionProgress]:
        for adventure in self.adventure_progress:
            for stage in adventure.stage_progress:
                yield from stage.mission_progress


@dataclass(frozen=True)
class Milestone:
    """The next notable goal and how many units remain to reach it."""

    level: str
    identifier: str
    remaining: int
    unit: str


@dataclass(frozen=True)
class CompletionEstimate:
    bites_remaining: int
    daily_bites: int
    days_needed: int
    weeks_needed: int


# ============================================================================
# STATUS RULE
# ============================================================================


def _status(locked: bool, completed: int, total: int, started: bool) -> ProgressStatus:
    if locked:
        return ProgressStatus.LOCKED
    if total and completed == total:
        return ProgressStatus.COMPLETED
    if started:
        return ProgressStatus.IN_PROGRESS
    return ProgressStatus.NOT_STARTED


def _has_started(status: ProgressStatus) -> bool:
    return status in (ProgressStatus.IN_PROGRESS, ProgressStatus.COMPLETED)


def _count(statuses: Sequence[ProgressStatus]) -> UnitCount:
    return UnitCount(sum(1 for s in statuses if s is ProgressStatus.COMPLETED), len(statuses))


def _sum(counts: Iterable[UnitCount]) -> UnitCount:
    total = UnitCount(0, 0)
    for count in counts:
        total = total + count
    return total


# ============================================================================
# LEVELS
# ============================================================================


def bite_progress(bite: Bite, locked: bool = False) -> BiteProgress:
    if bite.is_completed:
        status, progress = ProgressStatus.COMPLETED, 100
    elif locked:
        status, progress = ProgressStatus.LOCKED, 0
    elif bite.has_started:
        status, progress = ProgressStatus.IN_PROGRESS, 50
    else:
        status, progress = ProgressStatus.NOT_STARTED, 0

    duration = None
    if bite.started_at is not None and bite.completed_at is not None:
        duration = bite.completed_at - bite.started_at

    return BiteProgress(bite.bite_id, status, progress, bite.checkpoint_passed, duration)


def mission_progress(mission: Mission, locked: Optional[bool] = None) -> MissionProgress:
    """
    Roll up a mission's five bites.

    ``locked`` overrides the record's stored ``is_locked`` flag.
    """
    is_locked = mission.is_locked if locked is None else locked
    bites = UnitCount(mission.completed_bites, BITES_PER_MISSION)
    return MissionProgress(
        mission_id=mission.mission_id,
        stage_number=mission.stage_number,
        mission_number=mission.mission_number,
        status=_status(is_locked, bites.completed, bites.total, mission.has_started),
        bites=bites,
        checkpoints=UnitCount(mission.passed_checkpoints, BITES_PER_MISSION),
        bite_progress=tuple(bite_progress(b, is_locked) for b in mission.bites),
    )


def stage_progress(
    stage: Stage,
    locked: Optional[bool] = None,
    previous_completed: Optional[bool] = None,
) -> StageProgress:
    """
    Roll up a stage's five missions.

    Parameters
    ----------
    stage : Stage
    locked : Optional[bool]
        Overrides the stage's stored ``is_locked`` flag
    previous_completed : Optional[bool]
        Whether the mission just before this stage's first mission is
        completed. When given, mission locks are derived along the chain;
        otherwise each mission's stored flag is used.
    """
    is_locked = stage.is_locked if locked is None else locked

    missions: List[MissionProgress] = []
    chain_completed = previous_completed
    for mission in stage.missions:
        mission_locked = None if chain_completed is None else not chain_completed
        progress = mission_progress(mission, mission_locked)
        missions.append(progress)
        if chain_completed is not None:
            chain_completed = progress.status is ProgressStatus.COMPLETED

    statuses = [m.status for m in missions]
    mission_counts = _count(statuses)
    return StageProgress(
        stage_number=stage.stage_number,
        adventure_number=stage.adventure_number,
        status=_status(
            is_locked,
            mission_counts.completed,
            mission_counts.total,
            any(_has_started(s) or m.bites.completed for s, m in zip(statuses, missions)),
        ),
        missions=mission_counts,
        bites=_sum(m.bites for m in missions),
        checkpoints=_sum(m.checkpoints for m in missions),
        mission_progress=tuple(missions),
    )


def adventure_progress(
    adventure: Adventure,
    previous_completed: Optional[bool] = None,
    previous_stage_completed: Optional[bool] = None,
) -> AdventureProgress:
    """
    Roll up an adventure's stages (variable count, from the curriculum table).

    ``previous_completed`` seeds the mission chain and
    ``previous_stage_completed`` the stage chain; when omitted, stored lock
    flags are used.
    """
    stages: List[StageProgress] = []
    mission_chain = previous_completed
    stage_chain = previous_stage_completed
    for stage in adventure.stages:
        stage_locked = None if stage_chain is None else not stage_chain
        progress = stage_progress(stage, stage_locked, mission_chain)
        stages.append(progress)
        if mission_chain is not None:
            mission_chain = progress.mission_progress[-1].status is ProgressStatus.COMPLETED
        if stage_chain is not None:
            stage_chain = progress.status is ProgressStatus.COMPLETED

    statuses = [s.status for s in stages]
    stage_counts = _count(statuses)
    locked = stages[0].is_locked
    return AdventureProgress(
        adventure_number=adventure.adventure_number,
        name=adventure.name,
        status=_status(
            locked,
            stage_counts.completed,
            stage_counts.total,
            any(_has_started(s) or p.bites.completed for s, p in zip(statuses, stages)),
        ),
        stages=stage_counts,
        missions=_sum(s.missions for s in stages),
        bites=_sum(s.bites for s in stages),
        checkpoints=_sum(s.checkpoints for s in stages),
        stage_progress=tuple(stages),
    )


def _normalize_adventures(adventures: Iterable[Adventure]) -> Tuple[Adventure, ...]:
    by_number: Dict[int, Adventure] = {}
    for adventure in adventures:
        if adventure.adventure_number in by_number:
            raise ValidationError("adventures", f"duplicate adventure {adventure.adventure_number}")
        by_number[adventure.adventure_number] = adventure
    return tuple(by_number.get(n) or Adventure(n) for n in range(ADVENTURE_COUNT))


def _first_open(statuses: Sequence[ProgressStatus]) -> Optional[int]:
    for wanted in (ProgressStatus.IN_PROGRESS, ProgressStatus.NOT_STARTED):
        for index, status in enumerate(statuses):
            if status is wanted:
                return index
    return None


def _current_position(adventures: Sequence[AdventureProgress]) -> Optional[CurrentPosition]:
    index = _first_open([a.status for a in adventures])
    if index is None:
        return None
    adventure = adventures[index]

    stage_index = _first_open([s.status for s in adventure.stage_progress])
    if stage_index is None:
        return None
    stage = adventure.stage_progress[stage_index]

    mission_index = _first_open([m.status for m in stage.mission_progress])
    if mission_index is None:
        return None
    return CurrentPosition(
        adventure_number=adventure.adventure_number,
        stage_number=stage.stage_number,
        mission_id=stage.mission_progress[mission_index].mission_id,
    )


def overall_progress(adventures: Iterable[Adventure]) -> OverallProgress:
    """
    Roll up the whole curriculum and derive every lock along the chain.

    Adventures not supplied are treated as fresh.

    Example
    -------
    >>> overall = overall_progress(build_curriculum())
    >>> overall.current_position.mission_id
    'S1M1'
    >>> overall.mission("S1M2").status
    <ProgressStatus.LOCKED: 'locked'>
    """
    progress: List[AdventureProgress] = []
    mission_chain = True
    stage_chain = True
    for adventure in _normalize_adventures(adventures):
        result = adventure_progress(adventure, mission_chain, stage_chain)
        progress.append(result)
        last_stage = result.stage_progress[-1]
        mission_chain = last_stage.mission_progress[-1].status is ProgressStatus.COMPLETED
        stage_chain = last_stage.status is ProgressStatus.COMPLETED

    bites = _sum(a.bites for a in progress)
    return OverallProgress(
        status=_status(
            False,
            bites.completed,
            bites.total,
            any(a.bites.completed or _has_started(a.status) for a in progress),
        ),
        adventures=_count([a.status for a in progress]),
        stages=_sum(a.stages for a in progress),
        missions=_sum(a.missions for a in progress),
        bites=bites,
        checkpoints=_sum(a.checkpoints for a in progress),
        adventure_progress=tuple(progress),
        current_position=_current_position(progress),
    )


# ============================================================================
# SUPPLEMENTS
# ============================================================================


def derive_locks(missions: Iterable[Mission]) -> Dict[str, bool]:
    """
    Lock flag for every mission id in curriculum order.

    Follows the same chain as ``overall_progress``: a mission is open only
    when its predecessor is open and complete. Missions not supplied count as
    not completed.

    Example
    -------
    >>> locks = derive_locks([])
    >>> locks["S1M1"], locks["S1M2"]
    (False, True)
    """
    completed = {m.mission_id for m in missions if m.is_complete}
    locks: Dict[str, bool] = {}
    previous_done = True
    for mission_id in iter_mission_ids():
        locks[mission_id] = not previous_done
        previous_done = previous_done and mission_id in completed
    return locks


def next_milestone(
    overall: OverallProgress, thresholds: Optional[Mapping[str, int]] = None
) -> Optional[Milestone]:
    """
    The nearest goal worth calling out to the learner.

    Checks, in order: the current mission when at most
    ``mission_bites_remaining`` bites are left, the current stage when at most
    ``stage_missions_remaining`` missions are left, the current adventure when
    at most ``adventure_stages_remaining`` stages are left. Otherwise the
    current mission is the milestone. Thresholds default to
    ``progress.milestone.*`` in configuration.
    """
    position = overall.current_position
    if position is None:
        return None

    limits = {
        "mission_bites_remaining": ConfigManager.get("progress.milestone.mission_bites_remaining", 2),
        "stage_missions_remaining": ConfigManager.get("progress.milestone.stage_missions_remaining", 1),
        "adventure_stages_remaining": ConfigManager.get("progress.milestone.adventure_stages_remaining", 1),
        **(thresholds or {}),
    }

    mission = overall.mission(position.mission_id)
    stage = overall.stage(position.stage_number)
    adventure = overall.adventure(position.adventure_number)

    if mission.bites.remaining <= limits["mission_bites_remaining"]:
        return Milestone("mission", mission.mission_id, mission.bites.remaining, "bites")
    if stage.missions.remaining <= limits["stage_missions_remaining"]:
        return Milestone("stage", str(stage.stage_number), stage.missions.remaining, "missions")
    if adventure.stages.remaining <= limits["adventure_stages_remaining"]:
        return Milestone("adventure", str(adventure.adventure_number), adventure.stages.remaining, "stages")
    return Milestone("mission", mission.mission_id, mission.bites.remaining, "bites")


def estimate_time_to_completion(
    overall: OverallProgress, daily_bites: Optional[int] = None
) -> CompletionEstimate:
    """
    Days needed to finish the remaining bites at ``daily_bites`` per day.

    ``daily_bites`` defaults to ``progress.default_daily_bites``.
    """
    daily = daily_bites if daily_bites is not None else ConfigManager.get("progress.default_daily_bites", 5)
    if isinstance(daily, bool) or not isinstance(daily, int) or daily <= 0:
        raise ValidationError("daily_bites", f"must be a positive integer, got {daily!r}")

    remaining = overall.bites.remaining
    days = ceil_div(remaining, daily)
    return CompletionEstimate(
        bites_remaining=remaining,
        daily_bites=daily,
        days_needed=days,
        weeks_needed=ceil_div(days, 7),
    )


__all__ = [
    "BiteProgress",
    "MissionProgress",
    "StageProgress",
    "AdventureProgress",
    "CurrentPosition",
    "OverallProgress",
    "Milestone",
    "CompletionEstimate",
    "bite_progress",
    "mission_progress",
    "stage_progress",
    "adventure_progress",
    "overall_progress",
    "derive_locks",
    "next_milestone",
    "estimate_time_to_completion",
]
