"""
Domain models package for the progress engine.

Purpose
-------
Rich domain models that encapsulate curriculum rules, record invariants and
the retry-rights state machine. Services orchestrate these models; they never
manipulate raw mappings directly.

Base Classes
------------
- Entity: Objects with identity
- AggregateRoot: Consistency boundaries (``RetryRights``)
- DomainEvent: State change notifications
"""

from .base import (
    AggregateRoot,
    DomainEvent,
    DomainValidationError,
    Entity,
    format_timestamp,
    parse_timestamp,
    utc_now,
    validate_non_negative,
    validate_positive,
    validate_range,
)
from .curriculum import (
    ADVENTURE_COUNT,
    ADVENTURES,
    BITES_PER_MISSION,
    CURRICULUM,
    MISSIONS_PER_STAGE,
    STAGE_COUNT,
    TOTAL_BITES,
    TOTAL_CHECKPOINTS,
    TOTAL_MISSIONS,
    AdventureInfo,
    CurriculumStructure,
    adventure_for_stage,
    adventure_info,
    beacon_color,
    bite_id,
    iter_mission_ids,
    mission_id,
    mission_of_bite,
    next_mission_id,
    parse_bite_id,
    parse_mission_id,
    previous_mission_id,
    stages_for_adventure,
)
from .progress import (
    Adventure,
    Bite,
    Mission,
    ProgressSnapshot,
    ProgressStatus,
    Stage,
    UnitCount,
    build_curriculum,
)
from .retry import RetryRights, RetryState, StudyLoopState, provisional_expiry
from .reward import (
    ActivityKind,
    AdventureOptions,
    BonusFlags,
    CheckpointOptions,
    MissionOptions,
    MultiplierContext,
    RewardCurrency,
    RewardQuote,
    StageOptions,
    SubscriptionTier,
)

__all__ = [
    # Base
    "AggregateRoot",
    "DomainEvent",
    "DomainValidationError",
    "Entity",
    "format_timestamp",
    "parse_timestamp",
    "utc_now",
    "validate_non_negative",
    "validate_positive",
    "validate_range",
    # Curriculum
    "ADVENTURE_COUNT",
    "ADVENTURES",
    "BITES_PER_MISSION",
    "CURRICULUM",
    "MISSIONS_PER_STAGE",
    "STAGE_COUNT",
    "TOTAL_BITES",
    "TOTAL_CHECKPOINTS",
    "TOTAL_MISSIONS",
    "AdventureInfo",
    "CurriculumStructure",
    "adventure_for_stage",
    "adventure_info",
    "beacon_color",
    "bite_id",
    "iter_mission_ids",
    "mission_id",
    "mission_of_bite",
    "next_mission_id",
    "parse_bite_id",
    "parse_mission_id",
    "previous_mission_id",
    "stages_for_adventure",
    # Progress records
    "Adventure",
    "Bite",
    "Mission",
    "ProgressSnapshot",
    "ProgressStatus",
    "Stage",
    "UnitCount",
    "build_curriculum",
    # Retry rights
    "RetryRights",
    "RetryState",
    "StudyLoopState",
    "provisional_expiry",
    # Rewards
    "ActivityKind",
    "AdventureOptions",
    "BonusFlags",
    "CheckpointOptions",
    "MissionOptions",
    "MultiplierContext",
    "RewardCurrency",
    "RewardQuote",
    "StageOptions",
    "SubscriptionTier",
]
