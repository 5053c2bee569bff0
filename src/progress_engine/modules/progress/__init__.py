"""
Progress module: roll-ups, data-source collaborators and the cache-fronted
progress service.
"""

from progress_engine.modules.progress.aggregator import (
    AdventureProgress,
    BiteProgress,
    CompletionEstimate,
    CurrentPosition,
    Milestone,
    MissionProgress,
    OverallProgress,
    StageProgress,
    adventure_progress,
    bite_progress,
    derive_locks,
    estimate_time_to_completion,
    mission_progress,
    next_milestone,
    overall_progress,
    stage_progress,
)
from progress_engine.modules.progress.data_source import (
    BITE_ACTIONS,
    MISSION_ACTIONS,
    EntityChange,
    InMemoryDataSource,
    ProgressDataSource,
    RedisDataSource,
    apply_change,
)
from progress_engine.modules.progress.service import RETRY_ACTIONS, MutationResult, ProgressService

__all__ = [
    "ProgressService",
    "MutationResult",
    "RETRY_ACTIONS",
    "ProgressDataSource",
    "InMemoryDataSource",
    "RedisDataSource",
    "EntityChange",
    "apply_change",
    "BITE_ACTIONS",
    "MISSION_ACTIONS",
    "BiteProgress",
    "MissionProgress",
    "StageProgress",
    "AdventureProgress",
    "OverallProgress",
    "CurrentPosition",
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
