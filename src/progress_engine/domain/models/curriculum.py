"""
Curriculum structure: the fixed Adventure → Stage → Mission → Bite tree.

Purpose
-------
Single source of truth for the shape of the curriculum and for the composite
string identifiers used by records and cache keys.

Responsibilities
----------------
- Structural constants (8 adventures, 35 stages, 5 missions per stage,
  5 bites per mission, one checkpoint per bite)
- The hard-coded Adventure → Stage table and its display metadata
- Identifier formatting/parsing (``"S3M2"``, ``"S3M2B4"``)
- Curriculum ordering: mission index, predecessor and successor

Design Notes
------------
- The Adventure → Stage table is irregular (adventure 0 has one stage,
  adventure 3 has four, every other adventure has five). It is spelled out
  literally and must never be derived from a formula.
- Everything here is immutable and import-time constant.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Final, Iterator, Optional, Tuple

from progress_engine.modules.shared.exceptions import ValidationError

# ============================================================================
# STRUCTURE
# ============================================================================


@dataclass(frozen=True)
class CurriculumStructure:
    """Immutable shape of the curriculum."""

    adventure_count: int = 8
    stage_count: int = 35
    missions_per_stage: int = 5
    bites_per_mission: int = 5
    checkpoints_per_bite: int = 1

    @property
    def total_missions(self) -> int:
        return self.stage_count * self.missions_per_stage

    @property
    def total_bites(self) -> int:
        return self.total_missions * self.bites_per_mission

    @property
    def total_checkpoints(self) -> int:
        return self.total_bites * self.checkpoints_per_bite


CURRICULUM: Final[CurriculumStructure] = CurriculumStructure()

ADVENTURE_COUNT: Final[int] = CURRICULUM.adventure_count
STAGE_COUNT: Final[int] = CURRICULUM.stage_count
MISSIONS_PER_STAGE: Final[int] = CURRICULUM.missions_per_stage
BITES_PER_MISSION: Final[int] = CURRICULUM.bites_per_mission
TOTAL_MISSIONS: Final[int] = CURRICULUM.total_missions
TOTAL_BITES: Final[int] = CURRICULUM.total_bites
TOTAL_CHECKPOINTS: Final[int] = CURRICULUM.total_checkpoints


# ============================================================================
# ADVENTURE TABLE
# ============================================================================


@dataclass(frozen=True)
class AdventureInfo:
    """
    Static description of one adventure.

    Attributes
    ----------
    number : int
        Adventure number (0-7)
    name : str
        Display name
    first_stage, last_stage : int
        Inclusive stage range
    beacon_color : str
        Hex color used by the presentation layer
    description : str
        One-line summary
    """

    number: int
    name: str
    first_stage: int
    last_stage: int
    beacon_color: str
    description: str

    @property
    def stages(self) -> Tuple[int, ...]:
        return tuple(range(self.first_stage, self.last_stage + 1))

    @property
    def stage_count(self) -> int:
        return self.last_stage - self.first_stage + 1

    @property
    def total_missions(self) -> int:
        return self.stage_count * MISSIONS_PER_STAGE

    @property
    def total_bites(self) -> int:
        return self.total_missions * BITES_PER_MISSION


ADVENTURES: Final[Tuple[AdventureInfo, ...]] = (
    AdventureInfo(0, "GPO Call", 1, 1, "#ef4444", "Introduction to Global Problem Solvers"),
    AdventureInfo(1, "GPS 101", 2, 6, "#f97316", "Foundation of problem-solving methodology"),
    AdventureInfo(2, "GPS Prep", 7, 11, "#eab308", "Preparation for simulation challenges"),
    AdventureInfo(3, "GPS Simulation", 12, 15, "#22c55e", "Practice with simulated real-world problems"),
    AdventureInfo(4, "GPS Capstone 1", 16, 20, "#3b82f6", "First capstone project development"),
    AdventureInfo(5, "GPS Capstone 2", 21, 25, "#6366f1", "Second capstone with team collaboration"),
    AdventureInfo(6, "Venture Acceleration", 26, 30, "#8b5cf6", "Accelerating venture development"),
    AdventureInfo(7, "Venture Capitalization", 31, 35, "#f8fafc", "Final stage: venture launch and funding"),
)

_STAGE_TO_ADVENTURE: Final[Dict[int, int]] = {
    stage: info.number for info in ADVENTURES for stage in info.stages
}

DEFAULT_BEACON_COLOR: Final[str] = "#9ca3af"


def validate_adventure_number(adventure_number: int) -> None:
    if not isinstance(adventure_number, int) or not 0 <= adventure_number < ADVENTURE_COUNT:
        raise ValidationError(
            "adventure_number",
            f"must be between 0 and {ADVENTURE_COUNT - 1}, got {adventure_number!r}",
        )


def validate_stage_number(stage_number: int) -> None:
    if not isinstance(stage_number, int) or not 1 <= stage_number <= STAGE_COUNT:
        raise ValidationError(
            "stage_number",
            f"must be between 1 and {STAGE_COUNT}, got {stage_number!r}",
        )


def adventure_info(adventure_number: int) -> AdventureInfo:
    validate_adventure_number(adventure_number)
    return ADVENTURES[adventure_number]


def adventure_for_stage(stage_number: int) -> int:
    """
    Adventure a stage belongs to.

    Example
    -------
    >>> adventure_for_stage(15)
    3
    >>> adventure_for_stage(16)
    4
    """
    validate_stage_number(stage_number)
    return _STAGE_TO_ADVENTURE[stage_number]


def stages_for_adventure(adventure_number: int) -> Tuple[int, ...]:
    return adventure_info(adventure_number).stages


def beacon_color(stage_number: int) -> str:
    adventure = _STAGE_TO_ADVENTURE.get(stage_number)
    if adventure is None:
        return DEFAULT_BEACON_COLOR
    return ADVENTURES[adventure].beacon_color


# ============================================================================
# IDENTIFIERS
# ============================================================================

# Canonical form only: no leading zeros, ASCII digits.
_MISSION_ID_RE: Final = re.compile(r"^S([1-9][0-9]?)M([1-9])$")
_BITE_ID_RE: Final = re.compile(r"^S([1-9][0-9]?)M([1-9])B([1-9])$")


def _check_mission_numbers(stage_number: int, mission_number: int, field: str) -> None:
    if not 1 <= stage_number <= STAGE_COUNT:
        raise ValidationError(field, f"stage {stage_number} outside 1..{STAGE_COUNT}")
    if not 1 <= mission_number <= MISSIONS_PER_STAGE:
        raise ValidationError(field, f"mission {mission_number} outside 1..{MISSIONS_PER_STAGE}")


def mission_id(stage_number: int, mission_number: int) -> str:
    _check_mission_numbers(stage_number, mission_number, "mission_id")
    return f"S{stage_number}M{mission_number}"


def bite_id(stage_number: int, mission_number: int, bite_number: int) -> str:
    _check_mission_numbers(stage_number, mission_number, "bite_id")
    if not 1 <= bite_number <= BITES_PER_MISSION:
        raise ValidationError("bite_id", f"bite {bite_number} outside 1..{BITES_PER_MISSION}")
    return f"S{stage_number}M{mission_number}B{bite_number}"


def parse_mission_id(value: str) -> Tuple[int, int]:
    """
    Split ``"S{stage}M{mission}"`` into numbers.

    Raises
    ------
    ValidationError
        If the id is malformed or out of range.
    """
    match = _MISSION_ID_RE.match(value) if isinstance(value, str) else None
    if match is None:
        raise ValidationError("mission_id", f"malformed mission id {value!r}")
    stage_number, mission_number = int(match.group(1)), int(match.group(2))
    _check_mission_numbers(stage_number, mission_number, "mission_id")
    return stage_number, mission_number


def parse_bite_id(value: str) -> Tuple[int, int, int]:
    """Split ``"S{stage}M{mission}B{bite}"`` into numbers."""
    match = _BITE_ID_RE.match(value) if isinstance(value, str) else None
    if match is None:
        raise ValidationError("bite_id", f"malformed bite id {value!r}")
    stage_number, mission_number, bite_number = (int(g) for g in match.groups())
    _check_mission_numbers(stage_number, mission_number, "bite_id")
    if not 1 <= bite_number <= BITES_PER_MISSION:
        raise ValidationError("bite_id", f"bite {bite_number} outside 1..{BITES_PER_MISSION}")
    return stage_number, mission_number, bite_number


def mission_of_bite(value: str) -> str:
    stage_number, mission_number, _ = parse_bite_id(value)
    return f"S{stage_number}M{mission_number}"


# ============================================================================
# ORDERING
# ============================================================================


def mission_index(stage_number: int, mission_number: int) -> int:
    """Zero-based position of a mission in the linear unlock chain (0..174)."""
    _check_mission_numbers(stage_number, mission_number, "mission_id")
    return (stage_number - 1) * MISSIONS_PER_STAGE + (mission_number - 1)


def mission_at(index: int) -> Tuple[int, int]:
    if not 0 <= index < TOTAL_MISSIONS:
        raise ValidationError("mission_index", f"{index} outside 0..{TOTAL_MISSIONS - 1}")
    return index // MISSIONS_PER_STAGE + 1, index % MISSIONS_PER_STAGE + 1


def previous_mission_id(value: str) -> Optional[str]:
    """
    Predecessor in the unlock chain, wrapping to the previous stage's last mission.

    Example
    -------
    >>> previous_mission_id("S3M1")
    'S2M5'
    >>> previous_mission_id("S1M1") is None
    True
    """
    index = mission_index(*parse_mission_id(value))
    if index == 0:
        return None
    return mission_id(*mission_at(index - 1))


def next_mission_id(value: str) -> Optional[str]:
    index = mission_index(*parse_mission_id(value))
    if index == TOTAL_MISSIONS - 1:
        return None
    return mission_id(*mission_at(index + 1))


def iter_mission_ids() -> Iterator[str]:
    """All 175 mission ids in curriculum order."""
    for index in range(TOTAL_MISSIONS):
        yield mission_id(*mission_at(index))
