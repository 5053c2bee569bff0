"""
Cache key templates, TTL policy and invalidation scopes.

Purpose
-------
Map every cacheable entity kind to a composite string key and a TTL, and
describe which keys and prefixes must be dropped when a bite or mission
changes. Relationships between cached entries live only in these keys; the
store itself holds no cross-references.

Key Templates
-------------
- ``bite_{id}``                  single bite (``bite_S3M2B4``)
- ``bites_mission_{id}``         bites list of a mission
- ``mission_{id}``               mission detail
- ``briefing_mission_{id}``      mission briefing content
- ``stage_{n}`` / ``stage_{n}_missions``
- ``adventure_{n}`` / ``adventure_{n}_missions``
- ``progress_{scope}``           cached progress roll-ups (``progress_overall``)

TTL Policy
----------
Defaults below, overridable per kind in YAML (``cache.ttl.<kind>``) or per
policy instance. Detail views live 2 minutes, list views 1 minute, and
briefings 10 minutes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Final, Mapping, Optional, Tuple, Union

from progress_engine.core.config.errors import ConfigValidationError
from progress_engine.core.config.manager import ConfigManager
from progress_engine.domain.models.curriculum import (
    adventure_for_stage,
    mission_of_bite,
    parse_bite_id,
    parse_mission_id,
    validate_adventure_number,
    validate_stage_number,
)

Identifier = Union[str, int]


class EntityKind(str, Enum):
    """Kinds of entity the progress service reads through the cache."""

    BITE = "bite"
    BITE_LIST = "bite_list"
    MISSION = "mission"
    MISSION_BRIEFING = "mission_briefing"
    STAGE = "stage"
    STAGE_MISSIONS = "stage_missions"
    ADVENTURE = "adventure"
    ADVENTURE_MISSIONS = "adventure_missions"
    PROGRESS = "progress"


KEY_TEMPLATES: Final[Dict[EntityKind, str]] = {
    EntityKind.BITE: "bite_{id}",
    EntityKind.BITE_LIST: "bites_mission_{id}",
    EntityKind.MISSION: "mission_{id}",
    EntityKind.MISSION_BRIEFING: "briefing_mission_{id}",
    EntityKind.STAGE: "stage_{id}",
    EntityKind.STAGE_MISSIONS: "stage_{id}_missions",
    EntityKind.ADVENTURE: "adventure_{id}",
    EntityKind.ADVENTURE_MISSIONS: "adventure_{id}_missions",
    EntityKind.PROGRESS: "progress_{id}",
}

DEFAULT_TTLS_MS: Final[Dict[EntityKind, int]] = {
    EntityKind.BITE: 2 * 60 * 1000,
    EntityKind.BITE_LIST: 60 * 1000,
    EntityKind.MISSION: 2 * 60 * 1000,
    EntityKind.MISSION_BRIEFING: 10 * 60 * 1000,
    EntityKind.STAGE: 60 * 1000,
    EntityKind.STAGE_MISSIONS: 60 * 1000,
    EntityKind.ADVENTURE: 60 * 1000,
    EntityKind.ADVENTURE_MISSIONS: 5 * 60 * 1000,
    EntityKind.PROGRESS: 2 * 60 * 1000,
}

# Most specific patterns first: "bites_mission_" must win over "bite_".
_KEY_PATTERNS: Final[Tuple[Tuple[EntityKind, "re.Pattern[str]"], ...]] = (
    (EntityKind.BITE_LIST, re.compile(r"^bites_mission_S\d+M\d$")),
    (EntityKind.MISSION_BRIEFING, re.compile(r"^briefing_mission_S\d+M\d$")),
    (EntityKind.BITE, re.compile(r"^bite_S\d+M\dB\d$")),
    (EntityKind.MISSION, re.compile(r"^mission_S\d+M\d$")),
    (EntityKind.STAGE_MISSIONS, re.compile(r"^stage_\d+_missions$")),
    (EntityKind.STAGE, re.compile(r"^stage_\d+$")),
    (EntityKind.ADVENTURE_MISSIONS, re.compile(r"^adventure_\d_missions$")),
    (EntityKind.ADVENTURE, re.compile(r"^adventure_\d$")),
    (EntityKind.PROGRESS, re.compile(r"^progress_.+$")),
)

PROGRESS_SCOPE: Final[str] = "progress_"


@dataclass(frozen=True)
class InvalidationPlan:
    """
    Keys and prefixes to drop after a successful mutation.

    Attributes
    ----------
    keys : Tuple[str, ...]
        Exact keys, removed with ``CacheStore.invalidate``
    scopes : Tuple[str, ...]
        Prefixes, removed with ``CacheStore.invalidate_scope``. Only prefixes
        that cannot collide with unrelated keys appear here (``stage_3`` would
        also match ``stage_31``, so plain stage/adventure keys are exact).
    """

    keys: Tuple[str, ...]
    scopes: Tuple[str, ...]


def cache_key(kind: EntityKind, identifier: Identifier) -> str:
    """
    Build the cache key for an entity, validating the identifier.

    Example
    -------
    >>> cache_key(EntityKind.BITE_LIST, "S3M2")
    'bites_mission_S3M2'
    """
    kind = EntityKind(kind)
    if kind is EntityKind.BITE:
        parse_bite_id(str(identifier))
    elif kind in (EntityKind.BITE_LIST, EntityKind.MISSION, EntityKind.MISSION_BRIEFING):
        parse_mission_id(str(identifier))
    elif kind in (EntityKind.STAGE, EntityKind.STAGE_MISSIONS):
        validate_stage_number(identifier)  # type: ignore[arg-type]
    elif kind in (EntityKind.ADVENTURE, EntityKind.ADVENTURE_MISSIONS):
        validate_adventure_number(identifier)  # type: ignore[arg-type]
    return KEY_TEMPLATES[kind].format(id=identifier)


def kind_for_key(key: str) -> Optional[EntityKind]:
    for kind, pattern in _KEY_PATTERNS:
        if pattern.match(key):
            return kind
    return None


def _ancestor_scopes(stage_number: int) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
    adventure_number = adventure_for_stage(stage_number)
    keys = (
        KEY_TEMPLATES[EntityKind.STAGE].format(id=stage_number),
        KEY_TEMPLATES[EntityKind.ADVENTURE].format(id=adventure_number),
    )
    scopes = (
        KEY_TEMPLATES[EntityKind.STAGE_MISSIONS].format(id=stage_number),
        KEY_TEMPLATES[EntityKind.ADVENTURE_MISSIONS].format(id=adventure_number),
        PROGRESS_SCOPE,
    )
    return keys, scopes


def dependent_scopes(kind: EntityKind, identifier: str) -> InvalidationPlan:
    """
    What to invalidate when a bite or mission changes.

    A bite change drops the bite, its mission's bites list and detail, the
    enclosing stage and adventure views, and every cached progress roll-up
    (completing a bite can unlock content anywhere downstream). A mission
    change drops the same ancestors plus every cached bite of the mission.
    """
    kind = EntityKind(kind)
    if kind is EntityKind.BITE:
        stage_number, _, _ = parse_bite_id(identifier)
        parent = mission_of_bite(identifier)
        ancestor_keys, ancestor_scopes = _ancestor_scopes(stage_number)
        return InvalidationPlan(
            keys=(cache_key(EntityKind.BITE, identifier),) + ancestor_keys,
            scopes=(
                cache_key(EntityKind.BITE_LIST, parent),
                cache_key(EntityKind.MISSION, parent),
            )
            + ancestor_scopes,
        )

    if kind is EntityKind.MISSION:
        stage_number, _ = parse_mission_id(identifier)
        ancestor_keys, ancestor_scopes = _ancestor_scopes(stage_number)
        return InvalidationPlan(
            keys=(cache_key(EntityKind.MISSION, identifier),) + ancestor_keys,
            scopes=(
                cache_key(EntityKind.BITE_LIST, identifier),
                f"bite_{identifier}B",
            )
            + ancestor_scopes,
        )

    raise ValueError(f"{kind.value} entities are not mutable")


class CacheKeyPolicy:
    """
    TTL lookup per entity kind.

    Resolution order: explicit ``ttl_overrides`` → YAML ``cache.ttl.<kind>``
    → built-in defaults. Resolved values are memoized per instance, so a
    policy is static for the lifetime of the service that owns it.

    Parameters
    ----------
    ttl_overrides : Optional[Mapping[EntityKind, int]]
        Per-kind TTLs in milliseconds, mainly for tests and embedding apps.
    """

    def __init__(self, ttl_overrides: Optional[Mapping[EntityKind, int]] = None) -> None:
        self._overrides: Dict[EntityKind, int] = {
            EntityKind(kind): ttl for kind, ttl in (ttl_overrides or {}).items()
        }
        self._resolved: Dict[EntityKind, int] = {}

    def ttl_for(self, kind: EntityKind) -> int:
        kind = EntityKind(kind)
        if kind in self._resolved:
            return self._resolved[kind]

        if kind in self._overrides:
            ttl = self._overrides[kind]
        else:
            ttl = ConfigManager.get(f"cache.ttl.{kind.value}", DEFAULT_TTLS_MS[kind])

        if isinstance(ttl, bool) or not isinstance(ttl, int) or ttl <= 0:
            raise ConfigValidationError(
                f"cache.ttl.{kind.value} must be a positive integer of milliseconds, got {ttl!r}"
            )

        self._resolved[kind] = ttl
        return ttl

    def ttl_for_key(self, key: str) -> int:
        """TTL of whatever kind ``key`` belongs to; unknown keys use the shortest TTL."""
        kind = kind_for_key(key)
        if kind is None:
            return min(self.ttl_for(k) for k in EntityKind)
        return self.ttl_for(kind)

    def as_dict(self) -> Dict[str, int]:
        return {kind.value: self.ttl_for(kind) for kind in EntityKind}
