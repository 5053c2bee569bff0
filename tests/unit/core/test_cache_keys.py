"""
Unit tests for cache key construction, invalidation plans and the TTL policy.
"""

import pytest

from progress_engine.core.cache.keys import (
    DEFAULT_TTLS_MS,
    CacheKeyPolicy,
    EntityKind,
    cache_key,
    dependent_scopes,
    kind_for_key,
)
from progress_engine.core.config.errors import ConfigValidationError
from progress_engine.modules.shared.exceptions import ValidationError


@pytest.mark.unit
class TestCacheKey:
    @pytest.mark.parametrize(
        "kind, identifier, expected",
        [
            (EntityKind.BITE, "S3M2B4", "bite_S3M2B4"),
            (EntityKind.BITE_LIST, "S3M2", "bites_mission_S3M2"),
            (EntityKind.MISSION, "S3M2", "mission_S3M2"),
            (EntityKind.MISSION_BRIEFING, "S3M2", "briefing_mission_S3M2"),
            (EntityKind.STAGE, 3, "stage_3"),
            (EntityKind.STAGE_MISSIONS, 3, "stage_3_missions"),
            (EntityKind.ADVENTURE, 2, "adventure_2"),
            (EntityKind.ADVENTURE_MISSIONS, 2, "adventure_2_missions"),
            (EntityKind.PROGRESS, "overall", "progress_overall"),
        ],
    )
    def test_templates(self, kind, identifier, expected):
        assert cache_key(kind, identifier) == expected

    @pytest.mark.parametrize(
        "kind, identifier",
        [
            (EntityKind.BITE, "S3M2"),
            (EntityKind.MISSION, "S36M1"),
            (EntityKind.MISSION, "S1M6"),
            (EntityKind.STAGE, 0),
            (EntityKind.ADVENTURE, 8),
        ],
    )
    def test_invalid_identifiers_rejected(self, kind, identifier):
        with pytest.raises(ValidationError):
            cache_key(kind, identifier)

    def test_kind_for_key_prefers_specific_patterns(self):
        assert kind_for_key("bites_mission_S1M1") is EntityKind.BITE_LIST
        assert kind_for_key("bite_S1M1B1") is EntityKind.BITE
        assert kind_for_key("stage_12_missions") is EntityKind.STAGE_MISSIONS
        assert kind_for_key("stage_12") is EntityKind.STAGE
        assert kind_for_key("progress_overall") is EntityKind.PROGRESS
        assert kind_for_key("something_else") is None


@pytest.mark.unit
class TestDependentScopes:
    def test_bite_change_plan(self):
        # Act
        plan = dependent_scopes(EntityKind.BITE, "S3M2B4")

        # Assert
        assert "bite_S3M2B4" in plan.keys
        assert "stage_3" in plan.keys
        assert "adventure_1" in plan.keys
        assert "bites_mission_S3M2" in plan.scopes
        assert "mission_S3M2" in plan.scopes
        assert "progress_" in plan.scopes

    def test_mission_change_drops_every_bite(self):
        plan = dependent_scopes(EntityKind.MISSION, "S12M5")

        assert "mission_S12M5" in plan.keys
        assert "bite_S12M5B" in plan.scopes
        assert "stage_12_missions" in plan.scopes
        assert "adventure_3_missions" in plan.scopes

    def test_stage_keys_are_exact(self):
        # "stage_3" as a scope would also match "stage_31"
        plan = dependent_scopes(EntityKind.BITE, "S3M1B1")

        assert "stage_3" not in plan.scopes

    def test_read_only_kinds_rejected(self):
        with pytest.raises(ValueError):
            dependent_scopes(EntityKind.STAGE, "3")


@pytest.mark.unit
class TestCacheKeyPolicy:
    def test_defaults_from_yaml(self):
        policy = CacheKeyPolicy()

        assert policy.ttl_for(EntityKind.BITE) == 120_000
        assert policy.ttl_for(EntityKind.MISSION_BRIEFING) == 600_000
        assert policy.as_dict()["adventure_missions"] == 300_000

    def test_yaml_values_match_built_in_defaults(self):
        policy = CacheKeyPolicy()

        for kind, ttl in DEFAULT_TTLS_MS.items():
            assert policy.ttl_for(kind) == ttl

    def test_override_wins(self):
        policy = CacheKeyPolicy({EntityKind.STAGE: 5})

        assert policy.ttl_for(EntityKind.STAGE) == 5
        assert policy.ttl_for_key("stage_4") == 5

    def test_unknown_key_uses_shortest_ttl(self):
        policy = CacheKeyPolicy()

        assert policy.ttl_for_key("mystery") == min(DEFAULT_TTLS_MS.values())

    def test_invalid_override_rejected(self):
        policy = CacheKeyPolicy({EntityKind.BITE: 0})

        with pytest.raises(ConfigValidationError):
            policy.ttl_for(EntityKind.BITE)
