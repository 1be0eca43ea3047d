"""Tests for the classification schema builder and the plan cache.

Tests:
- Group keys for identity and remaining groups
- build_classification_schema(): order, dedup, determinism
- plan_cache_key(), get_cached_plan(), store_plan()
"""

import pytest

from tiered_extractor.core.classification_schema import (
    build_classification_schema,
    group_key,
    identity_group_key,
    remaining_group_key,
    schema_fingerprint,
)
from tiered_extractor.core.plan_cache import (
    CACHE_KEY_KEY,
    GENERATED_AT_KEY,
    PLAN_KEY,
    get_cached_plan,
    plan_cache_key,
    store_plan,
)
from tiered_extractor.pydantic_models import PlanOwner
from tiered_extractor.pydantic_models.plan_models import ExtractionPlan, IdentityGroup, Level, RemainingGroup


@pytest.fixture
def plan() -> ExtractionPlan:
    return ExtractionPlan(levels=[
        Level(level=0, identities=[IdentityGroup(object_type="Case", identity_fields=["case_number"])]),
        Level(
            level=1,
            identities=[IdentityGroup(object_type="Demand", identity_fields=["demand_number"])],
            remaining=[
                RemainingGroup(name="Demand Details", description="Amounts and dates", object_type="Demand", fields=["amount"]),
                RemainingGroup(name="Demand details", description="Duplicate key", object_type="Demand", fields=["due_date"]),
            ],
        ),
    ])


# =============================================================================
# Group key tests
# =============================================================================


class TestGroupKeys:
    """Tests for group key helpers."""

    def test_identity_key(self):
        assert identity_group_key("Demand") == "demand_identification"

    def test_identity_key_multiword(self):
        assert identity_group_key("Body Part") == "body_part_identification"

    def test_remaining_key(self):
        assert remaining_group_key("Billing Details") == "billing_details"

    def test_group_key_dispatches_on_group_type(self, plan):
        assert group_key(plan.levels[1].identities[0]) == "demand_identification"
        assert group_key(plan.levels[1].remaining[0]) == "demand_details"


# =============================================================================
# build_classification_schema tests
# =============================================================================


class TestBuildClassificationSchema:
    """Tests for build_classification_schema()."""

    def test_properties_in_plan_order(self, plan):
        schema = build_classification_schema(plan)
        assert list(schema["properties"]) == ["case_identification", "demand_identification", "demand_details"]
        assert schema["required"] == list(schema["properties"])

    def test_all_properties_boolean(self, plan):
        schema = build_classification_schema(plan)
        assert all(prop["type"] == "boolean" for prop in schema["properties"].values())

    def test_identity_description(self, plan):
        schema = build_classification_schema(plan)
        assert schema["properties"]["case_identification"]["description"] == "Pages relevant for identifying Case objects"

    def test_shared_key_keeps_first_description(self, plan):
        schema = build_classification_schema(plan)
        assert schema["properties"]["demand_details"]["description"] == "Amounts and dates"

    def test_deterministic(self, plan):
        first = build_classification_schema(plan)
        second = build_classification_schema(ExtractionPlan.model_validate(plan.model_dump()))
        assert schema_fingerprint(first) == schema_fingerprint(second)

    def test_empty_plan(self):
        assert build_classification_schema(ExtractionPlan()) == {"type": "object", "properties": {}, "required": []}


# =============================================================================
# Plan cache tests
# =============================================================================


class TestPlanCache:
    """Tests for the plan cache on the plan owner."""

    def test_key_is_stable(self, case_schema):
        assert plan_cache_key(case_schema, None, "intelligent") == plan_cache_key(dict(case_schema), "", "intelligent")

    @pytest.mark.parametrize("change", [
        {"hints": "Only demands"},
        {"global_search_mode": "skim_only"},
        {"group_max_points": 4},
        {"version": 99},
    ])
    def test_key_changes_with_any_input(self, case_schema, change):
        base = {"schema": case_schema, "hints": None, "global_search_mode": "intelligent"}
        assert plan_cache_key(**base) != plan_cache_key(**{**base, **change})

    def test_key_changes_with_schema(self, case_schema):
        edited = {**case_schema, "title": "Lawsuit"}
        assert plan_cache_key(case_schema, None, "intelligent") != plan_cache_key(edited, None, "intelligent")

    def test_store_then_hit(self, plan):
        owner = PlanOwner(id=1)
        store_plan(owner, plan, "abc")
        assert get_cached_plan(owner, "abc") == plan
        assert owner.meta[CACHE_KEY_KEY] == "abc"
        assert GENERATED_AT_KEY in owner.meta

    def test_miss_on_different_key(self, plan):
        owner = PlanOwner(id=1)
        store_plan(owner, plan, "abc")
        assert get_cached_plan(owner, "xyz") is None

    def test_miss_without_stored_plan(self):
        assert get_cached_plan(PlanOwner(id=1, meta={CACHE_KEY_KEY: "abc"}), "abc") is None

    def test_invalid_stored_plan_is_a_miss(self):
        owner = PlanOwner(id=1, meta={CACHE_KEY_KEY: "abc", PLAN_KEY: {"levels": "not a list"}})
        assert get_cached_plan(owner, "abc") is None
