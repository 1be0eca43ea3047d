"""Tests for tiered_extractor.agents.resolver_agent module.

Tests:
- resolve_objects(): object creation, field filtering, parents, arrays
- parse_resolver_response() and choose_parent()
- find_or_create_object(): exact identity reuse without overwriting values
"""

import pytest

from tiered_extractor.agents.resolver_agent import (
    choose_parent,
    find_or_create_object,
    parse_resolver_response,
    resolve_objects,
)
from tiered_extractor.core.repository import InMemoryRepository
from tiered_extractor.core.schema_tools import build_fragment_selector
from tiered_extractor.pydantic_models.plan_models import IdentityGroup


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def demand_group(case_schema):
    return IdentityGroup(
        object_type="Demand",
        identity_fields=["demand_number"],
        skim_fields=["demand_number", "amount"],
        fragment_selector=build_fragment_selector("demands", ["demand_number", "amount"], case_schema, True),
        parent_type="Case",
    )


@pytest.fixture
def case_group(case_schema):
    return IdentityGroup(
        object_type="Case",
        identity_fields=["case_number"],
        skim_fields=["case_number"],
        fragment_selector=build_fragment_selector("", ["case_number"], case_schema, False),
    )


# =============================================================================
# resolve_objects tests
# =============================================================================


class TestResolveObjects:
    """Tests for resolve_objects()."""

    @pytest.mark.asyncio
    async def test_no_pages_no_call(self, repository, demand_group, case_schema, scripted_llm):
        llm = scripted_llm({})
        assert await resolve_objects(repository, demand_group, 1, [], [], case_schema) == []
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_creates_objects_under_single_parent(self, repository, demand_group, case_schema, make_page, scripted_llm):
        case = repository.create_object("Case", "2023-17", 0, None, {})
        scripted_llm({"resolver": lambda prompt: {"objects": [
            {"parent_id": 999, "data": {"demand_number": "D-1", "amount": 100, "judge": "Smith"}},
            {"data": {"demand_number": "D-2"}},
        ]}})

        objects = await resolve_objects(repository, demand_group, 1, [make_page(2)], [case], case_schema)

        assert [(o.name, o.parent_id, o.level) for o in objects] == [("D-1", case.id, 1), ("D-2", case.id, 1)]
        assert objects[0].data == {"demand_number": "D-1", "amount": 100}

    @pytest.mark.asyncio
    async def test_prompt_lists_parent_candidates_and_fields(self, repository, demand_group, case_schema, make_page, scripted_llm):
        case = repository.create_object("Case", "2023-17", 0, None, {})
        llm = scripted_llm({"resolver": lambda prompt: {"objects": []}})

        await resolve_objects(repository, demand_group, 1, [make_page(2, "Demand D-1")], [case], case_schema)

        prompt = llm.calls_for("resolver")[0]
        assert prompt.startswith("## Object Type: Demand")
        assert '"name": "2023-17"' in prompt
        assert "Demanded amount in USD" in prompt
        assert "Demand D-1" in prompt

    @pytest.mark.asyncio
    async def test_entries_without_eligible_parent_skipped(self, repository, demand_group, case_schema, make_page, scripted_llm):
        first = repository.create_object("Case", "A", 0, None, {})
        second = repository.create_object("Case", "B", 0, None, {})
        scripted_llm({"resolver": lambda prompt: {"objects": [
            {"parent_id": second.id, "data": {"demand_number": "D-1"}},
            {"parent_id": 999, "data": {"demand_number": "D-2"}},
            {"data": {"demand_number": "D-3"}},
        ]}})

        objects = await resolve_objects(repository, demand_group, 1, [make_page(2)], [first, second], case_schema)

        assert [(o.name, o.parent_id) for o in objects] == [("D-1", second.id)]

    @pytest.mark.asyncio
    async def test_entries_without_identity_skipped(self, repository, demand_group, case_schema, make_page, scripted_llm):
        scripted_llm({"resolver": lambda prompt: {"objects": [{"data": {"amount": 5}}, "junk"]}})

        assert await resolve_objects(repository, demand_group, 1, [make_page(2)], [], case_schema) == []

    @pytest.mark.asyncio
    async def test_single_object_type_keeps_first(self, repository, case_group, case_schema, make_page, scripted_llm):
        scripted_llm({"resolver": lambda prompt: {"objects": [
            {"data": {"case_number": "2023-17"}},
            {"data": {"case_number": "2024-01"}},
        ]}})

        objects = await resolve_objects(repository, case_group, 0, [make_page(1)], [], case_schema)

        assert [o.name for o in objects] == ["2023-17"]
        assert objects[0].parent_id is None

    @pytest.mark.asyncio
    async def test_duplicate_entries_collapse(self, repository, demand_group, case_schema, make_page, scripted_llm):
        scripted_llm({"resolver": lambda prompt: {"objects": [
            {"data": {"demand_number": "Demand 17"}},
            {"data": {"demand_number": "demand 17"}},
            {"data": {"demand_number": "Demand 17"}},
        ]}})

        objects = await resolve_objects(repository, demand_group, 1, [make_page(2)], [], case_schema)

        assert len(objects) == 1
        assert len(repository.list_objects()) == 1

    @pytest.mark.asyncio
    async def test_near_identical_identifiers_stay_separate(self, repository, demand_group, case_schema, make_page, scripted_llm):
        scripted_llm({"resolver": lambda prompt: {"objects": [
            {"data": {"demand_number": "INV-2023-001"}},
            {"data": {"demand_number": "INV-2023-002"}},
        ]}})

        objects = await resolve_objects(repository, demand_group, 1, [make_page(2)], [], case_schema)

        assert [o.name for o in objects] == ["INV-2023-001", "INV-2023-002"]
        assert len(repository.list_objects()) == 2

    @pytest.mark.asyncio
    async def test_reply_without_objects_raises(self, repository, demand_group, case_schema, make_page, scripted_llm):
        scripted_llm({"resolver": lambda prompt: {"nothing": []}})

        with pytest.raises(ValueError):
            await resolve_objects(repository, demand_group, 1, [make_page(2)], [], case_schema)


# =============================================================================
# Helper tests
# =============================================================================


class TestResolverHelpers:
    """Tests for parse_resolver_response, choose_parent and find_or_create_object."""

    def test_bare_data_is_one_entry(self):
        assert parse_resolver_response({"data": {"demand_number": "D-1"}}) == [{"data": {"demand_number": "D-1"}}]

    @pytest.mark.parametrize("content", [None, [], {"objects": "D-1"}, {"data": "D-1"}])
    def test_unusable_reply_raises(self, content):
        with pytest.raises(ValueError):
            parse_resolver_response(content)

    @pytest.mark.parametrize("proposed,parent_ids,expected", [
        (None, [], None),
        (5, [], None),
        (None, [3], 3),
        (99, [3], 3),
        ("4", [3, 4], 4),
        (5, [3, 4], None),
        ("x", [3, 4], None),
    ])
    def test_choose_parent(self, proposed, parent_ids, expected):
        assert choose_parent(proposed, parent_ids) == expected

    def test_normalised_name_reuses_and_fills_missing(self, repository):
        existing = repository.create_object("Demand", "Demand 17", 1, 1, {"demand_number": "Demand 17", "amount": 100})

        obj = find_or_create_object(repository, "Demand", "demand 17", 1, 1, {"amount": 200, "due_date": "2024-01-01"})

        assert obj.id == existing.id
        assert obj.data == {"demand_number": "Demand 17", "amount": 100, "due_date": "2024-01-01"}

    def test_different_parent_creates_new(self, repository):
        repository.create_object("Demand", "Demand 17", 1, 1, {})
        obj = find_or_create_object(repository, "Demand", "Demand 17", 1, 2, {})
        assert obj.parent_id == 2
        assert len(repository.list_objects()) == 2

    def test_dissimilar_names_create_new(self, repository):
        repository.create_object("Demand", "D-1", 1, 1, {})
        find_or_create_object(repository, "Demand", "D-2", 1, 1, {})
        assert len(repository.list_objects()) == 2

    def test_root_objects_only_match_root_objects(self, repository):
        repository.create_object("Case", "2023-17", 0, 5, {})
        obj = find_or_create_object(repository, "Case", "2023-17", 0, None, {})
        assert obj.parent_id is None
        assert len(repository.list_objects()) == 2

    def test_matching_identity_fields_reuse(self, repository):
        existing = repository.create_object("Demand", "D-1", 1, 1, {"demand_number": "D-1"})
        obj = find_or_create_object(repository, "Demand", "d1", 1, 1, {"demand_number": "d 1"}, ["demand_number"])
        assert obj.id == existing.id

    def test_adjacent_dates_create_new(self, repository):
        repository.create_object("Demand", "January 1st, 2024", 1, 1, {"due_date": "2024-01-01"})
        obj = find_or_create_object(
            repository, "Demand", "January 2nd, 2024", 1, 1, {"due_date": "2024-01-02"}, ["due_date"],
        )
        assert obj.name == "January 2nd, 2024"
        assert len(repository.list_objects()) == 2

    def test_conflicting_identity_field_creates_new(self, repository):
        repository.create_object("Demand", "Smith", 1, 1, {"name": "Smith", "demand_number": "D-1"})
        find_or_create_object(repository, "Demand", "Smith", 1, 1, {"name": "Smith", "demand_number": "D-2"}, ["name", "demand_number"])
        assert len(repository.list_objects()) == 2
