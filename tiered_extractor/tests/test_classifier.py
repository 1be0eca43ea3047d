"""Tests for tiered_extractor.agents.classifier_agent module.

Tests:
- classify_artifact(): LLM call, cache reuse, merge into meta
- normalize_flags(): only literal true counts
- artifacts_for_category(): flagged pages in position order
"""

import pytest

from tiered_extractor.agents.classifier_agent import (
    CACHE_KEY,
    artifacts_for_category,
    classification_cache_key,
    classify_artifact,
    merge_classification,
    normalize_flags,
)

BOOLEAN_SCHEMA = {
    "type": "object",
    "properties": {
        "case_identification": {"type": "boolean", "description": "Pages relevant for identifying Case objects"},
        "demand_details": {"type": "boolean", "description": "Amounts and dates"},
    },
}


# =============================================================================
# classify_artifact tests
# =============================================================================


class TestClassifyArtifact:
    """Tests for classify_artifact()."""

    @pytest.mark.asyncio
    async def test_flags_merged_into_meta(self, make_page, scripted_llm):
        llm = scripted_llm({"classifier": lambda prompt: {"case_identification": True, "demand_details": "yes"}})
        page = make_page(1, "Case No. 2023-17", classification={"section": "Intro"})

        flags = await classify_artifact(page, BOOLEAN_SCHEMA, "7:abc")

        assert flags == {"case_identification": True, "demand_details": False}
        assert page.classification == {"section": "Intro", "case_identification": True, "demand_details": False}
        prompt = llm.calls_for("classifier")[0]
        assert "## Page: Page 1" in prompt
        assert "Case No. 2023-17" in prompt

    @pytest.mark.asyncio
    async def test_cached_result_skips_llm(self, make_page, scripted_llm):
        llm = scripted_llm({"classifier": lambda prompt: {"case_identification": True}})
        page = make_page(1)

        await classify_artifact(page, BOOLEAN_SCHEMA, "7:abc")
        page.meta["classification"] = {}
        flags = await classify_artifact(page, BOOLEAN_SCHEMA, "7:abc")

        assert len(llm.calls) == 1
        assert flags["case_identification"] is True
        assert page.classification["case_identification"] is True

    @pytest.mark.asyncio
    async def test_different_key_classifies_again(self, make_page, scripted_llm):
        llm = scripted_llm({"classifier": lambda prompt: {"case_identification": True}})
        page = make_page(1)

        await classify_artifact(page, BOOLEAN_SCHEMA, "7:abc")
        await classify_artifact(page, BOOLEAN_SCHEMA, "7:def")

        assert len(llm.calls) == 2
        assert set(page.meta[CACHE_KEY]) == {"7:abc", "7:def"}

    @pytest.mark.asyncio
    async def test_api_error_propagates(self, make_page, scripted_llm):
        def down(prompt):
            raise RuntimeError("503")

        scripted_llm({"classifier": down})
        page = make_page(1)

        with pytest.raises(RuntimeError):
            await classify_artifact(page, BOOLEAN_SCHEMA, "7:abc")
        assert not page.is_classified

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reply", ["garbage", None, ["case_identification"]])
    async def test_malformed_reply_raises_without_caching(self, make_page, scripted_llm, reply):
        scripted_llm({"classifier": lambda prompt: reply})
        page = make_page(1)

        with pytest.raises(ValueError):
            await classify_artifact(page, BOOLEAN_SCHEMA, "7:abc")
        assert CACHE_KEY not in page.meta
        assert not page.is_classified

    def test_cache_key(self):
        assert classification_cache_key(7, "abc") == "7:abc"


# =============================================================================
# Helper tests
# =============================================================================


class TestClassificationHelpers:
    """Tests for flag normalisation and lookup."""

    @pytest.mark.parametrize("content", [None, "true", ["case_identification"]])
    def test_non_dict_reply_is_all_false(self, content):
        assert normalize_flags(content, BOOLEAN_SCHEMA) == {"case_identification": False, "demand_details": False}

    def test_extra_keys_dropped(self):
        flags = normalize_flags({"case_identification": True, "other": True}, BOOLEAN_SCHEMA)
        assert flags == {"case_identification": True, "demand_details": False}

    def test_truthy_values_are_not_true(self):
        flags = normalize_flags({"case_identification": 1, "demand_details": "true"}, BOOLEAN_SCHEMA)
        assert flags == {"case_identification": False, "demand_details": False}

    def test_merge_keeps_existing_keys(self, make_page):
        page = make_page(1, classification={"section": "Intro", "case_identification": False})
        merge_classification(page, {"case_identification": True})
        assert page.classification == {"section": "Intro", "case_identification": True}

    def test_artifacts_for_category(self, make_page):
        pages = [
            make_page(3, classification={"demand_details": True}, position=3),
            make_page(1, classification={"demand_details": True}, position=1),
            make_page(2, classification={"demand_details": False}, position=2),
            make_page(4, classification={"demand_details": "true"}, position=4),
            make_page(5),
        ]
        assert [p.id for p in artifacts_for_category(pages, "demand_details")] == [1, 3]
