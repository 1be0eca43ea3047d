"""Prompts for the classification correction passes.

Deduplication normalises label spellings across all pages in one call.
Verification re-reads a small window of neighbouring pages and corrects
labels that only look wrong with that context. Category matching assigns
uncategorised pages to a neighbouring category.
"""

import json

DEDUPLICATION_SYSTEM_PROMPT = """You normalise classification labels extracted from many document pages.

Some labels name the same thing with different wording, casing, spelling or
abbreviation ("Dan Newman" / "Danny Newman", "Primary" / "Main").

## Rules

1. Map each label that needs to change to its canonical form
2. Choose the most complete, most common spelling as the canonical form
3. Only map labels that refer to the same thing. Different things keep different labels
4. Leave out labels that are already canonical
5. Canonical forms must be one of the given labels or a cleaned-up version of them

## Output Format

Return a JSON object:
{
  "mappings": {"<original label>": "<canonical label>", ...}
}
"""

VERIFICATION_SYSTEM_PROMPT = """You verify page classifications using the context of neighbouring pages.

Each page was classified on its own. With the neighbouring pages in view, a
value that looked right in isolation may turn out to be wrong (a page that
continues the previous section, a name only spelled out on the next page).

## Rules

1. Check every page in the window, not only the one in focus
2. Correct a value ONLY if the context shows it is wrong under the classification rule
3. Ignore formatting differences; this is about correctness
4. Only use artifact ids that appear in the window
5. If every value is correct, return an empty corrections list

## Output Format

Return a JSON object:
{
  "corrections": [
    {"artifact_id": <id>, "corrected_value": <value>, "reason": "<why>"}
  ]
}
"""


def build_deduplication_prompt(labels: list[str]) -> str:
    """Build the user prompt listing the distinct labels to normalise."""
    return f"## Labels\n{json.dumps(labels, indent=2)}"


def build_verification_prompt(property_name: str, property_rule: str, window: list[dict]) -> str:
    """Build the user prompt for one verification window.

    Args:
        property_name: Classification property being verified.
        property_rule: The property's description from the classification schema.
        window: Ordered context entries with position, artifact_id, value,
            content and focus.
    """
    return (
        f"## Property: {property_name}\n"
        f"Rule: {property_rule or '(no rule given)'}\n\n"
        f"## Context Window\n{json.dumps(window, indent=2, default=str)}"
    )


CATEGORY_SYSTEM_PROMPT = """You assign document pages to categories.

Some pages in a sequence have no category yet. Using the content of every
page in the run, assign each page to the best-matching category from the list.

## Rules

1. You MUST choose a category from the list for every page, even if none fits perfectly
2. Each page number must appear in exactly one category
3. If two listed categories clearly refer to the same thing, use one of them and leave the other unused

## Output Format

Return a JSON object:
{
  "categories": [
    {"category": "<category>", "pages": [<page numbers>]}
  ]
}
"""


def build_category_prompt(categories: list[str], page_numbers: list[int], pages_json: str) -> str:
    """Build the user prompt for assigning a run of pages to categories."""
    category_lines = "\n".join(f"* {c}" for c in categories)
    return (
        f"## Categories\n{category_lines}\n\n"
        f"## Page numbers to assign\n{json.dumps(page_numbers)}\n\n"
        f"## Pages\n{pages_json}"
    )
