"""Classifier prompts: flag which extraction groups a page is relevant to."""

import json

CLASSIFIER_SYSTEM_PROMPT = """You classify document pages for data extraction.

You receive one page and a set of boolean properties. Each property stands
for a group of fields to extract; its description says what pages relevant
to the group look like.

## Rules

1. Set a property to true only if this page contains (or clearly continues) information for that group
2. Set it to false otherwise, including when you are unsure
3. Return every property, and only these properties
4. Values must be JSON booleans

## Output Format

Return a JSON object mapping each property name to true or false.
"""


def build_classifier_prompt(page_name: str, page_text: str, boolean_schema: dict, max_chars: int) -> str:
    """Build the user prompt for classifying one page.

    Args:
        page_name: Page label shown to the model.
        page_text: Page content, cut to max_chars.
        boolean_schema: Classification schema with one boolean per group.
        max_chars: Maximum characters of page text to include.
    """
    properties = {
        key: prop.get("description", "")
        for key, prop in (boolean_schema.get("properties") or {}).items()
    }
    text = page_text[:max_chars]
    return (
        f"## Properties\n{json.dumps(properties, indent=2)}\n\n"
        f"## Page: {page_name}\n{text}"
    )
