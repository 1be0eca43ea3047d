"""Extraction prompts: discovering objects and filling in their fields."""

import json

from tiered_extractor.pydantic_models.artifact_models import Artifact

RESOLVER_SYSTEM_PROMPT = """You find objects in documents and extract the fields that identify them.

## Rules

1. Read every page. Report each distinct object of the requested type exactly once
2. Extract only the requested identity fields; use null for a field you cannot find
3. Never invent values. Copy names, numbers and dates as written
4. If parent candidates are listed, set parent_id to the id of the parent each object belongs to.
   Use null only when no candidate fits
5. If the type is not a list type, report at most one object per parent

## Output Format

Return a JSON object:
{
  "objects": [
    {"parent_id": <candidate id or null>, "data": {"<field>": <value>, ...}}
  ]
}
"""

EXTRACTOR_SYSTEM_PROMPT = """You extract structured data from document pages into an existing object.

## Rules

1. Extract only the requested fields for the object described
2. If a field cannot be found, set it to null
3. Never invent values. Copy names, numbers and dates as written
4. Existing data is shown for context: keep it unless the pages clearly give a better value

## Output Format

Return a JSON object:
{
  "data": {"<field>": <value>, ...}
}
"""

CONFIDENCE_INSTRUCTIONS = """
Also rate your confidence (1-5) for each requested field:
  1 = Very uncertain, likely incorrect
  2 = Uncertain, might be incorrect
  3 = Moderately confident, probably correct
  4 = Confident, very likely correct
  5 = Highly confident, definitely correct

Return:
{
  "data": {"<field>": <value>, ...},
  "confidence": {"<field>": <1-5>, ...}
}
"""


def format_pages(pages: list[Artifact], max_chars: int) -> str:
    """Render pages as '--- Page <name> ---' sections, cutting each to max_chars."""
    sections = []
    for page in pages:
        label = page.name or str(page.position)
        sections.append(f"--- Page {label} (id {page.id}) ---\n{page.text[:max_chars]}")
    return "\n\n".join(sections)


def build_resolver_prompt(
    object_type: str,
    is_array: bool,
    fields_schema: dict,
    parent_candidates: list[dict],
    pages_text: str,
) -> str:
    """Build the user prompt for discovering objects of one type.

    Args:
        object_type: Type to discover ("Injury").
        is_array: Whether each parent may hold several objects.
        fields_schema: JSON schema of the identity fields.
        parent_candidates: [{"id", "type", "name"}] objects the new ones may belong to.
        pages_text: Pages classified for this identity group.
    """
    parts = [
        f"## Object Type: {object_type}",
        f"List type: {'Yes' if is_array else 'No'}",
        "",
        "## Identity Fields",
        json.dumps(fields_schema, indent=2),
    ]
    if parent_candidates:
        parts += ["", "## Parent Candidates", json.dumps(parent_candidates, indent=2)]
    parts += ["", "## Pages", pages_text]
    return "\n".join(parts)


def build_extraction_prompt(
    group_name: str,
    object_type: str,
    object_name: str,
    existing_data: dict,
    fields_schema: dict,
    pages_text: str,
    include_confidence: bool = False,
) -> str:
    """Build the user prompt for one remaining group on one object."""
    parts = [
        f"## Group: {group_name}",
        f"Object: {object_type} \"{object_name}\"",
    ]
    if existing_data:
        parts += ["", "## Existing Data", json.dumps(existing_data, indent=2, default=str)]
    parts += ["", "## Fields to Extract", json.dumps(fields_schema, indent=2)]
    if include_confidence:
        parts.append(CONFIDENCE_INSTRUCTIONS)
    parts += ["", "## Pages", pages_text]
    return "\n".join(parts)
