"""Planner prompts for building the extraction plan.

Two questions per object type: which fields identify one object (identity
planning), and how the rest of its fields should be grouped for extraction
(remaining planning). A follow-up prompt re-asks for fields the previous
grouping left out.
"""

from tiered_extractor.pydantic_models.plan_models import ObjectType

IDENTITY_SYSTEM_PROMPT = """You plan structured data extraction from multi-page documents.

## Your Task

For ONE object type of a target schema, choose the fields that identify an
instance of that type, and the cheap fields worth reading in the same pass.

## Rules

1. **identity_fields**: the smallest set of fields that tells two instances apart
   - Prefer names, dates, numbers and explicit identifiers
   - For list types (Is Array: Yes) identity matters most: every instance must be distinguishable
   - Only use field names from the Available Simple Fields list
2. **skim_fields**: identity_fields plus other simple fields that are quick to read alongside them
   - MUST include every identity field
   - Must not exceed Group Max Points fields
3. **search_mode**: "skim" if identity information sits on a few pages, "exhaustive" if it is scattered
4. **description**: what pages containing the identity fields look like (sections, headings, cues).
   It is used to classify pages by relevance, so be concrete.
5. **reasoning**: one or two sentences

## Output Format

Return a JSON object:
{
  "identity_fields": ["<field>", ...],
  "skim_fields": ["<field>", ...],
  "search_mode": "skim" | "exhaustive",
  "description": "<page description>",
  "reasoning": "<why>"
}
"""

REMAINING_SYSTEM_PROMPT = """You plan structured data extraction from multi-page documents.

## Your Task

Group the remaining fields of ONE object type into extraction groups. Each
group becomes one extraction call over the pages classified for it.

## Rules

1. Every listed field must appear in exactly one group
2. No group may hold more than Group Max Points fields
3. Group fields that sit in the same part of a document (an address block, a billing section)
4. Give each group a short descriptive name and a description of the pages that contain it
5. search_mode per group:
   - "skim": simple, obvious fields found on one or two pages
   - "exhaustive": detailed or scattered fields that need every relevant page

## Output Format

Return a JSON object:
{
  "extraction_groups": [
    {"name": "<group name>", "description": "<page description>", "fields": ["<field>", ...], "search_mode": "skim" | "exhaustive"}
  ]
}
"""


def _fields_block(fields: dict[str, dict]) -> str:
    lines = []
    for key, info in fields.items():
        line = f"- {key}: {info.get('title') or key}"
        if info.get("description"):
            line += f" ({info['description']})"
        lines.append(line)
    return "\n".join(lines) if lines else "(none)"


def build_identity_prompt(object_type: ObjectType, group_max_points: int, hints: str | None = None) -> str:
    """Build the user prompt for identity planning of one object type."""
    parts = [
        "## Object Type",
        f"Name: {object_type.name}",
        f"Path: {object_type.path or '(root)'}",
        f"Level: {object_type.level}",
    ]
    if object_type.parent_type:
        parts.append(f"Parent Type: {object_type.parent_type}")
    parts.append(f"Is Array: {'Yes' if object_type.is_array else 'No'}")
    parts += ["", "## Available Simple Fields", _fields_block(object_type.simple_fields), ""]
    parts.append(f"Group Max Points: {group_max_points}")
    if hints:
        parts += ["", "## Hints from the user", hints]
    return "\n".join(parts)


def build_remaining_prompt(object_type: ObjectType, fields: dict[str, dict], group_max_points: int, hints: str | None = None) -> str:
    """Build the user prompt for grouping an object type's remaining fields."""
    parts = [
        "## Object Type",
        f"Name: {object_type.name}",
        f"Path: {object_type.path or '(root)'}",
        f"Level: {object_type.level}",
        "",
        "## Remaining Fields to Group",
        "These fields were not part of the identity skim pass:",
        _fields_block(fields),
        "",
        f"Group Max Points: {group_max_points}",
    ]
    if hints:
        parts += ["", "## Hints from the user", hints]
    return "\n".join(parts)


def build_remaining_followup_prompt(object_type: ObjectType, missing: dict[str, dict], group_max_points: int, attempt: int) -> str:
    """Build the follow-up prompt listing fields the previous answer missed."""
    return "\n".join([
        f"## Follow-up (attempt {attempt})",
        f"Your previous answer for {object_type.name} left these fields out. "
        "Group ALL of them now, using the same JSON format:",
        _fields_block(missing),
        "",
        f"Group Max Points: {group_max_points}",
    ])

