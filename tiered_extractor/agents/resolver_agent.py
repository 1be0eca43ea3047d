"""Resolver agent: discovers the objects of one identity group.

Reads the pages classified for the group, extracts the identity (skim)
fields of every object it finds, and turns each into a DomainObject. An
object already known under the same type, parent and normalised identity is reused
rather than duplicated, so retried units and overlapping pages converge on
one object.
"""

import logging
from typing import Any

from rapidfuzz import fuzz, process, utils

from tiered_extractor.core.config import DEFAULT_MODELS, ClassificationConfig, ResolutionConfig
from tiered_extractor.core.cost_tracker import CostTracker
from tiered_extractor.core.llm_client import LLMClient
from tiered_extractor.core.repository import Repository
from tiered_extractor.core.schema_tools import is_leaf_array, leaf_json_schema, selector_fields
from tiered_extractor.core.value_helpers import format_name_value, resolve_object_name
from tiered_extractor.pydantic_models.artifact_models import Artifact, DomainObject
from tiered_extractor.pydantic_models.plan_models import IdentityGroup
from tiered_extractor.prompts.extraction_prompt import RESOLVER_SYSTEM_PROMPT, build_resolver_prompt, format_pages

logger = logging.getLogger(__name__)


async def resolve_objects(
    repository: Repository,
    group: IdentityGroup,
    level: int,
    pages: list[Artifact],
    parent_objects: list[DomainObject],
    schema: dict[str, Any],
    model: str = DEFAULT_MODELS["resolver"],
    cost_tracker: CostTracker | None = None,
) -> list[DomainObject]:
    """Find and register the objects of `group` on `pages`.

    Args:
        repository: Where objects are looked up and created.
        group: Identity group being resolved.
        level: Plan level of the group.
        pages: Pages classified for the group, in position order.
        parent_objects: Eligible parents (resolved at level - 1).
        schema: Target JSON schema, for field types and descriptions.

    Returns:
        Resolved objects in response order, without duplicates.

    Raises:
        ValueError: If the reply has no objects list.
    """
    if not pages:
        return []

    is_array = is_leaf_array(group.fragment_selector)
    fields = selector_fields(group.fragment_selector) or group.skim_fields
    fields_schema = leaf_json_schema(group.fragment_selector, schema)
    candidates = [{"id": p.id, "type": p.type, "name": p.name} for p in parent_objects]

    client = LLMClient(cost_tracker=cost_tracker)
    response = await client.complete(
        system_prompt=RESOLVER_SYSTEM_PROMPT,
        user_prompt=build_resolver_prompt(
            group.object_type,
            is_array,
            fields_schema,
            candidates,
            format_pages(pages, ClassificationConfig.MAX_PAGE_CHARS),
        ),
        model=model,
        agent="resolver",
    )
    entries = parse_resolver_response(response.content)

    parent_ids = [p.id for p in parent_objects]
    resolved: list[DomainObject] = []
    seen_parents: set[int | None] = set()

    for entry in entries:
        data = {k: v for k, v in (entry.get("data") or {}).items() if k in fields}
        name = resolve_object_name(data, group.identity_fields)
        if name is None:
            logger.debug(f"Skipping {group.object_type} without identity values: {data}")
            continue

        parent_id = choose_parent(entry.get("parent_id"), parent_ids)
        if parent_ids and parent_id is None:
            logger.debug(f"Skipping {group.object_type} '{name}': no eligible parent")
            continue
        if not is_array:
            if parent_id in seen_parents:
                continue
            seen_parents.add(parent_id)

        obj = find_or_create_object(repository, group.object_type, name, level, parent_id, data, group.identity_fields)
        if all(obj.id != r.id for r in resolved):
            resolved.append(obj)

    return resolved


def parse_resolver_response(content: Any) -> list[dict[str, Any]]:
    """Object entries of a resolver reply. A bare {"data": ...} counts as one entry."""
    if isinstance(content, dict) and isinstance(content.get("objects"), list):
        return [e for e in content["objects"] if isinstance(e, dict)]
    if isinstance(content, dict) and isinstance(content.get("data"), dict):
        return [content]
    raise ValueError("Resolver reply has no objects list")


def choose_parent(proposed: Any, parent_ids: list[int]) -> int | None:
    """Parent id for a new object.

    The proposed id must be one of the eligible parents; with a single
    eligible parent that parent is used regardless.
    """
    if not parent_ids:
        return None
    if len(parent_ids) == 1:
        return parent_ids[0]
    try:
        proposed_id = int(proposed)
    except (TypeError, ValueError):
        return None
    return proposed_id if proposed_id in parent_ids else None


def find_or_create_object(
    repository: Repository,
    object_type: str,
    name: str,
    level: int,
    parent_id: int | None,
    data: dict[str, Any],
    identity_fields: list[str] | None = None,
) -> DomainObject:
    """Reuse an object with the same type, parent and identity, or create one.

    Identities are compared exactly after normalisation (case, punctuation and
    spacing ignored). Identity fields present on both sides must all agree;
    when none are shared the object names are compared instead. A near miss
    on the name is only logged: "INV-001" and "INV-002" are two objects.

    A reused object keeps its values; only fields it lacks are filled in.
    """
    existing = repository.find_objects(object_type, parent_id=parent_id, level=level)
    if parent_id is None:
        existing = [obj for obj in existing if obj.parent_id is None]

    key = identity_key(data, identity_fields or [])
    match = next((obj for obj in existing if same_identity(obj, name, key, identity_fields or [])), None)

    if match is None:
        if existing:
            near = process.extractOne(
                name,
                [obj.name for obj in existing],
                scorer=fuzz.token_sort_ratio,
                processor=utils.default_process,
            )
            if near is not None and near[1] >= ResolutionConfig.NAME_MATCH_THRESHOLD:
                logger.debug(f"{object_type} '{name}' is close to '{near[0]}' ({near[1]:.0f}) but kept separate")
        return repository.create_object(object_type, name, level, parent_id, data)

    filled = {k: v for k, v in data.items() if v is not None and match.data.get(k) in (None, "")}
    if filled:
        match.data.update(filled)
        repository.save_object(match)
    return match


def identity_key(data: dict[str, Any], identity_fields: list[str]) -> dict[str, str]:
    """Normalised scalar identity values of `data`, by field."""
    key = {}
    for field_name in identity_fields:
        value = data.get(field_name)
        if value is None or value == "" or isinstance(value, (dict, list)):
            continue
        key[field_name] = utils.default_process(format_name_value(value))
    return key


def same_identity(obj: DomainObject, name: str, key: dict[str, str], identity_fields: list[str]) -> bool:
    """Whether `obj` is the object identified by `name` and `key`."""
    other = identity_key(obj.data, identity_fields)
    shared = key.keys() & other.keys()
    if shared:
        return all(key[f] == other[f] for f in shared)
    return utils.default_process(name) == utils.default_process(obj.name)
