"""Roll resolved objects up into a nested parent -> children structure.

The repository stores objects flat, each pointing at its parent. The rollup
nests every object under its parent, children grouped by type, and lists
under each type only the objects with no known parent. Types follow the
plan's level order when a plan is given.
"""

from typing import Any

from tiered_extractor.pydantic_models.artifact_models import DomainObject
from tiered_extractor.pydantic_models.plan_models import ExtractionPlan


def type_order(objects: list[DomainObject], plan: ExtractionPlan | None = None) -> list[str]:
    """Object type names by plan level, then any unplanned types by first level seen."""
    order: list[str] = []
    if plan is not None:
        for level in plan.levels:
            for group in level.identities:
                if group.object_type not in order:
                    order.append(group.object_type)
    for obj in sorted(objects, key=lambda o: (o.level, o.id)):
        if obj.type not in order:
            order.append(obj.type)
    return order


def format_object(obj: DomainObject) -> dict[str, Any]:
    return {
        "id": obj.id,
        "name": obj.name,
        "level": obj.level,
        "data": dict(obj.data),
        "children": {},
    }


def build_rollup(objects: list[DomainObject], plan: ExtractionPlan | None = None) -> dict[str, Any]:
    """Nest `objects` by parent_id.

    Returns:
        {"object_types": {type: {"count", "objects"}}, "summary": {"total_objects", "by_type"}}.
        "objects" holds the roots of that type, each with "children" keyed by
        child type, recursively.
    """
    ordered = sorted(objects, key=lambda o: (o.level, o.id))
    types = type_order(ordered, plan)
    formatted = {obj.id: format_object(obj) for obj in ordered}

    by_type: dict[str, int] = {name: 0 for name in types}
    roots: dict[str, list[dict[str, Any]]] = {name: [] for name in types}

    for obj in ordered:
        by_type[obj.type] += 1
        node = formatted[obj.id]
        parent = formatted.get(obj.parent_id) if obj.parent_id is not None else None
        if parent is None or obj.parent_id == obj.id:
            roots[obj.type].append(node)
        else:
            parent["children"].setdefault(obj.type, []).append(node)

    return {
        "object_types": {
            name: {"count": by_type[name], "objects": roots[name]}
            for name in types
            if by_type[name]
        },
        "summary": {
            "total_objects": len(ordered),
            "by_type": {name: count for name, count in by_type.items() if count},
        },
    }
