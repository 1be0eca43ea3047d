"""JSON schema helpers: object type discovery and fragment selectors.

A fragment selector is the subset of the target schema one extraction call
fills in, as nested {"type", "children"} nodes:

    {"type": "object", "children": {
        "injuries": {"type": "array", "children": {
            "body_part": {"type": "string"}, "severity": {"type": "string"}}}}}
"""

import re
from typing import Any

from tiered_extractor.pydantic_models.plan_models import ObjectType

_NESTED_TYPES = ("object", "array")


def snake_case(value: str) -> str:
    """'Demand Identification' / 'DemandIdentification' -> 'demand_identification'."""
    value = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", value.strip())
    value = re.sub(r"[^A-Za-z0-9]+", "_", value)
    return value.strip("_").lower()


def title_case(key: str) -> str:
    """'body_part' / 'bodyPart' -> 'Body Part'."""
    words = [w for w in re.split(r"[_\s]+|(?=[A-Z])", key) if w]
    return " ".join(w[:1].upper() + w[1:] for w in words)


def primary_type(schema_type: Any, default: str | None = None) -> str | None:
    """First non-null member of a union type (["string", "null"] -> "string")."""
    if isinstance(schema_type, list):
        non_null = [t for t in schema_type if t != "null"]
        return non_null[0] if non_null else default
    return schema_type if schema_type is not None else default


def is_simple_field(prop: dict[str, Any]) -> bool:
    """Scalars and arrays of scalars are simple; objects and arrays of objects are not."""
    prop_type = primary_type(prop.get("type"))
    if prop_type == "object":
        return False
    if prop_type == "array":
        return primary_type((prop.get("items") or {}).get("type")) != "object"
    return True


def _simple_fields(properties: dict[str, Any]) -> dict[str, dict[str, Any]]:
    return {
        key: {"title": prop.get("title") or title_case(key), "description": prop.get("description")}
        for key, prop in properties.items()
        if is_simple_field(prop)
    }


def extract_object_types(schema: dict[str, Any], default_name: str = "Root") -> list[ObjectType]:
    """List every object type in a JSON schema, root first, then depth-first.

    The root object is level 0; each nested object (or array of objects) is
    one level deeper than the object that contains it.
    """
    if primary_type(schema.get("type")) != "object":
        return []

    root_name = schema.get("title") or default_name
    object_types = [
        ObjectType(
            name=root_name,
            path="",
            level=0,
            parent_type=None,
            is_array=False,
            simple_fields=_simple_fields(schema.get("properties") or {}),
        )
    ]
    object_types.extend(_nested_object_types(schema.get("properties") or {}, 1, root_name, ""))
    return object_types


def _nested_object_types(properties: dict[str, Any], level: int, parent_type: str, parent_path: str) -> list[ObjectType]:
    found: list[ObjectType] = []
    for key, prop in properties.items():
        prop_type = primary_type(prop.get("type"))
        if prop_type == "object":
            node, is_array = prop, False
        elif prop_type == "array" and primary_type((prop.get("items") or {}).get("type")) == "object":
            node, is_array = prop["items"], True
        else:
            continue

        path = f"{parent_path}.{key}" if parent_path else key
        name = node.get("title") or title_case(key)
        found.append(
            ObjectType(
                name=name,
                path=path,
                level=level,
                parent_type=parent_type,
                is_array=is_array,
                simple_fields=_simple_fields(node.get("properties") or {}),
            )
        )
        found.extend(_nested_object_types(node.get("properties") or {}, level + 1, name, path))
    return found


# Fragment selectors

def path_type_map(path_parts: list[str], schema: dict[str, Any]) -> dict[str, str]:
    """Map each path part to its schema type ("object" or "array") by walking the schema."""
    type_map: dict[str, str] = {}
    current = schema
    for part in path_parts:
        prop = (current.get("properties") or {}).get(part)
        if not prop:
            type_map[part] = "object"
            break
        part_type = primary_type(prop.get("type"), "object")
        type_map[part] = part_type
        if part_type == "array":
            current = prop.get("items") or {}
        elif part_type == "object":
            current = prop
        else:
            break
    return type_map


def build_fragment_selector(object_path: str, fields: list[str], schema: dict[str, Any], leaf_is_array: bool) -> dict[str, Any]:
    """Selector covering `fields` of the object at `object_path`."""
    selector: dict[str, Any] = {
        "type": "array" if leaf_is_array else "object",
        "children": {field_name: {"type": "string"} for field_name in fields},
    }
    if not object_path:
        return selector

    parts = object_path.split(".")
    types = path_type_map(parts, schema)
    for part in reversed(parts):
        selector = {
            "type": "object",
            "children": {part: {"type": types.get(part, "object"), "children": selector["children"]}},
        }
    return selector


def has_only_scalar_children(children: dict[str, Any]) -> bool:
    return all(
        child.get("type") is not None and child.get("type") not in _NESTED_TYPES
        for child in children.values()
    )


def nesting_keys(selector: dict[str, Any]) -> list[str]:
    """Keys of the nested containers down to the leaf object, outermost first."""
    keys: list[str] = []
    children = selector.get("children") or {}
    while children:
        key = next(iter(children))
        child = children[key]
        if child.get("type") is not None and child.get("type") not in _NESTED_TYPES:
            break
        keys.append(key)
        grandchildren = child.get("children") or {}
        if not grandchildren or has_only_scalar_children(grandchildren):
            break
        children = grandchildren
    return keys


def leaf_key(selector: dict[str, Any], fallback_object_type: str = "") -> str:
    """Key of the object whose children are the extracted fields.

    Flat selectors (fields directly at the root) use the snake-cased
    object type instead.
    """
    keys = nesting_keys(selector)
    return keys[-1] if keys else snake_case(fallback_object_type)


def leaf_node(selector: dict[str, Any]) -> dict[str, Any]:
    """The selector node holding the scalar fields."""
    node = selector
    for key in nesting_keys(selector):
        node = node["children"][key]
    return node


def selector_fields(selector: dict[str, Any]) -> list[str]:
    """Scalar field names selected at the leaf."""
    return list((leaf_node(selector).get("children") or {}).keys())


def is_leaf_array(selector: dict[str, Any]) -> bool:
    """True when the leaf object is a list item (many objects per parent)."""
    return leaf_node(selector).get("type") == "array"


def selector_parent_type(selector: dict[str, Any]) -> str | None:
    """Title-cased key of the container one above the leaf, or None for root objects."""
    keys = nesting_keys(selector)
    if len(keys) < 2:
        return None
    return keys[-2].replace("_", " ").title()


def leaf_json_schema(selector: dict[str, Any], schema: dict[str, Any]) -> dict[str, Any]:
    """JSON schema for the selected leaf fields, with types and descriptions from `schema`.

    Used to tell the LLM exactly which fields to return.
    """
    node = schema
    for key in nesting_keys(selector):
        prop = (node.get("properties") or {}).get(key) or {}
        node = prop.get("items", prop) if primary_type(prop.get("type")) == "array" else prop

    source_props = node.get("properties") or {}
    properties = {}
    for field_name in selector_fields(selector):
        source = source_props.get(field_name) or {"type": "string"}
        properties[field_name] = {k: v for k, v in source.items() if k in ("type", "description", "enum", "format", "items")}
    return {"type": "object", "properties": properties}
