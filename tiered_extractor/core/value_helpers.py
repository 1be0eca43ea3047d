"""Helpers for reading label-style classification values.

Classification values come in three shapes: plain strings, objects carrying
an `id` and/or `name` (plus free-form siblings such as reasoning or
confidence), and everything else (booleans, numbers, null), which never acts
as a label.

Also formats identity values into human-readable object names.
"""

import math
import re
from datetime import datetime
from typing import Any


def comparable_value(value: Any) -> str | None:
    """Reduce a classification value to the string used for comparisons.

    Strings are trimmed. Objects give their `id`, else their `name`.
    Anything else, and empty results, give None.
    """
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, dict):
        for key in ("id", "name"):
            candidate = value.get(key)
            if isinstance(candidate, str) and candidate.strip():
                return candidate.strip()
            if candidate is not None and not isinstance(candidate, (bool, dict, list)):
                return str(candidate)
    return None


def replace_label(value: Any, new_label: Any, keys: tuple[str, ...] = ("name", "id")) -> Any:
    """Return `value` with its label replaced, keeping object structure.

    For objects the first of `keys` present is overwritten and sibling keys
    are untouched; an object with none of them is replaced wholesale, as is
    any non-object value.
    """
    if isinstance(value, dict):
        for key in keys:
            if key in value:
                return {**value, key: new_label}
    return new_label


# Object naming

_ISO_DATE = re.compile(r"^\d{4}[-/]\d{2}[-/]\d{2}$")


def _ordinal(day: int) -> str:
    if 11 <= day % 100 <= 13:
        return f"{day}th"
    suffixes = {1: "st", 2: "nd", 3: "rd"}
    return f"{day}{suffixes.get(day % 10, 'th')}"


def format_name_value(value: Any) -> str:
    """Format an identity value for use as an object name.

    Booleans become Yes/No, ISO dates "October 31st, 2017", numbers get
    thousands separators (two decimals when fractional).
    """
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, str):
        text = value.strip()
        if text.lower() in ("true", "false"):
            return "Yes" if text.lower() == "true" else "No"
        if _ISO_DATE.match(text):
            try:
                parsed = datetime.strptime(text.replace("/", "-"), "%Y-%m-%d")
            except ValueError:
                return text
            return f"{parsed.strftime('%B')} {_ordinal(parsed.day)}, {parsed.year}"
        try:
            number = float(text.replace(",", ""))
        except ValueError:
            return text
        if not math.isfinite(number):
            return text
        value = number
    if isinstance(value, (int, float)):
        if float(value).is_integer():
            return f"{int(value):,}"
        return f"{value:,.2f}"
    return str(value)


def resolve_object_name(data: dict[str, Any], identity_fields: list[str]) -> str | None:
    """Name for a resolved object: its `name` field, else the first non-empty identity value."""
    name = data.get("name")
    if isinstance(name, str) and name.strip():
        return name.strip()
    for field_name in identity_fields:
        if field_name == "name":
            continue
        value = data.get(field_name)
        if value is None or value == "" or isinstance(value, (dict, list)):
            continue
        return format_name_value(value)
    return None
