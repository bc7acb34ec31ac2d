"""
Form Data Utility - turn flattened multipart keys into nested objects.

Browsers post nested fields as flat keys:
    company.name=Acme
    company.contact.email=hr@acme.io
    company.industry[]=mining
    candidate[yearsExperience]=1-3

group_form_fields() rebuilds them into
    {"company": {"name": "Acme", "contact": {"email": ...}, "industry": ["mining"]},
     "candidate": {"yearsExperience": "1-3"}}

and coerce_* helpers turn the text values into the types the profile
documents expect.
"""

import re
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

_BRACKET = re.compile(r"\[([^\]]*)\]")


def split_key(key: str) -> List[str]:
    """'company[contact][email]' / 'company.contact.email' -> ['company', 'contact', 'email']"""
    key = _BRACKET.sub(lambda m: "." + m.group(1) if m.group(1) else "[]", key)
    parts = [part for part in key.split(".") if part]
    return parts


def group_form_fields(items: Iterable[Tuple[str, Any]]) -> Dict[str, Any]:
    """
    Build a nested dict out of (key, value) pairs.

    A trailing "[]" or a repeated key collects values into a list.
    """
    result: Dict[str, Any] = {}
    for raw_key, value in items:
        parts = split_key(raw_key)
        if not parts:
            continue

        is_list = parts[-1].endswith("[]")
        parts[-1] = parts[-1][:-2] if is_list else parts[-1]

        node = result
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child

        leaf = parts[-1]
        if is_list:
            existing = node.get(leaf)
            if existing is None:
                node[leaf] = [value]
            elif isinstance(existing, list):
                existing.append(value)
            else:
                node[leaf] = [existing, value]
        elif leaf in node:
            existing = node[leaf]
            node[leaf] = existing + [value] if isinstance(existing, list) else [existing, value]
        else:
            node[leaf] = value
    return result


# ============================================================
# COERCION HELPERS
# ============================================================

def coerce_bool(value: Any, default: Optional[bool] = None) -> Optional[bool]:
    """'true'/'false' (any case) -> bool; other strings pass through for validation."""
    if value is None:
        return default
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
        if lowered == "":
            return default
    return value


def coerce_number(value: Any) -> Any:
    """'1999' -> 1999, '85000.50' -> 85000.5, '' -> None; junk passes through for validation."""
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return value
    return value


def coerce_date(value: Any) -> Any:
    """ISO date or datetime text -> date; '' -> None; junk passes through for validation."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return value
    return value


def coerce_set(value: Any) -> List[Any]:
    """
    Single value, comma list or collection -> de-duplicated list (order kept).

    Nested lists or objects are passed through unchanged so profile
    validation can reject them.
    """
    if value is None:
        return []
    if isinstance(value, str):
        items = [part.strip() for part in value.split(",")]
    elif isinstance(value, (list, tuple, set)):
        items = [item.strip() if isinstance(item, str) else item for item in value]
    else:
        items = [value]

    result = []
    for item in items:
        if item is None or item == "" or item in result:
            continue
        result.append(item)
    return result
