from __future__ import annotations

from typing import Any


def get_nested_value(source: Any, path: str) -> Any:
    """
    Resolve a dot-separated path inside nested dictionaries.

    Args:
        source: The object to walk.
        path: Keys joined by dots, e.g. ``"context.property_id"``.

    Returns:
        The value found at the path, or None if any step is missing or
        is not an object.
    """
    current: Any = source
    for key in path.split("."):
        if not isinstance(current, dict) or key not in current:
            return None
        current = current[key]
    return current


def set_nested_value(target: dict[str, Any], path: str, value: Any) -> None:
    """Set a value at a dot-separated path, creating objects along the way."""
    parts = path.split(".")
    current = target
    for key in parts[:-1]:
        child = current.get(key)
        if not isinstance(child, dict):
            child = {}
            current[key] = child
        current = child
    current[parts[-1]] = value
