from typing import Any


def dig(obj: Any, *keys, default: Any = None) -> Any:
    """
    Safe nested lookup: dig(log, "meals", "breakfast", "appetite").
    Returns `default` as soon as any level is missing or not a dict.
    """
    current = obj
    for key in keys:
        if not isinstance(current, dict):
            return default
        current = current.get(key)
        if current is None:
            return default
    return current


def has_value(value: Any) -> bool:
    """Presence test used for required fields: blank strings and empty collections don't count."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) > 0
    return True


def compact(payload: dict) -> dict:
    """Drops keys whose value is None, "" or an empty collection."""
    return {key: value for key, value in payload.items() if has_value(value)}
