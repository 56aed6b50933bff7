from typing import Any, Dict

SEPARATOR = "_"


def _strip_separator(path: str) -> str:
    return path[: -len(SEPARATOR)] if path.endswith(SEPARATOR) else path


def flatten_deep(obj: Any, prefix: str = "") -> Dict[str, Any]:
    """Collapse nested dicts into a flat mapping of joined path -> leaf value.

    Lists and dates are leaves and are never recursed into. None values and
    empty dicts contribute no keys.
    """
    out: Dict[str, Any] = {}

    def recurse(cur: Any, pre: str) -> None:
        if cur is None:
            return
        if isinstance(cur, dict):
            for key, value in cur.items():
                recurse(value, f"{pre}{key}{SEPARATOR}")
            return
        out[_strip_separator(pre)] = cur

    # a bare root leaf has no path to name it
    if not isinstance(obj, dict) and not prefix:
        return out

    recurse(obj, prefix)
    return out


def remove_duplicates(base: Dict[str, Any], flat: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys of ``flat`` already covered by a key of ``base`` or one of its descendants."""
    cleaned = {}
    for key, value in flat.items():
        duplicate = any(
            key == base_key or key.startswith(base_key + SEPARATOR) for base_key in base
        )
        if not duplicate:
            cleaned[key] = value
    return cleaned


def path_to_key(path: str) -> str:
    """Turn a dotted rule path into the key ``flatten_deep`` would produce for it."""
    return path.replace(".", SEPARATOR)
