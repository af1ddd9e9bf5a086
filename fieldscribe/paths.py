"""Dot-path helpers with host semantics.

``get_property`` walks mappings by key and other objects by attribute, so
the same path works against a plain dict tree and against a host record
(``record.system["details"]...``). ``set_property`` only ever builds plain
nested dicts: it is how patches are assembled before they reach the host.
"""

from collections.abc import Mapping, MutableMapping
from typing import Any, List

_MISSING = object()


def split_path(path: str) -> List[str]:
    """Split a dot path into its non-empty segments."""
    if not path:
        return []
    return [part for part in str(path).split(".") if part]


def _step(obj: Any, key: str) -> Any:
    if obj is None:
        return _MISSING
    if isinstance(obj, Mapping):
        return obj[key] if key in obj else _MISSING
    if isinstance(obj, (list, tuple)):
        try:
            return obj[int(key)]
        except (ValueError, IndexError):
            return _MISSING
    if isinstance(obj, (str, bytes, int, float, bool)):
        return _MISSING
    return getattr(obj, key, _MISSING)


def get_property(obj: Any, path: str, default: Any = None) -> Any:
    """Resolve ``path`` inside ``obj``; ``default`` when any step is missing."""
    current = obj
    for key in split_path(path):
        current = _step(current, key)
        if current is _MISSING:
            return default
    return current


def has_property(obj: Any, path: str) -> bool:
    """True when every segment of ``path`` exists (the leaf may be None)."""
    parts = split_path(path)
    if not parts:
        return False
    current = obj
    for key in parts:
        current = _step(current, key)
        if current is _MISSING:
            return False
    return True


def set_property(target: MutableMapping, path: str, value: Any) -> MutableMapping:
    """Set ``path`` to ``value`` in ``target``, creating nested dicts.

    Pure with respect to the host: no I/O, just builds up a patch object.
    Intermediate non-mapping values are replaced.
    """
    parts = split_path(path)
    if not parts:
        raise ValueError("path must contain at least one segment")
    node = target
    for key in parts[:-1]:
        child = node.get(key)
        if not isinstance(child, MutableMapping):
            child = {}
            node[key] = child
        node = child
    node[parts[-1]] = value
    return target


def flatten_patch(patch: Mapping[str, Any], prefix: str = "") -> List[tuple]:
    """Flatten a nested patch into ``(path, value)`` pairs, leaves only."""
    pairs: List[tuple] = []
    for key, value in patch.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping) and value:
            pairs.extend(flatten_patch(value, path))
        else:
            pairs.append((path, value))
    return pairs
