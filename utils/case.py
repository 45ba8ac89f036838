"""
Shared case conversion for API request/response normalization.
Uses Pydantic's alias_generators for consistency with schema validation.
Mapping keys that carry data (company names in the approvals map) are never converted.
"""
from typing import Any, Iterable

from pydantic.alias_generators import to_camel, to_snake


def to_camel_key(s: str) -> str:
    """Convert a single snake_case key to camelCase (first letter lower)."""
    return to_camel(s)


def to_snake_key(s: str) -> str:
    """Convert a single camelCase key to snake_case."""
    return to_snake(s)


def dict_keys_to_camel(obj: Any, data_keyed: Iterable[str] = ()) -> Any:
    """
    Recursively convert dict keys from snake_case to camelCase for API responses.
    Values under a key listed in `data_keyed` are maps keyed by data: their own keys are kept,
    only the records they hold are converted.
    """
    data_keyed = frozenset(data_keyed)
    if isinstance(obj, dict):
        out = {}
        for k, v in obj.items():
            if k in data_keyed and isinstance(v, dict):
                out[to_camel_key(k)] = {dk: dict_keys_to_camel(dv) for dk, dv in v.items()}
            else:
                out[to_camel_key(k)] = dict_keys_to_camel(v, data_keyed)
        return out
    if isinstance(obj, list):
        return [dict_keys_to_camel(x, data_keyed) for x in obj]
    return obj


def dict_keys_to_snake(obj: Any) -> Any:
    """Recursively convert dict keys from camelCase to snake_case for API input normalization."""
    if isinstance(obj, dict):
        return {to_snake_key(k): dict_keys_to_snake(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [dict_keys_to_snake(x) for x in obj]
    return obj
