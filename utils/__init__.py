"""Case conversion helpers shared by the API layer and the loan snapshot reader."""
from utils.case import dict_keys_to_camel, dict_keys_to_snake, to_camel_key, to_snake_key

__all__ = [
    "to_camel_key",
    "to_snake_key",
    "dict_keys_to_camel",
    "dict_keys_to_snake",
]
