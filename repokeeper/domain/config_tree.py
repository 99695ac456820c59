from collections.abc import Mapping
from typing import Any, Dict, Iterator, Optional, Tuple

from repokeeper.domain.exceptions import ConfigFormatError


def freeze(value: Any) -> Any:
    """Converts a plain YAML value into its immutable counterpart."""
    if isinstance(value, ConfigMapping):
        return value
    if isinstance(value, Mapping):
        return ConfigMapping(value)
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    return value


def thaw(value: Any) -> Any:
    if isinstance(value, ConfigMapping):
        return value.to_dict()
    if isinstance(value, tuple):
        return [thaw(item) for item in value]
    return value


class ConfigMapping(Mapping):
    """
    Read-only mapping node of a parsed configuration document.

    Nested mappings are ConfigMapping instances, sequences are tuples and
    scalars are kept as the YAML parser produced them. The typed getters
    return None for missing keys and raise ConfigFormatError when the value
    has the wrong shape, so callers decide when a missing value is an error.
    """

    __slots__ = ("_items",)

    def __init__(self, items: Optional[Mapping] = None):
        self._items: Dict[str, Any] = {
            str(key): freeze(value) for key, value in (items or {}).items()
        }

    def __getitem__(self, key: str) -> Any:
        return self._items[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ConfigMapping):
            return self._items == other._items
        if isinstance(other, Mapping):
            return self.to_dict() == dict(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(sorted(self._items)))

    def __repr__(self) -> str:
        return f"ConfigMapping({self.to_dict()!r})"

    def string(self, key: str) -> Optional[str]:
        value = self._items.get(key)
        if value is None:
            return None
        if isinstance(value, (ConfigMapping, tuple)):
            raise ConfigFormatError(f"'{key}' must be a scalar value.")
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    def mapping(self, key: str) -> Optional["ConfigMapping"]:
        value = self._items.get(key)
        if value is None:
            return None
        if not isinstance(value, ConfigMapping):
            raise ConfigFormatError(f"'{key}' must be a mapping.")
        return value

    def sequence(self, key: str) -> Optional[Tuple[Any, ...]]:
        value = self._items.get(key)
        if value is None:
            return None
        if not isinstance(value, tuple):
            raise ConfigFormatError(f"'{key}' must be a sequence.")
        return value

    def integer(self, key: str) -> Optional[int]:
        value = self._items.get(key)
        if value is None:
            return None
        # bool is an int subclass, "true" is never a number here
        if isinstance(value, bool):
            raise ConfigFormatError(f"'{key}' must be an integer, got {value!r}.")
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            try:
                return int(value.strip(), 10)
            except ValueError as e:
                raise ConfigFormatError(f"'{key}' must be an integer, got {value!r}.") from e
        raise ConfigFormatError(f"'{key}' must be an integer, got {value!r}.")

    def to_dict(self) -> Dict[str, Any]:
        return {key: thaw(value) for key, value in self._items.items()}
