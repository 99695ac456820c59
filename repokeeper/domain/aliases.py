from typing import Dict, Optional

from repokeeper.domain.config_tree import ConfigMapping
from repokeeper.domain.exceptions import ConfigFormatError


class StorageAliases:
    """
    Named storage definitions shared between repositories.
    A repository refers to one with `storage: <alias-name>`.
    """

    EMPTY: "StorageAliases"

    def __init__(self, aliases: Optional[Dict[str, ConfigMapping]] = None):
        self._aliases = dict(aliases or {})

    @classmethod
    def from_document(cls, document: ConfigMapping) -> "StorageAliases":
        """
        Reads the `storages` section of an aliases document:

            storages:
              default:
                type: fs
                path: /var/repokeeper/data
        """
        storages = document.mapping("storages")
        if storages is None:
            return cls.EMPTY
        aliases = {}
        for name in storages:
            definition = storages.mapping(name)
            if definition is None:
                raise ConfigFormatError(f"Storage alias '{name}' has no definition.")
            aliases[name] = definition
        return cls(aliases)

    def resolve(self, name: str) -> Optional[ConfigMapping]:
        return self._aliases.get(name)

    def names(self):
        return sorted(self._aliases)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StorageAliases):
            return NotImplemented
        return self._aliases == other._aliases

    def __hash__(self) -> int:
        return hash(tuple(self.names()))

    def __repr__(self) -> str:
        return f"StorageAliases({self.names()!r})"


StorageAliases.EMPTY = StorageAliases()
