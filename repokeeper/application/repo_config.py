import logging
from functools import cached_property
from typing import AsyncIterable, Optional, Tuple

from pydantic import ValidationError
from yarl import URL

from repokeeper.domain.aliases import StorageAliases
from repokeeper.domain.config_tree import ConfigMapping
from repokeeper.domain.exceptions import (
    ConfigFormatError,
    IllegalStateError,
    MissingFieldError,
    StorageException,
    StorageNotConfiguredError,
)
from repokeeper.domain.models import Key, PermissionSet, RemoteSource
from repokeeper.infrastructure.storage import Storage
from repokeeper.infrastructure.storage_factory import create_storage
from repokeeper.infrastructure.yaml_reader import REPO_SECTION, YamlDocumentReader

logger = logging.getLogger(__name__)

PROXY_SUFFIX = "-proxy"
CONFIG_EXTENSIONS = (".yaml", ".yml")
MAX_PORT = 65535


class RepoConfig:
    """
    Typed view over one repository document:

        repo:
          type: maven-proxy
          path: my-maven
          storage: default          # alias name, or an inline mapping
          remotes:
            - url: https://repo.maven.apache.org/maven2
            - url: https://mirror.example.com/maven
              username: alice
              password: secret

    Construction never fails. Each accessor validates only the part of the
    document it reads, so a broken `permissions` block does not stop `type()`.
    """

    def __init__(self, aliases: StorageAliases, key: Key, document: ConfigMapping):
        self.aliases = aliases
        self.key = key
        self.document = document

    @classmethod
    def from_bytes(cls, aliases: StorageAliases, key: Key, data: bytes) -> "RepoConfig":
        return cls(aliases, key, YamlDocumentReader.parse_repo(data))

    @classmethod
    async def from_source(
        cls, aliases: StorageAliases, key: Key, source: AsyncIterable[bytes]
    ) -> "RepoConfig":
        """
        Drains an asynchronous byte source completely, then parses it.

        Raises:
            ConfigParseError: If the drained content is not a repository document.
        """
        chunks = []
        async for chunk in source:
            chunks.append(bytes(chunk))
        return cls.from_bytes(aliases, key, b"".join(chunks))

    @property
    def name(self) -> str:
        filename = self.key.parts[-1]
        for extension in CONFIG_EXTENSIONS:
            if filename.endswith(extension):
                return filename[:-len(extension)]
        return filename

    def _repo(self) -> ConfigMapping:
        repo = self.document.get(REPO_SECTION)
        if not isinstance(repo, ConfigMapping):
            raise MissingFieldError(REPO_SECTION)
        return repo

    def type(self) -> str:
        value = self._repo().string("type")
        if not value:
            raise MissingFieldError("type")
        return value

    def is_proxy(self) -> bool:
        return self.type().endswith(PROXY_SUFFIX)

    def path(self) -> str:
        value = self._repo().string("path")
        if value is None:
            raise IllegalStateError("path is not specified")
        return value

    def url(self) -> URL:
        raw = self._repo().string("url")
        if raw is None:
            raise MissingFieldError("url")
        try:
            url = URL(raw)
        except (TypeError, ValueError) as e:
            raise ConfigFormatError(f"Failed to parse url {raw!r}: {e}") from e
        if not url.is_absolute() or not url.scheme or not url.host:
            raise ConfigFormatError(f"Url must be absolute with a scheme and host: {raw!r}")
        return url

    def storage(self) -> Storage:
        """
        Resolves the repository storage from the inline `storage` mapping or,
        when `storage` is a name, from the storage aliases.

        Raises:
            StorageNotConfiguredError: However resolution failed. The cause is chained.
        """
        try:
            return self._storage
        except (ConfigFormatError, MissingFieldError, StorageException) as e:
            logger.debug(f"Storage of repository '{self.name}' is unresolved: {e}")
            raise StorageNotConfiguredError() from e

    @cached_property
    def _storage(self) -> Storage:
        value = self._repo().get("storage")
        if value is None:
            raise MissingFieldError("storage")
        if isinstance(value, ConfigMapping):
            return create_storage(value)
        if isinstance(value, tuple):
            raise ConfigFormatError("'storage' must be a mapping or an alias name.")
        definition = self.aliases.resolve(str(value))
        if definition is None:
            raise StorageException(f"Unknown storage alias: {value}")
        return create_storage(definition)

    def permissions(self) -> Optional[PermissionSet]:
        mapping = self._repo().mapping("permissions")
        if mapping is None:
            return None
        return PermissionSet.from_mapping(mapping)

    def settings(self) -> Optional[ConfigMapping]:
        return self._repo().mapping("settings")

    def content_length_max(self) -> Optional[int]:
        value = self._repo().integer("content-length-max")
        if value is not None and value < 0:
            raise ConfigFormatError(f"'content-length-max' must not be negative, got {value}.")
        return value

    def port(self) -> Optional[int]:
        value = self._repo().integer("port")
        if value is not None and not 0 < value <= MAX_PORT:
            raise ConfigFormatError(f"'port' must be between 1 and {MAX_PORT}, got {value}.")
        return value

    def remotes(self) -> Tuple[RemoteSource, ...]:
        """
        Remote origins in document order, which is their fallback priority.
        A single legacy `remote` mapping is read when `remotes` is absent.
        """
        repo = self._repo()
        items = repo.sequence("remotes")
        if items is None:
            single = repo.mapping("remote")
            items = (single,) if single is not None else ()
        return tuple(self._remote(index, item) for index, item in enumerate(items))

    @staticmethod
    def _remote(index: int, item) -> RemoteSource:
        if not isinstance(item, ConfigMapping):
            raise ConfigFormatError(f"Remote #{index} must be a mapping.")
        url = item.string("url")
        if not url:
            raise MissingFieldError(f"remotes[{index}].url")
        try:
            return RemoteSource(
                url=url,
                username=item.string("username"),
                password=item.string("password"),
            )
        except ValidationError as e:
            raise ConfigFormatError(f"Remote #{index} is invalid: {e}") from e

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RepoConfig):
            return NotImplemented
        return (self.aliases, self.key, self.document) == (other.aliases, other.key, other.document)

    def __hash__(self) -> int:
        return hash((self.key, self.document))

    def __repr__(self) -> str:
        return f"RepoConfig(key={self.key.string()!r})"
