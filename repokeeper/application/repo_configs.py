import logging
from typing import Optional

from repokeeper.application.repo_config import CONFIG_EXTENSIONS, RepoConfig
from repokeeper.domain.aliases import StorageAliases
from repokeeper.domain.exceptions import ArtifactNotFoundException, RepositoryNotFoundException
from repokeeper.domain.models import Key
from repokeeper.infrastructure.storage import Storage
from repokeeper.infrastructure.yaml_reader import YamlDocumentReader

logger = logging.getLogger(__name__)

ALIASES_NAME = "_storages"


class RepoConfigs:
    """
    Reads repository documents (`<name>.yaml` or `<name>.yml`) from a config storage,
    together with the storage aliases defined in `_storages.yaml` next to them.
    """

    def __init__(self, storage: Storage):
        self.storage = storage

    async def _find(self, name: str) -> Optional[Key]:
        for extension in CONFIG_EXTENSIONS:
            key = Key.of(f"{name}{extension}")
            if await self.storage.exists(key):
                return key
        return None

    async def aliases(self) -> StorageAliases:
        key = await self._find(ALIASES_NAME)
        if key is None:
            return StorageAliases.EMPTY
        return StorageAliases.from_document(YamlDocumentReader.parse(await self.storage.get(key)))

    async def load(self, name: str) -> RepoConfig:
        """
        Loads the configuration of one repository.

        Raises:
            RepositoryNotFoundException: If no document exists for the repository.
            ConfigParseError: If the document is malformed.
        """
        key = await self._find(name)
        if key is None:
            raise RepositoryNotFoundException(name)
        try:
            data = await self.storage.get(key)
        except ArtifactNotFoundException:
            # removed between the existence check and the read
            raise RepositoryNotFoundException(name) from None
        config = RepoConfig.from_bytes(await self.aliases(), key, data)
        logger.info(f"Loaded configuration of repository '{name}' from {key}.")
        return config
