import logging
from typing import Optional, Sequence

import aiohttp

from repokeeper.application.repo_config import RepoConfig
from repokeeper.domain.exceptions import (
    ArtifactNotFoundException,
    ConfigFormatError,
    RemoteExhaustedException,
    RemoteFetchException,
)
from repokeeper.domain.models import Key, RemoteSource
from repokeeper.infrastructure.remote_client import RemoteArtifactClient
from repokeeper.infrastructure.storage import Storage

logger = logging.getLogger(__name__)


class ProxyService:
    """
    Resolves artifacts of a proxy repository.

    Remotes are tried one after another in their configured order and the first
    one that has the artifact wins. The hit is written to the cache storage, so
    later requests for the same key never reach a remote. A remote that is
    missing the artifact or cannot be reached is skipped.
    """

    def __init__(
            self,
            remotes: Sequence[RemoteSource],
            cache: Storage,
            client: Optional[RemoteArtifactClient] = None,
    ):
        self.remotes = tuple(remotes)
        self.cache = cache
        self.client = client or RemoteArtifactClient()

    @classmethod
    def from_config(cls, config: RepoConfig, client: Optional[RemoteArtifactClient] = None) -> "ProxyService":
        if not config.is_proxy():
            raise ConfigFormatError(f"Repository '{config.name}' of type '{config.type()}' is not a proxy.")
        return cls(remotes=config.remotes(), cache=config.storage(), client=client)

    async def fetch(self, key: Key, session: Optional[aiohttp.ClientSession] = None) -> bytes:
        """
        Returns the artifact under key, from the cache or from the first remote that has it.

        Raises:
            RemoteExhaustedException: If the cache and every remote lack the artifact.
        """
        try:
            data = await self.cache.get(key)
            logger.debug(f"Cache hit for {key}.")
            return data
        except ArtifactNotFoundException:
            pass

        if session is not None:
            return await self._fetch_remotes(session, key)
        async with aiohttp.ClientSession() as own_session:
            return await self._fetch_remotes(own_session, key)

    async def _fetch_remotes(self, session: aiohttp.ClientSession, key: Key) -> bytes:
        index = 0
        while index < len(self.remotes):
            remote = self.remotes[index]
            try:
                data = await self.client.fetch(session, remote, key)
            except RemoteFetchException as e:
                logger.warning(f"Remote {index} ({remote.url}) failed for {key}: {e}. Trying next remote.")
                data = None
            else:
                if data is None:
                    logger.info(f"Remote {index} ({remote.url}) has no {key}.")

            if data is not None:
                await self.cache.put(key, data)
                logger.info(f"Fetched {key} ({len(data)} bytes) from remote {index} ({remote.url}) and cached it.")
                return data

            index += 1

        logger.warning(f"No remote out of {len(self.remotes)} provided {key}.")
        raise RemoteExhaustedException(key)
