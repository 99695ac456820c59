import aiohttp
import asyncio
import logging
import random
from typing import Optional

from repokeeper.domain.exceptions import RemoteFetchException
from repokeeper.domain.models import Key, RemoteSource

logger = logging.getLogger(__name__)

DEFAULT_TOTAL_TIMEOUT = 30.0
DEFAULT_CONNECT_TIMEOUT = 10.0
MAX_RETRIES = 3
NOT_FOUND_STATUSES = {404, 410}
RETRYABLE_STATUSES = {502, 503, 504}


class RemoteArtifactClient:
    """
    Client retrieving artifacts from one proxy remote over HTTP.
    Every attempt is bounded by a timeout so an unreachable remote cannot stall a fallback chain.
    """

    def __init__(
        self,
        total_timeout: float = DEFAULT_TOTAL_TIMEOUT,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        max_retries: int = MAX_RETRIES,
    ):
        self.timeout = aiohttp.ClientTimeout(total=total_timeout, connect=connect_timeout)
        self.max_retries = max_retries
        self.headers = {
            "User-Agent": "repokeeper-proxy",
            "Accept": "*/*",
        }

    @staticmethod
    def artifact_url(remote: RemoteSource, key: Key) -> str:
        return f"{remote.url.rstrip('/')}/{key.string()}"

    @staticmethod
    def _auth(remote: RemoteSource) -> Optional[aiohttp.BasicAuth]:
        if not remote.has_credentials:
            return None
        return aiohttp.BasicAuth(remote.username, remote.password)

    async def fetch(
        self,
        session: aiohttp.ClientSession,
        remote: RemoteSource,
        key: Key,
    ) -> Optional[bytes]:
        """
        Fetches a single artifact from a remote.

        Returns:
            The artifact content, or None when the remote does not have it.

        Raises:
            RemoteFetchException: On transport errors, timeouts or unexpected statuses.
        """
        url = self.artifact_url(remote, key)
        auth = self._auth(remote)

        for attempt in range(self.max_retries):
            try:
                async with session.get(url, auth=auth, headers=self.headers, timeout=self.timeout) as response:
                    if response.status in NOT_FOUND_STATUSES:
                        logger.debug(f"{url} answered {response.status}.")
                        return None

                    if response.status in RETRYABLE_STATUSES:
                        if attempt == self.max_retries - 1:
                            logger.warning(f"Server error ({response.status}) from {url}, giving up.")
                            break
                        sleep_time = (2 ** attempt) * 0.5 + random.uniform(0, 0.5)
                        logger.warning(
                            f"Server error ({response.status}) from {url}, "
                            f"retrying in {sleep_time:.1f}s (attempt {attempt + 1}/{self.max_retries})..."
                        )
                        await asyncio.sleep(sleep_time)
                        continue

                    if response.status >= 300:
                        raise RemoteFetchException(f"Unexpected status {response.status} from {url}.")

                    return await response.read()

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                raise RemoteFetchException(f"Request to {url} failed: {e!r}") from e

        raise RemoteFetchException(f"Failed to fetch {url} after {self.max_retries} attempts.")
