import asyncio
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Union

from repokeeper.domain.exceptions import ArtifactNotFoundException, StorageException
from repokeeper.domain.models import Key

logger = logging.getLogger(__name__)


class Storage(ABC):
    """
    Asynchronous key/value blob store used for repository content and proxy caches.
    Implementations must make `put` atomic: a reader sees either the old or the new content.
    """

    @abstractmethod
    async def get(self, key: Key) -> bytes:
        """Returns the content stored under key or raises ArtifactNotFoundException."""

    @abstractmethod
    async def put(self, key: Key, data: bytes) -> None:
        """Stores content under key, replacing any previous value."""

    @abstractmethod
    async def exists(self, key: Key) -> bool:
        ...

    @abstractmethod
    async def delete(self, key: Key) -> None:
        ...

    async def close(self) -> None:
        """Releases resources held by the backend."""


class InMemoryStorage(Storage):
    """Storage kept in a dict, for tests and throwaway caches."""

    def __init__(self):
        self.data: Dict[str, bytes] = {}

    async def get(self, key: Key) -> bytes:
        try:
            return self.data[key.string()]
        except KeyError:
            raise ArtifactNotFoundException(key) from None

    async def put(self, key: Key, data: bytes) -> None:
        self.data[key.string()] = bytes(data)

    async def exists(self, key: Key) -> bool:
        return key.string() in self.data

    async def delete(self, key: Key) -> None:
        if self.data.pop(key.string(), None) is None:
            raise ArtifactNotFoundException(key)


class FileStorage(Storage):
    """
    Storage on the local file system, one file per key under a root directory.
    Writes land in a temporary file next to the target and are renamed into place.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(os.path.abspath(root))

    def _path(self, key: Key) -> Path:
        return self.root.joinpath(*key.parts)

    async def get(self, key: Key) -> bytes:
        try:
            return await asyncio.to_thread(self._path(key).read_bytes)
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            raise ArtifactNotFoundException(key) from None

    async def put(self, key: Key, data: bytes) -> None:
        try:
            await asyncio.to_thread(self._write, self._path(key), bytes(data))
        except OSError as e:
            raise StorageException(f"Failed to store {key} in {self.root}: {e}") from e
        logger.debug(f"Stored {len(data)} bytes at {key} in {self.root}")

    @staticmethod
    def _write(target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".part")
        try:
            with os.fdopen(fd, "wb") as out:
                out.write(data)
            os.replace(tmp, target)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    async def exists(self, key: Key) -> bool:
        return await asyncio.to_thread(self._path(key).is_file)

    async def delete(self, key: Key) -> None:
        try:
            await asyncio.to_thread(self._path(key).unlink)
        except (FileNotFoundError, NotADirectoryError):
            raise ArtifactNotFoundException(key) from None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FileStorage):
            return NotImplemented
        return self.root == other.root

    def __hash__(self) -> int:
        return hash(self.root)

    def __repr__(self) -> str:
        return f"FileStorage({str(self.root)!r})"
