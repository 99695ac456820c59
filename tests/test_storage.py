import asyncio
import tempfile
import unittest
from pathlib import Path

from repokeeper.domain.config_tree import ConfigMapping
from repokeeper.domain.exceptions import ArtifactNotFoundException, StorageException
from repokeeper.domain.models import Key
from repokeeper.infrastructure.database import SqlStorage
from repokeeper.infrastructure.storage import FileStorage, InMemoryStorage
from repokeeper.infrastructure.storage_factory import create_storage


class TestInMemoryStorage(unittest.IsolatedAsyncioTestCase):
    async def test_put_get_exists_delete(self) -> None:
        storage = InMemoryStorage()
        key = Key.of("maven/com/example/lib.jar")

        self.assertFalse(await storage.exists(key))
        await storage.put(key, b"jar")

        self.assertTrue(await storage.exists(key))
        self.assertEqual(await storage.get(key), b"jar")

        await storage.delete(key)
        with self.assertRaises(ArtifactNotFoundException):
            await storage.get(key)
        with self.assertRaises(ArtifactNotFoundException):
            await storage.delete(key)


class TestFileStorage(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.storage = FileStorage(self.root / "repos")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    async def test_put_creates_parent_directories(self) -> None:
        key = Key.of("origin", "my-pypi", "alarmtime", "alarmtime-0.1.5.tar.gz")

        await self.storage.put(key, b"sdist")

        path = self.root / "repos" / "origin" / "my-pypi" / "alarmtime" / "alarmtime-0.1.5.tar.gz"
        self.assertEqual(path.read_bytes(), b"sdist")
        self.assertTrue(await self.storage.exists(key))
        self.assertEqual(await self.storage.get(key), b"sdist")

    async def test_put_leaves_no_temporary_files(self) -> None:
        key = Key.of("a/b.txt")

        await self.storage.put(key, b"one")
        await self.storage.put(key, b"two")

        self.assertEqual(await self.storage.get(key), b"two")
        self.assertEqual(sorted(p.name for p in (self.root / "repos" / "a").iterdir()), ["b.txt"])

    async def test_concurrent_writes_keep_one_complete_value(self) -> None:
        key = Key.of("race/artifact.bin")
        values = [bytes([i]) * 4096 for i in range(8)]

        await asyncio.gather(*(self.storage.put(key, value) for value in values))

        self.assertIn(await self.storage.get(key), values)

    async def test_missing_key(self) -> None:
        key = Key.of("missing.txt")

        self.assertFalse(await self.storage.exists(key))
        with self.assertRaises(ArtifactNotFoundException):
            await self.storage.get(key)
        with self.assertRaises(ArtifactNotFoundException):
            await self.storage.delete(key)

    async def test_directory_is_not_an_artifact(self) -> None:
        await self.storage.put(Key.of("dir/file.txt"), b"x")

        self.assertFalse(await self.storage.exists(Key.of("dir")))
        with self.assertRaises(ArtifactNotFoundException):
            await self.storage.get(Key.of("dir"))

    async def test_key_below_an_existing_file_is_not_found(self) -> None:
        await self.storage.put(Key.of("a/b"), b"file")

        self.assertFalse(await self.storage.exists(Key.of("a/b/c")))
        with self.assertRaises(ArtifactNotFoundException):
            await self.storage.get(Key.of("a/b/c"))
        with self.assertRaises(ArtifactNotFoundException):
            await self.storage.delete(Key.of("a/b/c"))

    async def test_write_below_an_existing_file_raises_storage_error(self) -> None:
        await self.storage.put(Key.of("a/b"), b"file")

        with self.assertRaises(StorageException):
            await self.storage.put(Key.of("a/b/c"), b"nested")

        self.assertEqual(await self.storage.get(Key.of("a/b")), b"file")

    def test_equality_by_root(self) -> None:
        self.assertEqual(FileStorage(self.root / "repos"), self.storage)
        self.assertNotEqual(FileStorage(self.root / "other"), self.storage)


class TestCreateStorage(unittest.TestCase):
    def test_fs(self) -> None:
        storage = create_storage(ConfigMapping({"type": "fs", "path": "/srv/repo"}))

        self.assertEqual(storage, FileStorage("/srv/repo"))

    def test_postgres_with_default_table(self) -> None:
        storage = create_storage(ConfigMapping({"type": "postgres", "url": "postgresql+asyncpg://u:p@localhost/db"}))

        self.assertIsInstance(storage, SqlStorage)
        self.assertEqual(storage.table.name, "artifacts")
        self.assertNotIn(":p@", repr(storage))

    def test_postgres_with_unparsable_url_raises(self) -> None:
        with self.assertRaises(StorageException):
            create_storage(ConfigMapping({"type": "postgres", "url": "not a url"}))

    def test_unknown_type_raises(self) -> None:
        with self.assertRaises(StorageException):
            create_storage(ConfigMapping({"type": "s3", "bucket": "b"}))

    def test_missing_type_raises(self) -> None:
        with self.assertRaises(StorageException):
            create_storage(ConfigMapping({"path": "/srv/repo"}))

    def test_fs_without_path_raises(self) -> None:
        with self.assertRaises(StorageException):
            create_storage(ConfigMapping({"type": "fs"}))
