import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp

from repokeeper.domain.exceptions import RemoteFetchException
from repokeeper.domain.models import Key, RemoteSource
from repokeeper.infrastructure.remote_client import RemoteArtifactClient


def _response(status: int, body: bytes = b"") -> AsyncMock:
    response = AsyncMock()
    response.status = status
    response.read = AsyncMock(return_value=body)
    response.__aenter__ = AsyncMock(return_value=response)
    response.__aexit__ = AsyncMock(return_value=False)
    return response


def _session(*responses) -> AsyncMock:
    session = AsyncMock()
    session.get = MagicMock(side_effect=list(responses))
    return session


class TestRemoteArtifactClient(unittest.TestCase):
    def test_artifact_url_joins_remote_and_key(self) -> None:
        remote = RemoteSource(url="http://localhost:8080/maven-origin/")

        url = RemoteArtifactClient.artifact_url(remote, Key.of("com/artipie/helloworld/0.1/helloworld-0.1.jar"))

        self.assertEqual(url, "http://localhost:8080/maven-origin/com/artipie/helloworld/0.1/helloworld-0.1.jar")

    def test_timeout_is_bounded(self) -> None:
        client = RemoteArtifactClient(total_timeout=5, connect_timeout=2)

        self.assertEqual(client.timeout.total, 5)
        self.assertEqual(client.timeout.connect, 2)


class TestFetch(unittest.IsolatedAsyncioTestCase):
    async def test_returns_body_on_success(self) -> None:
        session = _session(_response(200, b"artifact"))

        data = await RemoteArtifactClient().fetch(session, RemoteSource(url="http://origin"), Key.of("a/b.jar"))

        self.assertEqual(data, b"artifact")
        self.assertIsNone(session.get.call_args.kwargs["auth"])

    async def test_sends_basic_auth_when_configured(self) -> None:
        session = _session(_response(200, b"artifact"))
        remote = RemoteSource(url="http://origin", username="alice", password="123")

        await RemoteArtifactClient().fetch(session, remote, Key.of("a"))

        self.assertEqual(session.get.call_args.kwargs["auth"], aiohttp.BasicAuth("alice", "123"))

    async def test_returns_none_when_absent(self) -> None:
        session = _session(_response(404))

        data = await RemoteArtifactClient().fetch(session, RemoteSource(url="http://origin"), Key.of("a"))

        self.assertIsNone(data)

    async def test_retries_server_errors(self) -> None:
        session = _session(_response(503), _response(200, b"late"))

        with patch("repokeeper.infrastructure.remote_client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            data = await RemoteArtifactClient().fetch(session, RemoteSource(url="http://origin"), Key.of("a"))

        self.assertEqual(data, b"late")
        self.assertEqual(mock_sleep.await_count, 1)

    async def test_gives_up_after_max_retries(self) -> None:
        session = _session(_response(502), _response(502))

        with patch("repokeeper.infrastructure.remote_client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with self.assertRaises(RemoteFetchException):
                await RemoteArtifactClient(max_retries=2).fetch(
                    session, RemoteSource(url="http://origin"), Key.of("a")
                )

        self.assertEqual(session.get.call_count, 2)
        self.assertEqual(mock_sleep.await_count, 1)

    async def test_unexpected_status_raises(self) -> None:
        session = _session(_response(401))

        with self.assertRaises(RemoteFetchException):
            await RemoteArtifactClient().fetch(session, RemoteSource(url="http://origin"), Key.of("a"))

    async def test_transport_error_raises_without_retry(self) -> None:
        session = AsyncMock()
        session.get = MagicMock(side_effect=aiohttp.ClientConnectionError("refused"))

        with self.assertRaises(RemoteFetchException):
            await RemoteArtifactClient().fetch(session, RemoteSource(url="http://origin"), Key.of("a"))

        self.assertEqual(session.get.call_count, 1)

    async def test_timeout_raises(self) -> None:
        session = AsyncMock()
        session.get = MagicMock(side_effect=asyncio.TimeoutError())

        with self.assertRaises(RemoteFetchException):
            await RemoteArtifactClient().fetch(session, RemoteSource(url="http://origin"), Key.of("a"))
