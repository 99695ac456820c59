import asyncio
import sys
import logging
from dotenv import load_dotenv

from repokeeper.application.proxy_service import ProxyService
from repokeeper.application.repo_configs import RepoConfigs
from repokeeper.domain.exceptions import RepokeeperException
from repokeeper.domain.models import Key
from repokeeper.infrastructure.remote_client import RemoteArtifactClient
from repokeeper.infrastructure.storage import FileStorage
from repokeeper.settings import Settings

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )


async def main(argv) -> int:
    # Load environment variables from .env file
    load_dotenv()

    if len(argv) != 2:
        print("Usage: python -m repokeeper.main <repository> <artifact-key>", file=sys.stderr)
        return 2

    try:
        settings = Settings.from_env()
    except RepokeeperException as e:
        configure_logging("INFO")
        logger.error(f"Invalid settings: {e}")
        return 1
    configure_logging(settings.log_level)

    repository, artifact = argv
    client = RemoteArtifactClient(
        total_timeout=settings.remote_timeout,
        connect_timeout=settings.remote_connect_timeout,
    )

    try:
        config = await RepoConfigs(FileStorage(settings.config_dir)).load(repository)
        service = ProxyService.from_config(config, client=client)
        key = Key.of(artifact)
        try:
            data = await service.fetch(key)
        finally:
            await service.cache.close()
    except (RepokeeperException, ValueError) as e:
        logger.error(f"Failed to resolve '{artifact}' in '{repository}': {e}")
        return 1

    logger.info(f"Resolved {key} in '{repository}': {len(data)} bytes cached in {service.cache!r}.")
    return 0


def run() -> None:
    try:
        sys.exit(asyncio.run(main(sys.argv[1:])))
    except KeyboardInterrupt:
        logger.info("Interrupted by user. Exiting gracefully.")
        sys.exit(1)


if __name__ == "__main__":
    run()
