import asyncio
import json
import logging
import sys

from github_snapshot.application.snapshot_service import SnapshotService
from github_snapshot.config import load_settings
from github_snapshot.domain.exceptions import SnapshotException
from github_snapshot.infrastructure.github_client import GitHubClient

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    # Logs go to stderr so stdout carries only the metrics JSON.
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.StreamHandler(sys.stderr)
        ]
    )


async def main():
    try:
        settings = load_settings()
    except SnapshotException as e:
        configure_logging("INFO")
        logger.error(str(e))
        sys.exit(1)

    configure_logging(settings.log_level)

    github_client = GitHubClient(token=settings.github_token)
    service = SnapshotService(github_client=github_client, date_field=settings.date_field)

    try:
        metrics = await service.snapshot(
            settings.username,
            settings.time_window,
            tz_name=settings.timezone,
        )
    except KeyboardInterrupt:
        logger.info("Snapshot interrupted by user. Exiting.")
        sys.exit(130)
    except SnapshotException as e:
        logger.error(f"Snapshot failed: {e}")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"An unexpected error occurred: {e}")
        sys.exit(1)

    json.dump(metrics.model_dump(mode="json"), sys.stdout, indent=2)
    sys.stdout.write("\n")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
