"""One-shot staleness sweep for scheduled jobs.

Usage:
    python -m src.staleness

Reads StalenessSettings from the environment, sweeps the configured
repository once, and exits with status 1 if any issue failed.
"""

import asyncio
import logging
import sys

from src.staleness.config import get_settings
from src.staleness.github.client import GitHubAPIError, GitHubClient
from src.staleness.main import log_configuration
from src.staleness.runner import StalenessRunner


logger = logging.getLogger("src.staleness")


async def run_once() -> int:
    """Run a single sweep and return the process exit code."""
    settings = get_settings()
    log_configuration(settings)

    async with GitHubClient(
        token=settings.github_token,
        base_url=settings.github_base_url,
    ) as client:
        runner = StalenessRunner.from_settings(settings, client)
        try:
            result = await runner.sweep(settings.owner, settings.repo)
        except GitHubAPIError as e:
            logger.error(
                "Sweep failed",
                extra={"status_code": e.status_code, "error": e.message},
            )
            return 1

    return 1 if result.has_failures else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(run_once()))
