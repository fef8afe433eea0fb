"""FastAPI application entry point for the staleness monitor.

The service exposes:
- GET /health: liveness probe
- GET /ready: readiness probe (GitHub API reachability)
- GET /metrics: Prometheus metrics
- POST /sweeps: start a sweep of the configured repository in the background

Only one sweep runs at a time; a second request while one is in flight is
rejected with 409.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, status
from fastapi.responses import Response

from .config import StalenessSettings, get_settings
from .github.client import GitHubAPIError, GitHubClient
from .metrics import generate_metrics_output
from .runner import StalenessRunner

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Global instances, initialized during lifespan startup
settings: Optional[StalenessSettings] = None
github_client: Optional[GitHubClient] = None
runner: Optional[StalenessRunner] = None
sweep_task: Optional[asyncio.Task] = None


def _redact_secret(value: str, visible_chars: int = 4) -> str:
    """Redact a secret value, showing only the first few characters."""
    if len(value) <= visible_chars:
        return "*" * len(value)
    return value[:visible_chars] + "*" * (len(value) - visible_chars)


def log_configuration(settings: StalenessSettings) -> None:
    """Log configuration values with secrets redacted."""
    logger.info("Staleness monitor configuration:")
    logger.info(f"  GitHub Base URL: {settings.github_base_url}")
    logger.info(f"  GitHub Token: {_redact_secret(settings.github_token)}")
    logger.info(f"  Repository: {settings.repository}")
    logger.info(
        "  Activity Windows (days): "
        f"updated={settings.updated_by_days}, "
        f"comment={settings.comment_by_days}, "
        f"inactive={settings.inactive_by_days}, "
        f"upper_limit={settings.upper_limit_days}"
    )
    logger.info(f"  Bot Usernames: {settings.bot_usernames}")
    logger.info(f"  Minimize Delay Seconds: {settings.minimize_delay_seconds}")
    logger.info(f"  Label Directory Path: {settings.label_directory_path}")
    logger.info(f"  Exclude Labels: {settings.exclude_labels}")
    logger.info(f"  Target Status: {settings.target_status}")
    logger.info(f"  Config Path: {settings.config_path}")
    logger.info(f"  Notice Template Path: {settings.notice_template_path}")
    logger.info(f"  Notice Timezone: {settings.notice_timezone}")
    logger.info(f"  Dry Run: {settings.dry_run}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown.

    Handles:
    - Configuration loading and validation
    - Logging configuration (with secrets redacted)
    - GitHub client and sweep runner wiring
    - Graceful shutdown and cleanup
    """
    global settings, github_client, runner, sweep_task

    logger.info("Staleness monitor starting up...")

    settings = get_settings()
    log_configuration(settings)

    github_client = GitHubClient(
        token=settings.github_token,
        base_url=settings.github_base_url,
    )
    runner = StalenessRunner.from_settings(settings, github_client)

    logger.info("Staleness monitor started successfully")

    yield

    logger.info("Staleness monitor shutting down...")

    if sweep_task is not None and not sweep_task.done():
        sweep_task.cancel()

    if github_client is not None:
        await github_client.close()

    logger.info("Staleness monitor shutdown complete")


async def _run_sweep(owner: str, repo: str) -> None:
    try:
        await runner.sweep(owner, repo)
    except GitHubAPIError as e:
        logger.error(
            "Sweep failed",
            extra={
                "repository": f"{owner}/{repo}",
                "status_code": e.status_code,
                "error": e.message,
            },
        )
    except Exception:
        logger.exception(
            "Unexpected sweep failure",
            extra={"repository": f"{owner}/{repo}"},
        )


app = FastAPI(
    title="Issue Staleness Monitor",
    description="Activity labels and notices for assigned GitHub issues",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health():
    """Liveness probe endpoint."""
    return {"status": "healthy"}


@app.get("/ready")
async def ready():
    """Readiness probe endpoint.

    Raises:
        HTTPException: 503 if the GitHub API is unreachable.
    """
    github_status = "unhealthy"
    if github_client is not None and await github_client.health_check():
        github_status = "healthy"

    if github_status != "healthy":
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"status": "not_ready", "dependencies": {"github": github_status}},
        )

    return {"status": "ready", "dependencies": {"github": github_status}}


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_metrics_output(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


@app.post("/sweeps", status_code=status.HTTP_202_ACCEPTED)
async def start_sweep():
    """Start a sweep of the configured repository in the background.

    Raises:
        HTTPException: 503 if not initialized, 409 if a sweep is running.
    """
    global sweep_task

    if settings is None or runner is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Staleness monitor not initialized",
        )

    if sweep_task is not None and not sweep_task.done():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A sweep is already running",
        )

    sweep_task = asyncio.create_task(_run_sweep(settings.owner, settings.repo))
    return {"status": "accepted", "repository": settings.repository}


if __name__ == "__main__":
    import uvicorn

    dev_settings = get_settings()
    uvicorn.run(
        "src.staleness.main:app",
        host=dev_settings.host,
        port=dev_settings.port,
        reload=True,
    )
