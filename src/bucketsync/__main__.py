"""
Main entrypoint: runs the folder sync scheduler in the foreground.

The UI process normally embeds the sync core through bucketsync.app.build_app;
this entrypoint runs the same core headless, e.g. as a login item.

Usage:
    python -m bucketsync
"""
import asyncio
import logging
from pathlib import Path

from bucketsync.config import Settings, get_settings

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
logger = logging.getLogger(__name__)


def _configure_file_logging(settings: Settings) -> None:
    """Also append log lines to LOG_FILE when it is set."""
    if not settings.log_file:
        return
    path = Path(settings.log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(handler)
    logger.info("Logging to %s", path)


async def _run() -> None:
    from bucketsync.app import build_app

    settings = get_settings()
    _configure_file_logging(settings)

    app = build_app(settings)
    if not settings.aws_access_key_id or not settings.aws_secret_access_key:
        logger.warning(
            "AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY not set, scheduled runs will fail."
        )

    scheduler = app.ensure_started()
    enabled = sum(1 for j in app.jobs if j.is_enabled)
    logger.info("%d sync job(s) configured, %d enabled", len(app.jobs), enabled)

    try:
        await asyncio.Event().wait()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Shutting down...")
    finally:
        scheduler.stop()
        logger.info("Goodbye.")


if __name__ == "__main__":
    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        pass
