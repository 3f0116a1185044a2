"""Database migration verification utilities."""
import subprocess
import sys
from pathlib import Path

from kanbanflow.config import settings
from kanbanflow.logging_config import get_logger

logger = get_logger(__name__)


def get_alembic_dir() -> Path:
    """Directory holding alembic.ini (the repository root)."""
    return Path(__file__).parent.parent


def ensure_migrations() -> None:
    """
    Ensure migrations are applied by running alembic upgrade head.

    Uses subprocess to avoid async issues in FastAPI lifespan.
    """
    if not settings.auto_migrate:
        logger.info("AUTO_MIGRATE=false, skipping migration check")
        return

    alembic_dir = get_alembic_dir()
    if not (alembic_dir / "alembic.ini").exists():
        logger.warning(f"No alembic.ini in {alembic_dir} - skipping migrations")
        return

    logger.info("Running database migrations...")

    try:
        result = subprocess.run(
            ["alembic", "upgrade", "head"],
            cwd=alembic_dir,
            capture_output=True,
            text=True,
            timeout=60,
        )

        if result.returncode != 0:
            logger.error(f"Migration failed: {result.stderr}")
            sys.exit(1)
        for line in result.stdout.splitlines():
            if line.strip():
                logger.info(f"  {line}")
        logger.info("Migrations complete")

    except subprocess.TimeoutExpired:
        logger.error("Migration timed out after 60s")
        sys.exit(1)
    except FileNotFoundError:
        logger.warning("alembic not found - skipping migrations")
