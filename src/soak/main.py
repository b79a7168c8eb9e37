"""
Main entry point for the soak harness server.
"""

import sys
from pathlib import Path

import uvicorn

# Add project root to path for imports
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from src.soak.core.config import get_config  # noqa: E402
from src.soak.utils.logging import get_logger, setup_logging  # noqa: E402


def main() -> None:
    """Run the soak harness API server."""
    config = get_config()
    log = config.logging
    setup_logging(
        log_level=log.LOG_LEVEL,
        log_format=log.LOG_FORMAT,
        log_file_path=log.LOG_FILE_PATH,
        log_file_max_bytes=log.LOG_FILE_MAX_BYTES,
        log_file_backup_count=log.LOG_FILE_BACKUP_COUNT,
        enable_console=log.LOG_ENABLE_CONSOLE,
        enable_file=log.LOG_ENABLE_FILE,
        enable_journal=log.LOG_ENABLE_JOURNAL,
    )
    logger = get_logger(__name__)

    logger.info(
        f"Starting {config.app.APP_NAME} server on {config.app.APP_HOST}:{config.app.APP_PORT}"
    )

    uvicorn.run(
        "src.soak.core.app:app",
        host=config.app.APP_HOST,
        port=config.app.APP_PORT,
        reload=config.development.DEV_HOT_RELOAD,
        log_level=config.logging.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
