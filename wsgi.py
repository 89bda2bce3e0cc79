"""Deployment entrypoint: runs the Green Earth API under uvicorn."""
import logging
import os

import uvicorn

from core.config import ENVIRONMENT, LOG_LEVEL
from core.logging import configure_logging

logger = logging.getLogger(__name__)


if __name__ == "__main__":
    configure_logging(environment=ENVIRONMENT, log_level=LOG_LEVEL)
    port = int(os.environ.get("PORT", 8000))
    logger.info(f"Starting uvicorn server on port {port}")

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=port,
        log_level=LOG_LEVEL.lower(),
        access_log=False,  # request logging middleware already covers access
    )
