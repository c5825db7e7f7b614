"""
Data agent API server

Usage:
    dataagent-api
    # OR
    python -m dataagent.main
"""

import uvicorn
from loguru import logger

from dataagent.config.settings import settings
from dataagent.utils.logger import setup_logger


def main():
    """Start the FastAPI server"""
    setup_logger(settings.log_level, settings.log_file)
    logger.info("=" * 80)
    logger.info("Data Agent - API Server")
    logger.info("=" * 80)
    logger.info(f"Server will be available at: http://{settings.api_host}:{settings.api_port}")
    logger.info(f"Chat Streaming: POST http://{settings.api_host}:{settings.api_port}/api/chat/stream")

    uvicorn.run(
        "dataagent.api.app:get_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
        access_log=True,
    )


if __name__ == "__main__":
    main()
