#!/usr/bin/env python3
"""
Script to run the BookStack API server.
"""

import uvicorn

from api.config import APIConfig
from utilities.logger import get_logger, setup_logging


def main():
    """Run the API server."""
    # Secrets are validated here so a misconfigured process fails before binding the port
    config = APIConfig()
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file,
        debug=config.debug,
    )

    logger = get_logger(__name__)
    logger.info(
        "Starting BookStack API server",
        host=config.host,
        port=config.port,
        debug=config.debug,
        database=config.mongodb_database,
    )

    uvicorn.run(
        "api.main:create_app",
        factory=True,
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower(),
        access_log=True
    )


if __name__ == "__main__":
    main()
