#!/usr/bin/env python3
"""
Run the GinkoHub Tools API with uvicorn

Environment:
    HOST, PORT        bind address (default 0.0.0.0:3000)
    APP_ENV           ``development`` enables reload and the in-memory store
    LOG_LEVEL         logging level name
"""

import uvicorn

from ginkohub import create_app
from ginkohub.config import Config, get_store
from ginkohub.logger import get_logger

app = create_app()
logger = get_logger("main")


def run() -> None:
    logger.info(
        f"Starting {Config.TITLE} v{Config.VERSION} on {Config.HOST}:{Config.PORT} "
        f"({Config.APP_ENV}, {get_store().name} store)"
    )
    uvicorn.run(
        "main:app",
        host=Config.HOST,
        port=Config.PORT,
        reload=Config.RELOAD,
        log_level=Config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
