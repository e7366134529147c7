"""A minimal scheduled task: logs, waits a second, logs again."""

import asyncio
import logging

logger = logging.getLogger(__name__)

name = "Simple Example"
description = "A simple example task that just logs a message"
schedule = "*/5 * * * *"


async def execute() -> None:
    logger.info("Simple example task executed")
    await asyncio.sleep(1)
    logger.info("Simple example task completed")
