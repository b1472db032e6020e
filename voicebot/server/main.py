"""
API server entry point: loads config and serves the proxy until interrupted.
"""

import asyncio
import logging
from typing import Optional

from ..config import AppConfig
from .app import ApiServer

logger = logging.getLogger("VoiceBotServer")


async def main(host: Optional[str] = None, port: Optional[int] = None):
    """Run the API server."""
    config = AppConfig.from_env()
    if host:
        config.server.host = host
    if port:
        config.server.port = port

    if not config.upstream.api_key:
        logger.warning("GENAI_API_KEY is not set; answers will be placeholders")

    server = ApiServer(config)
    try:
        await server.start()
    except asyncio.CancelledError:
        logger.info("Server shutting down...")
    finally:
        await server.stop()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    asyncio.run(main())
