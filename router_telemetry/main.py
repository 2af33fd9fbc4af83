# Load .env before settings are imported
from dotenv import load_dotenv
load_dotenv()

import asyncio
import logging
import signal

from router_telemetry.config.logging_config import configure_logging
from router_telemetry.config.settings import settings
from router_telemetry.domain.errors import SSHConnectionError
from router_telemetry.utils.dependencies import get_context

logger = logging.getLogger(__name__)


async def run() -> int:
    context = get_context()
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # add_signal_handler is unavailable on Windows event loops
            pass

    logger.info(f"🚀 Starting {settings.APP_NAME} for {settings.ROUTER_SSH_HOST}:{settings.ROUTER_SSH_PORT}")
    try:
        await context.start(initial_sync=settings.SYNC_ON_STARTUP)
    except SSHConnectionError as e:
        logger.error(f"❌ Could not start: {str(e)}")
        return 1

    try:
        await stop_event.wait()
    finally:
        logger.info("Shutting down...")
        await context.shutdown()
    return 0


def main() -> int:
    configure_logging(settings)
    return asyncio.run(run())


if __name__ == "__main__":
    raise SystemExit(main())
