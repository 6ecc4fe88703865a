import asyncio
import signal
import sys

from status_pin.engine import StatusPinEngine
from status_pin.errors import StatusPinError
from status_pin.logging_config import logger, setup_logging


async def serve() -> int:
    engine = StatusPinEngine.from_settings()
    logger.info("Running in standalone mode")
    try:
        await engine.start()
    except StatusPinError as exc:
        logger.error("Fatal: %s", exc)
        await engine.stop()
        return 1
    except Exception as exc:
        logger.exception("Fatal: %s", exc)
        await engine.stop()
        return 1

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Signal handlers are unavailable on Windows event loops.
            pass

    logger.info("Press Ctrl+C to stop")
    await stop_event.wait()
    await engine.stop()
    return 0


def run() -> None:
    # Configure logging once for the whole process.
    setup_logging()
    sys.exit(asyncio.run(serve()))


if __name__ == "__main__":
    run()
