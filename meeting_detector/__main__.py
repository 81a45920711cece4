"""Entry point: run the meeting detector and log every signal.

Configuration comes from MEETING_DETECTOR_* environment variables.
"""

from __future__ import annotations

import asyncio
import logging
import signal

from meeting_detector.config import get_settings
from meeting_detector.detector import MeetingDetector
from meeting_detector.models import MeetingSignal, ProcessExit

logger = logging.getLogger("meeting_detector")


async def main() -> None:
    """Run until a shutdown signal arrives or the source exits."""
    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    shutdown_event = asyncio.Event()

    def handle_signal() -> None:
        logger.info("Shutdown signal received")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal)

    def on_meeting(meeting: MeetingSignal) -> None:
        logger.info("Meeting signal: %s", meeting.to_dict())

    def on_error(error: Exception) -> None:
        logger.warning("Detector error: %s", error)

    def on_exit(info: ProcessExit) -> None:
        logger.info("Log source exited (code=%s signal=%s)", info.code, info.signal)
        shutdown_event.set()

    meeting_detector = MeetingDetector(settings)
    meeting_detector.on_error(on_error)
    meeting_detector.on_exit(on_exit)

    logger.info("Starting meeting detector (source=%s)", settings.source_path)
    meeting_detector.start(on_meeting)
    try:
        await shutdown_event.wait()
    finally:
        meeting_detector.stop()
        logger.info("Meeting detector stopped")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
