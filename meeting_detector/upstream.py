"""Upstream entry point: stream TCC logs and print forwarded records.

Runs ``/usr/bin/log stream`` filtered to microphone/camera TCC events,
correlates the lines, and writes one JSON record per line to stdout.
Diagnostics go to stderr so stdout stays machine-readable.

Usage:
    python -m meeting_detector.upstream
"""

from __future__ import annotations

import asyncio
import json
import logging
import signal
import sys
from typing import TextIO

from meeting_detector.config import get_settings
from meeting_detector.context.resolver import MacOSContextResolver
from meeting_detector.models import CandidateEvent
from meeting_detector.stream.correlator import LogStreamCorrelator

logger = logging.getLogger("meeting_detector.upstream")

TCC_PREDICATE = (
    'subsystem == "com.apple.TCC" AND '
    '(eventMessage CONTAINS[c] "kTCCServiceMicrophone" OR '
    'eventMessage CONTAINS[c] "kTCCServiceCamera")'
)
LOG_STREAM_COMMAND: tuple[str, ...] = (
    "/usr/bin/log",
    "stream",
    "--style",
    "syslog",
    "--predicate",
    TCC_PREDICATE,
)


def format_record(event: CandidateEvent) -> str:
    """Serialise an event as a single forwarded JSON line (no newline)."""
    return json.dumps(event.to_forwarded())


class LogStreamRunner:
    """Owns the ``log stream`` subprocess and pumps its lines through a correlator."""

    def __init__(
        self,
        correlator: LogStreamCorrelator,
        command: tuple[str, ...] = LOG_STREAM_COMMAND,
        output: TextIO | None = None,
    ) -> None:
        self.correlator = correlator
        self.command = command
        self.output = output or sys.stdout
        self._line_count = 0

    async def handle_line(self, line: str) -> CandidateEvent | None:
        """Correlate one line off the event loop and print any result."""
        self._line_count += 1
        event = await asyncio.to_thread(self.correlator.feed_line, line)
        if event is not None:
            self.output.write(format_record(event) + "\n")
            self.output.flush()
        return event

    async def run(self, shutdown_event: asyncio.Event) -> int:
        """Stream until the log process exits or shutdown is requested.

        Returns the log process exit code.
        """
        process = await asyncio.create_subprocess_exec(
            *self.command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
        logger.info("log stream started (pid=%s)", process.pid)
        assert process.stdout is not None

        stop_waiter = asyncio.ensure_future(shutdown_event.wait())
        eof = False
        try:
            while True:
                read = asyncio.ensure_future(process.stdout.readline())
                done, _ = await asyncio.wait(
                    {read, stop_waiter}, return_when=asyncio.FIRST_COMPLETED
                )
                if read not in done:
                    read.cancel()
                    break
                raw = read.result()
                if not raw:
                    eof = True
                    break
                line = raw.decode("utf-8", errors="replace").rstrip("\n")
                if line:
                    await self.handle_line(line)
        finally:
            stop_waiter.cancel()
            if not eof and process.returncode is None:
                try:
                    process.terminate()
                except ProcessLookupError:
                    pass
            code = await process.wait()
            logger.info(
                "log stream stopped (code=%s lines=%d emitted=%d)",
                code,
                self._line_count,
                self.correlator.emitted_count,
            )
        return code


async def main() -> int:
    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )

    shutdown_event = asyncio.Event()

    def handle_signal() -> None:
        logger.info("Shutdown signal received")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal)

    correlator = LogStreamCorrelator(
        resolver=MacOSContextResolver(),
        cooldown_seconds=settings.cooldown_seconds,
    )
    runner = LogStreamRunner(correlator)
    code = await runner.run(shutdown_event)
    return 0 if shutdown_event.is_set() else code


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
