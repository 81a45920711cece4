"""Meeting detector: runs the log source and dispatches deduplicated signals.

The source script prints one forwarded JSON record per line. Each record is
parsed, filtered against the process denylist, deduplicated, and delivered
to ``meeting`` listeners. Parse failures and subprocess failures go to
``error`` listeners; every source exit goes to ``exit`` listeners.

All state is confined to the event loop that called start().
"""

from __future__ import annotations

import asyncio
import logging
import signal as signal_module
import time
from dataclasses import dataclass

from meeting_detector.config import DetectorSettings
from meeting_detector.dedup.signal_cache import SignalDeduplicator
from meeting_detector.dedup.store import Clock
from meeting_detector.dispatcher import (
    DetectorEvent,
    ErrorEventCallback,
    EventDispatcher,
    ExitEventCallback,
    MeetingEventCallback,
)
from meeting_detector.errors import DetectorStateError, SignalParseError, SubprocessError
from meeting_detector.models import MeetingSignal, ProcessExit
from meeting_detector.signals.parser import SignalParser
from meeting_detector.stream.lines import LineSplitter

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


class SignalPipeline:
    """Splits output chunks into lines and runs each through parse, filter, dedup."""

    def __init__(
        self,
        settings: DetectorSettings,
        dispatcher: EventDispatcher,
        clock: Clock = time.monotonic,
    ) -> None:
        self.splitter = LineSplitter()
        self.parser = SignalParser()
        self.deduplicator = SignalDeduplicator(
            suppression_window_ms=settings.suppression_window_ms,
            eviction_window_ms=settings.eviction_window_ms,
            clock=clock,
        )
        self._dispatcher = dispatcher

    def feed(self, chunk: bytes | str) -> list[MeetingSignal]:
        """Process every complete line in ``chunk``, in order."""
        return self._handle_lines(self.splitter.feed(chunk))

    def flush(self) -> list[MeetingSignal]:
        """Process a final unterminated line, if one is buffered."""
        return self._handle_lines(self.splitter.flush())

    def _handle_lines(self, lines: list[str]) -> list[MeetingSignal]:
        delivered = []
        for line in lines:
            signal = self.handle_line(line)
            if signal is not None:
                delivered.append(signal)
        return delivered

    def handle_line(self, line: str) -> MeetingSignal | None:
        try:
            signal = self.parser.parse(line)
        except SignalParseError as e:
            logger.debug("Failed to parse line: %s", line)
            self._dispatcher.emit(DetectorEvent.ERROR, e)
            return None

        if self.parser.is_suppressed(signal):
            logger.debug("Suppressing signal from: %s", signal.process)
            return None

        logger.debug("Parsed signal: %s", signal)
        if not self.deduplicator.admit(signal):
            return None

        self._dispatcher.emit(DetectorEvent.MEETING, signal)
        return signal


@dataclass(eq=False)
class _Session:
    """Ownership token for one run of the source subprocess."""

    pipeline: SignalPipeline
    process: asyncio.subprocess.Process | None = None
    task: asyncio.Task[None] | None = None
    stopping: bool = False


def _exit_info(returncode: int | None) -> ProcessExit:
    if returncode is not None and returncode < 0:
        try:
            name = signal_module.Signals(-returncode).name
        except ValueError:
            name = str(-returncode)
        return ProcessExit(code=None, signal=name)
    return ProcessExit(code=returncode, signal=None)


class MeetingDetector:
    """Watches the log source and reports meeting signals.

    Only one session runs at a time. stop() releases the session at once,
    so a new start() is allowed before the old subprocess has exited.
    """

    def __init__(
        self,
        settings: DetectorSettings | None = None,
        clock: Clock = time.monotonic,
        **overrides: object,
    ) -> None:
        self.settings = settings or DetectorSettings(**overrides)
        self._clock = clock
        self._dispatcher = EventDispatcher()
        self._session: _Session | None = None
        self._pipeline = self._new_pipeline()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, callback: MeetingEventCallback | None = None) -> None:
        """Start monitoring. Must be called from a running event loop.

        Raises:
            DetectorStateError: If a session is already active.
        """
        if self._session is not None:
            raise DetectorStateError()

        loop = asyncio.get_running_loop()
        if callback is not None:
            self.on_meeting(callback)

        self._pipeline = self._new_pipeline()
        session = _Session(pipeline=self._pipeline)
        self._session = session
        session.task = loop.create_task(self._run(session))
        logger.debug("Started monitoring (source=%s)", self.settings.source_path)

    def stop(self) -> None:
        """Stop monitoring. No-op when not running."""
        session = self._session
        if session is None:
            return

        session.stopping = True
        self._session = None
        self._pipeline = self._new_pipeline()
        process = session.process
        if process is not None and process.returncode is None:
            try:
                process.terminate()
            except ProcessLookupError:
                pass
        logger.debug("Stopped monitoring")

    def is_running(self) -> bool:
        return self._session is not None

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def on_meeting(self, callback: MeetingEventCallback) -> None:
        self._dispatcher.on(DetectorEvent.MEETING, callback)

    def on_error(self, callback: ErrorEventCallback) -> None:
        self._dispatcher.on(DetectorEvent.ERROR, callback)

    def on_exit(self, callback: ExitEventCallback) -> None:
        self._dispatcher.on(DetectorEvent.EXIT, callback)

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def process_chunk(self, data: bytes | str) -> list[MeetingSignal]:
        """Feed raw source output into the active pipeline.

        Returns the signals delivered to meeting listeners.
        """
        return self._pipeline.feed(data)

    def _new_pipeline(self) -> SignalPipeline:
        return SignalPipeline(self.settings, self._dispatcher, clock=self._clock)

    async def _run(self, session: _Session) -> None:
        """Spawn the source, pump its stdout, and report its exit."""
        try:
            process = await asyncio.create_subprocess_exec(
                "sh",
                self.settings.source_path,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.warning("Failed to spawn %s: %s", self.settings.source_path, e)
            if self._session is session:
                self._session = None
            self._dispatcher.emit(
                DetectorEvent.ERROR,
                SubprocessError(f"Failed to start log source: {e}"),
            )
            return

        session.process = process
        if session.stopping:
            process.terminate()

        assert process.stdout is not None
        stderr_task = asyncio.create_task(self._drain_stderr(process))
        try:
            while True:
                chunk = await process.stdout.read(_CHUNK_SIZE)
                if not chunk:
                    break
                if self._session is session:
                    session.pipeline.feed(chunk)
        except Exception as e:
            logger.exception("Log source reader failed")
            self._abort(session, process, e)

        returncode = await process.wait()
        await stderr_task
        self._handle_exit(session, returncode)

    def _abort(
        self,
        session: _Session,
        process: asyncio.subprocess.Process,
        error: Exception,
    ) -> None:
        """Release ``session`` after its reader failed and stop its process."""
        session.stopping = True
        if process.returncode is None:
            try:
                process.terminate()
            except ProcessLookupError:
                pass
        if self._session is session:
            self._session = None
            self._pipeline = self._new_pipeline()
            self._dispatcher.emit(
                DetectorEvent.ERROR,
                SubprocessError(f"Log source reader failed: {error}"),
            )

    def _handle_exit(self, session: _Session, returncode: int | None) -> None:
        info = _exit_info(returncode)
        logger.debug("Process exited with code %s, signal %s", info.code, info.signal)

        if self._session is session:
            session.pipeline.flush()
            self._session = None
            if returncode != 0:
                self._dispatcher.emit(
                    DetectorEvent.ERROR,
                    SubprocessError(
                        f"Log source exited unexpectedly (code={info.code}, signal={info.signal})",
                        code=info.code,
                        signal=info.signal,
                    ),
                )
        self._dispatcher.emit(DetectorEvent.EXIT, info)

    @staticmethod
    async def _drain_stderr(process: asyncio.subprocess.Process) -> None:
        if process.stderr is None:
            return
        while True:
            line = await process.stderr.readline()
            if not line:
                break
            logger.debug("stderr: %s", line.decode("utf-8", errors="replace").rstrip())


def detector(
    callback: MeetingEventCallback,
    settings: DetectorSettings | None = None,
    **overrides: object,
) -> MeetingDetector:
    """Create a MeetingDetector, register ``callback``, and start it."""
    meeting_detector = MeetingDetector(settings, **overrides)
    meeting_detector.start(callback)
    return meeting_detector
