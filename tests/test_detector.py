"""Tests for MeetingDetector: line processing, dispatch, and session lifecycle."""

from __future__ import annotations

import asyncio
import json
import logging

import pytest

from meeting_detector import detector as make_detector
from meeting_detector.config import DetectorSettings
from meeting_detector.detector import MeetingDetector, SignalPipeline
from meeting_detector.errors import DetectorStateError, SignalParseError, SubprocessError
from meeting_detector.models import MeetingSignal, ProcessExit


def forwarded(**overrides) -> str:
    data = {
        "event": "meeting_signal",
        "timestamp": "2026-10-19T09:00:00Z",
        "service": "microphone",
        "verdict": "allowed",
        "process": "MSTeams",
        "pid": "7390",
        "parent_pid": "1",
        "process_path": "/Applications/Microsoft Teams.app/Contents/MacOS/MSTeams",
        "front_app": "MSTeams",
        "window_title": "Standup",
        "session_id": "console",
        "camera_active": "false",
    }
    data.update(overrides)
    return json.dumps(data)


class Recorder:
    """Collects detector events and signals when the source exits."""

    def __init__(self, meeting_detector: MeetingDetector) -> None:
        self.signals: list[MeetingSignal] = []
        self.errors: list[Exception] = []
        self.exits: list[ProcessExit] = []
        self.exited = asyncio.Event()
        meeting_detector.on_meeting(self.signals.append)
        meeting_detector.on_error(self.errors.append)
        meeting_detector.on_exit(self._on_exit)

    def _on_exit(self, info: ProcessExit) -> None:
        self.exits.append(info)
        self.exited.set()

    async def wait_exit(self, timeout: float = 10) -> None:
        await asyncio.wait_for(self.exited.wait(), timeout=timeout)
        self.exited.clear()


@pytest.fixture
def write_script(tmp_path):
    """Write a shell script that prints the given lines, then runs ``tail``."""

    def _write(lines: list[str], tail: str = "exit 0", name: str = "source.sh") -> str:
        path = tmp_path / name
        body = "".join(f"printf '%s\\n' '{line}'\n" for line in lines)
        path.write_text(body + tail + "\n")
        return str(path)

    return _write


@pytest.fixture
def meeting_detector(settings, clock):
    return MeetingDetector(settings, clock=clock)


class TestProcessChunk:
    def test_end_to_end_dedup_windows(self, meeting_detector, clock):
        recorder = Recorder(meeting_detector)
        line = (forwarded() + "\n").encode()

        delivered = meeting_detector.process_chunk(line)
        assert len(delivered) == 1
        signal = recorder.signals[0]
        assert signal.service == "Microsoft Teams"
        assert signal.verdict == "allowed"
        assert signal.pid == "7390"
        assert signal.camera_active is False

        clock.advance(5)
        assert meeting_detector.process_chunk(line) == []

        clock.advance(60)
        assert len(meeting_detector.process_chunk(line)) == 1
        assert len(recorder.signals) == 2

    def test_multiple_lines_in_one_chunk_keep_order(self, meeting_detector):
        recorder = Recorder(meeting_detector)
        chunk = "\n".join(forwarded(pid=str(pid)) for pid in (1, 2, 3)) + "\n"
        meeting_detector.process_chunk(chunk)
        assert [s.pid for s in recorder.signals] == ["1", "2", "3"]

    def test_line_split_across_chunks(self, meeting_detector):
        recorder = Recorder(meeting_detector)
        line = forwarded() + "\n"
        assert meeting_detector.process_chunk(line[:40]) == []
        assert len(meeting_detector.process_chunk(line[40:])) == 1
        assert recorder.errors == []

    def test_multibyte_character_split_across_chunks(self, meeting_detector):
        recorder = Recorder(meeting_detector)
        record = {"event": "meeting_signal", "service": "", "front_app": "Café", "pid": "9"}
        line = (json.dumps(record, ensure_ascii=False) + "\n").encode()
        cut = line.index("é".encode()) + 1
        meeting_detector.process_chunk(line[:cut])
        meeting_detector.process_chunk(line[cut:])
        assert recorder.signals[0].front_app == "Café"

    def test_bad_line_reported_and_processing_continues(self, meeting_detector):
        recorder = Recorder(meeting_detector)
        meeting_detector.process_chunk("garbage\n" + forwarded() + "\n")
        assert len(recorder.errors) == 1
        assert isinstance(recorder.errors[0], SignalParseError)
        assert recorder.errors[0].line == "garbage"
        assert len(recorder.signals) == 1

    @pytest.mark.parametrize(
        "bad_line",
        ["{\"pid\": " + "1" * 5000 + "}", "[" * 100_000],
        ids=["huge-int", "deep-nesting"],
    )
    def test_undecodable_json_reported_and_processing_continues(self, meeting_detector, bad_line):
        recorder = Recorder(meeting_detector)
        delivered = meeting_detector.process_chunk(bad_line + "\n" + forwarded() + "\n")
        assert len(delivered) == 1
        assert len(recorder.errors) == 1
        assert isinstance(recorder.errors[0], SignalParseError)

    def test_blank_lines_ignored(self, meeting_detector):
        recorder = Recorder(meeting_detector)
        meeting_detector.process_chunk("\n   \n\n")
        assert recorder.errors == []
        assert recorder.signals == []

    @pytest.mark.parametrize("process", ["afplay", "SiriNCService"])
    def test_denylisted_process_dropped_silently(self, meeting_detector, process):
        recorder = Recorder(meeting_detector)
        meeting_detector.process_chunk(forwarded(process=process, pid="55") + "\n")
        assert recorder.signals == []
        assert recorder.errors == []

    def test_empty_pid_never_deduplicated(self, meeting_detector):
        recorder = Recorder(meeting_detector)
        line = forwarded(pid="") + "\n"
        for _ in range(3):
            meeting_detector.process_chunk(line)
        assert len(recorder.signals) == 3

    def test_custom_suppression_window(self, clock):
        settings = DetectorSettings(_env_file=None, suppression_window_ms=5_000, eviction_window_ms=10_000)
        meeting_detector = MeetingDetector(settings, clock=clock)
        line = forwarded() + "\n"
        meeting_detector.process_chunk(line)
        clock.advance(5)
        assert len(meeting_detector.process_chunk(line)) == 1

    def test_every_listener_receives_signal(self, meeting_detector):
        first: list[MeetingSignal] = []
        second: list[MeetingSignal] = []
        meeting_detector.on_meeting(first.append)
        meeting_detector.on_meeting(second.append)
        meeting_detector.process_chunk(forwarded() + "\n")
        assert len(first) == len(second) == 1


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_streams_signals_and_reports_exit(self, settings, clock, write_script):
        script = write_script([forwarded(pid="1"), forwarded(pid="2")])
        meeting_detector = MeetingDetector(settings.model_copy(update={"source_path": script}), clock=clock)
        recorder = Recorder(meeting_detector)

        meeting_detector.start()
        assert meeting_detector.is_running()
        await recorder.wait_exit()

        assert [s.pid for s in recorder.signals] == ["1", "2"]
        assert recorder.exits == [ProcessExit(code=0, signal=None)]
        assert recorder.errors == []
        assert not meeting_detector.is_running()

    @pytest.mark.asyncio
    async def test_start_callback_registered(self, settings, clock, write_script):
        script = write_script([forwarded()])
        meeting_detector = MeetingDetector(settings.model_copy(update={"source_path": script}), clock=clock)
        recorder = Recorder(meeting_detector)
        received: list[MeetingSignal] = []

        meeting_detector.start(received.append)
        await recorder.wait_exit()
        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_unterminated_last_line_processed_at_exit(self, settings, clock, tmp_path):
        script = tmp_path / "source.sh"
        script.write_text(f"printf '%s' '{forwarded()}'\n")
        meeting_detector = MeetingDetector(settings.model_copy(update={"source_path": str(script)}), clock=clock)
        recorder = Recorder(meeting_detector)

        meeting_detector.start()
        await recorder.wait_exit()
        assert len(recorder.signals) == 1

    @pytest.mark.asyncio
    async def test_start_while_running_raises(self, settings, write_script):
        script = write_script([], tail="exec sleep 30")
        meeting_detector = MeetingDetector(settings.model_copy(update={"source_path": script}))
        recorder = Recorder(meeting_detector)

        meeting_detector.start()
        with pytest.raises(DetectorStateError, match="already running"):
            meeting_detector.start()

        meeting_detector.stop()
        await recorder.wait_exit()

    @pytest.mark.asyncio
    async def test_stop_terminates_source(self, settings, write_script):
        script = write_script([], tail="exec sleep 30")
        meeting_detector = MeetingDetector(settings.model_copy(update={"source_path": script}))
        recorder = Recorder(meeting_detector)

        meeting_detector.start()
        await asyncio.sleep(0.2)
        meeting_detector.stop()
        assert not meeting_detector.is_running()
        await recorder.wait_exit()

        assert recorder.exits == [ProcessExit(code=None, signal="SIGTERM")]
        assert recorder.errors == []

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, meeting_detector):
        meeting_detector.stop()
        meeting_detector.stop()
        assert not meeting_detector.is_running()

    @pytest.mark.asyncio
    async def test_restart_allowed_before_old_source_exits(self, settings, clock, write_script):
        script = write_script([forwarded()], tail="exec sleep 30")
        meeting_detector = MeetingDetector(settings.model_copy(update={"source_path": script}), clock=clock)
        recorder = Recorder(meeting_detector)

        meeting_detector.start()
        await asyncio.sleep(0.3)
        meeting_detector.stop()
        meeting_detector.start()
        assert meeting_detector.is_running()
        await recorder.wait_exit()

        # The old session's exit must not end the new one
        assert meeting_detector.is_running()
        await asyncio.sleep(0.3)
        meeting_detector.stop()
        await recorder.wait_exit()

        # Dedup state was discarded on stop, so the replayed record is new again
        assert len(recorder.signals) == 2
        assert len(recorder.exits) == 2

    @pytest.mark.asyncio
    async def test_stop_discards_buffered_partial_line(self, settings, write_script):
        script = write_script([], tail="exec sleep 30")
        meeting_detector = MeetingDetector(settings.model_copy(update={"source_path": script}))
        recorder = Recorder(meeting_detector)
        line = forwarded() + "\n"

        meeting_detector.start()
        meeting_detector.process_chunk(line[:30])
        meeting_detector.stop()
        meeting_detector.process_chunk(line[30:])
        await recorder.wait_exit()

        assert recorder.signals == []
        assert len(recorder.errors) == 1
        assert isinstance(recorder.errors[0], SignalParseError)

    @pytest.mark.asyncio
    async def test_source_failure_reported(self, settings, write_script):
        script = write_script([], tail="exit 3")
        meeting_detector = MeetingDetector(settings.model_copy(update={"source_path": script}))
        recorder = Recorder(meeting_detector)

        meeting_detector.start()
        await recorder.wait_exit()

        assert recorder.exits == [ProcessExit(code=3, signal=None)]
        assert len(recorder.errors) == 1
        error = recorder.errors[0]
        assert isinstance(error, SubprocessError)
        assert error.code == 3
        assert not meeting_detector.is_running()

    @pytest.mark.asyncio
    async def test_oversized_number_in_source_does_not_stall_session(self, settings, clock, write_script):
        bad_line = "{\"pid\": " + "1" * 5000 + "}"
        script = write_script([bad_line, forwarded()])
        meeting_detector = MeetingDetector(settings.model_copy(update={"source_path": script}), clock=clock)
        recorder = Recorder(meeting_detector)

        meeting_detector.start()
        await recorder.wait_exit()

        assert len(recorder.signals) == 1
        assert len(recorder.errors) == 1
        assert isinstance(recorder.errors[0], SignalParseError)
        assert recorder.exits == [ProcessExit(code=0, signal=None)]
        assert not meeting_detector.is_running()

    @pytest.mark.asyncio
    async def test_reader_failure_releases_session(self, settings, write_script, monkeypatch):
        def broken(self, line):
            raise RuntimeError("pipeline broke")

        monkeypatch.setattr(SignalPipeline, "handle_line", broken)
        script = write_script([forwarded()], tail="exec sleep 30")
        meeting_detector = MeetingDetector(settings.model_copy(update={"source_path": script}))
        recorder = Recorder(meeting_detector)

        meeting_detector.start()
        await recorder.wait_exit()

        assert not meeting_detector.is_running()
        assert len(recorder.errors) == 1
        assert isinstance(recorder.errors[0], SubprocessError)
        assert "pipeline broke" in str(recorder.errors[0])
        assert recorder.exits == [ProcessExit(code=None, signal="SIGTERM")]

        monkeypatch.undo()
        meeting_detector.start()
        assert meeting_detector.is_running()
        meeting_detector.stop()
        await recorder.wait_exit()

    @pytest.mark.asyncio
    async def test_missing_script_reported_and_restart_possible(self, settings, tmp_path):
        missing = str(tmp_path / "does-not-exist.sh")
        meeting_detector = MeetingDetector(settings.model_copy(update={"source_path": missing}))
        recorder = Recorder(meeting_detector)

        meeting_detector.start()
        await recorder.wait_exit()
        assert any(isinstance(e, SubprocessError) for e in recorder.errors)
        assert not meeting_detector.is_running()

        meeting_detector.start()
        await recorder.wait_exit()

    @pytest.mark.asyncio
    async def test_convenience_constructor_starts(self, settings, write_script):
        script = write_script([forwarded()])
        received: list[MeetingSignal] = []
        exited = asyncio.Event()

        meeting_detector = make_detector(
            received.append,
            settings.model_copy(update={"source_path": script}),
        )
        meeting_detector.on_exit(lambda _info: exited.set())
        assert meeting_detector.is_running()
        await asyncio.wait_for(exited.wait(), timeout=10)
        assert len(received) == 1

    def test_debug_setting_leaves_logger_levels_alone(self):
        package_logger = logging.getLogger("meeting_detector")
        level = package_logger.level
        MeetingDetector(DetectorSettings(_env_file=None, debug=True))
        assert package_logger.level == level

    def test_start_requires_running_loop(self, meeting_detector):
        with pytest.raises(RuntimeError):
            meeting_detector.start()
        assert not meeting_detector.is_running()
