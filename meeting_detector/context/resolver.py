"""Best-effort process and desktop context for a pid.

Every probe degrades to "" (or False for the camera probe) when the OS
refuses to answer, the process has already exited, or a helper binary is
missing. Nothing here raises for an unknown pid.
"""

from __future__ import annotations

import logging
import os
import subprocess
from abc import ABC, abstractmethod

import psutil

from meeting_detector.models import ProcessContext

logger = logging.getLogger(__name__)

OSASCRIPT = "/usr/bin/osascript"
_FRONT_APP_SCRIPT = (
    'tell application "System Events" to get name of first process whose frontmost is true'
)
_WINDOW_TITLE_SCRIPT = (
    'tell application "System Events" to get title of front window of '
    "first process whose frontmost is true"
)

# Processes macOS runs while a camera is streaming
CAMERA_ASSISTANTS = frozenset({"VDCAssistant", "AppleCameraAssistant"})

_PROBE_TIMEOUT_SECONDS = 2


class ContextResolver(ABC):
    """Abstract interface for resolving ProcessContext from a pid."""

    @abstractmethod
    def resolve(self, pid: str) -> ProcessContext:
        """Return the context for ``pid``; unknown fields are empty."""


class MacOSContextResolver(ContextResolver):
    """macOS implementation using psutil, osascript and who."""

    def resolve(self, pid: str) -> ProcessContext:
        process_name, parent_pid, executable_path = self.process_details(pid)
        return ProcessContext(
            pid=pid,
            parent_pid=parent_pid,
            executable_path=executable_path,
            process_name=process_name,
            front_app=self.front_app(),
            window_title=self.window_title(),
            session_id=self.session_id(),
            camera_active=self.camera_active(),
        )

    def process_details(self, pid: str) -> tuple[str, str, str]:
        """Return (name, parent pid, executable path) for ``pid``."""
        try:
            proc = psutil.Process(int(pid))
        except (ValueError, psutil.NoSuchProcess, psutil.AccessDenied):
            logger.debug("No process details for pid=%s", pid)
            return "", "", ""

        name = self._safe(proc.name)
        parent = self._safe(proc.ppid)
        path = self._safe(proc.exe)
        if not path:
            cmdline = self._safe(proc.cmdline) or []
            path = cmdline[0] if cmdline else ""
        return (
            os.path.basename(name) if name else "",
            str(parent) if parent not in ("", None) else "",
            path or "",
        )

    def front_app(self) -> str:
        return self._run([OSASCRIPT, "-e", _FRONT_APP_SCRIPT])

    def window_title(self) -> str:
        return self._run([OSASCRIPT, "-e", _WINDOW_TITLE_SCRIPT])

    def session_id(self) -> str:
        output = self._run(["who", "-m"])
        parts = output.split()
        return parts[1] if len(parts) > 1 else ""

    def camera_active(self) -> bool:
        for proc in psutil.process_iter(["name"]):
            if proc.info.get("name") in CAMERA_ASSISTANTS:
                return True
        return False

    @staticmethod
    def _safe(getter):
        try:
            return getter()
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            return ""

    @staticmethod
    def _run(cmd: list[str]) -> str:
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=_PROBE_TIMEOUT_SECONDS,
            )
        except (subprocess.TimeoutExpired, FileNotFoundError, PermissionError):
            logger.debug("Context probe failed: %s", cmd[0])
            return ""
        if result.returncode != 0:
            return ""
        return result.stdout.strip()
