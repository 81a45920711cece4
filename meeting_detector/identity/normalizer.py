"""Canonical application labels for multi-process meeting apps.

Two passes exist:
  - normalize_helper_app(): coarse, upstream. Collapses helper processes of a
    bundle ("Slack Helper (Renderer)") to the bundle name so the cooldown key
    does not change from one helper to the next.
  - normalize(): fine, downstream. Maps (front app, process name) to a
    human-readable meeting service label using APP_RULES.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

FALLBACK_LABEL = "Meeting App"


@dataclass(frozen=True)
class AppRule:
    """One row of the ordered rule table.

    A rule matches when any ``app_keywords`` entry is in the front app, any
    ``process_keywords`` entry is in the process name, or any
    ``shared_keywords`` entry is in both. Keywords are lower-case.
    """

    label: str
    app_keywords: tuple[str, ...] = ()
    process_keywords: tuple[str, ...] = ()
    shared_keywords: tuple[str, ...] = ()

    def matches(self, app: str, proc: str) -> bool:
        return (
            any(kw in app for kw in self.app_keywords)
            or any(kw in proc for kw in self.process_keywords)
            or any(kw in app and kw in proc for kw in self.shared_keywords)
        )


# Order matters: first match wins. Specific services hosted in a browser must
# stay above any generic browser rule.
APP_RULES: tuple[AppRule, ...] = (
    AppRule("Slack", ("slack",), ("slack",)),
    AppRule("Microsoft Teams", ("msteams",), ("microsoft teams", "teams")),
    AppRule("Zoom", ("zoom",), ("zoom",)),
    AppRule("Webex", ("webex",), ("webex", "cisco webex")),
    AppRule(
        "Google Meet",
        ("google meet",),
        ("google meet", "meet.google.com"),
        shared_keywords=("chrome",),
    ),
    AppRule("Skype", ("skype",), ("skype",)),
    AppRule("Discord", ("discord",), ("discord",)),
    AppRule("FaceTime", ("facetime",), ("facetime",)),
    AppRule("GoToMeeting", ("gotomeeting",), ("gotomeeting", "goto meeting")),
    AppRule("BlueJeans", ("bluejeans",), ("bluejeans", "blue jeans")),
    AppRule("Jitsi Meet", ("jitsi",), ("jitsi",)),
    AppRule("Whereby", ("whereby",), ("whereby",)),
    AppRule("8x8", ("8x8",), ("8x8",)),
    AppRule("RingCentral", ("ringcentral",), ("ringcentral", "ring central")),
    AppRule("BigBlueButton", ("bigbluebutton",), ("bigbluebutton", "big blue button")),
    AppRule("Amazon Chime", ("chime",), ("chime", "amazon chime")),
    AppRule("Google Hangouts", ("hangouts",), ("hangouts", "google hangouts")),
    AppRule("Adobe Connect", ("adobe connect",), ("adobe connect",)),
    AppRule("TeamViewer", ("teamviewer",), ("teamviewer",)),
    AppRule("AnyDesk", ("anydesk",), ("anydesk",)),
    AppRule("ClickMeeting", ("clickmeeting",), ("clickmeeting",)),
    AppRule("Appear.in", ("appear.in",), ("appear.in",)),
)


def normalize(front_app: str, process_name: str) -> str:
    """Return the canonical app label for a (front app, process) pair.

    Args:
        front_app: Name of the frontmost application, may be empty.
        process_name: Name of the process that touched the mic/camera.

    Returns:
        The label of the first matching rule, else ``front_app``, else
        FALLBACK_LABEL.
    """
    app = (front_app or "").lower()
    proc = (process_name or "").lower()
    for rule in APP_RULES:
        if rule.matches(app, proc):
            return rule.label
    return front_app or FALLBACK_LABEL


# (substring, bundle name) pairs for the coarse upstream pass. Case-sensitive,
# as process names are reported verbatim by the OS.
_HELPER_BUNDLES: tuple[tuple[str, str], ...] = (
    ("Microsoft Teams", "Microsoft Teams"),
    ("Google Chrome", "Google Chrome"),
    ("Chrome Helper", "Google Chrome"),
    ("Slack", "Slack"),
)

# "Zoom Helper", "Discord Helper (GPU)" -> "Zoom", "Discord"
_HELPER_SUFFIX = re.compile(r"\s+Helper(?:\s*\([^)]*\))?$")


def normalize_helper_app(process_name: str) -> str:
    """Collapse a bundle's helper processes to the bundle's main app name."""
    for needle, bundle in _HELPER_BUNDLES:
        if needle in process_name:
            return bundle
    stripped = _HELPER_SUFFIX.sub("", process_name)
    return stripped or process_name
