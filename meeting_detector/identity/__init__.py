"""Application identity normalization."""

from meeting_detector.identity.normalizer import (
    APP_RULES,
    FALLBACK_LABEL,
    AppRule,
    normalize,
    normalize_helper_app,
)

__all__ = ["APP_RULES", "FALLBACK_LABEL", "AppRule", "normalize", "normalize_helper_app"]
