"""Infrastructure helpers for estate3 (default paths)."""

from .paths import DEFAULT_ARTIFACT_ROOT, DEFAULT_CONFIG_ROOT, DEFAULT_LOG_ROOT, DEFAULT_REPORT_ROOT

__all__ = [
    "DEFAULT_ARTIFACT_ROOT",
    "DEFAULT_CONFIG_ROOT",
    "DEFAULT_LOG_ROOT",
    "DEFAULT_REPORT_ROOT",
]
