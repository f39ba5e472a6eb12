"""Utility helpers for estate3."""

from estate3.engine.logging import configure_cli_logging, record_metrics, setup_logger

from .io import ensure_dir, read_yaml, safe_path_segment, write_json

__all__ = [
    "ensure_dir",
    "safe_path_segment",
    "read_yaml",
    "write_json",
    "configure_cli_logging",
    "record_metrics",
    "setup_logger",
]
