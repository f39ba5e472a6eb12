"""Core namespace of the estate3 projection engine."""

from __future__ import annotations

from . import estate, infra

__all__ = ["estate", "infra"]
