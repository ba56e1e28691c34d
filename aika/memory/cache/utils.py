"""
Internal helpers shared within the cache package.

This module provides logging utilities that summarize turn parts when the
cache records a new turn. The functions are prefixed with underscores to
signal that they are not part of the public API.
"""

from __future__ import annotations

from typing import Iterable

from .model import Part


def _parts_preview(parts: Iterable[Part], *, width_each: int = 20, max_total_chars: int = 200) -> str:
    """Join part summaries and cap total length to avoid noisy logs."""
    out = []
    total = 0
    for p in parts:
        s = p.summary(width=width_each)
        # Once the preview budget is spent, bail early with an ellipsis marker.
        if total + len(s) + (2 if out else 0) > max_total_chars:
            out.append("…")
            break
        out.append(s)
        total += len(s) + (2 if out else 0)
    return ", ".join(out)
