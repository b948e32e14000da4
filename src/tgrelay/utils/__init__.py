"""Utility functions and helpers."""

from __future__ import annotations

from tgrelay.utils.identity import normalize_identity, normalize_phone

__all__ = [
    "normalize_identity",
    "normalize_phone",
]
