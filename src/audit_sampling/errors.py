"""Exceptions raised by the sampling engine."""

from __future__ import annotations


class SamplingError(Exception):
    """Base class for sampling engine failures."""


class InvalidParameters(SamplingError, ValueError):
    """Parameter combination is mathematically undefined for the method."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field
