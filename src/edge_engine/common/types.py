"""Shared type aliases and small helpers."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum
from typing import TypeAlias

# Canonical "idA|idB" key for an unordered market pair
PairKey: TypeAlias = str

# JSON-like dict
JsonDict: TypeAlias = dict[str, object]

_SECONDS_PER_DAY = 86_400.0


class ResultStatus(Enum):
    """How a calculation finished.

    Lets callers tell "no signal" apart from "degraded" apart from
    "could not compute" without catching exceptions.
    """

    OK = "ok"
    INSUFFICIENT_DATA = "insufficient_data"
    INVALID_INPUT = "invalid_input"
    COLLABORATOR_FAILURE = "collaborator_failure"


def pair_key(id_a: str, id_b: str) -> PairKey:
    """Order-independent key for a pair of market ids."""
    return "|".join(sorted((id_a, id_b)))


def ensure_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def days_between(start: datetime, end: datetime) -> float:
    """Fractional days from *start* to *end* (negative if end is earlier)."""
    return (ensure_utc(end) - ensure_utc(start)).total_seconds() / _SECONDS_PER_DAY


def is_finite(*values: float | None) -> bool:
    """True if every value is a real, finite number."""
    for v in values:
        if v is None or isinstance(v, bool):
            return False
        try:
            if not math.isfinite(v):
                return False
        except TypeError:
            return False
    return True
