"""EvCache Record - Cache Record and Staleness State.

Copyright (c) 2024-2026 BlackRoad OS, Inc. All rights reserved.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, Mapping, Optional

FIELD_VAL = "val"
FIELD_REFRESH_AT = "refreshAt"
FIELD_SIGN_REFRESH_AT = "signRefreshAt"


class RecordState(Enum):
    """Cache record states."""

    ABSENT = auto()    # No record, or no value yet
    FRESH = auto()     # Value newer than the last invalidation signal
    STALE = auto()     # Signalled at or after the last refresh


def parse_timestamp(raw: Optional[str]) -> Optional[int]:
    """Parse a stored millisecond timestamp.

    Returns:
        The timestamp, or None if absent or not a finite number
    """
    if raw is None:
        return None
    try:
        number = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return int(number)


@dataclass
class CacheRecord:
    """A cache record as read from its hash.

    Attributes:
        key: Record key
        val: Serialized payload, None if not computed yet
        refresh_at: Last recomputation, epoch ms
        sign_refresh_at: Last invalidation signal, epoch ms
    """

    key: str
    val: Optional[str] = None
    refresh_at: Optional[int] = None
    sign_refresh_at: Optional[int] = None

    @classmethod
    def from_hash(cls, key: str, data: Mapping[str, str]) -> Optional["CacheRecord"]:
        """Build a record from hash fields.

        Args:
            key: Record key
            data: Fields as returned by hgetall

        Returns:
            CacheRecord, or None when the hash does not exist
        """
        if not data:
            return None
        return cls(
            key=key,
            val=data.get(FIELD_VAL),
            refresh_at=parse_timestamp(data.get(FIELD_REFRESH_AT)),
            sign_refresh_at=parse_timestamp(data.get(FIELD_SIGN_REFRESH_AT)),
        )

    @property
    def has_value(self) -> bool:
        """Check if a payload is stored."""
        return self.val is not None

    @property
    def is_signalled(self) -> bool:
        """Check if an invalidation signal at or after the last refresh exists.

        Missing timestamps on either side never count as a signal.
        """
        if self.sign_refresh_at is None or self.refresh_at is None:
            return False
        return self.sign_refresh_at >= self.refresh_at

    @property
    def is_stale(self) -> bool:
        """Check if the record needs a refresh."""
        return not self.has_value or self.is_signalled

    @property
    def state(self) -> RecordState:
        """Get record state."""
        if not self.has_value:
            return RecordState.ABSENT
        if self.is_signalled:
            return RecordState.STALE
        return RecordState.FRESH


def state_of(record: Optional[CacheRecord]) -> RecordState:
    """Get the state of a possibly missing record."""
    return RecordState.ABSENT if record is None else record.state


def value_fields(payload: str, now_ms: int) -> Dict[str, str]:
    """Hash fields written on a successful recomputation."""
    return {FIELD_VAL: payload, FIELD_REFRESH_AT: str(now_ms)}


def signal_fields(now_ms: int) -> Dict[str, str]:
    """Hash fields written by an invalidation signal."""
    return {FIELD_SIGN_REFRESH_AT: str(now_ms)}


__all__ = [
    "CacheRecord",
    "RecordState",
    "parse_timestamp",
    "state_of",
    "value_fields",
    "signal_fields",
    "FIELD_VAL",
    "FIELD_REFRESH_AT",
    "FIELD_SIGN_REFRESH_AT",
]
