"""Age-based freshness of cached notes."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from .notes import NoteRecord


DEFAULT_MAX_AGE = timedelta(hours=24)

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def utc_now() -> datetime:
    """Current UTC time truncated to milliseconds (the stored precision)."""
    now = datetime.now(UTC)
    return now.replace(microsecond=now.microsecond - now.microsecond % 1000)


def to_millis(moment: datetime) -> int:
    return (moment - EPOCH) // timedelta(milliseconds=1)


def from_millis(millis: int) -> datetime:
    return EPOCH + timedelta(milliseconds=millis)


def is_fresh(record: "NoteRecord", now: datetime, max_age: timedelta = DEFAULT_MAX_AGE) -> bool:
    """True iff ``now - record.created_at < max_age``."""
    return now - record.created_at < max_age


@dataclass
class StalenessPolicy:
    """Freshness predicate with an injectable clock."""

    max_age: timedelta = DEFAULT_MAX_AGE
    clock: Callable[[], datetime] = field(default=utc_now)

    @classmethod
    def from_hours(cls, hours: float, clock: Callable[[], datetime] = utc_now) -> "StalenessPolicy":
        return cls(max_age=timedelta(hours=hours), clock=clock)

    def is_fresh(self, record: "NoteRecord", now: datetime | None = None) -> bool:
        return is_fresh(record, now if now is not None else self.clock(), self.max_age)
