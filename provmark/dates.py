"""
Date codecs — one per timestamp granularity.

    PackedDayDate   2 bytes  yyyyyyym mmmddddd   (year - 2023, month, day)
    SecondsDate     4 bytes  uint32 BE seconds since 2001-01-01T00:00:00Z
    MillisDate      6 bytes  uint48 BE milliseconds since 2001-01-01T00:00:00Z

All codecs work on timezone-aware UTC datetimes; naive datetimes are taken
as UTC. Encoding truncates to the codec's granularity. Every codec has a
hard ceiling: out-of-range dates raise RangeError instead of wrapping.
"""

from __future__ import annotations

import calendar
from datetime import datetime, timedelta, timezone

from provmark import MAX_MILLIS_6_BYTES, PACKED_DATE_BASE_YEAR, REFERENCE_EPOCH
from provmark.errors import RangeError, ShapeError


def to_utc(date: datetime) -> datetime:
    """Normalize to an aware UTC datetime."""
    if not isinstance(date, datetime):
        raise TypeError(f"Expected datetime, got {type(date).__name__}")
    if date.tzinfo is None:
        return date.replace(tzinfo=timezone.utc)
    try:
        return date.astimezone(timezone.utc)
    except OverflowError as e:
        raise RangeError(f"Date {date.isoformat()} has no UTC representation: {e}") from e


def _check_length(data: bytes, length: int) -> None:
    if len(data) != length:
        raise ShapeError(f"Date must be {length} bytes, got {len(data)}")


class DateCodec:
    """Base class: fixed byte length, encode/decode/truncate."""

    length: int = 0
    name: str = ""

    def encode(self, date: datetime) -> bytes:
        raise NotImplementedError

    def decode(self, data: bytes) -> datetime:
        raise NotImplementedError

    def truncate(self, date: datetime) -> datetime:
        """The instant this codec actually records for ``date``."""
        return self.decode(self.encode(date))

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class PackedDayDate(DateCodec):
    """Day granularity, 2023-01-01 through 2150-12-31."""

    length = 2
    name = "day"

    def encode(self, date: datetime) -> bytes:
        date = to_utc(date)
        yy = date.year - PACKED_DATE_BASE_YEAR
        if not 0 <= yy < 128:
            raise RangeError(
                f"Year {date.year} outside packed date range "
                f"[{PACKED_DATE_BASE_YEAR}, {PACKED_DATE_BASE_YEAR + 127}]"
            )
        value = (yy << 9) | (date.month << 5) | date.day
        return value.to_bytes(2, "big")

    def decode(self, data: bytes) -> datetime:
        _check_length(data, self.length)
        value = int.from_bytes(data, "big")
        day = value & 0b11111
        month = (value >> 5) & 0b1111
        year = ((value >> 9) & 0b1111111) + PACKED_DATE_BASE_YEAR

        if not 1 <= month <= 12:
            raise RangeError(f"Invalid month {month} in packed date {bytes(data).hex()}")
        _, days_in_month = calendar.monthrange(year, month)
        if not 1 <= day <= days_in_month:
            raise RangeError(
                f"Invalid day {year:04d}-{month:02d}-{day:02d} "
                f"in packed date {bytes(data).hex()}"
            )
        return datetime(year, month, day, tzinfo=timezone.utc)


class SecondsDate(DateCodec):
    """Second granularity, 2001-01-01T00:00:00Z through 2137-02-07T06:28:15Z."""

    length = 4
    name = "second"

    def encode(self, date: datetime) -> bytes:
        delta = to_utc(date) - REFERENCE_EPOCH
        # timedelta normalizes days toward -inf, so this is a floor
        n = delta.days * 86400 + delta.seconds
        if not 0 <= n <= 0xFFFFFFFF:
            raise RangeError(f"Date {date.isoformat()} outside 4-byte date range")
        return n.to_bytes(4, "big")

    def decode(self, data: bytes) -> datetime:
        _check_length(data, self.length)
        return REFERENCE_EPOCH + timedelta(seconds=int.from_bytes(data, "big"))


class MillisDate(DateCodec):
    """Millisecond granularity, 2001-01-01 through 9999-12-31T23:59:59.999Z."""

    length = 6
    name = "millisecond"

    def encode(self, date: datetime) -> bytes:
        delta = to_utc(date) - REFERENCE_EPOCH
        n = delta.days * 86_400_000 + delta.seconds * 1000 + delta.microseconds // 1000
        if not 0 <= n <= MAX_MILLIS_6_BYTES:
            raise RangeError(f"Date {date.isoformat()} outside 6-byte date range")
        return n.to_bytes(6, "big")

    def decode(self, data: bytes) -> datetime:
        _check_length(data, self.length)
        n = int.from_bytes(data, "big")
        if n > MAX_MILLIS_6_BYTES:
            raise RangeError(f"6-byte date {bytes(data).hex()} beyond 9999-12-31T23:59:59.999Z")
        return REFERENCE_EPOCH + timedelta(milliseconds=n)


PACKED_DAY = PackedDayDate()
SECONDS = SecondsDate()
MILLIS = MillisDate()
