from datetime import datetime, timedelta, timezone
from typing import Optional

_TICK = timedelta(microseconds=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def next_timestamp(previous: Optional[datetime] = None) -> datetime:
    """
    Aktualny czas UTC, ale zawsze ściśle późniejszy niż `previous`.
    Dwie zmiany w tej samej mikrosekundzie dostają różne znaczniki.
    """
    now = utcnow()
    if previous is not None and now <= previous:
        return previous + _TICK
    return now


def to_iso(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")
