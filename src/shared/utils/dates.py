from datetime import UTC, date, datetime, time, timedelta


def utcnow() -> datetime:
    return datetime.now(UTC)


def period_bounds(period_start: date, period_end: date) -> tuple[datetime, datetime]:
    """Half-open UTC range [start 00:00, day after end 00:00) covering both days fully."""
    start = datetime.combine(period_start, time.min, tzinfo=UTC)
    end = datetime.combine(period_end + timedelta(days=1), time.min, tzinfo=UTC)
    return start, end
