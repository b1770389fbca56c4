from __future__ import annotations

from datetime import date, datetime, timezone


def now_utc_iso() -> str:
    """Return an RFC 3339/ISO timestamp in UTC with seconds precision."""
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def year_month_parts(today: date | None = None) -> tuple[str, str]:
    current = today or date.today()
    return f"{current.year:04d}", f"{current.month:02d}"
