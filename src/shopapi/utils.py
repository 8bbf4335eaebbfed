"""Utility functions for shopapi."""

from datetime import date, datetime, timezone


def format_price(cents: int) -> str:
    """Format an amount in cents as a dollar string, e.g. 1999 -> '$19.99'."""
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}${whole}.{frac:02d}"


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO 8601 date or datetime into an aware UTC datetime.

    Accepts the 'Z' suffix and bare dates ('2024-01-22' is midnight UTC).
    Naive datetimes are taken to be UTC.

    Raises:
        ValueError: If the value is not ISO 8601.
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    if len(text) == 10:
        d = date.fromisoformat(text)
        return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def normalize_email(email: str) -> str:
    """Normalize an email for uniqueness comparisons."""
    return email.strip().casefold()
