import secrets
from datetime import UTC, datetime


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the naive DateTime columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def generate_session_id() -> str:
    return secrets.token_urlsafe(24)
