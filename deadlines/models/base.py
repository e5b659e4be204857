from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current UTC time with timezone"""
    return datetime.now(timezone.utc)
