"""Clock helpers"""

from datetime import datetime, timezone


def get_utc_now() -> datetime:
    """
    Current UTC time without tzinfo.

    Timestamp columns are TIMESTAMP WITHOUT TIME ZONE and always hold UTC.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)
