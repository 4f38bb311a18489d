import datetime

def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)

def as_utc(value):
    """SQLite hands back naive datetimes even for timezone-aware columns;
    treat those as UTC so they compare against `utcnow()`."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value

def normalize_email(email) -> str:
    return (email or '').strip().lower()
