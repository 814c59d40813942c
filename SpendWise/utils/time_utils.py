from datetime import datetime, timezone

def utc_now():
    """
    Returns the current UTC time as a naive datetime.
    Ledger timestamps are stored naive and always in UTC.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)

def isoformat_or_none(value):
    return value.isoformat() if value else None
