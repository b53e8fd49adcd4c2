from datetime import datetime, timezone

def utc_now() -> datetime:
    # naive UTC, matches what pymongo hands back
    return datetime.now(timezone.utc).replace(tzinfo=None)
