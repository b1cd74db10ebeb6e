from datetime import datetime, timezone


def utc_now() -> str:
    # Microsecond precision keeps newest-first listings stable within a second.
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
