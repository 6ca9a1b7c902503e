from datetime import datetime, timezone


def utc_now_iso() -> str:
    """UTC timestamp in the millisecond `...Z` form already used by metadata.json."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
