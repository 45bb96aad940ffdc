from datetime import datetime, timezone


def format_time(timestamp: int) -> str:
    """
    Format a Unix timestamp for logging.

    Args:
        timestamp: Seconds since the epoch

    Returns:
        UTC time as YYYY-MM-DD HH:MM:SS, or the raw number if out of range
    """
    try:
        moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return str(timestamp)
    return moment.strftime("%Y-%m-%d %H:%M:%S")
