"""Human-readable durations for album and track lengths."""


def format_duration(seconds: int) -> str:
    """``m:ss``; minutes are not wrapped at 60."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60}:{seconds % 60:02d}"


def format_duration_long(seconds: int) -> str:
    """``h:mm:ss`` from one hour up, ``m:ss`` below."""
    seconds = max(0, int(seconds))
    if seconds < 3600:
        return format_duration(seconds)
    hours, rest = divmod(seconds, 3600)
    return f"{hours}:{rest // 60:02d}:{rest % 60:02d}"
