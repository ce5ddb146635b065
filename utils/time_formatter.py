from typing import Optional


def format_minutes(minutes: Optional[float]) -> str:
    """Render an ETA in minutes the way it is shown to the user."""
    if not minutes:
        return "Calculating..."
    if minutes < 1:
        return "Less than 1 min"
    minutes = int(minutes)
    if minutes < 60:
        return f"{minutes} min"
    hours, mins = divmod(minutes, 60)
    return f"{hours}h {mins}m"
