import html
from typing import Optional


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """
    Escape HTML special characters in user text before it is interpolated
    into an email template. Returns None if input is None.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        return value
    return html.escape(str(value), quote=True)


def truncate(value: Optional[str], max_length: int, suffix: str = "…") -> Optional[str]:
    if value is None or len(value) <= max_length:
        return value
    return value[:max_length] + suffix
