import re
from typing import Optional

URL_PATTERN = re.compile(r"https?://[^\s\)\]\}>\"']+")


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp a score into [low, high]."""
    return max(low, min(high, float(value)))


def truncate(text: str, limit: int, suffix: str = "...") -> str:
    """Cut text to `limit` characters, marking the cut with `suffix`."""
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + suffix


def extract_url(text: str) -> Optional[str]:
    """
    Best-effort extraction of the first http(s) URL in a string.

    Trailing punctuation picked up from prose ("see https://x.org.") is dropped.
    """
    match = URL_PATTERN.search(text or "")
    if not match:
        return None
    return match.group(0).rstrip(".,;:")
