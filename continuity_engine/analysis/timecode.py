"""Scene timeline parsing and formatting.

Scene timelines are ``"M:SS - M:SS"`` strings.  All functions are pure; an
unparsable value yields None rather than raising so that detectors can simply
skip the scene.
"""
from __future__ import annotations

from typing import Optional, Tuple, Union

Seconds = Union[int, float]

_TIMELINE_SEPARATOR = " - "


def parse_timecode(text: Optional[str]) -> Optional[Seconds]:
    """Parse ``"M:SS"`` into seconds; integral values come back as int."""
    if not isinstance(text, str) or ":" not in text:
        return None
    parts = text.split(":")
    if len(parts) != 2:
        return None
    try:
        minutes = float(parts[0])
        seconds = float(parts[1])
    except ValueError:
        return None
    total = minutes * 60 + seconds
    return int(total) if total.is_integer() else total


def parse_timeline(timeline: Optional[str]) -> Optional[Tuple[Seconds, Seconds]]:
    """Parse ``"M:SS - M:SS"`` into ``(start, end)`` seconds, or None."""
    if not isinstance(timeline, str) or _TIMELINE_SEPARATOR not in timeline:
        return None
    start_text, end_text = timeline.split(_TIMELINE_SEPARATOR)[:2]
    start = parse_timecode(start_text)
    end = parse_timecode(end_text)
    if start is None or end is None:
        return None
    return start, end


def format_timecode(seconds: Seconds) -> str:
    """Format seconds as ``"M:SS"`` (minutes unpadded, seconds zero-padded)."""
    minutes = int(seconds // 60)
    remainder = seconds - minutes * 60
    if float(remainder).is_integer():
        return f"{minutes}:{int(remainder):02d}"
    return f"{minutes}:{remainder:05.2f}"


def format_timeline(start: Seconds, end: Seconds) -> str:
    return f"{format_timecode(start)}{_TIMELINE_SEPARATOR}{format_timecode(end)}"
