"""Extraction of timestamped video references from generated answers.

The answer agent marks video moments inline with the micro-format

    {{timestamp:MM:SS}}{{title:Video Title}}{{url:https://...}}

All functions here are pure: no I/O and no hidden state.
"""

import re

from .schemas import VideoReference

VIDEO_TAG_PATTERN = re.compile(
    r"\{\{timestamp:(\d{1,2}:\d{2}(?::\d{2})?)\}\}"
    r"\{\{title:([^}]+)\}\}"
    r"\{\{url:([^}]+)\}\}"
)


def timestamp_to_seconds(timestamp: str) -> int:
    """Convert "MM:SS" or "HH:MM:SS" to a total number of seconds.

    Examples:
        >>> timestamp_to_seconds("05:30")
        330
        >>> timestamp_to_seconds("01:02:03")
        3723

    Raises:
        ValueError: If the timestamp does not have two or three numeric parts.
    """
    parts = timestamp.strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Unsupported timestamp format: {timestamp!r}")

    total = 0
    for part in parts:
        total = total * 60 + int(part)
    return total


def add_timestamp_to_url(url: str, seconds: int) -> str:
    """Append a t=<seconds> parameter to a video URL.

    Examples:
        >>> add_timestamp_to_url("https://x/y?v=abc", 90)
        'https://x/y?v=abc&t=90'
        >>> add_timestamp_to_url("https://x/y", 90)
        'https://x/y?t=90'
    """
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}t={seconds}"


def format_timestamp_display(seconds: int) -> str:
    """Format seconds as [MM:SS] or [HH:MM:SS] for display.

    Examples:
        >>> format_timestamp_display(125)
        '[02:05]'
        >>> format_timestamp_display(3725)
        '[01:02:05]'
    """
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60

    if hours > 0:
        return f"[{hours:02d}:{minutes:02d}:{secs:02d}]"
    return f"[{minutes:02d}:{secs:02d}]"


def extract_video_references(text: str) -> list[VideoReference]:
    """Find every complete video tag triple in the text, in order of appearance.

    Partial or malformed tags are skipped.
    """
    references: list[VideoReference] = []

    for match in VIDEO_TAG_PATTERN.finditer(text or ""):
        timestamp, title, url = (group.strip() for group in match.groups())
        if not title or not url:
            continue

        seconds = timestamp_to_seconds(timestamp)
        references.append(
            VideoReference(
                timestamp=timestamp,
                video_title=title,
                source_url=url,
                deep_link_url=add_timestamp_to_url(url, seconds),
            )
        )

    return references


def index_video_references(
    references: list[VideoReference],
) -> dict[str, VideoReference]:
    """Key references by their 0-based ordinal as a string ("0", "1", ...)."""
    return {str(i): reference for i, reference in enumerate(references)}


def strip_video_tags(text: str) -> str:
    """Remove complete video tags from answer text for display."""
    stripped = VIDEO_TAG_PATTERN.sub("", text or "")
    # collapse lines left empty by removed tags
    return re.sub(r"\n{3,}", "\n\n", stripped).strip()
