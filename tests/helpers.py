"""Test helpers shared across test modules."""

from collections.abc import AsyncIterator

TAGGED_ANSWER = (
    "Clamp it down first.\n"
    "{{timestamp:05:30}}{{title:Clamping Basics}}{{url:https://youtube.com/watch?v=clamp1}}\n"
    "Then use a push block.\n"
    "{{timestamp:01:02:03}}{{title:Table Saw Basics}}{{url:https://youtube.com/watch?v=saw1}}\n"
)


async def async_iter(items: list[str], error: Exception | None = None) -> AsyncIterator[str]:
    """Yield items, then optionally raise."""
    for item in items:
        yield item
    if error is not None:
        raise error
