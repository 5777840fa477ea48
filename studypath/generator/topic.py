"""Topic input checks applied before anything is sent to the model."""

from __future__ import annotations

import re

from studypath.errors import InvalidTopic

MIN_TOPIC_LENGTH = 2
MAX_TOPIC_LENGTH = 100

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9\s\-&]")


def validate_topic(topic: str) -> str:
    """Return *topic* stripped, or raise :class:`InvalidTopic`."""
    trimmed = (topic or "").strip()
    if not trimmed:
        raise InvalidTopic("Please enter a topic to generate a roadmap")
    if len(trimmed) < MIN_TOPIC_LENGTH:
        raise InvalidTopic(f"Topic must be at least {MIN_TOPIC_LENGTH} characters")
    if len(trimmed) > MAX_TOPIC_LENGTH:
        raise InvalidTopic(f"Topic is too long (maximum {MAX_TOPIC_LENGTH} characters)")
    return trimmed


def sanitize_topic(topic: str) -> str:
    """Keep letters, digits, whitespace, hyphens and ampersands."""
    return _UNSAFE_CHARS.sub("", topic).strip()


def clean_topic(topic: str) -> str:
    """Validate then sanitise *topic*.

    Raises:
        InvalidTopic: If the topic is invalid or nothing is left after
            sanitising.
    """
    cleaned = sanitize_topic(validate_topic(topic))
    if not cleaned:
        raise InvalidTopic("Invalid topic after sanitization")
    return cleaned
