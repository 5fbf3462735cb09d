"""
Keyword-based triage for new contact inquiries.

Runs once when an inquiry is created. Looks at the message and subject and
assigns a priority tier and topic tags so staff can sort the inbox without
reading every message first.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

URGENT_KEYWORDS = ("urgent", "asap", "immediately", "emergency")
HIGH_KEYWORDS = ("important", "priority", "soon", "quickly")

# (tag, keywords) - a tag applies when any keyword appears in the text
TAG_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("viewing-request", ("viewing", "visit")),
    ("pricing-inquiry", ("price", "cost")),
    ("financing", ("mortgage", "financing")),
    ("investment", ("investment",)),
)

DEFAULT_PRIORITY = "medium"


@dataclass(frozen=True)
class Classification:
    priority: str
    tags: tuple[str, ...]


def classification_text(message: str, subject: Optional[str] = None) -> str:
    return f"{message or ''} {subject or ''}".lower()


def classify_priority(text: str, fallback: Optional[str] = None) -> str:
    """First match wins: urgent keywords, then high keywords, then fallback."""
    if any(keyword in text for keyword in URGENT_KEYWORDS):
        return "urgent"
    if any(keyword in text for keyword in HIGH_KEYWORDS):
        return "high"
    return fallback or DEFAULT_PRIORITY


def classify_tags(text: str, existing: Iterable[str] = ()) -> tuple[str, ...]:
    """Caller tags first (lower-cased, stripped), then matched topic tags, no duplicates."""
    tags: list[str] = []
    for tag in existing:
        tag = tag.strip().lower()
        if tag and tag not in tags:
            tags.append(tag)
    for tag, keywords in TAG_RULES:
        if tag not in tags and any(keyword in text for keyword in keywords):
            tags.append(tag)
    return tuple(tags)


def classify_contact(
    message: str,
    subject: Optional[str] = None,
    priority: Optional[str] = None,
    tags: Iterable[str] = (),
) -> Classification:
    """
    Derive priority and tags for a new inquiry.

    Pure function of its inputs: the same text always yields the same
    result, and re-running it over its own output changes nothing.
    """
    text = classification_text(message, subject)
    return Classification(
        priority=classify_priority(text, priority),
        tags=classify_tags(text, tags),
    )
