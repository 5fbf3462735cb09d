"""Tests for contact inquiry classification."""

import pytest

from estate_api.services.classification import (
    classify_contact,
    classify_priority,
    classify_tags,
    classification_text,
)


@pytest.mark.unit
def test_urgent_keyword_with_financing_tag():
    """Urgent keywords set the tier and topic tags are picked up from the text."""
    result = classify_contact("This is urgent, I need info about financing asap")

    assert result.priority == "urgent"
    assert "financing" in result.tags
    assert "viewing-request" not in result.tags


@pytest.mark.unit
def test_emergency_overrides_caller_priority():
    """A caller-supplied priority never beats an urgent keyword."""
    result = classify_contact("We have an emergency with the lease", priority="low")

    assert result.priority == "urgent"


@pytest.mark.unit
def test_urgent_beats_high():
    text = classification_text("Important: please call me immediately")

    assert classify_priority(text) == "urgent"


@pytest.mark.unit
def test_high_priority_keywords():
    assert classify_contact("I would like to hear back soon").priority == "high"
    assert classify_contact("Please reply quickly about the flat").priority == "high"


@pytest.mark.unit
def test_no_keywords_keeps_fallback_or_medium():
    assert classify_contact("Just browsing your listings today").priority == "medium"
    assert classify_contact("Just browsing your listings today", priority="low").priority == "low"


@pytest.mark.unit
def test_subject_is_part_of_the_text():
    result = classify_contact("Hello there, a few questions", subject="Viewing on Saturday?")

    assert result.tags == ("viewing-request",)


@pytest.mark.unit
def test_all_topic_tags_in_rule_order():
    result = classify_contact(
        "Can I visit? What does it cost? Is a mortgage possible? Good investment?"
    )

    assert result.tags == ("viewing-request", "pricing-inquiry", "financing", "investment")


@pytest.mark.unit
def test_matching_is_case_insensitive():
    result = classify_contact("URGENT - PRICE of the penthouse")

    assert result.priority == "urgent"
    assert result.tags == ("pricing-inquiry",)


@pytest.mark.unit
def test_caller_tags_are_kept_first_and_normalised():
    tags = classify_tags("what is the price", existing=[" VIP ", "vip", "pricing-inquiry"])

    assert tags == ("vip", "pricing-inquiry")


@pytest.mark.unit
def test_classification_is_idempotent():
    """Re-running classification over its own output changes nothing."""
    message = "Urgent viewing request, and what about the mortgage?"
    first = classify_contact(message)
    second = classify_contact(message, priority=first.priority, tags=first.tags)

    assert second == first
    assert len(second.tags) == len(set(second.tags))
