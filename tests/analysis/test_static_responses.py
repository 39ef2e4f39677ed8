"""Unit tests for keyword replies and the sentiment heuristic."""
import random

import pytest

from src.analysis import static_responses as sr


@pytest.mark.parametrize(
    "message, intent",
    [
        ("hello", "greeting"),
        ("The lunch catering was delicious", "food_feedback"),
        ("zzz", "fallback"),
        ("", "fallback"),
    ],
)
def test_classify_intent(message, intent):
    assert sr.classify_intent(message) == intent


def test_classify_intent_tie_goes_to_first_template():
    # one greeting keyword and one farewell keyword
    assert sr.classify_intent("hello bye") == "greeting"


def test_static_response_comes_from_intent_templates():
    templates = {t.intent: t for t in sr.RESPONSE_TEMPLATES}
    reply = sr.get_static_response("hello", rng=random.Random(1))
    assert reply in templates["greeting"].responses


def test_static_response_is_deterministic_with_seeded_rng():
    first = sr.get_static_response("hello", rng=random.Random(7))
    second = sr.get_static_response("hello", rng=random.Random(7))
    assert first == second


def test_fallback_reply_for_unmatched_text():
    templates = {t.intent: t for t in sr.RESPONSE_TEMPLATES}
    reply = sr.get_static_response("zzz", rng=random.Random(0))
    assert reply in templates["fallback"].responses


def test_loved_content_terrible_venue_tie_is_neutral():
    result = sr.basic_sentiment_analysis("I loved the content but the venue was terrible")
    assert result == (
        "Sentiment: Neutral. The feedback contains mixed or balanced opinions. "
        "Topics: content, venue."
    )


def test_positive_feedback():
    result = sr.basic_sentiment_analysis("The speakers were great")
    assert result.startswith("Sentiment: Positive. The feedback contains positive elements.")
    assert result.endswith("Topics: speakers.")


def test_highly_positive_feedback():
    text = "Great, excellent, amazing and wonderful food"
    result = sr.basic_sentiment_analysis(text)
    assert "The feedback is highly positive." in result
    assert result.endswith("Topics: food.")


def test_negative_feedback_without_themes():
    result = sr.basic_sentiment_analysis("It was boring")
    assert result == (
        "Sentiment: Negative. The feedback highlights areas for improvement. "
        + sr.NO_THEMES_MESSAGE
    )


def test_highly_critical_feedback():
    result = sr.basic_sentiment_analysis("bad, poor, terrible and awful")
    assert "The feedback is highly critical." in result


def test_factual_feedback():
    result = sr.basic_sentiment_analysis("The schedule had three sessions")
    assert result.startswith("Sentiment: Neutral. The feedback is factual without strong sentiment.")
    assert "Topics: schedule." in result


def test_no_theme_message_has_no_topic_list():
    assert "topic" not in sr.NO_THEMES_MESSAGE.lower()


def test_detect_themes_in_vocabulary_order():
    assert sr.detect_themes("Venue and FOOD and content") == ["content", "venue", "food"]


def test_conclusion_message_from_pool():
    assert sr.generate_conclusion_message(rng=random.Random(3)) in sr.CONCLUSION_MESSAGES
