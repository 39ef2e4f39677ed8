"""Keyword-driven replies and sentiment heuristics.

Everything here is a pure function of its text input (plus an injectable
random source for phrasing variety). It is the last reliable tier behind the
remote completion service: the generation adapter falls back to these helpers
whenever the service is unconfigured, rate limited or failing.
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import List, Optional, Sequence

DEFAULT_REPLY = "Thank you for your feedback. Your insights are valuable to us!"

FALLBACK_INTENT = "fallback"


@dataclass(frozen=True)
class IntentTemplate:
    """Keywords that select an intent and the replies it may produce."""

    intent: str
    keywords: tuple[str, ...]
    responses: tuple[str, ...]


RESPONSE_TEMPLATES: tuple[IntentTemplate, ...] = (
    IntentTemplate(
        "greeting",
        ("hi", "hello", "hey", "greetings", "good morning", "good afternoon",
         "good evening", "howdy", "start"),
        (
            "Hello! I'm your friendly feedback assistant for this event. Would you like to share your thoughts about your experience today?",
            "Hi there! I'd love to hear your feedback about the event. Would you like to share your thoughts?",
            "Welcome! I'm here to collect your valuable feedback about the event. Ready to share your experience?",
            "Greetings! Thank you for taking the time to provide feedback. How was your experience at the event?",
            "Hello! Your opinion matters to us. Would you like to share your thoughts about today's event?",
        ),
    ),
    IntentTemplate(
        "farewell",
        ("bye", "goodbye", "see you", "farewell", "cya", "ttyl", "later", "end"),
        (
            "Thank you for your feedback! It will help us improve future events. Have a great day!",
            "Thanks for sharing your thoughts with us. Your feedback is incredibly valuable. Goodbye!",
            "Your input is greatly appreciated. Thank you for taking the time to provide feedback. Farewell!",
            "We appreciate you taking the time to share your feedback. Have a wonderful day!",
            "Thank you for your valuable insights. They will contribute to making our future events even better. Goodbye!",
        ),
    ),
    IntentTemplate(
        "rating_positive",
        ("5", "4", "great", "excellent", "amazing", "fantastic", "wonderful",
         "loved", "enjoyed", "awesome", "good", "terrific"),
        (
            "That's wonderful to hear! We're thrilled you had such a positive experience.",
            "Excellent! We're glad you enjoyed that aspect of the event.",
            "Fantastic! Thank you for your positive feedback.",
            "We're delighted to hear you had such a great experience!",
            "That's great feedback! We aim to create enjoyable experiences for all attendees.",
        ),
    ),
    IntentTemplate(
        "rating_neutral",
        ("3", "ok", "okay", "fine", "average", "moderate", "mediocre", "middle",
         "neutral", "satisfactory"),
        (
            "Thanks for your feedback. We're always looking to improve from satisfactory to exceptional.",
            "I appreciate your honest assessment. What could we have done to make it better?",
            "Thank you for that feedback. We strive to exceed expectations and will work on improving this area.",
            "Your candid feedback helps us improve. What specific changes would you suggest?",
            "We appreciate your honest rating. Would you like to elaborate on what could have been better?",
        ),
    ),
    IntentTemplate(
        "rating_negative",
        ("1", "2", "bad", "poor", "terrible", "awful", "disappointed", "unhappy",
         "worst", "not good", "disliked"),
        (
            "I'm sorry to hear that you didn't have a positive experience. Your feedback helps us identify areas for improvement.",
            "We apologize for not meeting your expectations. Could you share more details about what went wrong?",
            "Thank you for bringing this to our attention. We take all feedback seriously and will work to address these issues.",
            "We're sorry to hear about your experience. Your feedback is valuable in helping us improve future events.",
            "I apologize for your disappointing experience. Would you mind sharing what specifically could have been better?",
        ),
    ),
    IntentTemplate(
        "content_feedback",
        ("content", "topic", "subject", "material", "information", "lecture",
         "presentation", "talk", "speech", "slides"),
        (
            "Thank you for your feedback on the content. This helps us refine our topics for future events.",
            "We appreciate your insights about the content. How do you think we could improve it further?",
            "Your feedback on the presentation content is valuable. We'll take this into account for future events.",
            "Thank you for sharing your thoughts on the topics covered. Was there anything specific you would have liked to see included?",
            "We value your opinion on the content. This helps us ensure we're delivering relevant and engaging material.",
        ),
    ),
    IntentTemplate(
        "speaker_feedback",
        ("speaker", "presenter", "host", "lecturer", "talked", "speaking",
         "presented", "facilitator", "moderator"),
        (
            "Thank you for your feedback about the speakers. We'll share this with them.",
            "We appreciate your thoughts on the presenters. This helps us in selecting speakers for future events.",
            "Your feedback on the speakers is valuable. We strive to feature engaging and knowledgeable presenters.",
            "Thank you for sharing your impressions of the speakers. Was there a particular presenter you found especially effective?",
            "We value your opinion on the presenters. This helps us enhance the quality of presentations at future events.",
        ),
    ),
    IntentTemplate(
        "venue_feedback",
        ("venue", "location", "place", "room", "hall", "space", "facility",
         "building", "site", "accommodation", "seating"),
        (
            "Thank you for your feedback on the venue. We want to ensure comfortable and accessible locations for our events.",
            "We appreciate your thoughts on the location. This helps us select suitable venues in the future.",
            "Your feedback on the facilities is valuable. We aim to provide comfortable spaces for all attendees.",
            "Thank you for sharing your experience with the venue. Was there anything specific about the location that affected your experience?",
            "We value your opinion on the event space. This helps us improve the physical aspects of our events.",
        ),
    ),
    IntentTemplate(
        "food_feedback",
        ("food", "catering", "meal", "snack", "drink", "refreshment", "lunch",
         "dinner", "breakfast", "coffee", "beverage"),
        (
            "Thank you for your feedback on the catering. We aim to provide quality refreshments at our events.",
            "We appreciate your thoughts on the food and beverages. This helps us improve our catering selections.",
            "Your feedback on the refreshments is valuable. We'll keep this in mind when planning future events.",
            "Thank you for sharing your experience with the catering. Was there anything specific you'd like to see offered in the future?",
            "We value your opinion on the food service. This helps us ensure we're meeting attendees' needs.",
        ),
    ),
    IntentTemplate(
        "schedule_feedback",
        ("schedule", "agenda", "timing", "duration", "length", "time", "program",
         "itinerary", "timetable", "breaks", "long", "short"),
        (
            "Thank you for your feedback on the schedule. We try to balance content and breaks effectively.",
            "We appreciate your thoughts on the event timing. This helps us plan better agendas in the future.",
            "Your feedback on the program structure is valuable. We aim to create engaging and well-paced events.",
            "Thank you for sharing your experience with the timing. Was there any part that felt particularly rushed or drawn out?",
            "We value your opinion on the schedule. This helps us optimize the flow of future events.",
        ),
    ),
    IntentTemplate(
        "tech_issues",
        ("technical", "tech", "audio", "video", "sound", "microphone", "projector",
         "screen", "connection", "wifi", "internet", "streaming"),
        (
            "I'm sorry to hear about the technical issues. We'll work to ensure better technical support in the future.",
            "Thank you for pointing out these technical problems. We strive to provide seamless experiences and will address these issues.",
            "We apologize for the technical difficulties you experienced. Your feedback helps us improve our technical setup.",
            "Thank you for bringing these technical issues to our attention. We'll work with our tech team to prevent similar problems.",
            "We value your patience with the technical challenges. This feedback is crucial for improving our technical arrangements.",
        ),
    ),
    IntentTemplate(
        "praise",
        ("loved", "enjoyed", "appreciate", "thank", "grateful", "impressed",
         "amazing", "excellent", "outstanding", "perfect", "best"),
        (
            "We're delighted to hear your positive feedback! It's wonderful to know you had such a great experience.",
            "Thank you for your kind words! We're thrilled that you enjoyed the event.",
            "We're so pleased you had a positive experience. Comments like yours make all the hard work worthwhile!",
            "That's wonderful to hear! We're committed to creating valuable experiences for our attendees.",
            "We're honored by your praise! Thank you for taking the time to share your positive experience.",
        ),
    ),
    IntentTemplate(
        "complaint",
        ("complaint", "disappointed", "unhappy", "dissatisfied", "upset",
         "frustrating", "annoying", "problem", "issue", "concern"),
        (
            "I'm sorry to hear about your experience. We take your feedback seriously and will work to address these issues.",
            "Thank you for bringing this to our attention. We apologize for not meeting your expectations and will use this feedback to improve.",
            "We're disappointed to hear about these issues. Your feedback is valuable in helping us identify areas for improvement.",
            "I apologize for your negative experience. We strive to deliver high-quality events and will work to resolve these concerns.",
            "Thank you for your candid feedback. We're committed to improving and will take your comments into consideration.",
        ),
    ),
    IntentTemplate(
        "question",
        ("?", "how", "what", "when", "where", "why", "who", "which", "will", "can",
         "could", "would", "should", "do"),
        (
            "That's a great question. While I'm primarily here to collect feedback, I'd be happy to pass this inquiry along to the event organizers.",
            "Thank you for your question. I'm focusing on gathering feedback about your experience, but I can ensure the organizers receive your question.",
            "I appreciate your inquiry. My main purpose is to collect event feedback, but I'll make sure the appropriate team receives your question.",
            "While I'm designed to gather feedback rather than answer specific questions about the event, I'll ensure your question reaches the right people.",
            "Thanks for asking. I'm here mainly to collect your feedback about the event, but I can make sure your question gets to the event team.",
        ),
    ),
    IntentTemplate(
        "suggestion",
        ("suggest", "suggestion", "recommend", "recommendation", "idea",
         "improvement", "better", "enhance", "consider", "propose"),
        (
            "Thank you for your suggestion! We value ideas that can help us improve future events.",
            "That's a thoughtful recommendation. We appreciate you taking the time to share your ideas for improvement.",
            "Thank you for this constructive suggestion. We're always looking for ways to enhance the experience for our attendees.",
            "We appreciate your ideas for improvement. Feedback like yours helps us make positive changes.",
            "That's a valuable suggestion! We'll definitely consider this when planning our next event.",
        ),
    ),
    IntentTemplate(
        "completion",
        ("done", "finished", "complete", "completed", "that's all", "that is all",
         "nothing else", "no more", "end"),
        (
            "Thank you for completing the feedback process! Your insights are incredibly valuable and will help us improve future events.",
            "We truly appreciate you taking the time to share your thoughts with us. Your feedback will directly impact how we plan and execute future events.",
            "Thank you for your valuable feedback! Your input helps us create better experiences for everyone. We hope to see you at future events!",
            "Your feedback is complete and has been recorded. We're grateful for your participation and thoughtful responses.",
            "Thank you for sharing your experience with us. Your feedback is invaluable and will help shape our future events to better meet attendees' needs.",
        ),
    ),
    IntentTemplate(
        "chitchat",
        ("how are you", "weather", "nice", "chat", "talk", "tell me", "your name",
         "who are you", "about you"),
        (
            "I'm a feedback assistant focused on gathering your thoughts about the event. I'd love to hear about your experience!",
            "I'm here specifically to collect your valuable feedback about the event. Would you like to share your thoughts?",
            "Thanks for chatting! My purpose is to gather your feedback about today's event. What aspects would you like to comment on?",
            "I'm designed to help collect your insights about the event. Your feedback is what I'm really interested in hearing!",
            "I appreciate your friendliness! I'm focused on understanding your event experience. Would you like to share what you thought of it?",
        ),
    ),
    IntentTemplate(
        FALLBACK_INTENT,
        (),
        (
            "Thank you for your message. I'd love to hear more about your experience at the event. Could you share what aspects you enjoyed or what could be improved?",
            "I appreciate your feedback. To help us better understand your experience, could you elaborate on specific aspects of the event?",
            "Thank you for sharing. Your feedback is valuable to us. Is there anything specific about the event you'd like to comment on?",
            "I'm interested in hearing more about your event experience. Would you mind sharing some details about what worked well or what could be better?",
            "Thank you for your input. To gather comprehensive feedback, could you tell me more about particular elements of the event that stood out to you?",
        ),
    ),
)

_TEMPLATES_BY_INTENT = {t.intent: t for t in RESPONSE_TEMPLATES}


def _rng(rng: Optional[random.Random]) -> random.Random:
    return rng if rng is not None else random.Random()


def classify_intent(message: str) -> str:
    """Return the intent whose keywords appear most often in *message*.

    Keywords are matched as lower-case substrings. On a tie the template
    declared first wins; with no match at all the ``fallback`` intent is used.
    """
    lowered = (message or "").lower()
    matched = FALLBACK_INTENT
    highest = 0
    for template in RESPONSE_TEMPLATES:
        count = sum(1 for keyword in template.keywords if keyword in lowered)
        if count > highest:
            highest = count
            matched = template.intent
    return matched


def get_static_response(message: str, rng: Optional[random.Random] = None) -> str:
    """Pick one reply for the intent of *message*."""
    template = _TEMPLATES_BY_INTENT.get(classify_intent(message))
    if template is None or not template.responses:
        return DEFAULT_REPLY
    return _rng(rng).choice(template.responses)


# ---------------------------------------------------------------------------
# Sentiment / theme heuristic
# ---------------------------------------------------------------------------

POSITIVE_WORDS: tuple[str, ...] = (
    "good", "great", "excellent", "amazing", "fantastic", "wonderful", "enjoyed",
    "love", "best", "perfect", "awesome", "brilliant", "outstanding", "terrific",
    "happy", "pleased", "satisfied", "impressive", "thank", "appreciate", "grateful",
)

NEGATIVE_WORDS: tuple[str, ...] = (
    "bad", "poor", "terrible", "awful", "worst", "hate", "dislike", "disappointed",
    "boring", "waste", "frustrating", "annoying", "confusing", "difficult", "unhappy",
    "issue", "problem", "disappoint", "lacking", "mediocre", "unpleasant",
    "uncomfortable",
)

THEME_WORDS: tuple[str, ...] = (
    "content", "speakers", "venue", "food", "schedule", "organization",
    "networking", "staff", "price", "value", "technology", "audio", "video",
)

# Above this many matching words the sentiment is reported as strong.
INTENSITY_THRESHOLD = 3

NO_THEMES_MESSAGE = "No specific themes identified."


def _count_matches(text: str, words: Sequence[str]) -> int:
    return sum(1 for word in words if word in text)


def detect_themes(text: str) -> List[str]:
    """Return theme words contained in *text*, in vocabulary order."""
    lowered = (text or "").lower()
    return [theme for theme in THEME_WORDS if theme in lowered]


def basic_sentiment_analysis(text: str) -> str:
    """Describe sentiment and themes of *text* in one sentence-style string.

    The result looks like ``"Sentiment: Positive. The feedback contains
    positive elements. Topics: content, venue."`` and is stored verbatim as
    the derived sentiment of a free-text answer.
    """
    lowered = (text or "").lower()
    positive = _count_matches(lowered, POSITIVE_WORDS)
    negative = _count_matches(lowered, NEGATIVE_WORDS)

    if positive > negative:
        parts = ["Sentiment: Positive."]
        if positive > INTENSITY_THRESHOLD:
            parts.append("The feedback is highly positive.")
        else:
            parts.append("The feedback contains positive elements.")
    elif negative > positive:
        parts = ["Sentiment: Negative."]
        if negative > INTENSITY_THRESHOLD:
            parts.append("The feedback is highly critical.")
        else:
            parts.append("The feedback highlights areas for improvement.")
    else:
        parts = ["Sentiment: Neutral."]
        if positive or negative:
            parts.append("The feedback contains mixed or balanced opinions.")
        else:
            parts.append("The feedback is factual without strong sentiment.")

    themes = detect_themes(lowered)
    if themes:
        parts.append(f"Topics: {', '.join(themes)}.")
    else:
        parts.append(NO_THEMES_MESSAGE)
    return " ".join(parts)


# ---------------------------------------------------------------------------
# Conclusions
# ---------------------------------------------------------------------------

CONCLUSION_MESSAGES: tuple[str, ...] = (
    "Thank you for taking the time to provide such detailed feedback! Your insights are invaluable and will help us improve future events. We hope to see you at our next gathering!",
    "We truly appreciate your thoughtful feedback. Your comments will directly influence how we plan and organize upcoming events. Thank you for helping us create better experiences!",
    "Thank you for sharing your experience with us. Your feedback is extremely valuable and will be carefully considered as we work to enhance our future events. We're grateful for your participation!",
    "We can't thank you enough for your comprehensive feedback. Your insights help us understand what works well and where we can improve. We look forward to implementing changes based on your suggestions!",
    "Your feedback is a gift that helps us grow and improve. Thank you for taking the time to share your thoughts with us. We're committed to creating even better experiences in the future!",
)


def generate_conclusion_message(rng: Optional[random.Random] = None) -> str:
    """Return a thank-you message; conversation content is not considered."""
    return _rng(rng).choice(CONCLUSION_MESSAGES)
