"""
Rule-based chat responders.

These produce answers from the document text alone and are used by the
conversation engine when no remote answer is available:

  * small-talk detection and canned replies,
  * a topical responder that dispatches to résumé section extractors,
  * a last keyword responder that answers from direct regex matches.

Responders return ``None`` (or an empty string) when they have nothing to
say so the engine can move on to its next stage.
"""
from __future__ import annotations

import logging
import re
from typing import Callable, List, Optional, Tuple

from app.services import pattern_extractor as px

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Small talk
# ---------------------------------------------------------------------------

SMALL_TALK_PATTERNS = (
    "hello", "hi", "hey", "good morning", "good afternoon", "good evening",
    "how are you", "what's up", "greetings", "salutations",
    "thanks", "thank you",
    "bye", "goodbye", "see you", "farewell",
    "ok", "okay", "alright", "got it", "understood", "cool", "nice",
    "yes", "no", "maybe", "sure", "definitely", "absolutely",
)

AFFIRMATIVES = (
    "yes", "ok", "okay", "alright", "got it", "understood", "cool", "nice", "sure",
)
NEGATIVES = ("no", "nope", "not really")


def normalize_message(message: str) -> str:
    """Trim, lowercase and drop trailing punctuation."""
    return (message or "").strip().lower().rstrip("!.?, ")


def is_conversational(message: str) -> bool:
    """
    True for greetings, thanks, farewells and short affirmatives/negatives:
    the whole message is a pattern, or starts/ends with one as a separate word.
    """
    text = normalize_message(message)
    if not text:
        return False
    return any(
        text == pattern
        or text.startswith(pattern + " ")
        or text.endswith(" " + pattern)
        for pattern in SMALL_TALK_PATTERNS
    )


def conversation_document_type(text: str) -> str:
    """resume, invoice, contract or the generic "document"."""
    lowered = (text or "").lower()
    if "experience" in lowered and "education" in lowered:
        return "resume"
    if "invoice" in lowered:
        return "invoice"
    if "contract" in lowered:
        return "contract"
    return "document"


def conversational_reply(message: str, doc_type: str) -> str:
    """Canned, document-type-aware reply to a small-talk message."""
    text = normalize_message(message)
    words = set(re.findall(r"[a-z']+", text))

    if "hello" in text or "hey" in words or "hi" in words:
        return (
            f"Hello! I'm here to help you understand your {doc_type}. Feel free to ask me any "
            "questions about its content - like specific details, dates, amounts, or anything "
            "else you'd like to know!"
        )
    if "thank" in text:
        return (
            f"You're welcome! I'm happy to help you analyze your {doc_type}. "
            "Do you have any other questions about its content?"
        )
    if "bye" in text or "see you" in text or "farewell" in text:
        return (
            f"Goodbye! Feel free to come back anytime if you have more questions about your "
            f"{doc_type}. Have a great day!"
        )
    if text in AFFIRMATIVES:
        return (
            f"Great! Is there anything specific you'd like to know about your {doc_type}? "
            "I can help you find information about dates, amounts, names, or any other details."
        )
    if text in NEGATIVES:
        return (
            f"No problem! If you change your mind and want to ask about anything in your "
            f"{doc_type}, just let me know. I'm here to help!"
        )
    return (
        f"I understand! I'm here to help you with your {doc_type}. You can ask me questions like "
        "\"What's the total amount?\", \"When is the due date?\", \"What's the email address?\", "
        "or anything else you'd like to know from the content."
    )


# ---------------------------------------------------------------------------
# Topical responder
# ---------------------------------------------------------------------------

def _experience_answer(text: str) -> str:
    entries = px.work_experience(text)
    if not entries:
        return ""
    return "Based on the resume, here's the detailed employment information:\n\n" + "\n\n".join(entries)


def _prefixed(prefix: str, extractor: Callable[[str], str]) -> Callable[[str], str]:
    def answer(text: str) -> str:
        body = extractor(text)
        return f"{prefix}\n\n{body}" if body else ""
    return answer


# (question keywords, answer builder), checked in order
TOPIC_RULES: List[Tuple[Tuple[str, ...], Callable[[str], str]]] = [
    (("employ", "work", "job", "company"), _experience_answer),
    (
        ("educat", "school", "college", "university", "degree"),
        _prefixed("Here's the detailed educational background:", px.education),
    ),
    (
        ("skill", "technolog", "programming", "language"),
        _prefixed("Here are the technical skills and technologies:", px.skills),
    ),
    (
        ("project", "built", "develop"),
        _prefixed("Here are the detailed projects:", px.projects),
    ),
    (
        ("achieve", "award", "rank", "contest"),
        _prefixed("Here are the achievements and accomplishments:", px.achievements),
    ),
    (
        ("contact", "email", "phone", "location"),
        _prefixed("Here's the contact and personal information:", px.contact_info),
    ),
]

OVERVIEW_KEYWORDS = ("about", "summary", "overview", "describe")


def full_summary(text: str) -> str:
    """Multi-section overview of a résumé-like document."""
    sections: List[str] = []

    name = px.leading_name(text)
    if name:
        sections.append(f"This document is about {name}.")

    experience = px.work_experience(text)
    if experience:
        sections.append("\nPROFESSIONAL EXPERIENCE:\n" + "\n\n".join(experience))

    for title, extractor in (
        ("EDUCATION", px.education),
        ("TECHNICAL SKILLS", px.skills),
        ("PROJECTS", px.projects),
        ("ACHIEVEMENTS", px.achievements),
    ):
        body = extractor(text)
        if body:
            sections.append(f"\n{title}:\n{body}")

    return "\n".join(sections)


def matching_sentences(question: str, text: str, per_keyword: int = 3) -> List[str]:
    """Unique sentences containing any question keyword, in keyword order."""
    all_sentences = px.sentences(text)
    found: List[str] = []
    for word in px.question_keywords(question):
        hits = [s for s in all_sentences if word in s.lower()][:per_keyword]
        for sentence in hits:
            if sentence not in found:
                found.append(sentence)
    return found


def topical_response(question: str, text: str) -> Optional[str]:
    """
    Answer from résumé sections when the question names a topic, otherwise
    list the sentences that mention the question's keywords.
    """
    if not text or not text.strip():
        return None

    lowered = question.lower()
    for keywords, build in TOPIC_RULES:
        if any(k in lowered for k in keywords):
            answer = build(text)
            if answer:
                return answer

    if any(k in lowered for k in OVERVIEW_KEYWORDS):
        overview = full_summary(text)
        if overview:
            return overview

    hits = matching_sentences(question, text)
    if hits:
        bullets = "\n".join(f"• {s}" for s in hits)
        return f"Based on the document content, here's what I found related to your question:\n\n{bullets}"
    return None


# ---------------------------------------------------------------------------
# Keyword responder (final stage)
# ---------------------------------------------------------------------------

def not_found_message(question: str) -> str:
    return (
        f"I could not find information about \"{question}\" in the document. "
        "Could you try rephrasing your question or asking about specific details "
        "mentioned in the document?"
    )


def keyword_response(question: str, text: str) -> str:
    """Direct regex answers for common fact questions; always returns a message."""
    lowered = question.lower()

    if px.contains_any(lowered, ("amount", "cost", "price")):
        found = px.amounts(text)
        if found:
            return f"Based on the document, I found these amounts: {', '.join(found)}."

    if px.contains_any(lowered, ("date", "when")):
        found = px.dates(text)
        if found:
            return f"The document mentions these dates: {', '.join(found)}."

    if px.contains_any(lowered, ("email", "contact")):
        found = px.emails(text)
        if found:
            return f"The document contains these email addresses: {', '.join(found)}."

    if px.contains_any(lowered, ("phone", "number")):
        found = px.phones(text)
        if found:
            return f"The document mentions these phone numbers: {', '.join(found[:3])}."

    hits = matching_sentences(question, text, per_keyword=1)
    if hits:
        return f"Based on the document content: {hits[0]}."

    return not_found_message(question)
