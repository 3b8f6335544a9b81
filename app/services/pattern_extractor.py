"""
Regex / keyword based extraction of structured facts from raw document text.

Every function here is pure and total: a missing match yields an empty list
or empty string, never an exception.  Callers treat "empty" as "no
information found".

Résumé-style sections are described by the ``SECTION_RULES`` table
(section -> header token + stop headers) so boundaries can be tuned without
touching the responders that consume them.

Known precision issue: ``phones`` is deliberately permissive and will also
match invoice numbers, years and amounts whose currency symbol was stripped.
"""
from __future__ import annotations

import dataclasses
import logging
import re
from typing import Dict, Iterable, List, Sequence, Tuple

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

AMOUNT_RE = re.compile(r"[₹$€][\d,]+\.?\d*")
DATE_RE = re.compile(r"\d{1,2}/\d{1,2}/\d{2,4}|\d{1,2}-\d{1,2}-\d{2,4}")
EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
# Permissive: also matches years, invoice numbers and bare amounts
PHONE_RE = re.compile(r"[+]?[1-9]\d{0,15}")
# Stricter form used when presenting a single contact number
CONTACT_PHONE_RE = re.compile(r"[+]?[1-9][\d\s\-()]{8,15}")
LEADING_NAME_RE = re.compile(r"^([A-Z][a-z]+ [A-Z][a-z]+)")
SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")

CURRENCY_SYMBOLS = ("₹", "$", "€")

# A line naming one of these roles starts a new experience entry
ROLE_TITLE_RE = re.compile(
    r"\b(?:Engineer|Intern|Developer|Analyst|Consultant|Manager|Designer|Scientist)\b",
    re.IGNORECASE,
)

EDUCATION_PATTERNS = (
    re.compile(r"B\.Tech[\s\S]*?\d{4}", re.IGNORECASE),
    re.compile(r"Bachelor[\s\S]*?\d{4}", re.IGNORECASE),
    re.compile(r"Institute[\s\S]*?\d{4}", re.IGNORECASE),
    re.compile(r"University[\s\S]*?\d{4}", re.IGNORECASE),
    re.compile(r"College[\s\S]*?\d{4}", re.IGNORECASE),
)

SKILL_LABELS = ("Languages:", "Frameworks:", "Databases:", "Tools")

SERVICE_LABELS = ("service", "product", "item", "description")
ORGANIZATION_LABELS = ("company", "organization", "corporation", "pvt", "ltd", "inc")
ADDRESS_LABELS = ("address", "location")


# ---------------------------------------------------------------------------
# Section rule table
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class SectionRule:
    """Boundary rule for one résumé-style section."""

    header: str
    stop_headers: Tuple[str, ...] = ()


SECTION_RULES: Dict[str, SectionRule] = {
    "experience": SectionRule(
        "Experience", ("Education", "Projects", "Technical Skills", "Achievements")
    ),
    "education": SectionRule("Education", ("Experience", "Projects")),
    "skills": SectionRule("Technical Skills", ("Achievements", "Projects")),
    "projects": SectionRule("Projects", ("Technical Skills", "Achievements")),
    "achievements": SectionRule("Achievements"),
}


# ---------------------------------------------------------------------------
# Primitive extractors
# ---------------------------------------------------------------------------

def amounts(text: str) -> List[str]:
    """Currency amounts prefixed with ₹, $ or €, in document order."""
    return AMOUNT_RE.findall(text or "")


def dates(text: str) -> List[str]:
    """Numeric D/M/Y or D-M-Y dates.  No calendar validation."""
    return DATE_RE.findall(text or "")


def emails(text: str) -> List[str]:
    return EMAIL_RE.findall(text or "")


def phones(text: str) -> List[str]:
    """Runs of 1–16 digits with an optional leading ``+`` (permissive)."""
    return PHONE_RE.findall(text or "")


def sentences(text: str, min_length: int = 0) -> List[str]:
    """Sentences split on terminators, stripped, longer than *min_length*."""
    parts = (s.strip() for s in SENTENCE_SPLIT_RE.split(text or ""))
    return [s for s in parts if s and len(s) > min_length]


def question_keywords(question: str) -> List[str]:
    """Lower-cased question words longer than three characters."""
    words = (w.strip("?!.,;:\"'()[]").lower() for w in (question or "").split())
    return [w for w in words if len(w) > 3]


def contains_any(text: str, keywords: Iterable[str]) -> bool:
    """Case-insensitive substring test for any of *keywords*."""
    lowered = (text or "").lower()
    return any(k in lowered for k in keywords)


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------

def section_body(text: str, section_name: str, stop_names: Sequence[str] = ()) -> str:
    """
    Return the text between the *section_name* header and the next header in
    *stop_names* (or the end of text), stripped.

    A header at the start of a line is preferred; otherwise the first
    occurrence anywhere is used.  Matching is case-insensitive.
    """
    if not text or not section_name:
        return ""

    header = re.escape(section_name)
    start = re.search(rf"^[ \t]*{header}", text, re.IGNORECASE | re.MULTILINE)
    if start is None:
        start = re.search(header, text, re.IGNORECASE)
    if start is None:
        return ""

    rest = text[start.end():]
    if stop_names:
        stop_re = "|".join(re.escape(s) for s in stop_names)
        stop = re.search(stop_re, rest, re.IGNORECASE)
        if stop is not None:
            rest = rest[: stop.start()]
    return rest.strip()


def section(text: str, name: str) -> str:
    """Body of a section from ``SECTION_RULES`` (e.g. ``"projects"``)."""
    rule = SECTION_RULES[name]
    return section_body(text, rule.header, rule.stop_headers)


def work_experience(text: str) -> List[str]:
    """Experience section broken into one entry per line naming a role."""
    body = section(text, "experience")
    if not body:
        return []
    entries: List[str] = []
    current: List[str] = []
    for line in body.splitlines():
        line = line.strip()
        if ROLE_TITLE_RE.search(line) and current:
            entries.append("\n".join(current))
            current = []
        if line:
            current.append(line)
    if current:
        entries.append("\n".join(current))
    return [e for e in entries if len(e) > 20]


def education(text: str) -> str:
    body = section(text, "education")
    if body:
        return body

    for pattern in EDUCATION_PATTERNS:
        matches = pattern.findall(text or "")
        if matches:
            return "\n".join(matches)
    return ""


def skills(text: str) -> str:
    body = section(text, "skills")
    if body:
        return body

    stops = "|".join(re.escape(label) for label in SKILL_LABELS)
    found: List[str] = []
    for label in SKILL_LABELS:
        pattern = re.compile(rf"{re.escape(label)}([^\n]*?)(?={stops}|$)", re.IGNORECASE | re.MULTILINE)
        found.extend(m.group(0) for m in pattern.finditer(text or ""))
    return "\n".join(found)


def projects(text: str) -> str:
    return section(text, "projects")


def achievements(text: str) -> str:
    return section(text, "achievements")


def leading_name(text: str) -> str:
    """A ``First Last`` name at the very start of the document, if any."""
    match = LEADING_NAME_RE.match(text or "")
    return match.group(1) if match else ""


def contact_info(text: str) -> str:
    """Email, phone and name lines, newline separated."""
    lines: List[str] = []

    found_emails = emails(text)
    if found_emails:
        lines.append(f"Email: {found_emails[0]}")

    phone = CONTACT_PHONE_RE.search(text or "")
    if phone:
        lines.append(f"Phone: {phone.group(0).strip()}")

    name = leading_name(text)
    if name:
        lines.append(f"Name: {name}")

    return "\n".join(lines)


def labelled_mention(text: str, labels: Sequence[str]) -> str:
    """
    First ``<label>[: ]<rest of line>`` occurrence with the label removed,
    e.g. ``labelled_mention("Address: 12 Main St", ADDRESS_LABELS)``.
    """
    alternatives = "|".join(re.escape(label) for label in labels)
    match = re.search(rf"(?:{alternatives})[\s:]*([^\n\r]+)", text or "", re.IGNORECASE)
    return match.group(1).strip() if match else ""


# ---------------------------------------------------------------------------
# Financial summary
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class FinancialSummary:
    """Aggregate over extracted currency amounts."""

    count: int
    total: float
    currency_symbol: str

    def formatted_total(self) -> str:
        return f"{self.currency_symbol}{format_number(self.total)}"


def parse_amount(amount: str) -> float:
    """Numeric value of an amount token; 0.0 when it cannot be parsed."""
    cleaned = amount
    for symbol in CURRENCY_SYMBOLS:
        cleaned = cleaned.replace(symbol, "")
    cleaned = cleaned.replace(",", "")
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def financial_insight_summary(found: Sequence[str]) -> FinancialSummary:
    """Count, total and first currency symbol of *found* (zero count when empty)."""
    if not found:
        return FinancialSummary(count=0, total=0.0, currency_symbol="")
    first = found[0]
    symbol = next((s for s in CURRENCY_SYMBOLS if s in first), "")
    total = sum(parse_amount(a) for a in found)
    return FinancialSummary(count=len(found), total=total, currency_symbol=symbol)


def format_number(value: float) -> str:
    """Thousands-separated number, decimals kept only when present."""
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"
