"""
Deterministic, rule-based document analysis.

Used whenever the remote summarisation service is unavailable or returns
nothing usable.  Builds every field of an ``AnalysisResult`` from the
``pattern_extractor`` output alone, so identical text always yields an
identical result.

Each step guards itself: an internal error is logged and replaced with a
named placeholder so ``analyze`` always returns a well-formed result.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from app.models.schemas import AnalysisResult
from app.services import pattern_extractor as px

logger = logging.getLogger(__name__)

MAX_KEY_POINTS = 7

POSITIVE_WORDS = (
    "good", "great", "excellent", "positive", "success", "approved", "accepted",
)
NEGATIVE_WORDS = (
    "bad", "poor", "negative", "failure", "problem", "rejected", "cancelled",
)

GENERIC_INSIGHTS = [
    "📄 Document contains structured information",
    "🔍 Multiple key topics identified",
    "📋 Professional language detected",
]

EMPTY_SUMMARY = "Document analysis completed."
SUMMARY_FAILED = "Enhanced summary generation failed."
INSIGHTS_FAILED = ["Intelligent insight generation failed."]
KEY_POINTS_FAILED = ["Detailed key points extraction failed."]


def document_type(text: str) -> Optional[str]:
    """Coarse document type from keyword presence (invoice, contract, report, letter)."""
    lowered = (text or "").lower()
    if "invoice" in lowered or "bill" in lowered:
        return "invoice"
    if "contract" in lowered or "agreement" in lowered:
        return "contract"
    if "report" in lowered:
        return "report"
    if "letter" in lowered:
        return "letter"
    return None


_TYPE_SENTENCES = {
    "invoice": "This is an invoice document.",
    "contract": "This is a contract or agreement document.",
    "report": "This is a report document.",
}

_TYPE_INSIGHTS = {
    "invoice": "📄 Document Type: Invoice or billing statement",
    "contract": "📋 Document Type: Contract or legal agreement",
    "report": "📊 Document Type: Report or analysis document",
    "letter": "📝 Document Type: Letter or correspondence",
}


class FallbackAnalyzer:
    """Builds summary, insights, key points and sentiment from regex matches."""

    def analyze(self, text: str) -> AnalysisResult:
        """Full analysis of *text*.  Never raises."""
        text = text or ""
        return AnalysisResult(
            summary=self.summary(text),
            insights=self.insights(text),
            key_points=self.key_points(text),
            sentiment=self.sentiment(text),
        )

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def summary(self, text: str) -> str:
        """
        Type sentence, up to three amounts, up to two dates and the first two
        meaningful sentences of *text*.
        """
        try:
            parts: List[str] = []

            doc_type = document_type(text)
            if doc_type in _TYPE_SENTENCES:
                parts.append(_TYPE_SENTENCES[doc_type])

            found_amounts = px.amounts(text)
            if found_amounts:
                parts.append(f"Contains financial amounts: {', '.join(found_amounts[:3])}.")

            found_dates = px.dates(text)
            if found_dates:
                parts.append(f"Key dates mentioned: {', '.join(found_dates[:2])}.")

            leading = px.sentences(text, min_length=10)[:2]
            if leading:
                parts.append(". ".join(leading) + ".")

            return " ".join(parts) or EMPTY_SUMMARY
        except Exception:
            logger.exception("Fallback summary failed")
            return SUMMARY_FAILED

    # ------------------------------------------------------------------
    # Insights
    # ------------------------------------------------------------------

    def insights(self, text: str) -> List[str]:
        try:
            found: List[str] = []
            lowered = text.lower()

            doc_type = document_type(text)
            if doc_type:
                found.append(_TYPE_INSIGHTS[doc_type])

            financial = px.financial_insight_summary(px.amounts(text))
            if financial.count:
                found.append(
                    f"💰 Financial Information: {financial.count} monetary amounts found, "
                    f"total: {financial.formatted_total()}"
                )

            email_count = len(px.emails(text))
            if email_count:
                found.append(f"📧 Contact Information: {email_count} email addresses found")

            phone_count = len(px.phones(text))
            if phone_count:
                found.append(f"📞 Contact Information: {phone_count} phone numbers found")

            if px.contains_any(lowered, ("bank", "account", "ifsc", "ac no")):
                found.append("🏦 Banking Details: Contains banking or payment information")

            date_count = len(px.dates(text))
            if date_count:
                found.append(f"📅 Time-sensitive: {date_count} important dates mentioned")

            if px.contains_any(lowered, ("gst", "tax", "pan")):
                found.append("🏛️ Tax Information: Contains GST, PAN, or tax-related details")

            if px.contains_any(lowered, ("service", "product")):
                found.append("🛠️ Service/Product: Contains service or product descriptions")

            return found or list(GENERIC_INSIGHTS)
        except Exception:
            logger.exception("Fallback insights failed")
            return list(INSIGHTS_FAILED)

    # ------------------------------------------------------------------
    # Key points
    # ------------------------------------------------------------------

    def key_points(self, text: str) -> List[str]:
        """First match of each fact kind, else leading sentences; at most 7."""
        try:
            points: List[str] = []

            for label, found in (
                ("💰 Amount", px.amounts(text)),
                ("📅 Date", px.dates(text)),
                ("📧 Email", px.emails(text)),
                ("📞 Phone", px.phones(text)),
            ):
                if found:
                    points.append(f"{label}: {found[0]}")

            for label, labels in (
                ("🛠️ Service", px.SERVICE_LABELS),
                ("🏢 Organization", px.ORGANIZATION_LABELS),
                ("📍 Address", px.ADDRESS_LABELS),
            ):
                mention = px.labelled_mention(text, labels)
                if mention:
                    points.append(f"{label}: {mention}")

            if not points:
                points = px.sentences(text, min_length=20)[:5]

            return points[:MAX_KEY_POINTS]
        except Exception:
            logger.exception("Fallback key points failed")
            return list(KEY_POINTS_FAILED)

    # ------------------------------------------------------------------
    # Sentiment
    # ------------------------------------------------------------------

    def sentiment(self, text: str) -> str:
        """Majority of positive vs. negative list words present; ties are neutral."""
        try:
            lowered = (text or "").lower()
            positive = sum(1 for word in POSITIVE_WORDS if word in lowered)
            negative = sum(1 for word in NEGATIVE_WORDS if word in lowered)
        except Exception:
            logger.exception("Sentiment scoring failed")
            return "neutral"

        if positive > negative:
            return "positive"
        if negative > positive:
            return "negative"
        return "neutral"
