"""
Client for the remote text-generation / summarisation service.

Talks to a Hugging Face Inference API compatible endpoint:
``POST {HUGGING_FACE_API_URL}/{model}`` with a bearer token and a JSON body
``{"inputs": ..., "parameters": {...}}``.

Public API
----------
RemoteAnalysisClient.summarize(chunks, fallback)        -> str
RemoteAnalysisClient.answer(question, chunks, history)  -> Optional[str]
RemoteAnalysisClient.generate(prompt, model)            -> Optional[str]

Chunks are processed sequentially with a fixed pause between requests.
A failing chunk is never retried: summaries fall back to the local summary
for that chunk, answers simply skip it.  ``answer`` returns ``None`` when no
chunk produced a usable, relevant answer so the caller can move on to the
next fallback stage.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import re
from typing import Any, Callable, List, Optional, Sequence

import httpx

from app.config import settings
from app.services.pattern_extractor import question_keywords

logger = logging.getLogger(__name__)


class RemoteUnavailableError(Exception):
    """The remote service could not be reached or rejected the request."""


class RemoteMalformedError(Exception):
    """The remote service answered with an unusable payload."""


# ---------------------------------------------------------------------------
# Prompt templates
# ---------------------------------------------------------------------------

_SUMMARY_PROMPT = """
Summarize this document section focusing on:
- Document type and purpose
- Key parties and organizations
- Financial amounts and terms
- Important dates and deadlines
- Critical actions or requirements

Content:
{chunk}

Provide a clear, professional summary:"""

_ANSWER_PROMPT = """Document Content:
{chunk}
{history_block}
Question: {question}

Based on the document content above, provide a detailed and informative answer to the question. \
If the information is not in the document, say so clearly. Be specific and include relevant details \
from the document.

Answer:"""


@dataclasses.dataclass
class RelevanceCandidate:
    """A chunk-level answer competing to be returned."""

    text: str
    score: int
    chunk_index: int


class RemoteAnalysisClient:
    """
    Sequential, failure-tolerant wrapper around the remote inference API.

    ``transport`` may be supplied to route requests somewhere other than the
    network (``httpx.MockTransport`` in tests).
    """

    SUMMARY_PARAMETERS = {
        "max_length": 150,
        "min_length": 50,
        "do_sample": False,
        "num_beams": 4,
        "early_stopping": True,
    }
    ANSWER_PARAMETERS = {
        "max_length": 512,
        "temperature": 0.8,
        "do_sample": True,
        "top_p": 0.9,
        "repetition_penalty": 1.2,
    }

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        enabled: Optional[bool] = None,
        request_delay: Optional[float] = None,
        relevance_threshold: Optional[int] = None,
        min_answer_length: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.HUGGING_FACE_API_URL).rstrip("/")
        self.token = settings.HUGGING_FACE_TOKEN if token is None else token
        self.enabled = settings.REMOTE_ANALYSIS_ENABLED if enabled is None else enabled
        self.request_delay = (
            settings.REMOTE_REQUEST_DELAY if request_delay is None else request_delay
        )
        self.relevance_threshold = (
            settings.RELEVANCE_THRESHOLD if relevance_threshold is None else relevance_threshold
        )
        self.min_answer_length = (
            settings.MIN_ANSWER_LENGTH if min_answer_length is None else min_answer_length
        )
        self.summary_model = settings.SUMMARY_MODEL
        self.qa_model = settings.QA_MODEL
        self.fallback_model = settings.FALLBACK_CHAT_MODEL
        self._transport = transport

    @property
    def available(self) -> bool:
        """False when remote calls are switched off or no token is configured."""
        return bool(self.enabled and self.token)

    # ------------------------------------------------------------------
    # Summarisation
    # ------------------------------------------------------------------

    async def summarize(
        self,
        chunks: Sequence[str],
        fallback: Callable[[str], str],
    ) -> str:
        """
        Summarise each chunk remotely and join the results in chunk order.

        *fallback* produces a local summary for any chunk whose remote call
        fails or returns nothing usable.
        """
        if not self.available:
            logger.info("Remote summarisation unavailable; local summary for %d chunks", len(chunks))

        parts: List[str] = []
        for i, chunk in enumerate(chunks):
            summary = ""
            if self.available:
                if i > 0:
                    await self._pause()
                try:
                    payload = await self._post(
                        self.summary_model,
                        {
                            "inputs": _SUMMARY_PROMPT.format(chunk=chunk),
                            "parameters": self.SUMMARY_PARAMETERS,
                        },
                        timeout=settings.SUMMARY_TIMEOUT,
                    )
                    summary = self.normalize_response(payload).strip()
                    if summary:
                        logger.info("Chunk %d/%d summarised remotely", i + 1, len(chunks))
                except (RemoteUnavailableError, RemoteMalformedError) as exc:
                    logger.warning("Chunk %d/%d summary failed: %s", i + 1, len(chunks), exc)

            if not summary:
                summary = fallback(chunk)
            parts.append(summary)

        return " ".join(p.strip() for p in parts if p and p.strip())

    # ------------------------------------------------------------------
    # Question answering
    # ------------------------------------------------------------------

    async def answer(
        self,
        question: str,
        chunks: Sequence[str],
        history: str = "",
    ) -> Optional[str]:
        """
        Ask *question* against every chunk and return the most relevant answer.

        Relevance = number of question keywords present in the answer or in
        the chunk it came from.  Ties keep the earliest chunk.  Returns None
        when nothing scores above ``relevance_threshold``.
        """
        if not self.available or not chunks:
            return None

        history_block = f"\nChat History:\n{history}\n" if history else ""
        best: Optional[RelevanceCandidate] = None

        for i, chunk in enumerate(chunks):
            if i > 0:
                await self._pause()

            prompt = _ANSWER_PROMPT.format(
                chunk=chunk, history_block=history_block, question=question
            )
            try:
                payload = await self._post(
                    self.qa_model,
                    {"inputs": prompt, "parameters": self.ANSWER_PARAMETERS},
                    timeout=settings.QA_TIMEOUT,
                )
            except (RemoteUnavailableError, RemoteMalformedError) as exc:
                logger.warning("Q&A chunk %d/%d skipped: %s", i + 1, len(chunks), exc)
                continue

            text = self.clean_answer(self.normalize_response(payload), prompt)
            if len(text) <= self.min_answer_length:
                continue

            score = self.relevance_score(question, text, chunk)
            floor = best.score if best else self.relevance_threshold
            if score > floor:
                best = RelevanceCandidate(text=text, score=score, chunk_index=i)
                logger.info("Better answer in chunk %d (relevance %d)", i + 1, score)

        if best is None:
            logger.info("No remote answer cleared the relevance threshold")
            return None
        return best.text

    async def generate(
        self,
        prompt: str,
        model: Optional[str] = None,
        max_length: int = 200,
    ) -> Optional[str]:
        """Single generation call (no chunking).  None on any failure."""
        if not self.available:
            return None
        try:
            payload = await self._post(
                model or self.fallback_model,
                {
                    "inputs": prompt,
                    "parameters": {"max_length": max_length, "temperature": 0.7, "do_sample": True},
                },
                timeout=settings.QA_TIMEOUT,
            )
        except (RemoteUnavailableError, RemoteMalformedError) as exc:
            logger.warning("generate: remote call failed: %s", exc)
            return None

        text = self.normalize_response(payload).replace(prompt, "").strip()
        return text or None

    # ------------------------------------------------------------------
    # Response handling
    # ------------------------------------------------------------------

    @staticmethod
    def normalize_response(payload: Any) -> str:
        """
        Extract generated text from any of the supported response shapes:

        - ``[{"summary_text": ...}]`` / ``[{"generated_text": ...}]``
        - ``["..."]``
        - ``{"generated_text": ...}`` / ``{"summary_text": ...}``
        - ``"..."``

        Anything else yields an empty string.
        """
        if isinstance(payload, list):
            if not payload:
                return ""
            payload = payload[0]
        if isinstance(payload, dict):
            value = payload.get("generated_text") or payload.get("summary_text") or ""
            return value if isinstance(value, str) else ""
        if isinstance(payload, str):
            return payload
        return ""

    @staticmethod
    def clean_answer(text: str, prompt: str = "") -> str:
        """Strip an echoed prompt, a leading ``Answer:`` and a leading bullet."""
        if prompt:
            text = text.replace(prompt, "")
        text = re.sub(r"^\s*Answer:\s*", "", text, flags=re.IGNORECASE)
        text = re.sub(r"^\s*[-*]\s*", "", text)
        return text.strip()

    @staticmethod
    def relevance_score(question: str, answer: str, chunk: str) -> int:
        """Count question keywords found in *answer* or *chunk*."""
        answer_lower = answer.lower()
        chunk_lower = chunk.lower()
        return sum(
            1 for word in question_keywords(question)
            if word in answer_lower or word in chunk_lower
        )

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _post(self, model: str, body: dict, timeout: float) -> Any:
        """POST *body* to *model*; returns decoded JSON (or raw text)."""
        url = f"{self.base_url}/{model}"
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(timeout, connect=10.0),
                transport=self._transport,
            ) as client:
                resp = await client.post(url, json=body, headers=headers)
        except httpx.TimeoutException as exc:
            raise RemoteUnavailableError(f"{model} timed out after {timeout:.0f}s") from exc
        except httpx.HTTPError as exc:
            raise RemoteUnavailableError(f"{model} request failed: {exc}") from exc

        if resp.status_code != 200:
            raise RemoteUnavailableError(
                f"{model} returned HTTP {resp.status_code}: {resp.text[:200]}"
            )

        try:
            payload = resp.json()
        except ValueError:
            payload = resp.text

        if not self.normalize_response(payload).strip():
            raise RemoteMalformedError(f"{model} returned no usable text")
        return payload

    async def _pause(self) -> None:
        if self.request_delay > 0:
            await asyncio.sleep(self.request_delay)
