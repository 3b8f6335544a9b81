"""
Per-document chat sessions.

A session holds the document text and the ordered list of chat turns.
Sessions live in an injected ``SessionStore``; the default in-memory store
keeps them for the lifetime of the process.

Each incoming message is answered by the first strategy in an ordered chain
that produces something:

  1. small_talk   : canned reply for greetings/thanks/farewells (no remote call)
  2. remote_qa    : remote model over ~3000-char chunks, best-relevance answer
  3. topical      : résumé section extractors / keyword sentence search
  4. remote_chat  : one last call to a smaller conversational model
  5. keyword      : direct regex answers, ending in a "could not find" message

The last strategy always answers, so every user message gets exactly one
assistant reply.  Messages to the same session are serialised by a
per-session ``asyncio.Lock``, which a restart of the session also takes.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import uuid
from typing import Awaitable, Callable, Dict, List, NamedTuple, Optional, Protocol

from app.config import settings
from app.models.schemas import ChatTurn
from app.services import responders
from app.services.chunking import TextChunker
from app.services.remote_client import RemoteAnalysisClient

logger = logging.getLogger(__name__)

ERROR_REPLY = (
    "I apologize, but I encountered an error while processing your question. "
    "Please try again."
)

_CHAT_PROMPT = """
You are an AI assistant helping users understand their documents. Answer the user's question \
based ONLY on the provided document content.

Document Content:
{document}

Chat History:
{history}

Current Question: {question}

Instructions:
1. Answer based ONLY on the document content provided
2. If the answer is not in the document, say "I cannot find this information in the document"
3. Be specific and cite relevant parts of the document
4. Keep answers concise but informative
5. If asked about numbers, dates, or specific details, provide exact information from the document

Answer:"""


class SessionNotFoundError(KeyError):
    """No chat session exists for the given id."""

    def __init__(self, session_id: str) -> None:
        super().__init__(session_id)
        self.session_id = session_id

    def __str__(self) -> str:
        return f"Chat session {self.session_id!r} not found"


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------

@dataclasses.dataclass
class ChatSession:
    """Mutable conversation state for one document."""

    session_id: str
    document_id: int
    document_title: str
    document_text: str
    user_id: Optional[str] = None
    turns: List[ChatTurn] = dataclasses.field(default_factory=list)
    lock: asyncio.Lock = dataclasses.field(default_factory=asyncio.Lock, repr=False)


class SessionStore(Protocol):
    """Storage for chat sessions keyed by session id."""

    def get(self, session_id: str) -> Optional[ChatSession]: ...

    def put(self, session: ChatSession) -> None: ...

    def delete(self, session_id: str) -> bool: ...


class InMemorySessionStore:
    """Process-local dict store.  Sessions never expire."""

    def __init__(self) -> None:
        self._sessions: Dict[str, ChatSession] = {}

    def get(self, session_id: str) -> Optional[ChatSession]:
        return self._sessions.get(session_id)

    def put(self, session: ChatSession) -> None:
        self._sessions[session.session_id] = session

    def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        return len(self._sessions)


# ---------------------------------------------------------------------------
# Strategy chain
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class AnswerContext:
    """Everything a strategy may look at to answer one question."""

    question: str
    document_text: str
    history: str
    document_type: str


class Strategy(NamedTuple):
    name: str
    run: Callable[[AnswerContext], Awaitable[Optional[str]]]


class ConversationEngine:
    """
    Answers chat messages about a document.

    ``remote`` is shared with document analysis; pass a client with
    ``enabled=False`` to run fully offline.
    """

    MIN_TOPICAL_LENGTH: int = 20

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        remote: Optional[RemoteAnalysisClient] = None,
        chunker: Optional[TextChunker] = None,
        history_window: Optional[int] = None,
    ) -> None:
        self.store: SessionStore = store if store is not None else InMemorySessionStore()
        self.remote = remote or RemoteAnalysisClient()
        self.chunker = chunker or TextChunker()
        self.history_window = history_window or settings.HISTORY_WINDOW

    @property
    def strategies(self) -> List[Strategy]:
        """The ordered fallback chain."""
        return [
            Strategy("small_talk", self._small_talk),
            Strategy("remote_qa", self._remote_qa),
            Strategy("topical", self._topical),
            Strategy("remote_chat", self._remote_chat),
            Strategy("keyword", self._keyword),
        ]

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    async def start_session(
        self,
        document_id: int,
        text: str,
        title: str = "document",
        session_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> str:
        """
        Create (or replace) a session and greet the user.  Returns its id.

        Replacing waits for any message in flight on the old session, and the
        new session keeps the old one's lock.
        """
        session_id = session_id or uuid.uuid4().hex
        previous = self.store.get(session_id)
        lock = previous.lock if previous is not None else asyncio.Lock()

        async with lock:
            session = ChatSession(
                session_id=session_id,
                document_id=document_id,
                document_title=title,
                document_text=text or "",
                user_id=user_id,
                lock=lock,
            )
            session.turns.append(
                ChatTurn(
                    role="assistant",
                    content=(
                        f"Hello! I've analyzed your document \"{title}\". You can now ask me "
                        "questions about its content, and I'll provide answers based on the "
                        "document."
                    ),
                )
            )
            self.store.put(session)

        logger.info(
            "%s chat session %s for document %s (%d chars)",
            "Restarted" if previous is not None else "Started",
            session_id,
            document_id,
            len(session.document_text),
        )
        return session_id

    def get_session(self, session_id: str, user_id: Optional[str] = None) -> ChatSession:
        """
        Look up a session.  With *user_id*, a session owned by someone else
        is reported as not found.
        """
        session = self.store.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        if user_id is not None and session.user_id != user_id:
            logger.warning("User %s asked for chat session %s owned by another user", user_id, session_id)
            raise SessionNotFoundError(session_id)
        return session

    def history(self, session_id: str, user_id: Optional[str] = None) -> List[ChatTurn]:
        return list(self.get_session(session_id, user_id).turns)

    def end_session(self, session_id: str, user_id: Optional[str] = None) -> None:
        self.get_session(session_id, user_id)
        self.store.delete(session_id)
        logger.info("Ended chat session %s", session_id)

    async def post_message(self, session_id: str, text: str, user_id: Optional[str] = None) -> ChatTurn:
        """
        Append the user's message, answer it and append the reply.

        Raises SessionNotFoundError for an unknown session (or one owned by
        another user); every other failure degrades to a fallback answer.
        """
        session = self.get_session(session_id, user_id)
        async with session.lock:
            session.turns.append(ChatTurn(role="user", content=text))
            content = await self.respond(text, session)
            reply = ChatTurn(role="assistant", content=content)
            session.turns.append(reply)
        return reply

    # ------------------------------------------------------------------
    # Answering
    # ------------------------------------------------------------------

    async def respond(self, question: str, session: ChatSession) -> str:
        """Run the strategy chain for *question* and return the first answer."""
        recent = session.turns[-self.history_window:]
        context = AnswerContext(
            question=question.strip(),
            document_text=session.document_text,
            history="\n".join(f"{t.role}: {t.content}" for t in recent),
            document_type=responders.conversation_document_type(session.document_text),
        )

        for strategy in self.strategies:
            try:
                answer = await strategy.run(context)
            except Exception:
                logger.exception("Strategy %s failed, trying next", strategy.name)
                continue
            if answer and answer.strip():
                logger.info("Answered with strategy %s (%d chars)", strategy.name, len(answer))
                return answer.strip()

        return ERROR_REPLY

    async def _small_talk(self, ctx: AnswerContext) -> Optional[str]:
        if not responders.is_conversational(ctx.question):
            return None
        return responders.conversational_reply(ctx.question, ctx.document_type)

    async def _remote_qa(self, ctx: AnswerContext) -> Optional[str]:
        if not self.remote.available or not ctx.document_text.strip():
            return None
        chunks = self.chunker.chunk_for_qa(ctx.document_text, settings.QA_CHUNK_CHARS)
        logger.info("Remote Q&A over %d chunks", len(chunks))
        return await self.remote.answer(ctx.question, chunks, ctx.history)

    async def _topical(self, ctx: AnswerContext) -> Optional[str]:
        answer = responders.topical_response(ctx.question, ctx.document_text)
        if answer and len(answer) > self.MIN_TOPICAL_LENGTH:
            return answer
        return None

    async def _remote_chat(self, ctx: AnswerContext) -> Optional[str]:
        if not self.remote.available or not ctx.document_text.strip():
            return None
        prompt = _CHAT_PROMPT.format(
            document=ctx.document_text[: settings.QA_CHUNK_CHARS],
            history=ctx.history,
            question=ctx.question,
        )
        return await self.remote.generate(prompt, model=self.remote.fallback_model)

    async def _keyword(self, ctx: AnswerContext) -> Optional[str]:
        return responders.keyword_response(ctx.question, ctx.document_text)


# Process-wide engine used by the chat routes
conversation_engine = ConversationEngine()
