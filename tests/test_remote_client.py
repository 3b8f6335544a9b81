"""Tests for RemoteAnalysisClient against a mocked inference endpoint."""
import json

import httpx
import pytest

from app.services import remote_client
from app.services.remote_client import RemoteAnalysisClient
from tests.conftest import RecordingTransport, make_remote


def _inputs(request: httpx.Request) -> str:
    return json.loads(request.content)["inputs"]


def _local(chunk: str) -> str:
    return f"LOCAL[{chunk}]"


# ---------------------------------------------------------------------------
# Response normalisation
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "payload, expected",
    [
        ([{"summary_text": "a summary"}], "a summary"),
        ([{"generated_text": "generated"}], "generated"),
        (["plain list"], "plain list"),
        ({"generated_text": "object"}, "object"),
        ({"summary_text": "object summary"}, "object summary"),
        ("bare string", "bare string"),
        ([], ""),
        ({"error": "Model is loading"}, ""),
        (42, ""),
        (None, ""),
    ],
)
def test_normalize_response_shapes(payload, expected):
    assert RemoteAnalysisClient.normalize_response(payload) == expected


def test_clean_answer_strips_echo_and_prefixes():
    prompt = "Question: what?\n\nAnswer:"
    assert RemoteAnalysisClient.clean_answer(prompt + " Answer: - The total is $500", prompt) == (
        "The total is $500"
    )


def test_relevance_counts_keywords_in_answer_or_chunk():
    score = RemoteAnalysisClient.relevance_score(
        "What is the invoice total?", "It is $500", "Invoice total: $500"
    )
    # "invoice" and "total" are in the chunk; "what" is nowhere
    assert score == 2


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_summarize_joins_chunk_summaries_in_order():
    def handler(request):
        text = _inputs(request)
        label = "first" if "chunk one" in text else "second"
        return httpx.Response(200, json=[{"summary_text": f"Summary of the {label} chunk."}])

    transport = RecordingTransport(handler)
    client = make_remote(transport)

    result = await client.summarize(["chunk one", "chunk two"], fallback=_local)

    assert result == "Summary of the first chunk. Summary of the second chunk."
    assert len(transport.requests) == 2
    assert transport.requests[0].headers["Authorization"] == "Bearer test-token"
    assert transport.requests[0].url.path.endswith("/facebook/bart-large-cnn")


@pytest.mark.asyncio
async def test_summarize_falls_back_per_failed_chunk():
    def handler(request):
        if "chunk two" in _inputs(request):
            return httpx.Response(503, json={"error": "Model is loading"})
        return httpx.Response(200, json=[{"summary_text": "Remote summary."}])

    client = make_remote(RecordingTransport(handler))
    result = await client.summarize(["chunk one", "chunk two", "chunk three"], fallback=_local)

    assert result == "Remote summary. LOCAL[chunk two] Remote summary."


@pytest.mark.asyncio
async def test_summarize_treats_empty_payload_as_failure():
    transport = RecordingTransport(lambda request: httpx.Response(200, json=[]))
    client = make_remote(transport)

    assert await client.summarize(["only chunk"], fallback=_local) == "LOCAL[only chunk]"


@pytest.mark.asyncio
async def test_summarize_survives_transport_errors():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = make_remote(RecordingTransport(handler))
    assert await client.summarize(["a", "b"], fallback=_local) == "LOCAL[a] LOCAL[b]"


@pytest.mark.asyncio
async def test_disabled_client_never_calls_out():
    transport = RecordingTransport(lambda request: httpx.Response(200, json=["never"]))
    client = make_remote(transport, enabled=False)

    assert not client.available
    assert await client.summarize(["a"], fallback=_local) == "LOCAL[a]"
    assert await client.answer("What is this?", ["a"]) is None
    assert await client.generate("prompt") is None
    assert transport.requests == []


@pytest.mark.asyncio
async def test_missing_token_means_unavailable():
    client = make_remote(RecordingTransport(lambda r: httpx.Response(200, json=["x"])), token="")
    assert not client.available


# ---------------------------------------------------------------------------
# Question answering
# ---------------------------------------------------------------------------

QUESTION = "What is the invoice total?"


@pytest.mark.asyncio
async def test_answer_picks_most_relevant_chunk():
    def handler(request):
        text = _inputs(request)
        if "Invoice total" in text:
            return httpx.Response(200, json=[{"generated_text": "The invoice total is $500."}])
        return httpx.Response(200, json=[{"generated_text": "The weather was sunny all week."}])

    client = make_remote(RecordingTransport(handler))
    answer = await client.answer(QUESTION, ["Weather report for May.", "Invoice total: $500."])

    assert answer == "The invoice total is $500."


@pytest.mark.asyncio
async def test_answer_ties_keep_the_earliest_chunk():
    def handler(request):
        text = _inputs(request)
        label = "first" if "chunk A" in text else "second"
        return httpx.Response(200, json=[{"generated_text": f"The invoice total from the {label} chunk."}])

    client = make_remote(RecordingTransport(handler))
    answer = await client.answer(QUESTION, ["chunk A", "chunk B"])

    assert answer == "The invoice total from the first chunk."


@pytest.mark.asyncio
async def test_answer_skips_failing_chunks():
    def handler(request):
        if "chunk A" in _inputs(request):
            return httpx.Response(500, text="internal error")
        return httpx.Response(200, json={"generated_text": "The invoice total is $500."})

    client = make_remote(RecordingTransport(handler))
    assert await client.answer(QUESTION, ["chunk A", "chunk B"]) == "The invoice total is $500."


@pytest.mark.asyncio
async def test_answer_rejects_short_or_irrelevant_text():
    def handler(request):
        if "chunk A" in _inputs(request):
            return httpx.Response(200, json=[{"generated_text": "Yes."}])
        return httpx.Response(200, json=[{"generated_text": "Nothing to see in here at all."}])

    client = make_remote(RecordingTransport(handler))
    assert await client.answer(QUESTION, ["chunk A", "chunk B"]) is None


@pytest.mark.asyncio
async def test_answer_respects_relevance_threshold():
    transport = RecordingTransport(
        lambda request: httpx.Response(200, json=[{"generated_text": "The invoice total is $500."}])
    )
    client = make_remote(transport, relevance_threshold=3)
    # Only "invoice" and "total" match
    assert await client.answer(QUESTION, ["chunk"]) is None


@pytest.mark.asyncio
async def test_answer_includes_history_in_prompt():
    transport = RecordingTransport(
        lambda request: httpx.Response(200, json=[{"generated_text": "The invoice total is $500."}])
    )
    client = make_remote(transport)
    await client.answer(QUESTION, ["chunk"], history="user: hi\nassistant: hello")

    prompt = _inputs(transport.requests[0])
    assert "Chat History:\nuser: hi\nassistant: hello" in prompt
    assert transport.requests[0].url.path.endswith("/google/flan-t5-base")


@pytest.mark.asyncio
async def test_generate_strips_echoed_prompt():
    transport = RecordingTransport(
        lambda request: httpx.Response(200, json=[{"generated_text": "PROMPT The reply."}])
    )
    client = make_remote(transport)

    assert await client.generate("PROMPT") == "The reply."
    assert transport.requests[0].url.path.endswith("/microsoft/DialoGPT-medium")


@pytest.mark.asyncio
async def test_non_json_body_is_used_as_text():
    transport = RecordingTransport(lambda request: httpx.Response(200, text="plain text reply"))
    client = make_remote(transport)
    assert await client.generate("prompt") == "plain text reply"


# ---------------------------------------------------------------------------
# Pacing and timeouts
# ---------------------------------------------------------------------------

@pytest.fixture
def recorded_sleeps(monkeypatch):
    """Replace asyncio.sleep inside the client and keep the requested delays."""
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    monkeypatch.setattr(remote_client.asyncio, "sleep", fake_sleep)
    return delays


def _summary_ok(request):
    return httpx.Response(200, json=[{"summary_text": "Remote summary."}])


@pytest.mark.asyncio
async def test_summarize_pauses_between_chunk_calls_only(recorded_sleeps):
    transport = RecordingTransport(_summary_ok)
    client = make_remote(transport, request_delay=1.5)

    await client.summarize(["chunk one", "chunk two", "chunk three"], fallback=_local)

    assert len(transport.requests) == 3
    assert recorded_sleeps == [1.5, 1.5]


@pytest.mark.asyncio
async def test_single_chunk_is_not_delayed(recorded_sleeps):
    client = make_remote(RecordingTransport(_summary_ok), request_delay=1.5)

    await client.summarize(["only chunk"], fallback=_local)

    assert recorded_sleeps == []


@pytest.mark.asyncio
async def test_zero_delay_never_sleeps(recorded_sleeps):
    client = make_remote(RecordingTransport(_summary_ok), request_delay=0)

    await client.summarize(["a", "b", "c"], fallback=_local)

    assert recorded_sleeps == []


@pytest.mark.asyncio
async def test_answer_pauses_between_chunk_calls_only(recorded_sleeps):
    def handler(request):
        if "chunk B" in _inputs(request):
            return httpx.Response(503, json={"error": "Model is loading"})
        return httpx.Response(200, json=[{"generated_text": "The invoice total is $500."}])

    transport = RecordingTransport(handler)
    client = make_remote(transport, request_delay=2)

    await client.answer(QUESTION, ["chunk A", "chunk B", "chunk C"])

    assert len(transport.requests) == 3
    assert recorded_sleeps == [2, 2]


@pytest.mark.asyncio
async def test_summarize_timeout_falls_back_for_that_chunk():
    def handler(request):
        if "chunk two" in _inputs(request):
            raise httpx.ReadTimeout("read timed out", request=request)
        return httpx.Response(200, json=[{"summary_text": "Remote summary."}])

    client = make_remote(RecordingTransport(handler))
    result = await client.summarize(["chunk one", "chunk two", "chunk three"], fallback=_local)

    assert result == "Remote summary. LOCAL[chunk two] Remote summary."


@pytest.mark.asyncio
async def test_answer_timeout_skips_that_chunk():
    def handler(request):
        if "chunk A" in _inputs(request):
            raise httpx.ReadTimeout("read timed out", request=request)
        return httpx.Response(200, json=[{"generated_text": "The invoice total is $500."}])

    transport = RecordingTransport(handler)
    client = make_remote(transport)

    assert await client.answer(QUESTION, ["chunk A", "chunk B"]) == "The invoice total is $500."
    assert len(transport.requests) == 2


@pytest.mark.asyncio
async def test_timeout_is_reported_as_unavailable():
    def handler(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    client = make_remote(RecordingTransport(handler))

    with pytest.raises(remote_client.RemoteUnavailableError, match="timed out"):
        await client._post(client.summary_model, {"inputs": "x"}, timeout=5)
