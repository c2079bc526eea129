import httpx
import pytest

from quizlearn.errors import ProviderFailure
from quizlearn.gemini_client import GeminiClient
from quizlearn.settings import Settings


def _reply(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def _client(handler, models=("model-a", "model-b", "model-c")) -> GeminiClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GeminiClient("test-key", list(models), base_url="https://gemini.test/v1beta/models", http_client=http)


def _model_of(request: httpx.Request) -> str:
    return request.url.path.rsplit("/", 1)[-1].split(":")[0]


@pytest.mark.asyncio
async def test_first_model_answer_is_used():
    seen = []

    def handler(request):
        seen.append(_model_of(request))
        return httpx.Response(200, json=_reply("hello"))

    client = _client(handler)
    assert await client.generate("hi") == "hello"
    assert seen == ["model-a"]
    await client.aclose()


@pytest.mark.asyncio
async def test_falls_back_in_priority_order():
    seen = []

    def handler(request):
        model = _model_of(request)
        seen.append(model)
        if model == "model-a":
            return httpx.Response(503, json={"error": "overloaded"})
        if model == "model-b":
            return httpx.Response(200, json=_reply("   "))
        return httpx.Response(200, json=_reply("from c"))

    client = _client(handler)
    assert await client.generate("hi") == "from c"
    assert seen == ["model-a", "model-b", "model-c"]
    await client.aclose()


@pytest.mark.asyncio
async def test_all_models_failing_raises_last_error():
    seen = []

    def handler(request):
        model = _model_of(request)
        seen.append(model)
        if model == "model-b":
            return httpx.Response(200, json={"unexpected": True})
        return httpx.Response(500)

    client = _client(handler, models=("model-a", "model-b"))
    with pytest.raises(ProviderFailure) as exc:
        await client.generate("hi")
    assert "Unexpected Gemini response" in exc.value.message
    # Each model is tried exactly once
    assert seen == ["model-a", "model-b"]
    await client.aclose()


@pytest.mark.asyncio
async def test_request_shape():
    captured = {}

    def handler(request):
        captured["url"] = str(request.url)
        captured["key"] = request.headers.get("x-goog-api-key")
        captured["body"] = request.content
        return httpx.Response(200, json=_reply("ok"))

    client = _client(handler)
    await client.generate("Explain loops")
    assert captured["url"].startswith("https://gemini.test/v1beta/models/model-a:generateContent")
    assert captured["key"] == "test-key"
    assert "test-key" not in captured["url"]
    assert b"Explain loops" in captured["body"]
    await client.aclose()


def test_requires_api_key_and_models():
    with pytest.raises(ValueError):
        GeminiClient("", ["model-a"])
    with pytest.raises(ValueError):
        GeminiClient("key", [])


def test_candidate_models_from_settings():
    s = Settings(GEMINI_MODELS=" gemini-2.5-flash, ,gemini-2.0-flash ")
    assert s.candidate_models == ["gemini-2.5-flash", "gemini-2.0-flash"]


@pytest.mark.asyncio
async def test_api_key_stays_out_of_failure_messages(caplog):
    def handler(request):
        if _model_of(request) == "model-a":
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(404, json={"error": "not found"})

    client = _client(handler, models=("model-a", "model-b"))
    with caplog.at_level("WARNING", logger="quizlearn.gemini_client"):
        with pytest.raises(ProviderFailure) as exc:
            await client.generate("hi")
    assert exc.value.message == "Model model-b returned HTTP 404"
    assert "test-key" not in exc.value.message
    assert "model-a request failed: ConnectError" in caplog.text
    assert "test-key" not in caplog.text
    await client.aclose()


def test_generate_endpoint_does_not_expose_api_key(client, db, login_as):
    from quizlearn.main import app

    from conftest import make_course, make_topic, make_user

    login_as(make_user(db))
    topic = make_topic(db, make_course(db))
    app.state.gemini = GeminiClient(
        "SECRET-KEY-123",
        ["m1", "m2"],
        base_url="https://gemini.test/v1beta/models",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(404))),
    )

    r = client.post(f"/quiz/generate/{topic.id}")

    assert r.status_code == 500
    assert r.json() == {"error": "Failed to generate quiz", "details": "Model m2 returned HTTP 404"}
    assert "SECRET-KEY-123" not in r.text
