import json
import unittest
from types import SimpleNamespace

import httpx
from openai import RateLimitError

from app.core.errors import ValidationError
from app.services.analysis.client import (
    NOT_CONFIGURED,
    AnalysisService,
    HttpAnalysisProvider,
    LLMAnalysisProvider,
)


def _service(handler, **kwargs):
    provider = HttpAnalysisProvider(endpoint="https://analysis.example.com/v1", transport=httpx.MockTransport(handler))
    return AnalysisService(provider, **kwargs)


class TestHttpAnalysis(unittest.IsolatedAsyncioTestCase):
    async def test_success_is_normalized(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"data": {"answer_draft": "Try again", "nba": ["Refund"]}})

        service = _service(handler)
        result = await service.analyze("  card declined  ", language="en", task_type="reply")
        await service.aclose()
        self.assertTrue(result.success)
        self.assertEqual(result.answer, "Try again")
        self.assertEqual(result.nba, ["Refund"])
        self.assertEqual(seen["body"], {"query": "card declined", "language": "en", "taskType": "reply"})

    async def test_upstream_status_error(self):
        service = _service(lambda request: httpx.Response(500, text="boom"))
        result = await service.analyze("help")
        await service.aclose()
        self.assertFalse(result.success)
        self.assertIn("500", result.error)
        self.assertEqual(result.answer, "")

    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        service = _service(handler)
        result = await service.analyze("help")
        await service.aclose()
        self.assertFalse(result.success)
        self.assertIn("connection refused", result.error)

    async def test_non_json_body_is_empty_success(self):
        service = _service(lambda request: httpx.Response(200, text="<html>oops</html>"))
        result = await service.analyze("help")
        await service.aclose()
        self.assertTrue(result.success)
        self.assertEqual(result.answer, "")

    async def test_empty_query_rejected(self):
        service = _service(lambda request: httpx.Response(200, json={}))
        for query in ("", "   ", None, False, 0, 0.0):
            with self.assertRaises(ValidationError):
                await service.analyze(query)
        await service.aclose()

    async def test_structured_query_sent_as_json(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content)["query"])
            return httpx.Response(200, json={"answer": "ok"})

        service = _service(handler)
        result = await service.analyze({"text": "help", "lang": "en"})
        await service.analyze(["a", 1])
        await service.analyze(7)
        await service.aclose()
        self.assertTrue(result.success)
        self.assertEqual(seen, ['{"text":"help","lang":"en"}', '["a",1]', "7"])

    async def test_not_configured(self):
        result = await AnalysisService(None).analyze("help")
        self.assertFalse(result.success)
        self.assertEqual(result.error, NOT_CONFIGURED)

    async def test_cache_reuses_result(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"answer": "cached"})

        service = _service(handler, cache_ttl_s=60)
        first = await service.analyze("help")
        second = await service.analyze("help")
        await service.analyze("help", language="de")
        await service.aclose()
        self.assertEqual(len(calls), 2)
        self.assertEqual(first, second)


class _FakeCompletions:
    def __init__(self, content):
        self.content = content
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=None)


class _RateLimitedOnce(_FakeCompletions):
    async def create(self, **kwargs):
        if not self.calls:
            self.calls.append(kwargs)
            response = httpx.Response(429, request=httpx.Request("POST", "https://llm.example.com/v1/chat/completions"))
            raise RateLimitError("rate limited", response=response, body=None)
        return await super().create(**kwargs)


class TestLLMAnalysis(unittest.IsolatedAsyncioTestCase):
    async def test_rate_limit_is_retried(self):
        completions = _RateLimitedOnce('{"answer": "after retry"}')
        client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
        provider = LLMAnalysisProvider(
            api_key="k", base_url=None, model="m", temperature=0.2, retry_base_s=0.0, client=client
        )
        result = await AnalysisService(provider).analyze("help")
        self.assertTrue(result.success)
        self.assertEqual(result.answer, "after retry")
        self.assertEqual(len(completions.calls), 2)

    async def test_json_mode_completion(self):
        completions = _FakeCompletions('{"answer_draft": "Reset it", "proposed_questions": ["Which device?"]}')
        client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
        provider = LLMAnalysisProvider(api_key="k", base_url=None, model="m", temperature=0.2, client=client)
        result = await AnalysisService(provider).analyze("router down", language="en")
        self.assertEqual(result.answer, "Reset it")
        self.assertEqual(result.proposed_questions, ["Which device?"])
        call = completions.calls[0]
        self.assertEqual(call["model"], "m")
        self.assertEqual(call["response_format"], {"type": "json_object"})
        self.assertIn("router down", call["messages"][1]["content"])


if __name__ == "__main__":
    unittest.main()
