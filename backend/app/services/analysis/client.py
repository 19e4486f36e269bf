import asyncio
import json
import logging
import random
from typing import Any

import httpx
from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI

from app.core.errors import UpstreamError, ValidationError
from app.core.settings import settings
from app.schemas.analysis import AnalysisResult
from app.services.analysis.normalizer import normalize_body
from app.services.cache import TTLCache, compact_json_dumps, make_hash_key

logger = logging.getLogger(__name__)


NOT_CONFIGURED = "analysis provider is not configured"
RETRY_STATUSES = {408, 409, 425, 429, 500, 502, 503, 504}


class AnalysisProvider:
    name = "none"

    async def fetch(self, payload: dict[str, Any]) -> Any:
        """Raw upstream body for one analysis request. Raises UpstreamError on transport/HTTP failure."""
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


class HttpAnalysisProvider(AnalysisProvider):
    name = "http"

    def __init__(
        self,
        *,
        endpoint: str,
        timeout_s: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._endpoint = (endpoint or "").strip()
        kwargs: dict[str, Any] = {"timeout": httpx.Timeout(timeout_s)}
        if transport is not None:
            kwargs["transport"] = transport
        self._client = httpx.AsyncClient(**kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch(self, payload: dict[str, Any]) -> str:
        if not self._endpoint:
            raise UpstreamError("ANALYZE_API_URL is not configured")
        try:
            resp = await self._client.post(
                self._endpoint,
                headers={"Content-Type": "application/json"},
                json=payload,
            )
        except httpx.HTTPError as e:
            raise UpstreamError(f"Analysis request failed: {e}")

        if resp.status_code >= 400:
            raise UpstreamError(
                f"Analysis upstream error {resp.status_code}",
                details={"status": resp.status_code, "body": resp.text[:500]},
            )
        return resp.text


def _build_system_prompt() -> str:
    return (
        "You are a customer-support analysis assistant.\n"
        "Given a customer query, draft a reply for the support agent and suggest what to do next.\n\n"
        "Return ONLY a raw JSON object, no markdown fences, matching this schema:\n"
        "{\n"
        "  \"answer_draft\": \"reply text for the agent to send\",\n"
        "  \"nba\": [\"next best action\", \"...\"],\n"
        "  \"proposed_questions\": [\"clarifying question for the customer\", \"...\"],\n"
        "  \"similar\": []\n"
        "}\n"
        "Keep each action and question a single short sentence. Leave lists empty when unsure.\n"
        "If a language is given, write answer_draft and proposed_questions in that language.\n"
    )


class LLMAnalysisProvider(AnalysisProvider):
    name = "llm"

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str | None,
        model: str,
        temperature: float,
        max_retries: int = 3,
        retry_base_s: float = 0.7,
        timeout_s: float = 60.0,
        client: AsyncOpenAI | None = None,
    ) -> None:
        if client is None:
            kwargs: dict[str, Any] = {"api_key": api_key}
            if base_url:
                kwargs["base_url"] = base_url
            kwargs["http_client"] = httpx.AsyncClient(timeout=httpx.Timeout(timeout_s))
            client = AsyncOpenAI(**kwargs)
        self._client = client
        self._model = model
        self._temperature = temperature
        self._max_retries = max(1, int(max_retries))
        self._retry_base_s = float(retry_base_s)

    async def aclose(self) -> None:
        await self._client.close()

    def _messages(self, payload: dict[str, Any]) -> list[dict[str, Any]]:
        user = {
            "query": payload.get("query") or "",
            "language": payload.get("language") or "",
            "task_type": payload.get("taskType") or "",
            "media_count": len(payload.get("media") or []),
        }
        return [
            {"role": "system", "content": _build_system_prompt()},
            {"role": "user", "content": json.dumps(user, ensure_ascii=False)},
        ]

    async def _sleep_before_retry(self, attempt: int) -> None:
        sleep_s = self._retry_base_s * (2 ** (attempt - 1)) + random.random() * 0.25
        await asyncio.sleep(min(15.0, sleep_s))

    async def fetch(self, payload: dict[str, Any]) -> str:
        messages = self._messages(payload)
        include_response_format = True
        attempt = 0
        while True:
            attempt += 1
            kwargs: dict[str, Any] = {
                "model": self._model,
                "messages": messages,
                "temperature": self._temperature,
            }
            if include_response_format:
                kwargs["response_format"] = {"type": "json_object"}
            try:
                response = await self._client.chat.completions.create(**kwargs)
            except APIStatusError as e:
                status = getattr(e, "status_code", None)
                if status == 400 and include_response_format and "response_format" in str(e).lower():
                    # provider without JSON mode; retry once without it
                    include_response_format = False
                    attempt -= 1
                    continue
                if status in RETRY_STATUSES and attempt < self._max_retries:
                    logger.warning("analysis.llm_retry model=%s status=%s attempt=%s", self._model, status, attempt)
                    await self._sleep_before_retry(attempt)
                    continue
                raise UpstreamError(f"LLM provider error {status}", details={"status": status})
            except (APIConnectionError, APITimeoutError) as e:
                if attempt < self._max_retries:
                    logger.warning("analysis.llm_retry model=%s error=%s attempt=%s", self._model, type(e).__name__, attempt)
                    await self._sleep_before_retry(attempt)
                    continue
                raise UpstreamError(f"LLM request failed: {e}")

            usage = getattr(response, "usage", None)
            logger.info(
                "analysis.llm_done model=%s prompt_tokens=%s completion_tokens=%s",
                self._model,
                getattr(usage, "prompt_tokens", None),
                getattr(usage, "completion_tokens", None),
            )
            return getattr(response.choices[0].message, "content", None) or ""


def query_text(query: Any) -> str:
    """Text sent upstream for a query; "" means the query is missing.

    Strings are trimmed. None, False, zero and NaN count as missing; any other
    value is sent as compact JSON.
    """
    if isinstance(query, str):
        return query.strip()
    if query is None or query is False:
        return ""
    if isinstance(query, (int, float)) and not isinstance(query, bool) and (query == 0 or query != query):
        return ""
    return compact_json_dumps(query)


class AnalysisService:
    def __init__(self, provider: AnalysisProvider | None = None, *, cache_ttl_s: int = 0) -> None:
        self.provider = provider
        self._cache = TTLCache(max_items=500, ttl_s=cache_ttl_s) if cache_ttl_s > 0 else None

    async def aclose(self) -> None:
        if self.provider is not None:
            await self.provider.aclose()

    async def analyze(
        self,
        query: Any,
        language: str | None = None,
        task_type: str | None = None,
        media: list[str] | None = None,
    ) -> AnalysisResult:
        text = query_text(query)
        if not text:
            raise ValidationError("Query is required")

        payload: dict[str, Any] = {"query": text}
        if language:
            payload["language"] = language
        if task_type:
            payload["taskType"] = task_type
        if media:
            payload["media"] = list(media)

        if self.provider is None:
            logger.warning("analysis.request_skipped reason=not_configured")
            return AnalysisResult(success=False, error=NOT_CONFIGURED)

        cache_key = make_hash_key(f"analyze:{self.provider.name}", payload) if self._cache is not None else None
        if cache_key is not None:
            cached = self._cache.get(cache_key)
            if cached is not None:
                logger.info("analysis.cache_hit provider=%s", self.provider.name)
                return cached.model_copy(deep=True)

        try:
            raw = await self.provider.fetch(payload)
        except UpstreamError as e:
            logger.warning("analysis.request_done provider=%s status=failed error=%s", self.provider.name, e.message)
            return AnalysisResult(success=False, error=e.message)

        result = normalize_body(raw)
        logger.info("analysis.request_done provider=%s status=ok", self.provider.name)
        if cache_key is not None:
            self._cache.set(cache_key, result.model_copy(deep=True))
        return result


def build_analysis_provider() -> AnalysisProvider | None:
    if settings.analyze_api_url:
        return HttpAnalysisProvider(endpoint=settings.analyze_api_url, timeout_s=settings.analyze_timeout_s)
    if settings.llm_enabled:
        return LLMAnalysisProvider(
            api_key=settings.llm_api_key or "",
            base_url=settings.llm_base_url,
            model=settings.llm_model or "",
            temperature=settings.llm_temperature,
            max_retries=settings.llm_max_retries,
            retry_base_s=settings.llm_retry_base_s,
            timeout_s=settings.analyze_timeout_s,
        )
    return None


_SERVICE: AnalysisService | None = None


def get_analysis_service() -> AnalysisService:
    global _SERVICE
    if _SERVICE is None:
        _SERVICE = AnalysisService(build_analysis_provider(), cache_ttl_s=settings.analyze_cache_ttl_s)
    return _SERVICE


async def close_analysis_service() -> None:
    global _SERVICE
    if _SERVICE is not None:
        await _SERVICE.aclose()
        _SERVICE = None
