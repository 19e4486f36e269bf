from __future__ import annotations

import json
import logging
import math
import re
from collections import deque
from datetime import datetime
from typing import Any, Iterable

from app.schemas.analysis import AnalysisResult, RelatedTicket
from app.services.cache import compact_json_dumps

logger = logging.getLogger(__name__)


EXACT_SEARCH_DEPTH = 8
DEEP_SEARCH_DEPTH = 6
MAX_UNWRAP_DEPTH = 8

COMMON_CONTAINERS = ("data", "response", "result")

EXPLICIT_ANSWER_KEY = "answer_draft"
ANSWER_KEYS = [
    "answer_draft",
    "answerDraft",
    "answer",
    "body",
    "response",
    "message",
    "suggested_resolution",
    "suggestion",
    "resolution",
    "recommended",
    "summary",
]
ANSWER_HINTS = ["answer", "draft", "response", "suggest", "resolution", "recommend"]

SUGGESTED_KEYS = [
    "suggested_resolution",
    "resolution",
    "suggestion",
    "recommended",
    "summary",
    "recommendation",
    "advice",
]
SUGGESTED_HINTS = ["suggested", "resolution", "recommend", "advice"]

NBA_KEYS = ["nba", "next_best_actions", "nextBestActions", "actions", "nbas"]

EXPLICIT_QUESTION_KEY = "proposed_question"
EXPLICIT_QUESTIONS_KEYS = ["proposed_questions", "proposed_qs", "proposedQuestions"]
QUESTION_KEYS = [
    "proposed_questions",
    "proposedQuestions",
    "proposed_qs",
    "proposed_question",
    "proposed",
    "questions",
    "followup_questions",
    "followups",
    "clarifying_questions",
    "suggested_questions",
    "suggestions",
    "recommendations",
]
QUESTION_HINTS = ["question", "followup", "clarify", "suggest", "recommend"]

TEXT_FIELDS = ["text", "content", "answer", "message", "body", "summary", "suggested", "resolution"]
QUESTION_TEXT_FIELDS = ["text", "content", "question", "message"]

SIMILAR_KEYS = ["similar", "similarity"]

_JSON_BLOCK_RE = re.compile(r"(\{[\s\S]*\}|\[[\s\S]*\])")
_LINE_SPLIT_RE = re.compile(r"\r?\n")
_QUESTION_SPLIT_RE = re.compile(r"\r?\n|;|,")


# parsing


def parse_upstream_body(raw: Any) -> Any:
    """Best-effort JSON decode of an upstream body.

    Falls back to the first bracketed block in the text, then to ``{}``.
    Always returns a dict or a list.
    """
    if isinstance(raw, (dict, list)):
        return raw
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if not isinstance(raw, str):
        return {}

    text = raw.strip()
    if not text:
        return {}

    try:
        parsed = json.loads(text)
    except ValueError:
        parsed = _salvage_json(text)
    else:
        if isinstance(parsed, str):
            # double-encoded body
            try:
                parsed = json.loads(parsed)
            except ValueError:
                parsed = {}

    if isinstance(parsed, (dict, list)):
        return parsed
    return {}


def _salvage_json(text: str) -> Any:
    match = _JSON_BLOCK_RE.search(text)
    if not match:
        logger.info("analysis.salvage_failed reason=no_json_block")
        return {}
    try:
        parsed = json.loads(match.group(0))
    except ValueError:
        logger.info("analysis.salvage_failed reason=invalid_json_block")
        return {}
    logger.info("analysis.salvaged_json chars=%s", len(match.group(0)))
    return parsed


# tree helpers


def _is_container(value: Any) -> bool:
    return isinstance(value, (dict, list))


def _children(obj: Any) -> list[tuple[str, Any]]:
    if isinstance(obj, dict):
        return [(str(k), v) for k, v in obj.items()]
    if isinstance(obj, list):
        return [(str(i), v) for i, v in enumerate(obj)]
    return []


def _is_blank(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def _truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))
    if isinstance(value, str):
        return value != ""
    return value is not None


def to_text(value: Any) -> str:
    """String form of a single JSON value: strings as-is, containers as compact JSON."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    return compact_json_dumps(value)


def _texts(values: Iterable[Any]) -> list[str]:
    return [s for s in (to_text(v) for v in values) if s]


def deep_find_exact(obj: Any, key: str, depth: int = 0, *, max_depth: int = EXACT_SEARCH_DEPTH,
                    _seen: set[int] | None = None) -> Any:
    """Value of the first non-null key equal to ``key`` (case-insensitive), searching depth-first."""
    if not _is_container(obj) or depth > max_depth:
        return None
    seen = _seen if _seen is not None else set()
    if id(obj) in seen:
        return None
    seen.add(id(obj))

    target = key.lower()
    children = _children(obj)
    for k, v in children:
        if k.lower() == target and v is not None:
            return v
    for _, v in children:
        if _is_container(v):
            found = deep_find_exact(v, key, depth + 1, max_depth=max_depth, _seen=seen)
            if found is not None:
                return found
    return None


def read_any(obj: Any, keys: list[str], *, truthy: bool = False) -> Any:
    """First present key from ``keys`` at the top level, then inside data/response/result."""
    if not isinstance(obj, dict):
        return None
    accept = _truthy if truthy else (lambda v: v is not None)
    for scope in [obj] + [obj.get(c) for c in COMMON_CONTAINERS]:
        if not isinstance(scope, dict):
            continue
        for k in keys:
            if k in scope and accept(scope[k]):
                return scope[k]
    return None


def deep_find_key(obj: Any, hints: list[str], *, max_depth: int = DEEP_SEARCH_DEPTH) -> Any:
    """First non-empty value under a key containing any hint, shallowest level first."""
    if not _is_container(obj):
        return None
    queue: deque[tuple[Any, int]] = deque([(obj, 0)])
    seen: set[int] = set()
    while queue:
        node, depth = queue.popleft()
        if depth > max_depth or id(node) in seen:
            continue
        seen.add(id(node))
        children = _children(node)
        for k, v in children:
            lower = k.lower()
            if any(h in lower for h in hints) and v is not None and v != "":
                return v
        for _, v in children:
            if _is_container(v):
                queue.append((v, depth + 1))
    return None


def extract_string(value: Any, depth: int = 0) -> str:
    """Coerce an answer-like value into display text."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (bool, int, float)):
        return to_text(value)
    if isinstance(value, list):
        for item in value:
            if isinstance(item, str) and item.strip():
                return item.strip()
        return "\n\n".join(item if isinstance(item, str) else compact_json_dumps(item) for item in value).strip()
    if isinstance(value, dict):
        nested = next((value[f] for f in TEXT_FIELDS if value.get(f) is not None), None)
        if _truthy(nested) and depth < MAX_UNWRAP_DEPTH:
            return extract_string(nested, depth + 1)
        return compact_json_dumps(value)
    return str(value).strip()


# field extraction


def normalize_answer(payload: Any) -> tuple[str, Any]:
    """Answer text and the raw value it came from.

    An explicit ``answer_draft`` anywhere in the payload is taken verbatim.
    """
    explicit = deep_find_exact(payload, EXPLICIT_ANSWER_KEY)
    if explicit is not None:
        return to_text(explicit), explicit

    raw = read_any(payload, ANSWER_KEYS)
    if not _truthy(raw) or _is_blank(raw):
        raw = read_any(payload, ANSWER_KEYS, truthy=True)
    if raw is None or _is_blank(raw):
        raw = deep_find_key(payload, ANSWER_HINTS)
    return extract_string(raw), raw


def normalize_suggested(payload: Any) -> str:
    raw = read_any(payload, SUGGESTED_KEYS)
    if raw is None:
        raw = deep_find_key(payload, SUGGESTED_HINTS)
    return extract_string(raw) if _truthy(raw) else ""


def normalize_nba(payload: Any) -> list[str]:
    raw = read_any(payload, NBA_KEYS)
    if isinstance(raw, list):
        return [to_text(x) for x in raw]
    if isinstance(raw, str) and raw.strip():
        return [s.strip() for s in _LINE_SPLIT_RE.split(raw) if s.strip()]
    return []


def _split_questions(raw: str) -> list[str]:
    try:
        parsed = json.loads(raw)
    except ValueError:
        parsed = None
    if isinstance(parsed, list):
        return _texts(parsed)
    return [s.strip() for s in _QUESTION_SPLIT_RE.split(raw) if s.strip()]


def deep_collect_questions(obj: Any, depth: int = 0, *, max_depth: int = DEEP_SEARCH_DEPTH,
                           _seen: set[int] | None = None) -> list[str]:
    """Questions from every key that looks question-like, anywhere in the payload."""
    if not _is_container(obj) or depth > max_depth:
        return []
    seen = _seen if _seen is not None else set()
    if id(obj) in seen:
        return []
    seen.add(id(obj))

    results: list[str] = []
    for k, v in _children(obj):
        lower = k.lower()
        if any(h in lower for h in QUESTION_HINTS):
            if isinstance(v, list):
                results.extend(_texts(v))
            elif isinstance(v, str) and v.strip():
                try:
                    parsed = json.loads(v)
                except ValueError:
                    parsed = None
                if isinstance(parsed, list):
                    results.extend(_texts(parsed))
                else:
                    results.append(v.strip())
            elif isinstance(v, dict):
                nested = next((v[f] for f in QUESTION_TEXT_FIELDS if v.get(f) is not None), None)
                if isinstance(nested, list):
                    results.extend(_texts(nested))
                elif isinstance(nested, str) and nested:
                    results.append(nested.strip())
        if _is_container(v):
            results.extend(deep_collect_questions(v, depth + 1, max_depth=max_depth, _seen=seen))
    return results


def dedupe_questions(questions: Iterable[str]) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for q in questions:
        s = str(q).strip()
        if not s or s in seen:
            continue
        seen.add(s)
        out.append(s)
    return out


def normalize_proposed_questions(payload: Any) -> list[str]:
    explicit = deep_find_exact(payload, EXPLICIT_QUESTION_KEY)
    if explicit is None:
        for key in EXPLICIT_QUESTIONS_KEYS:
            explicit = deep_find_exact(payload, key)
            if explicit is not None:
                break

    if explicit is not None:
        # explicit values are already segmented; never split them
        if isinstance(explicit, list):
            return dedupe_questions(_texts(explicit))
        return dedupe_questions([to_text(explicit)])

    questions: list[str] = []
    raw = read_any(payload, QUESTION_KEYS)
    if isinstance(raw, list):
        questions = _texts(raw)
    elif isinstance(raw, str):
        questions = _split_questions(raw)
    elif _truthy(raw):
        possible = extract_string(raw)
        questions = [s.strip() for s in _LINE_SPLIT_RE.split(possible) if s.strip()]

    if not questions:
        questions = deep_collect_questions(payload)
    return dedupe_questions(questions)


def normalize_similar(payload: Any) -> list[Any]:
    if not isinstance(payload, dict):
        return []
    for key in SIMILAR_KEYS:
        value = payload.get(key)
        if isinstance(value, list):
            return value
    return []


def normalize_response(payload: Any) -> AnalysisResult:
    """Map an arbitrarily shaped analysis payload onto the stable result shape. Never raises."""
    if not _is_container(payload):
        payload = parse_upstream_body(payload)

    answer, _ = normalize_answer(payload)
    suggested = "" if answer else normalize_suggested(payload)
    result = AnalysisResult(
        success=True,
        answer=answer or suggested,
        nba=normalize_nba(payload),
        proposed_questions=normalize_proposed_questions(payload),
        similar=normalize_similar(payload),
        suggested=suggested or None,
    )
    logger.info(
        "analysis.normalized answer_len=%s nba=%s questions=%s similar=%s",
        len(result.answer),
        len(result.nba),
        len(result.proposed_questions),
        len(result.similar),
    )
    return result


def normalize_body(raw: Any) -> AnalysisResult:
    return normalize_response(parse_upstream_body(raw))


# presentation helpers


def _js_round(value: float) -> int:
    return int(math.floor(value + 0.5))


def _relevance_percent(item: dict[str, Any]) -> int:
    score = item.get("relevance_score")
    if isinstance(score, (int, float)) and not isinstance(score, bool):
        value = score * 100
    elif isinstance(item.get("relevance"), (int, float)) and not isinstance(item.get("relevance"), bool):
        value = item["relevance"]
    elif isinstance(score, str):
        try:
            value = float(score.strip()) * 100
        except ValueError:
            return 0
    else:
        return 0
    if math.isnan(value):
        return 0
    return _js_round(value)


def _image_urls(value: Any) -> list[str]:
    if isinstance(value, list):
        return [to_text(v) for v in value]
    if isinstance(value, str) and value:
        try:
            parsed = json.loads(value)
        except ValueError:
            return []
        if isinstance(parsed, list):
            return [to_text(v) for v in parsed]
    return []


def _display_date(value: Any) -> str:
    if not value:
        return "N/A"
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return "N/A"


def _first(item: dict[str, Any], keys: list[str]) -> Any:
    return next((item[k] for k in keys if item.get(k) is not None), None)


def map_similar_tickets(similar: list[Any]) -> list[RelatedTicket]:
    """Related-ticket cards for the ``similar`` items of an analysis result."""
    out: list[RelatedTicket] = []
    for idx, item in enumerate(similar or []):
        if not isinstance(item, dict):
            item = {"description": to_text(item)} if item is not None else {}
        ticket_id = to_text(_first(item, ["ticket_id", "ticketId", "id"]) or f"sim-{idx}")
        issue_desc = to_text(_first(item, ["issueDesc", "issue_desc", "description", "title"]) or "(no description)")
        comments = item.get("resolveCommentCS")
        if isinstance(comments, list):
            resolve = [to_text(c) for c in comments]
        elif _truthy(comments):
            resolve = [to_text(comments)]
        else:
            resolve = []
        created_at = item.get("createdAt")
        out.append(
            RelatedTicket(
                id=ticket_id,
                ticket_id=ticket_id,
                title=issue_desc,
                issue_desc=issue_desc,
                date=_display_date(created_at),
                relevance=_relevance_percent(item),
                link=to_text(_first(item, ["link", "url"]) or "#"),
                resolve_comment_cs=resolve,
                snippet=issue_desc[:120],
                created_at=to_text(created_at) if created_at is not None else None,
                screen_id=to_text(item["screenId"]) if item.get("screenId") is not None else None,
                image_url=_image_urls(item.get("imageUrl")),
            )
        )
    return out
