from __future__ import annotations

import re

from app.schemas.common import Priority


DEFAULT_CATEGORY = "General Inquiry"

# first match wins, evaluated top to bottom
_CATEGORY_RULES: list[tuple[str, tuple[str, ...]]] = [
    ("Account & Access", ("login", "password", "account")),
    ("Billing & Payments", ("billing", "payment", "charge")),
    ("Technical Issues", ("bug", "error", "not working")),
]

# most severe first
_PRIORITY_RULES: list[tuple[Priority, tuple[str, ...]]] = [
    (Priority.URGENT, ("urgent", "emergency", "critical")),
    (Priority.HIGH, ("broken", "cannot", "stuck")),
    (Priority.MEDIUM, ("help", "issue", "problem")),
]

_TAG_RULES: list[tuple[str, str]] = [
    ("login", "login"),
    ("password", "password"),
    ("billing", "billing"),
    ("bug", "bug"),
    ("feature", "feature-request"),
]

SLA_HOURS: dict[str, int] = {
    "Account & Access": 4,
    "Billing & Payments": 8,
    "Technical Issues": 2,
}
DEFAULT_SLA_HOURS = 24

_TOKEN_RE = re.compile(r"[a-z0-9]+")


def categorize(text: str | None) -> str:
    t = (text or "").lower()
    for category, needles in _CATEGORY_RULES:
        if any(n in t for n in needles):
            return category
    return DEFAULT_CATEGORY


def determine_priority(text: str | None) -> Priority:
    t = (text or "").lower()
    for priority, needles in _PRIORITY_RULES:
        if any(n in t for n in needles):
            return priority
    return Priority.LOW


def extract_tags(text: str | None) -> list[str]:
    t = (text or "").lower()
    return [tag for needle, tag in _TAG_RULES if needle in t]


def sla_hours_for(category: str | None) -> int:
    return SLA_HOURS.get(category or "", DEFAULT_SLA_HOURS)


def category_tokens(category: str | None) -> set[str]:
    return set(_TOKEN_RE.findall((category or "").lower()))


def skill_matches_category(skills: list[str] | None, category: str | None) -> bool:
    """True when an agent skill names the category outright or one of its words.

    Skills are stored lower-cased, so "billing" covers "Billing & Payments" and
    "billing & payments" matches it exactly.
    """
    c = (category or "").strip().lower()
    if not c:
        return False
    tokens = category_tokens(c)
    for s in skills or []:
        k = str(s).strip().lower()
        if not k:
            continue
        if k == c or k in tokens:
            return True
    return False
