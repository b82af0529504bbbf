"""Rule-based interpreter for imperative chat commands.

Each :class:`Rule` pairs a compiled pattern with a handler.  Rules are tried
top to bottom and the first pattern that matches decides the outcome, so the
order of :data:`RULES` is the precedence.  Handlers are pure: they describe
the change as a session or overrides patch and :func:`apply_command` writes
it to the store.

Anything no rule recognizes comes back as ``Outcome.UNMATCHED`` and should be
handed to the language model instead.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable

from src.common.timefmt import to_12h, to_24h
from src.data.generator import EXPENSE_CATEGORIES
from src.session.overrides import OVERRIDE_SCOPES, clamp_progress, empty_overrides

logger = logging.getLogger("rovi.chat.commands")


class Outcome(enum.Enum):
    MUTATION = "mutation"
    QUERY = "query"
    UNMATCHED = "unmatched"


@dataclass
class CommandResult:
    outcome: Outcome
    reply: str = ""
    rule: str | None = None
    session_patch: dict[str, Any] | None = None
    overrides_patch: dict[str, dict[str, Any]] | None = None

    @property
    def matched(self) -> bool:
        return self.outcome is not Outcome.UNMATCHED


Handler = Callable[[re.Match, dict, dict], CommandResult]


@dataclass(frozen=True)
class Rule:
    name: str
    pattern: re.Pattern
    handler: Handler = field(compare=False)


# ── Shared fragments ─────────────────────────────────────────────────────────

_TIME = r"(\d{1,2})(?::(\d{2}))?\s*(am|pm)?"
_NUMBER = r"\$?(\d+(?:\.\d+)?)"

BAD_TIME_REPLY = "I couldn't understand that time. Please use something like 9am, 2:30pm or 14:00."

CATEGORY_ALIASES: dict[str, str] = {
    "groceries": "Food",
    "grocery": "Food",
    "dining": "Food",
    "meals": "Food",
    "food": "Food",
    "restaurants": "Food",
    "eating out": "Food",
    "transportation": "Transport",
    "commute": "Transport",
    "transit": "Transport",
    "travel": "Transport",
    "gas": "Transport",
    "fuel": "Transport",
    "taxi": "Transport",
    "clothes": "Shopping",
    "clothing": "Shopping",
    "retail": "Shopping",
    "utilities": "Bills",
    "utility": "Bills",
    "rent": "Bills",
    "movies": "Entertainment",
    "games": "Entertainment",
    "fun": "Entertainment",
    "leisure": "Entertainment",
    "streaming": "Entertainment",
}


def _number(raw: str) -> int | float:
    value = float(raw)
    if "." not in raw and value.is_integer():
        return int(value)
    return value


def _canonical(name: str, known: list[str]) -> str:
    """Known spelling of *name* when it matches case-insensitively."""
    wanted = name.strip().lower()
    for candidate in known:
        if candidate.lower() == wanted:
            return candidate
    return name.strip()


def resolve_category(token: str, categories: list[str] | tuple[str, ...] = EXPENSE_CATEGORIES) -> str:
    """Map a user's word for a spending category onto a known category.

    Tries, in order: exact (case-insensitive), alias table, prefix,
    substring.  Falls back to the token itself.
    """
    raw = token.strip()
    wanted = raw.lower()
    if not wanted:
        return raw

    for category in categories:
        if category.lower() == wanted:
            return category

    alias = CATEGORY_ALIASES.get(wanted)
    if alias and alias in categories:
        return alias

    for category in categories:
        if category.lower().startswith(wanted):
            return category

    for category in categories:
        lowered = category.lower()
        if wanted in lowered or lowered in wanted:
            return category

    return raw


def _with_override(overrides: dict, scope: str, key: str, value: Any) -> dict[str, dict[str, Any]]:
    return {scope: {**(overrides.get(scope) or {}), key: value}}


# ── Handlers ─────────────────────────────────────────────────────────────────

def _reschedule(m: re.Match, session: dict, overrides: dict) -> CommandResult:
    try:
        source = to_24h(m.group(1), m.group(2), m.group(3))
        target = to_24h(m.group(4), m.group(5), m.group(6))
    except ValueError as exc:
        logger.info("Rejected reschedule: %s", exc)
        return CommandResult(Outcome.QUERY, BAD_TIME_REPLY)

    meetings = session.get("meetings") or []
    index = next((i for i, meeting in enumerate(meetings) if meeting.get("time") == source), None)
    if index is None:
        return CommandResult(
            Outcome.QUERY,
            f"I couldn't find a meeting at {to_12h(source)}. Please check the time and try again.",
        )

    updated = [dict(meeting) for meeting in meetings]
    updated[index]["time"] = target
    title = updated[index].get("title", "meeting")
    return CommandResult(
        Outcome.MUTATION,
        f"Done. Your {title} has been moved from {to_12h(source)} to {to_12h(target)}.",
        session_patch={"meetings": updated},
    )


def _time_query(m: re.Match, session: dict, overrides: dict) -> CommandResult:
    try:
        when = to_24h(m.group(1), m.group(2), m.group(3))
    except ValueError:
        return CommandResult(Outcome.QUERY, BAD_TIME_REPLY)
    matches = [meeting for meeting in session.get("meetings") or [] if meeting.get("time") == when]
    if not matches:
        return CommandResult(Outcome.QUERY, f"You don't have any meetings scheduled at {to_12h(when)}.")

    lines = []
    for meeting in matches:
        people = ", ".join(meeting.get("participants") or [])
        line = f"You have {meeting.get('title')} scheduled at {to_12h(when)}"
        lines.append(f"{line} with {people}." if people else f"{line}.")
    return CommandResult(Outcome.QUERY, " ".join(lines))


def _set_price(m: re.Match, session: dict, overrides: dict) -> CommandResult:
    name = _canonical(m.group(1), [p["name"] for p in session.get("prices") or []])
    value = _number(m.group(2))
    return CommandResult(
        Outcome.MUTATION,
        f"Done. The best price for {name} is now set to ${value:.2f}.",
        overrides_patch=_with_override(overrides, "prices", name, value),
    )


def _set_habit(m: re.Match, session: dict, overrides: dict) -> CommandResult:
    habits = session.get("habits") or []
    name = _canonical(m.group(1), [h["name"] for h in habits])
    target = next((h.get("target", 100) for h in habits if h["name"] == name), 100)
    value = clamp_progress(float(m.group(2)), min(target, 100))
    return CommandResult(
        Outcome.MUTATION,
        f"Done. {name} progress is now {value}%.",
        overrides_patch=_with_override(overrides, "habits", name, value),
    )


def _set_expense(m: re.Match, session: dict, overrides: dict) -> CommandResult:
    raw = m.group(1).strip()
    categories = [e["category"] for e in session.get("expenses") or []] or list(EXPENSE_CATEGORIES)
    category = resolve_category(raw, categories)
    value = _number(m.group(2))

    reply = f"Done. Your {category} expense is now ${value:.2f}."
    if category.lower() != raw.lower():
        reply = f'Done. Your {category} expense (from "{raw}") is now ${value:.2f}.'
    return CommandResult(
        Outcome.MUTATION,
        reply,
        overrides_patch=_with_override(overrides, "expenses", category, value),
    )


def _reset(m: re.Match, session: dict, overrides: dict) -> CommandResult:
    scope = m.group(1).lower()
    if scope == "all":
        return CommandResult(
            Outcome.MUTATION,
            "All overrides have been reset. Showing the original values again.",
            overrides_patch=empty_overrides(),
        )
    if not scope.endswith("s"):
        scope += "s"
    return CommandResult(
        Outcome.MUTATION,
        f"{scope.capitalize()} overrides have been reset.",
        overrides_patch={scope: {}},
    )


# ── Rule table ───────────────────────────────────────────────────────────────

_FLAGS = re.IGNORECASE

RULES: tuple[Rule, ...] = (
    Rule(
        "reschedule",
        re.compile(rf"\b(?:change|move|reschedule)\b.*?\b{_TIME}\s+meeting\s+to\s+{_TIME}\b", _FLAGS),
        _reschedule,
    ),
    Rule(
        "time_query",
        re.compile(rf"\b(?:what about|do i have\b.*?\bat)\s+{_TIME}\b", _FLAGS),
        _time_query,
    ),
    Rule(
        "set_price",
        re.compile(rf"\b(?:set|update)\s+(?:the\s+)?price\s+(?:of|for)\s+(.+?)\s+to\s+{_NUMBER}", _FLAGS),
        _set_price,
    ),
    Rule(
        "set_habit",
        re.compile(r"\b(?:set|update)\s+(?:my\s+)?habit\s+(.+?)\s+to\s+(-?\d+(?:\.\d+)?)\s*%?", _FLAGS),
        _set_habit,
    ),
    Rule(
        "set_expense",
        re.compile(rf"\b(?:set|update)\s+(?:my\s+)?expenses?\s+(?:for\s+)?(.+?)\s+to\s+{_NUMBER}", _FLAGS),
        _set_expense,
    ),
    Rule(
        "reset",
        re.compile(r"\breset\s+(?:the\s+|my\s+)?(prices?|habits?|expenses?|all)\b", _FLAGS),
        _reset,
    ),
)


def interpret(
    text: str,
    session: dict[str, Any],
    overrides: dict[str, Any],
    rules: tuple[Rule, ...] = RULES,
) -> CommandResult:
    """Match *text* against *rules*; the first hit decides the result."""
    text = (text or "").strip()
    for rule in rules:
        match = rule.pattern.search(text)
        if match is None:
            continue
        result = rule.handler(match, session, overrides)
        result.rule = rule.name
        logger.info("Command %s matched (%s)", rule.name, result.outcome.value)
        return result
    return CommandResult(Outcome.UNMATCHED)


def apply_command(store: Any, result: CommandResult) -> None:
    """Write a result's patches to *store* (a :class:`SessionStore`)."""
    if result.outcome is not Outcome.MUTATION:
        return
    if result.session_patch:
        store.update_session(result.session_patch)
    if result.overrides_patch is not None:
        current = store.get_overrides()
        for scope in OVERRIDE_SCOPES:
            if scope in result.overrides_patch:
                current[scope] = dict(result.overrides_patch[scope])
        store.set_overrides(current)
