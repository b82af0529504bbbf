"""Read-time merge of sparse overrides onto the baseline session.

None of these functions mutate their inputs; every returned entity is a new
dict, so dropping an override always brings back the untouched baseline.
"""

from __future__ import annotations

from typing import Any

OVERRIDE_SCOPES = ("habits", "expenses", "prices")


def empty_overrides() -> dict[str, dict[str, Any]]:
    return {scope: {} for scope in OVERRIDE_SCOPES}


def normalize_overrides(value: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Fill in missing scopes and drop anything that is not a mapping."""
    result = empty_overrides()
    for scope in OVERRIDE_SCOPES:
        mapping = value.get(scope)
        if isinstance(mapping, dict):
            result[scope] = dict(mapping)
    return result


def clamp_progress(value: float, target: int = 100) -> int:
    """Habit progress written as an override is kept within ``[0, target]``."""
    return max(0, min(round(value), target))


def effective_habits(session: dict[str, Any], overrides: dict[str, Any]) -> list[dict[str, Any]]:
    table = overrides.get("habits") or {}
    habits = []
    for habit in session["habits"]:
        progress = habit["progress"]
        if habit["name"] in table:
            progress = min(table[habit["name"]], habit.get("target", 100))
        habits.append({**habit, "progress": progress})
    return habits


def effective_expenses(session: dict[str, Any], overrides: dict[str, Any]) -> list[dict[str, Any]]:
    table = overrides.get("expenses") or {}
    return [
        {**expense, "amount": table.get(expense["category"], expense["amount"])}
        for expense in session["expenses"]
    ]


def effective_prices(session: dict[str, Any], overrides: dict[str, Any]) -> list[dict[str, Any]]:
    table = overrides.get("prices") or {}
    return [
        {**item, "cheapest": table.get(item["name"], item["cheapest"])}
        for item in session["prices"]
    ]


def total_expenses(expenses: list[dict[str, Any]]) -> float:
    return sum(e["amount"] for e in expenses)


def effective_snapshot(session: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Everything a widget or the assistant prompt needs, overrides applied."""
    expenses = effective_expenses(session, overrides)
    return {
        "meetings": [{**m, "participants": list(m.get("participants", []))} for m in session["meetings"]],
        "habits": effective_habits(session, overrides),
        "expenses": expenses,
        "total_expenses": total_expenses(expenses),
        "prices": effective_prices(session, overrides),
    }
