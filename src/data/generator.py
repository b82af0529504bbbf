"""Baseline dashboard data: meetings, habits, expenses and prices.

The seeded generators feed session initialization and must stay reproducible;
the random variants are for throwaway widget previews only.
"""

from __future__ import annotations

import random
from datetime import date
from typing import Any

EXPENSE_CATEGORIES: tuple[str, ...] = ("Food", "Transport", "Shopping", "Bills", "Entertainment")

HABIT_NAMES: tuple[str, ...] = (
    "Morning Exercise",
    "Read 30 minutes",
    "Drink 8 glasses water",
    "Meditation",
    "No phone before bed",
)

_EXPENSE_SEED = 42
_EXPENSE_STEP = 73
_HABIT_SEED = 123
_HABIT_STEP = 37
_HABIT_TARGET = 100

_PRICE_CATALOG: tuple[tuple[str, tuple[float, ...]], ...] = (
    ("Milk (1L)", (3.49, 3.79, 4.99)),
    ("Bread", (2.99, 3.29, 4.49)),
    ("Eggs (12)", (4.99, 5.49, 6.99)),
    ("Chicken (1kg)", (8.99, 9.99, 12.99)),
    ("Rice (2kg)", (5.49, 6.29, 7.99)),
    ("Bananas (1kg)", (2.49, 2.79, 3.49)),
    ("Oranges (1kg)", (3.99, 4.49, 5.99)),
)


def _expense_date(index: int) -> str:
    return date(2024, 1, index + 1).isoformat()


def generate_meetings() -> list[dict[str, Any]]:
    return [
        {"id": 1, "time": "09:00", "title": "Team Standup", "participants": ["John", "Sarah", "Mike"]},
        {"id": 2, "time": "11:30", "title": "Client Presentation", "participants": ["Emma", "David"]},
        {"id": 3, "time": "14:00", "title": "Design Review", "participants": ["Lisa", "Tom", "Alex"]},
    ]


def seeded_expenses() -> list[dict[str, Any]]:
    """Expenses with fixed amounts: ``(seed * 7) % 500 + 50`` per category."""
    expenses = []
    for index, category in enumerate(EXPENSE_CATEGORIES):
        seed = _EXPENSE_SEED + index * _EXPENSE_STEP
        expenses.append({
            "id": index + 1,
            "category": category,
            "amount": (seed * 7) % 500 + 50,
            "date": _expense_date(index),
        })
    return expenses


def seeded_habits() -> list[dict[str, Any]]:
    """Habits with fixed progress: ``(seed * 11) % 100`` per habit."""
    habits = []
    for index, name in enumerate(HABIT_NAMES):
        seed = _HABIT_SEED + index * _HABIT_STEP
        habits.append({
            "id": index + 1,
            "name": name,
            "progress": (seed * 11) % 100,
            "target": _HABIT_TARGET,
        })
    return habits


def generate_prices() -> list[dict[str, Any]]:
    items = []
    for index, (name, candidates) in enumerate(_PRICE_CATALOG):
        prices = sorted(candidates)
        items.append({"id": index + 1, "name": name, "prices": prices, "cheapest": prices[0]})
    return items


def generate_expenses(rng: random.Random | None = None) -> list[dict[str, Any]]:
    """Random expense amounts in ``[50, 549]``. Not for persisted sessions."""
    rng = rng or random.Random()
    return [
        {
            "id": index + 1,
            "category": category,
            "amount": rng.randrange(500) + 50,
            "date": _expense_date(index),
        }
        for index, category in enumerate(EXPENSE_CATEGORIES)
    ]


def generate_habits(rng: random.Random | None = None) -> list[dict[str, Any]]:
    """Random habit progress in ``[0, 99]``. Not for persisted sessions."""
    rng = rng or random.Random()
    return [
        {"id": index + 1, "name": name, "progress": rng.randrange(100), "target": _HABIT_TARGET}
        for index, name in enumerate(HABIT_NAMES)
    ]


def initial_session() -> dict[str, Any]:
    """A fresh, deterministic session bundle."""
    return {
        "meetings": generate_meetings(),
        "habits": seeded_habits(),
        "expenses": seeded_expenses(),
        "prices": generate_prices(),
    }
