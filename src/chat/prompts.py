"""Prompt templates for the assistant chat and the daily quote."""

from __future__ import annotations

from typing import Any

ASSISTANT_NAME = "Rovi"

GREETING = f"I'm {ASSISTANT_NAME}, your AI assistant. How can I help you today?"

CONNECTION_ERROR_REPLY = "Sorry, I'm having trouble connecting right now. Please try again!"

QUOTE_PROMPT = (
    "Generate an inspirational and motivational quote. Respond ONLY with the quote text "
    "followed by a dash and the author name. Format: \"Quote text\" — Author Name. "
    "Keep it concise and meaningful."
)

_GUIDELINES = """\
RESPONSE GUIDELINES:

1. GREETINGS ONLY WHEN USER GREETS ("hi", "hello", "hey", etc.):
   - Respond professionally: "Hello! How may I assist you today?"
   - Do NOT greet in any other response

2. ALL OTHER QUESTIONS (meetings, habits, expenses, prices, general questions):
   - Answer directly, starting immediately with the answer
   - Example: "price of eggs" -> "The best price for Eggs (12) is $4.99."

3. MEETING QUESTIONS:
   - Include time, title and participants for each meeting
   - Example: "You have Team Standup scheduled at 09:00 with John, Sarah, and Mike."

4. FORMATTING:
   - Complete sentences, no markdown or bullet points
   - No vague endings ("Hope this helps", etc.)
   - Informative but concise (50-150 words as appropriate)"""


def _money(value: float) -> str:
    return f"${value:,.2f}"


def format_snapshot(snapshot: dict[str, Any]) -> dict[str, str]:
    """Render the effective data snapshot as prompt-ready text blocks."""
    return {
        "meetings": "\n".join(
            f"{m['time']} - {m['title']} ({', '.join(m.get('participants') or [])})"
            for m in snapshot["meetings"]
        ),
        "habits": "\n".join(f"{h['name']}: {h['progress']}% complete" for h in snapshot["habits"]),
        "expenses": "\n".join(f"{e['category']}: {_money(e['amount'])}" for e in snapshot["expenses"]),
        "total_expenses": _money(snapshot["total_expenses"]),
        "prices": "\n".join(f"{p['name']}: {_money(p['cheapest'])} (best price)" for p in snapshot["prices"]),
    }


def _format_history(history: list[dict[str, str]]) -> str:
    lines = []
    for turn in history:
        speaker = "User" if turn["role"] == "user" else ASSISTANT_NAME
        lines.append(f"{speaker}: {turn['content']}")
    return "\n".join(lines)


def build_assistant_prompt(
    message: str,
    snapshot: dict[str, Any],
    history: list[dict[str, str]],
    city: str | None = None,
) -> str:
    data = format_snapshot(snapshot)
    location = f" The user is in {city}." if city else ""
    parts = [
        f"You are {ASSISTANT_NAME}, a professional AI personal assistant.{location} "
        "Maintain a professional, courteous tone at all times.",
        "",
        "Available data (ONLY use when SPECIFICALLY asked):",
        f"- Meetings:\n{data['meetings']}",
        f"- Habits:\n{data['habits']}",
        f"- Expenses:\n{data['expenses']}\n(Total: {data['total_expenses']})",
        f"- Prices:\n{data['prices']}",
    ]
    if history:
        parts += ["", "Recent conversation:", _format_history(history)]
    parts += ["", f'User said: "{message}"', "", _GUIDELINES]
    return "\n".join(parts)
