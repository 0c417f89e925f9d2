import json
from enum import Enum
from typing import List, Optional

from app.models.domain import DayPlan, ExtractionOutcome, ItineraryDocument, Route

TITLE = "Trip itinerary"
NO_ROUTES_MESSAGE = "No routes found in the itinerary."


class ViewMode(str, Enum):
    STRUCTURED = "structured"
    TEXT = "text"
    ERROR = "error"


def select_view(outcome: Optional[ExtractionOutcome]) -> ViewMode:
    """
    Picks the presentation for an extraction result.
    A missing outcome means the request itself failed.
    """
    if outcome is None:
        return ViewMode.ERROR
    if outcome.is_structured:
        return ViewMode.STRUCTURED
    return ViewMode.TEXT


def _render_day(day: DayPlan, position: int) -> List[str]:
    label = day.day if day.day is not None else position
    lines = [f"**Day {label}:**"]
    for place in day.places or []:
        lines.append(f"- {place}")
    return lines


def _render_route(route: Route, position: int) -> List[str]:
    lines = [f"## {route.title or f'Route {position}'}"]
    for idx, day in enumerate(route.itinerary or [], start=1):
        lines.append("")
        lines.extend(_render_day(day, idx))
    return lines


def render_itinerary(document: ItineraryDocument, requested_days: int) -> str:
    lines = [f"# {TITLE}", ""]

    if document.city:
        days = document.days if document.days is not None else requested_days
        lines.extend([f"**{document.city}**, {days} days", ""])

    routes = document.routes or []
    if not routes:
        lines.append(NO_ROUTES_MESSAGE)
        return "\n".join(lines)

    for idx, route in enumerate(routes, start=1):
        lines.extend(_render_route(route, idx))
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"


def _is_json(text: str) -> bool:
    if not text.startswith(("{", "[")):
        return False
    try:
        json.loads(text)
    except ValueError:
        return False
    return True


def render_text(text: str) -> str:
    # Pretty-printed JSON from a shape mismatch keeps its layout in a code block
    if _is_json(text):
        return f"# {TITLE}\n\n```json\n{text}\n```\n"
    return f"# {TITLE}\n\n{text}\n"


def render_error(message: str) -> str:
    return f"**Error:** {message}\n"


def render_outcome(outcome: ExtractionOutcome, requested_days: int) -> str:
    if select_view(outcome) is ViewMode.STRUCTURED:
        return render_itinerary(outcome.itinerary, requested_days)
    return render_text(outcome.text or "")
