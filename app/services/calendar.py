from ics import Calendar, Event
from app.models.domain import ItineraryDocument
from datetime import date, datetime, timedelta
from typing import Any, Dict


def parse_start_date(start_date_str: str | None) -> date:
    """
    Accepts YYYY-MM-DD or DD-MM-YYYY; anything else means tomorrow.
    """
    if start_date_str:
        for fmt in ("%Y-%m-%d", "%d-%m-%Y"):
            try:
                return datetime.strptime(start_date_str, fmt).date()
            except ValueError:
                continue

    return (datetime.now() + timedelta(days=1)).date()


def generate_ics(
    document: Dict[str, Any], route_index: int = 0, start_date_str: str | None = None
) -> bytes:
    """
    Generates an iCalendar (.ics) file with one all-day event per day
    of the selected route.
    Raises ValueError when that route is missing or has no days.
    """
    itinerary = ItineraryDocument.model_validate(document)
    routes = itinerary.routes or []
    if route_index < 0 or route_index >= len(routes):
        raise ValueError(f"Itinerary has no route at index {route_index}.")

    route = routes[route_index]
    if not route.itinerary:
        raise ValueError(f"Route {route_index} has no days to export.")

    start_date = parse_start_date(start_date_str)
    city = itinerary.city or "Trip"
    title = route.title or f"Route {route_index + 1}"

    cal = Calendar()
    for position, day in enumerate(route.itinerary, start=1):
        day_number = day.day if day.day is not None and day.day > 0 else position
        current_day_date = start_date + timedelta(days=day_number - 1)

        event = Event()
        event.name = f"Day {day_number}: {city} - {title}"
        event.begin = datetime.combine(current_day_date, datetime.min.time())
        event.make_all_day()
        event.description = "\n".join(f"- {place}" for place in day.places or [])
        cal.events.add(event)

    return cal.serialize().encode("utf-8")
