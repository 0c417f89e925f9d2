import logging
from fastapi import APIRouter, HTTPException
from fastapi.responses import Response
from app.models.domain import (
    CalendarRequest,
    ExtractRequest,
    ExtractionOutcome,
    PlanResponse,
    TripRequest,
)
from app.core.agent import ItineraryAgent
from app.core.extractor import extract
from app.services.calendar import generate_ics
from app.services.rendering import render_outcome

logger = logging.getLogger("travel_agent_server")

router = APIRouter(tags=["Planning"])

# Single agent instance, it only holds the API client
agent = ItineraryAgent()


def _to_response(outcome: ExtractionOutcome, requested_days: int) -> PlanResponse:
    return PlanResponse(
        kind=outcome.kind,
        document=outcome.document,
        text=outcome.text,
        markdown=render_outcome(outcome, requested_days),
    )


@router.post("/plan", response_model=PlanResponse)
def generate_plan(request: TripRequest):
    """
    Asks the model for itinerary ideas and returns the extracted result.
    """
    try:
        outcome = agent.plan(request)
    except Exception as e:
        error_msg = str(e)
        if "429" in error_msg or "RESOURCE_EXHAUSTED" in error_msg:
            raise HTTPException(
                status_code=429,
                detail="High traffic volume. Please try again in a minute. (Quota Exceeded)",
            )
        elif "404" in error_msg:
            raise HTTPException(
                status_code=503,
                detail="AI Model currently unavailable. Please try again later.",
            )
        else:
            # Log the full error for server admins but show simple text to user
            logger.error(f"SERVER ERROR: {error_msg}")
            raise HTTPException(
                status_code=500,
                detail="An unexpected error occurred while generating your plan.",
            )

    logger.info(f"Plan for {request.city} ({request.days} days): {outcome.kind}")
    return _to_response(outcome, request.days)


@router.post("/extract", response_model=PlanResponse)
def extract_text(request: ExtractRequest):
    """
    Runs extraction and rendering on already generated model text.
    """
    return _to_response(extract(request.text), request.days)


@router.post("/calendar")
def generate_calendar_endpoint(request: CalendarRequest):
    try:
        ics_bytes = generate_ics(
            request.document, request.route_index, request.start_date
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    city = request.document.get("city")
    if not isinstance(city, str) or not city.strip():
        city = "Trip"
    filename = f"Trip_to_{city.strip().replace(' ', '_')}.ics"
    return Response(
        content=ics_bytes,
        media_type="text/calendar",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
