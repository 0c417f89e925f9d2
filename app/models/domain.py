from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, field_validator


def _as_int(value: Any) -> Optional[int]:
    # bool is an int subclass; "true" is never a day count
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _as_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


class TripRequest(BaseModel):
    city: str = Field(min_length=1)
    days: int = Field(default=3, ge=1, le=7)

    @field_validator("city")
    @classmethod
    def _strip_city(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("city must not be blank")
        return value


class DayPlan(BaseModel):
    day: Optional[int] = None
    places: Optional[List[str]] = None

    @field_validator("day", mode="before")
    @classmethod
    def _lenient_day(cls, value: Any) -> Optional[int]:
        return _as_int(value)

    @field_validator("places", mode="before")
    @classmethod
    def _lenient_places(cls, value: Any) -> Optional[List[str]]:
        if not isinstance(value, list):
            return None
        # Scalars are shown as text, nested containers are dropped
        return [
            item if isinstance(item, str) else str(item)
            for item in value
            if isinstance(item, (str, int, float)) and not isinstance(item, bool)
        ]


class Route(BaseModel):
    title: Optional[str] = None
    itinerary: Optional[List[DayPlan]] = None

    @field_validator("title", mode="before")
    @classmethod
    def _lenient_title(cls, value: Any) -> Optional[str]:
        return _as_str(value)

    @field_validator("itinerary", mode="before")
    @classmethod
    def _lenient_itinerary(cls, value: Any) -> Optional[List[Any]]:
        if not isinstance(value, list):
            return None
        return [item for item in value if isinstance(item, dict)]


class ItineraryDocument(BaseModel):
    """
    Lenient view over whatever mapping the model produced.
    Wrong-kind values are dropped to None instead of failing validation,
    so any dict can be viewed through this model.
    """

    city: Optional[str] = None
    days: Optional[int] = None
    routes: Optional[List[Route]] = None

    @field_validator("city", mode="before")
    @classmethod
    def _lenient_city(cls, value: Any) -> Optional[str]:
        return _as_str(value)

    @field_validator("days", mode="before")
    @classmethod
    def _lenient_days(cls, value: Any) -> Optional[int]:
        return _as_int(value)

    @field_validator("routes", mode="before")
    @classmethod
    def _lenient_routes(cls, value: Any) -> Optional[List[Any]]:
        if not isinstance(value, list):
            return None
        return [item for item in value if isinstance(item, dict)]


class ExtractionOutcome(BaseModel):
    kind: Literal["structured", "fallback"]
    document: Optional[Dict[str, Any]] = None
    text: Optional[str] = None

    @classmethod
    def structured(cls, document: Dict[str, Any]) -> "ExtractionOutcome":
        return cls(kind="structured", document=document)

    @classmethod
    def fallback(cls, text: str) -> "ExtractionOutcome":
        return cls(kind="fallback", text=text)

    @property
    def is_structured(self) -> bool:
        return self.kind == "structured"

    @property
    def itinerary(self) -> Optional[ItineraryDocument]:
        if self.document is None:
            return None
        return ItineraryDocument.model_validate(self.document)


class PlanResponse(BaseModel):
    kind: Literal["structured", "fallback"]
    document: Optional[Dict[str, Any]] = None
    text: Optional[str] = None
    markdown: str


class ExtractRequest(BaseModel):
    text: str
    days: int = Field(default=3, ge=1, le=7)


class CalendarRequest(BaseModel):
    document: Dict[str, Any]
    route_index: int = Field(default=0, ge=0)
    start_date: Optional[str] = None
