import argparse
import sys
from pathlib import Path
from app.models.domain import TripRequest
from app.core.agent import ItineraryAgent
from app.core.extractor import extract
from app.services.rendering import render_error, render_outcome


def main(argv=None):
    parser = argparse.ArgumentParser(description="Roteirizando itinerary generator")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--city", type=str, help="City to visit")
    source.add_argument(
        "--from-file",
        type=Path,
        help="Extract an itinerary from a saved model response instead of calling the model",
    )
    parser.add_argument(
        "--days", type=int, default=3, choices=range(1, 8), help="Number of days (1-7)"
    )

    args = parser.parse_args(argv)

    if args.from_file:
        raw_text = args.from_file.read_text(encoding="utf-8")
        print(render_outcome(extract(raw_text), args.days))
        return 0

    if not args.city.strip():
        parser.error("--city must not be blank")

    request = TripRequest(city=args.city, days=args.days)
    print(f"--- Generating {request.days}-day itinerary ideas for {request.city} ---")

    agent = ItineraryAgent()
    try:
        outcome = agent.plan(request)
    except Exception as e:
        print(render_error(str(e)), file=sys.stderr)
        return 1

    print(render_outcome(outcome, request.days))
    return 0


if __name__ == "__main__":
    sys.exit(main())
