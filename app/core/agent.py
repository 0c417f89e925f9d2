import os
import json
import urllib.request
from typing import Any
from google import genai
from google.genai import types
from app.models.domain import TripRequest, ExtractionOutcome
from app.core.extractor import extract
from dotenv import load_dotenv

import logging

load_dotenv()

# Configure logger (inherits config when running in server)
logger = logging.getLogger("travel_agent_server.agent")


# Prioritized list of models to try
MODEL_CANDIDATES = [
    "gemini-2.5-flash",
    "gemini-2.0-flash",
    "gemini-flash-latest",
]

OPENROUTER_CANDIDATES = [
    "google/gemini-2.0-flash-exp:free",
    "meta-llama/llama-3.3-70b-instruct:free",
]

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"


def build_prompt(city: str, days: int) -> str:
    """
    Asks for a JSON-only answer with the exact itinerary shape.
    Kept short; longer prompts made models add commentary around the JSON.
    """
    return f"""Please generate ONLY valid JSON (no extra text) with itinerary ideas for the city of {city} for {days} days.
The JSON must have exactly this format:
{{
  "city": "<city name>",
  "days": <number of days>,
  "routes": [
    {{
      "title": "<short itinerary title>",
      "itinerary": [
         {{"day": 1, "places": ["Place A - short note", "Place B - short note"]}},
         {{"day": 2, "places": ["Place C", "Place D"]}}
      ]
    }}
  ]
}}
Return only the JSON."""


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _first(items: Any) -> Any:
    if isinstance(items, (list, tuple)) and items:
        return items[0]
    return None


def response_text(response: Any) -> str:
    """
    Locates the model text inside a provider response envelope.
    Falls back to dumping the envelope so there is always something to show.
    """
    if isinstance(response, str):
        return response

    text = _field(response, "text")
    if isinstance(text, str) and text:
        return text

    content = _field(_first(_field(response, "candidates")), "content")
    # SDK shape: content.parts[*].text
    for part in _field(content, "parts") or []:
        part_text = _field(part, "text")
        if isinstance(part_text, str) and part_text:
            return part_text

    # REST shapes seen in the wild
    candidates = [
        _field(_first(_field(_first(content), "parts")), "text"),
        _field(_first(_field(_first(_field(response, "output")), "content")), "text"),
        _field(_first(content), "text"),
    ]
    for candidate in candidates:
        if isinstance(candidate, str) and candidate:
            return candidate

    try:
        return json.dumps(response)
    except (TypeError, ValueError):
        return str(response)


class ItineraryAgent:
    def __init__(self):
        self.client = None
        self.temperature = float(os.environ.get("GEMINI_TEMPERATURE", "0.2"))

        api_key = os.environ.get("GOOGLE_API_KEY")
        if not api_key:
            logger.warning("GOOGLE_API_KEY not found in environment.")
        else:
            self.client = genai.Client(api_key=api_key)

    def _call_openrouter(self, prompt: str) -> str:
        """
        Fallback to OpenRouter if Google API fails.
        Tries multiple OpenRouter models in sequence.
        """
        api_key = os.environ.get("OPENROUTER_API_KEY")
        if not api_key:
            raise ValueError("OPENROUTER_API_KEY not found. Cannot use fallback.")

        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": "http://localhost:8000",
            "User-Agent": "Roteirizando/1.0",
        }

        last_error = None
        for model in OPENROUTER_CANDIDATES:
            logger.info(f"Attempting OpenRouter fallback with {model}...")
            data = {"model": model, "messages": [{"role": "user", "content": prompt}]}

            try:
                req = urllib.request.Request(
                    OPENROUTER_URL, json.dumps(data).encode(), headers
                )
                with urllib.request.urlopen(req) as response:
                    result = json.loads(response.read().decode())
                    if "choices" in result and result["choices"]:
                        logger.info(f"Success with OpenRouter ({model})!")
                        return str(result["choices"][0]["message"]["content"])
            except Exception as e:
                logger.warning(f"OpenRouter ({model}) failed: {e}")
                last_error = e
                continue

        raise ValueError(f"All OpenRouter candidates failed. Last error: {last_error}")

    def _call_model_with_fallback(self, prompt: str) -> str:
        """
        Tries to generate content using models in preference order.
        Returns the text of the first successful call.
        """
        last_error = None
        if self.client:
            config = types.GenerateContentConfig(
                temperature=self.temperature,
                top_p=1.0,
                top_k=40,
                response_mime_type="application/json",
            )

            for model_name in MODEL_CANDIDATES:
                try:
                    logger.info(f"Attempting with model: {model_name}...")
                    response = self.client.models.generate_content(
                        model=model_name,
                        contents=prompt,
                        config=config,
                    )
                    logger.info(f"Success with {model_name}!")
                    return response_text(response)
                except Exception as e:
                    logger.warning(f"Failed with {model_name}: {e}")
                    last_error = e
                    continue

        # If all Google models fail, try OpenRouter
        try:
            return self._call_openrouter(prompt)
        except Exception as or_error:
            # Report the last Google error if there was one, else the OpenRouter error
            final_error = last_error or or_error
            raise RuntimeError(
                f"All model candidates failed. Last error: {final_error}"
            ) from or_error

    def plan(self, request: TripRequest) -> ExtractionOutcome:
        """
        Generates itinerary ideas for the request and extracts them.
        Model/network failures propagate; extraction never fails.
        """
        prompt = build_prompt(request.city, request.days)
        raw_text = self._call_model_with_fallback(prompt)
        outcome = extract(raw_text)
        if not outcome.is_structured:
            logger.info(
                f"Model output for {request.city} had no usable routes, returning text fallback."
            )
            logger.debug(f"RAW Response: {raw_text}")
        return outcome
