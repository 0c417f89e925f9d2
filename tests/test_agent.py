import json
import pytest
from unittest.mock import MagicMock, patch
from app.core.agent import (
    MODEL_CANDIDATES,
    ItineraryAgent,
    build_prompt,
    response_text,
)
from app.models.domain import TripRequest

# Mock data for a valid plan
VALID_JSON_RESPONSE = """
{
    "city": "London",
    "days": 1,
    "routes": [
        {"title": "Royal London", "itinerary": [{"day": 1, "places": ["Big Ben", "Westminster Abbey"]}]}
    ]
}
"""


@pytest.fixture
def planner(monkeypatch):
    """Returns an ItineraryAgent instance with mocked Google Client."""
    monkeypatch.setenv("GOOGLE_API_KEY", "test-key")
    with patch("app.core.agent.genai.Client") as mock_client:
        planner = ItineraryAgent()
        planner.client = mock_client.return_value
        return planner


def test_prompt_mentions_city_and_days():
    prompt = build_prompt("Recife", 4)

    assert "Recife" in prompt
    assert "4 days" in prompt
    assert '"routes"' in prompt
    assert "Return only the JSON." in prompt


def test_plan_success(planner):
    """Verifies that plan parses a fenced JSON response correctly."""
    mock_response = MagicMock()
    mock_response.text = f"```json\n{VALID_JSON_RESPONSE}\n```"
    planner.client.models.generate_content.return_value = mock_response

    outcome = planner.plan(TripRequest(city="London", days=1))

    assert outcome.is_structured
    assert outcome.document["routes"][0]["title"] == "Royal London"
    kwargs = planner.client.models.generate_content.call_args.kwargs
    assert kwargs["model"] == MODEL_CANDIDATES[0]
    assert kwargs["config"].response_mime_type == "application/json"


def test_plan_prose_falls_back(planner):
    mock_response = MagicMock()
    mock_response.text = "Sorry, I can only suggest: visit the Tower of London."
    planner.client.models.generate_content.return_value = mock_response

    outcome = planner.plan(TripRequest(city="London", days=1))

    assert outcome.kind == "fallback"
    assert outcome.text == "Sorry, I can only suggest: visit the Tower of London."


def test_next_model_is_tried_after_failure(planner):
    mock_response = MagicMock()
    mock_response.text = VALID_JSON_RESPONSE
    planner.client.models.generate_content.side_effect = [
        Exception("404 model not found"),
        mock_response,
    ]

    outcome = planner.plan(TripRequest(city="London", days=1))

    assert outcome.is_structured
    assert planner.client.models.generate_content.call_count == 2


def test_openrouter_fallback(planner):
    """Verifies fallback logic when Google API fails."""
    planner.client.models.generate_content.side_effect = Exception("Quota Exceeded")

    with patch.object(
        planner, "_call_openrouter", return_value=VALID_JSON_RESPONSE
    ) as mock_or:
        outcome = planner.plan(TripRequest(city="London", days=1))

        mock_or.assert_called_once()
        assert outcome.is_structured


def test_all_candidates_failing_raises(planner):
    planner.client.models.generate_content.side_effect = Exception("429 RESOURCE_EXHAUSTED")

    with patch.object(
        planner, "_call_openrouter", side_effect=ValueError("no key")
    ):
        with pytest.raises(RuntimeError, match="429 RESOURCE_EXHAUSTED"):
            planner.plan(TripRequest(city="London", days=1))


def test_no_google_key_goes_straight_to_openrouter(monkeypatch):
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    agent = ItineraryAgent()
    assert agent.client is None

    with patch.object(agent, "_call_openrouter", return_value="[]") as mock_or:
        outcome = agent.plan(TripRequest(city="Oslo", days=2))

    mock_or.assert_called_once()
    assert outcome.kind == "fallback"


def test_call_openrouter_reads_choices(monkeypatch):
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    monkeypatch.setenv("OPENROUTER_API_KEY", "or-key")
    agent = ItineraryAgent()
    body = {"choices": [{"message": {"content": VALID_JSON_RESPONSE}}]}

    with patch("app.core.agent.urllib.request.urlopen") as mock_urlopen:
        mock_urlopen.return_value.__enter__.return_value.read.return_value = json.dumps(
            body
        ).encode()
        text = agent._call_openrouter("prompt")

    assert text == VALID_JSON_RESPONSE
    request = mock_urlopen.call_args.args[0]
    assert request.get_header("Authorization") == "Bearer or-key"


def test_call_openrouter_without_key(monkeypatch):
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)

    with pytest.raises(ValueError, match="OPENROUTER_API_KEY"):
        ItineraryAgent()._call_openrouter("prompt")


# --- response envelope ---


def test_response_text_prefers_text_attribute():
    response = MagicMock()
    response.text = "hello"

    assert response_text(response) == "hello"


@pytest.mark.parametrize(
    "envelope",
    [
        {"candidates": [{"content": {"parts": [{"text": "found"}]}}]},
        {"candidates": [{"content": [{"parts": [{"text": "found"}]}]}]},
        {"output": [{"content": [{"text": "found"}]}]},
        {"candidates": [{"content": [{"text": "found"}]}]},
    ],
)
def test_response_text_envelope_shapes(envelope):
    assert response_text(envelope) == "found"


def test_response_text_unknown_envelope_is_dumped():
    envelope = {"promptFeedback": {"blockReason": "SAFETY"}}

    assert json.loads(response_text(envelope)) == envelope
