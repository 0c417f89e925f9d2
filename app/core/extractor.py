import json
import logging
import re
from typing import Any, Callable, NamedTuple, Optional, Tuple, Union

from app.models.domain import ExtractionOutcome

logger = logging.getLogger("travel_agent_server.extractor")

# Upper bound on parse/rewrite rounds, keeps adversarial input from looping
MAX_ROUNDS = 6
# Upper bound on escape-decoding passes in normalize
MAX_NORMALIZE_PASSES = 32

FENCE = "```"
# Opening fence; a language tag counts only when it is alone on the fence line
_FENCE_OPEN = re.compile(r"```(?:[\w+-]*[ \t]*\r?\n)?")
_BRACE_SPAN = re.compile(r"\{[\s\S]*\}")

_QUOTE_ESCAPES = re.compile(r"(?<!\\)\\+([\"'])")
_CONTROL_ESCAPES = re.compile(r"\\([nrt])")
_CONTROL_CHARS = {"n": "\n", "r": "\r", "t": "\t"}

# strict=False: models regularly put raw newlines inside string values
_DECODER = json.JSONDecoder(strict=False)


class Matched(NamedTuple):
    value: Any


class Rewritten(NamedTuple):
    text: str


# None is the "no match" tag
StrategyResult = Optional[Union[Matched, Rewritten]]
Strategy = Callable[[str], StrategyResult]


def _parse(text: str) -> Tuple[bool, Any]:
    try:
        return True, _DECODER.decode(text)
    except (ValueError, RecursionError):
        return False, None


def _prepare(text: str) -> str:
    """
    Trims, removes one enclosing code fence and one pair of outer double quotes.
    """
    text = text.strip()
    opening = _FENCE_OPEN.match(text)
    if opening:
        text = text[opening.end() :].lstrip()
    if text.endswith(FENCE):
        text = text[: -len(FENCE)].rstrip()
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        text = text[1:-1]
    return text


def _unwrap(text: str) -> str:
    """
    Removes every layer of surrounding whitespace, fences and double quotes
    in a single scan over the ends of the text.
    """
    start, end = 0, len(text)
    while start < end:
        if text[start].isspace():
            start += 1
        elif text[end - 1].isspace():
            end -= 1
        elif text.startswith(FENCE, start):
            start = _FENCE_OPEN.match(text, start, end).end()
        elif text.endswith(FENCE, start, end):
            end -= len(FENCE)
        elif end - start >= 2 and text[start] == '"' and text[end - 1] == '"':
            start += 1
            end -= 1
        else:
            break
    return text[start:end]


def decode_escapes(text: str) -> str:
    """
    Decodes escape sequences left behind when JSON was escaped into a string.

    If the whole text is a valid JSON string body it is decoded exactly,
    which keeps nested escapes (e.g. a quoted \\n inside a value) intact.
    Otherwise only the common sequences \\n \\r \\t \\" \\' are replaced,
    in one pass: a backslash run before a quote is dropped entirely.
    """
    if "\\" in text:
        ok, decoded = _parse('"' + text + '"')
        if ok and isinstance(decoded, str):
            return decoded

    text = _QUOTE_ESCAPES.sub(r"\1", text)
    return _CONTROL_ESCAPES.sub(lambda m: _CONTROL_CHARS[m.group(1)], text)


def normalize(text: str) -> str:
    """
    Fence/quote stripping plus escape decoding, repeated until stable.

    Unwrapping is done in one linear scan, so only escape decoding
    (nested encodings) needs another pass. Every change shortens the text;
    below MAX_NORMALIZE_PASSES layers normalize(normalize(s)) == normalize(s).
    """
    current = _unwrap(text)
    for _ in range(MAX_NORMALIZE_PASSES):
        decoded = _unwrap(decode_escapes(current))
        if decoded == current:
            return current
        current = decoded
    logger.debug(f"normalize stopped after {MAX_NORMALIZE_PASSES} passes")
    return current


# --- Strategies ---


def parse_whole(text: str) -> StrategyResult:
    ok, value = _parse(text)
    if not ok:
        return None
    if isinstance(value, str):
        # Double-encoded payload: keep peeling
        return Rewritten(value)
    if isinstance(value, (dict, list)):
        return Matched(value)
    return None


def unescape(text: str) -> StrategyResult:
    decoded = decode_escapes(text)
    if decoded != text:
        return Rewritten(decoded)
    return None


def _span(text: str, opener: str, closer: str) -> Optional[str]:
    start = text.find(opener)
    end = text.rfind(closer)
    if start == -1 or end <= start:
        return None
    return text[start : end + 1]


def slice_object(text: str) -> StrategyResult:
    span = _span(text, "{", "}")
    if span is None:
        return None
    ok, value = _parse(span)
    return Matched(value) if ok else None


def slice_array(text: str) -> StrategyResult:
    span = _span(text, "[", "]")
    if span is None:
        return None
    ok, value = _parse(span)
    if ok and isinstance(value, list):
        # A bare list is taken to be the routes
        return Matched({"routes": value})
    return None


STRATEGIES: Tuple[Strategy, ...] = (parse_whole, unescape, slice_object, slice_array)


def run_strategies(text: str, max_rounds: int = MAX_ROUNDS) -> Optional[Matched]:
    """
    Runs STRATEGIES in order. A Rewritten result replaces the working text and
    starts a new round; a round where nothing matches or rewrites ends the search.
    """
    current = text
    for round_number in range(1, max_rounds + 1):
        for strategy in STRATEGIES:
            result = strategy(current)
            if isinstance(result, Matched):
                logger.debug(f"{strategy.__name__} matched in round {round_number}")
                return result
            if isinstance(result, Rewritten):
                current = result.text
                break
        else:
            return None

    logger.debug(f"No structure recovered after {max_rounds} rounds")
    return None


def sweep_braces(text: str) -> Optional[Matched]:
    found = _BRACE_SPAN.search(text)
    if not found:
        return None
    ok, value = _parse(found.group(0))
    return Matched(value) if ok else None


def classify(value: Any) -> ExtractionOutcome:
    routes = value.get("routes") if isinstance(value, dict) else None
    if isinstance(routes, list) and routes:
        return ExtractionOutcome.structured(value)
    return ExtractionOutcome.fallback(json.dumps(value, indent=2, ensure_ascii=False))


def extract(raw_text: str) -> ExtractionOutcome:
    """
    Recovers an itinerary document from model output.

    Never raises: text without any recoverable JSON comes back as a
    fallback carrying the normalized text.
    """
    if not isinstance(raw_text, str):
        raw_text = ""

    prepared = _prepare(raw_text)
    match = run_strategies(prepared)
    if match is None:
        match = sweep_braces(prepared)

    if match is None:
        return ExtractionOutcome.fallback(normalize(raw_text).strip())
    return classify(match.value)
