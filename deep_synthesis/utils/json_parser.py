"""Recover JSON from LLM output.

Parsing is a pipeline of independent attempts, each taking the raw text and
returning a tagged ``ParseResult``. Pipelines run the attempts in priority
order and stop at the first result whose value passes validation.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from deep_synthesis.core.exceptions import ParseError
from deep_synthesis.utils.logging import get_logger

LOGGER = get_logger(__name__)

CONTENT_TAG_PATTERN = re.compile(r"<content>([\s\S]*?)</content>", re.IGNORECASE)
OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")


@dataclass(frozen=True)
class ParseResult:
    ok: bool
    value: Any = None
    strategy: str = ""
    error: Optional[str] = None

    @classmethod
    def success(cls, value: Any, strategy: str) -> "ParseResult":
        return cls(ok=True, value=value, strategy=strategy)

    @classmethod
    def failure(cls, strategy: str, error: str) -> "ParseResult":
        return cls(ok=False, strategy=strategy, error=error)


ParseAttempt = Callable[[str], ParseResult]
# Returns an error message when the parsed value has the wrong shape.
Validator = Callable[[Any], Optional[str]]


def _loads(text: str, strategy: str) -> ParseResult:
    try:
        return ParseResult.success(json.loads(text), strategy)
    except (json.JSONDecodeError, TypeError) as e:
        return ParseResult.failure(strategy, str(e))


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code block (```json ... ```)."""
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def parse_direct(raw: str) -> ParseResult:
    """Parse the whole text as JSON."""
    if not raw or not raw.strip():
        return ParseResult.failure("direct", "empty content")
    return _loads(raw.strip(), "direct")


def parse_stripped_fences(raw: str) -> ParseResult:
    """Parse after removing markdown code fences."""
    if not raw or not raw.strip():
        return ParseResult.failure("fences", "empty content")
    return _loads(strip_code_fences(raw), "fences")


def parse_first_object(raw: str) -> ParseResult:
    """Parse the outermost ``{...}`` span found in the text.

    When the greedy span is not valid JSON (trailing chatter containing a
    brace), decode the first complete object starting at the first ``{``.
    """
    match = OBJECT_PATTERN.search(raw or "")
    if not match:
        return ParseResult.failure("first_object", "no JSON object found")

    result = _loads(match.group(0), "first_object")
    if result.ok:
        return result

    try:
        value, _ = json.JSONDecoder().raw_decode(raw, match.start())
        return ParseResult.success(value, "first_object")
    except json.JSONDecodeError as e:
        return ParseResult.failure("first_object", str(e))


def parse_wrapped_content(raw: str) -> ParseResult:
    """Parse JSON found inside a ``<content>...</content>`` wrapper."""
    match = CONTENT_TAG_PATTERN.search(raw or "")
    if not match:
        return ParseResult.failure("wrapped_content", "no <content> tag found")

    inner = strip_code_fences(match.group(1))
    result = _loads(inner, "wrapped_content")
    if result.ok:
        return result

    nested = parse_first_object(inner)
    if nested.ok:
        return ParseResult.success(nested.value, "wrapped_content")
    return ParseResult.failure("wrapped_content", nested.error or result.error or "unparseable")


def parse_concatenated_objects(raw: str) -> ParseResult:
    """Decode back-to-back JSON objects (``{...}\\n{...}``) and merge them."""
    text = strip_code_fences(raw or "")
    decoder = json.JSONDecoder()
    objects: List[Any] = []
    idx = 0
    while idx < len(text):
        start = text.find("{", idx)
        if start == -1:
            break
        try:
            obj, end = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            idx = start + 1
            continue
        objects.append(obj)
        idx = end

    if not objects:
        return ParseResult.failure("concatenated", "no JSON objects found")
    if len(objects) == 1:
        return ParseResult.success(objects[0], "concatenated")
    if not all(isinstance(obj, dict) for obj in objects):
        return ParseResult.failure("concatenated", "fragments are not all objects")
    return ParseResult.success(_merge_objects(objects), "concatenated")


def _merge_objects(objects: List[Dict[str, Any]]) -> Dict[str, Any]:
    merged: Dict[str, Any] = {}
    for obj in objects:
        for key, value in obj.items():
            existing = merged.get(key)
            if isinstance(existing, list) and isinstance(value, list):
                merged[key] = existing + value
            elif isinstance(existing, dict) and isinstance(value, dict):
                merged[key] = {**existing, **value}
            else:
                merged[key] = value
    return merged


JSON_MODE_ATTEMPTS: Sequence[ParseAttempt] = (parse_direct, parse_first_object)
TEXT_MODE_ATTEMPTS: Sequence[ParseAttempt] = (
    parse_wrapped_content,
    parse_first_object,
    parse_stripped_fences,
    parse_concatenated_objects,
)


def attempts_for(json_capable: bool) -> Sequence[ParseAttempt]:
    """Attempt order for a model with or without JSON output guarantees."""
    return JSON_MODE_ATTEMPTS if json_capable else TEXT_MODE_ATTEMPTS


def run_pipeline(
    raw: str,
    attempts: Sequence[ParseAttempt],
    validator: Optional[Validator] = None,
) -> ParseResult:
    """Run ``attempts`` in order; return the first valid result or an aggregate failure."""
    errors: List[str] = []
    for attempt in attempts:
        result = attempt(raw)
        if result.ok and validator is not None:
            problem = validator(result.value)
            if problem:
                result = ParseResult.failure(result.strategy, problem)
        if result.ok:
            LOGGER.debug(f"Parsed model output with strategy {result.strategy}")
            return result
        errors.append(f"{result.strategy}: {result.error}")

    return ParseResult.failure("pipeline", "; ".join(errors) or "no parse attempts configured")


def parse_or_raise(
    raw: str,
    attempts: Sequence[ParseAttempt],
    validator: Optional[Validator] = None,
    what: str = "model output",
) -> Any:
    """Like ``run_pipeline`` but raise ``ParseError`` when every attempt fails."""
    result = run_pipeline(raw, attempts, validator)
    if not result.ok:
        LOGGER.warning(
            f"Could not parse {what}",
            extra={"errors": result.error, "preview": (raw or "")[:200]},
        )
        raise ParseError(f"Failed to parse {what}: {result.error}")
    return result.value
