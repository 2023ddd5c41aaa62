"""
Defensive parsing of LLM JSON output.

The model is an untrusted JSON producer. Review responses go through three
explicit stages, tried in order:

1. strict     - strip markdown fences, parse the whole text
2. extracted  - parse the substring between the first "{" and the last "}"
3. salvaged   - regex out individual fields, fill the rest with placeholders

The salvage stage always succeeds, so ``parse_review_response`` never raises.
"""

import json
import logging
import re
from typing import Any, Dict, List, NamedTuple, Optional, Union

from pydantic import ValidationError

from diffreview.llm import LLMInvalidOutputError
from diffreview.models import CodeSuggestion, FlashTriageResult, StructuredReviewResult, TestRecommendation

logger = logging.getLogger(__name__)

SUMMARY_PLACEHOLDER = "AI analysis completed - parsing error occurred"
PARSE_FAILURE_PLACEHOLDER = "Analysis completed but response parsing failed. Raw response logged."
DEFAULT_SUMMARY = "Analysis completed"
DEFAULT_VERDICT = "minor_changes"

VERDICTS = ("safe", "minor_changes", "major_fixes")
SUGGESTION_CATEGORIES = ("Security", "Performance", "Logic", "Architecture", "Style", "Testing")

LEADING_FENCE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
TRAILING_FENCE = re.compile(r"\s*```$")
STRING_VALUE = r'"((?:[^"\\]|\\.)*)"'


class ParseResult(NamedTuple):
    ok: bool
    data: Optional[Dict[str, Any]]
    stage: str
    error: Optional[str] = None


def strip_code_fences(text: str) -> str:
    text = LEADING_FENCE.sub("", text.strip())
    return TRAILING_FENCE.sub("", text).strip()


def _load_object(text: str, stage: str) -> ParseResult:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        return ParseResult(False, None, stage, f"Invalid JSON: {e}")
    if not isinstance(data, dict):
        return ParseResult(False, None, stage, "JSON is not an object")
    return ParseResult(True, data, stage)


def parse_strict(text: str) -> ParseResult:
    return _load_object(strip_code_fences(text), "strict")


def parse_extracted(text: str) -> ParseResult:
    cleaned = strip_code_fences(text)
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end <= start:
        return ParseResult(False, None, "extracted", "No JSON object found")
    return _load_object(cleaned[start:end + 1], "extracted")


def _extract_string_field(text: str, name: str) -> Optional[str]:
    match = re.search(rf'"{name}"\s*:\s*{STRING_VALUE}', text, re.DOTALL)
    if not match:
        return None
    try:
        return json.loads(f'"{match.group(1)}"')
    except json.JSONDecodeError:
        return match.group(1)


def salvage_fields(text: str) -> ParseResult:
    """Recover what can be read from a response that is not valid JSON."""
    verdict = _extract_string_field(text, "finalVerdict")
    data = {
        "summary": _extract_string_field(text, "summary") or SUMMARY_PLACEHOLDER,
        "refactorSuggestions": _extract_string_field(text, "refactorSuggestions") or PARSE_FAILURE_PLACEHOLDER,
        "potentialIssues": _extract_string_field(text, "potentialIssues") or PARSE_FAILURE_PLACEHOLDER,
        "finalVerdict": verdict if verdict in VERDICTS else DEFAULT_VERDICT,
    }
    return ParseResult(True, data, "salvaged")


def parse_review_response(text: str) -> ParseResult:
    """Run the three stages in order and return the first success."""
    errors = []
    for stage in (parse_strict, parse_extracted):
        result = stage(text)
        if result.ok:
            return result
        errors.append(f"{result.stage}: {result.error}")

    logger.warning(f"Review response is not parseable JSON ({'; '.join(errors)}), salvaging fields")
    logger.warning(f"Response length: {len(text)}, first 500 chars: {text[:500]}")
    return salvage_fields(text)


def _pick(data: Dict[str, Any], camel: str, snake: str, default: Any = None) -> Any:
    if camel in data:
        return data[camel]
    return data.get(snake, default)


def _normalize_suggestion(item: Dict[str, Any]) -> Dict[str, Any]:
    item = dict(item)
    if isinstance(item.get("severity"), str):
        item["severity"] = item["severity"].upper()
    if isinstance(item.get("category"), str):
        for category in SUGGESTION_CATEGORIES:
            if item["category"].lower() == category.lower():
                item["category"] = category
    return item


def _coerce_suggestions(value: Any) -> Union[List[CodeSuggestion], str]:
    if isinstance(value, str):
        return value
    if not isinstance(value, list):
        return []

    suggestions = []
    for item in value:
        if not isinstance(item, dict):
            continue
        try:
            suggestions.append(CodeSuggestion.model_validate(_normalize_suggestion(item)))
        except ValidationError as e:
            # Log but don't fail - skip invalid suggestions
            logger.warning(f"Skipping invalid suggestion: {e.errors()[0]['msg']}")
    return suggestions


def _coerce_test_recommendations(value: Any) -> List[TestRecommendation]:
    if not isinstance(value, list):
        return []

    recommendations = []
    for item in value:
        try:
            recommendations.append(TestRecommendation.model_validate(item))
        except ValidationError:
            logger.warning("Skipping invalid test recommendation")
    return recommendations


def coerce_review(result: ParseResult) -> StructuredReviewResult:
    """Build a review result from parsed data, defaulting whatever is missing or invalid."""
    data = result.data or {}

    summary = data.get("summary")
    verdict = _pick(data, "finalVerdict", "final_verdict")

    return StructuredReviewResult(
        summary=summary if isinstance(summary, str) and summary.strip() else DEFAULT_SUMMARY,
        potential_issues=_coerce_suggestions(_pick(data, "potentialIssues", "potential_issues")),
        refactor_suggestions=_coerce_suggestions(_pick(data, "refactorSuggestions", "refactor_suggestions")),
        test_recommendations=_coerce_test_recommendations(_pick(data, "testRecommendations", "test_recommendations")),
        final_verdict=verdict if verdict in VERDICTS else DEFAULT_VERDICT,
        parse_stage=result.stage,
    )


def parse_triage_response(text: str) -> FlashTriageResult:
    """
    Parse the triage pass output.

    Raises LLMInvalidOutputError when no valid triage object can be read;
    the caller substitutes a conservative default.
    """
    result = parse_strict(text)
    if not result.ok:
        result = parse_extracted(text)
    if not result.ok:
        raise LLMInvalidOutputError(f"Triage output is not valid JSON: {result.error}")

    data = dict(result.data)
    if isinstance(data.get("complexity"), str):
        data["complexity"] = data["complexity"].upper()

    try:
        return FlashTriageResult.model_validate(data)
    except ValidationError as e:
        raise LLMInvalidOutputError(f"Triage output does not match schema: {e.errors()[0]['msg']}")
