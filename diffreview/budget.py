"""
Context budgeting for review prompts.

Token counts use a fixed chars/4 heuristic, not a tokenizer.
"""

import math

from diffreview.models import BudgetTotal, ContextBudget, SectionSize

DEFAULT_MODEL_LIMIT = 1_000_000
SHALLOW_LIMIT = 20_000
MODERATE_LIMIT = 50_000


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / 4)


def _section(text: str) -> SectionSize:
    return SectionSize(chars=len(text), tokens=estimate_tokens(text))


def _round_percent(tokens: int, model_limit: int) -> float:
    # Round half up to two decimals
    return math.floor(tokens / model_limit * 10000 + 0.5) / 100


def measure_context(
    title: str,
    description: str,
    diff: str,
    file_summary: str,
    static_summary: str = "",
    context_sections: str = "",
    model_limit: int = DEFAULT_MODEL_LIMIT,
) -> ContextBudget:
    """Size every prompt section and total them."""
    diff_section = _section(diff)
    diff_section.lines = len(diff.split("\n"))

    sections = {
        "title": _section(title),
        "description": _section(description),
        "diff": diff_section,
        "file_summary": _section(file_summary),
        "static_summary": _section(static_summary),
        "context_sections": _section(context_sections),
    }
    total_chars = sum(s.chars for s in sections.values())
    total_tokens = sum(s.tokens for s in sections.values())

    return ContextBudget(
        **sections,
        total=BudgetTotal(
            chars=total_chars,
            estimated_tokens=total_tokens,
            model_limit=model_limit,
            utilization_percent=_round_percent(total_tokens, model_limit),
        ),
    )


def classify_depth(estimated_tokens: int) -> str:
    """shallow below 20k tokens, moderate up to 50k, deep beyond."""
    if estimated_tokens < SHALLOW_LIMIT:
        return "shallow"
    if estimated_tokens <= MODERATE_LIMIT:
        return "moderate"
    return "deep"
