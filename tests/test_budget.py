"""
Tests for context budgeting.

Run with: pytest tests/
"""

import pytest

from diffreview.budget import classify_depth, estimate_tokens, measure_context


def test_estimate_tokens_rounds_up():
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


def test_total_is_sum_of_sections():
    """Totals are exact sums, never separately estimated."""
    budget = measure_context(
        title="Fix login",
        description="Replaces eval with a parser",
        diff="diff --git a/a b/a\n+x\n+y",
        file_summary="- a: +2 -0",
        static_summary="## STATIC ANALYSIS RESULTS\nNo issues",
        context_sections="",
    )
    sections = budget.sections().values()

    assert budget.total.estimated_tokens == sum(s.tokens for s in sections)
    assert budget.total.chars == sum(s.chars for s in sections)
    assert budget.diff.lines == 3
    assert budget.title.lines is None


def test_utilization_percent():
    """Two decimals, relative to the model limit."""
    budget = measure_context("t" * 4, "", "", "", model_limit=400)
    assert budget.total.estimated_tokens == 1
    assert budget.total.utilization_percent == 0.25
    assert budget.total.model_limit == 400


def test_utilization_is_monotonic():
    """More tokens never report lower utilization."""
    previous = -1.0
    for size in range(0, 40000, 997):
        percent = measure_context("", "", "x" * size, "").total.utilization_percent
        assert percent >= previous
        previous = percent


@pytest.mark.parametrize(
    "tokens,depth",
    [
        (0, "shallow"),
        (19_999, "shallow"),
        (20_000, "moderate"),
        (50_000, "moderate"),
        (50_001, "deep"),
    ],
)
def test_classify_depth(tokens, depth):
    assert classify_depth(tokens) == depth
