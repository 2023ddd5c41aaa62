"""
Command-line entry point for the diff review pipeline.

Usage:
    diffreview --request-file review.json
    diffreview --request-file review.json --force-deep
    diffreview --diff-file change.diff --title "Add login" --no-static
    diffreview --request-file review.json --provider anthropic --review-model claude-sonnet-4-5
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from diffreview.config import load_settings
from diffreview.models import MultiModelResult, ReviewRequest
from diffreview.reviewer import DeepReviewError, MultiModelReviewer, report_metadata


def load_request(args: argparse.Namespace) -> ReviewRequest:
    """Load a review request from a JSON file, or build one around a raw diff file."""
    if args.request_file:
        with open(args.request_file, "r") as f:
            data = json.load(f)
        request = ReviewRequest.model_validate(data)
    else:
        diff = Path(args.diff_file).read_text()
        request = ReviewRequest(title=args.title or Path(args.diff_file).name, description=args.description, diff=diff)

    updates = {}
    if args.force_deep:
        updates["force_deep_analysis"] = True
    if args.no_static:
        updates["enable_static_analysis"] = False
    return request.model_copy(update=updates)


def save_output(output: MultiModelResult, filepath: str, metadata: dict):
    """Save review output to JSON file."""
    output_dir = Path(filepath).parent
    output_dir.mkdir(parents=True, exist_ok=True)

    report = output.model_dump(by_alias=True, mode="json")
    report["metadata"] = metadata
    with open(filepath, "w") as f:
        json.dump(report, f, indent=2)

    print(f"\nReview output saved to: {filepath}")


def _print_suggestions(label: str, suggestions):
    if isinstance(suggestions, str):
        print(f"\n{label}:\n  {suggestions}")
        return
    if not suggestions:
        return

    print(f"\n{label}:")
    for i, item in enumerate(suggestions, 1):
        location = f"{item.file}:{item.line}" if item.line else item.file
        print(f"\n{i}. [{item.severity}] {item.category} - {location}")
        print(f"   {item.issue}")
        print(f"   Fix: {item.suggestion}")


def print_summary(output: MultiModelResult):
    """Print human-readable summary to console."""
    review = output.pro_analysis
    print("\n" + "=" * 60)
    print(f"CODE REVIEW SUMMARY - verdict: {review.final_verdict}")
    print("=" * 60)

    print(f"\n{review.summary}")
    print(f"\nMode: {output.analysis_mode}")
    if output.flash_analysis:
        print(f"Triage complexity: {output.flash_analysis.complexity}")
    print(f"Cost units: {output.total_cost}")
    print(f"Review time: {output.processing_time_ms}ms")

    integration = review.static_analysis_integration
    print(f"\nStatic analysis: {integration.issues_found} issues ({', '.join(integration.tools_used) or 'no tools'})")
    for finding in integration.high_priority_findings:
        print(f"  - {finding}")

    metrics = review.context_metrics
    print(
        f"Context: {metrics.files_analyzed} files, {metrics.hunks_extracted} hunks, "
        f"~{metrics.total_tokens_estimate} tokens ({metrics.analysis_depth})"
    )

    _print_suggestions("POTENTIAL ISSUES", review.potential_issues)
    _print_suggestions("REFACTOR SUGGESTIONS", review.refactor_suggestions)

    print("\n" + "=" * 60)


def main(argv=None):
    """Main CLI entry point."""
    load_dotenv()  # Load environment variables from .env file
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    parser = argparse.ArgumentParser(
        description="Diff review - static analysis plus two-tier LLM review"
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--request-file", help="Path to review request JSON file")
    source.add_argument("--diff-file", help="Path to a unified diff file")
    parser.add_argument("--title", help="Change title (with --diff-file)")
    parser.add_argument("--description", default="", help="Change description (with --diff-file)")
    parser.add_argument(
        "--output",
        default="output/review_results.json",
        help="Output file path (default: output/review_results.json)",
    )
    parser.add_argument("--force-deep", action="store_true", help="Skip triage and run the deep review only")
    parser.add_argument("--no-static", action="store_true", help="Skip static analysis")
    parser.add_argument(
        "--provider",
        choices=["openai", "anthropic", "local"],
        help="LLM provider (default: DIFFREVIEW_PROVIDER or openai)",
    )
    parser.add_argument("--triage-model", help="Model for the triage pass")
    parser.add_argument("--review-model", help="Model for the deep review pass")

    args = parser.parse_args(argv)

    try:
        settings = load_settings(
            llm_provider=args.provider,
            triage_model=args.triage_model,
            review_model=args.review_model,
        )
        request = load_request(args)
        print(f"Loaded change: {request.title}")

        print(f"\nRunning review ({settings.llm_provider}: {settings.triage_model} -> {settings.review_model})...")
        reviewer = MultiModelReviewer.from_settings(settings)
        output = asyncio.run(reviewer.review_request(request))

        print_summary(output)
        save_output(output, args.output, report_metadata(settings))
        return 0

    except FileNotFoundError as e:
        print(f"Error: file not found: {e.filename}", file=sys.stderr)
        return 1

    except DeepReviewError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    except Exception as e:
        print(f"Error: {str(e)}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
